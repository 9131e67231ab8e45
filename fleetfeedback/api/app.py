"""
HTTP layer. Calls use-cases only; no business rules here.
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from fleetfeedback.api.schemas import (
    ActiveDriverSchema,
    ActivePlateSchema,
    ErrorResponse,
    IncidentRequest,
    InternalComplimentRequest,
    PublicComplimentRequest,
    SubmissionResponse,
)
from fleetfeedback.common.run_id import generate_run_id
from fleetfeedback.common.sanitize import truncateText
from fleetfeedback.domain.error_codes import ErrorCode
from fleetfeedback.domain.exceptions import ValidationError
from fleetfeedback.errors import AppError
from fleetfeedback.infra.logging.setup import logEvent
from fleetfeedback.runtime import ServiceRuntime
from fleetfeedback.usecases.forms import IncidentForm, InternalComplimentForm, PublicComplimentForm

INTERNAL_ERROR_MESSAGE = "Internal error. Please try again later."
INVALID_BODY_MESSAGE = "Invalid request body."


def _error_status(code: ErrorCode) -> str:
    if code is ErrorCode.DUPLICATE_SUBMISSION:
        return "blocked"
    return "error"


def _error_response(status_code: int, status: str, message: str, code: ErrorCode) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(status=status, message=message, code=code.value).model_dump(),
    )


def create_app(runtime: ServiceRuntime) -> FastAPI:
    """
    Назначение:
        Собирает FastAPI-приложение поверх готового ServiceRuntime.

    Поведение:
        - Каждый запрос получает свой runId (request.state.run_id) для логов.
        - Ожидаемые исходы (400/404/409) отдаются с конкретным сообщением;
          операционные сбои -> 500 с общим сообщением, детали только в логе.
        - Нераспознанное тело запроса -> 400 VALIDATION_ERROR, как и прочие ошибки ввода.
        - Заголовок X-App-Build есть в каждом ответе, включая 500.
    """
    settings = runtime.settings
    logger = runtime.logger

    app = FastAPI(title="Fleet feedback intake", version="1.0.0")
    app.state.runtime = runtime

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", settings.token_header],
    )

    @app.middleware("http")
    async def attach_run_id(request: Request, call_next):
        run_id = generate_run_id()
        request.state.run_id = run_id
        try:
            response = await call_next(request)
        except Exception as exc:
            logEvent(logger, logging.ERROR, run_id, "http", f"{request.url.path} crashed: {exc.__class__.__name__}: {exc}")
            response = _error_response(500, "error", INTERNAL_ERROR_MESSAGE, ErrorCode.UNEXPECTED_ERROR)
        response.headers["X-App-Build"] = settings.build_tag
        return response

    @app.exception_handler(AppError)
    async def handle_app_error(request: Request, exc: AppError):
        run_id = getattr(request.state, "run_id", runtime.run_id)
        if exc.user_facing:
            logEvent(logger, logging.INFO, run_id, "http", f"{request.url.path} rejected code={exc.code} details={exc.details}")
            message = exc.message
        else:
            logEvent(logger, logging.ERROR, run_id, "http", f"{request.url.path} failed: {truncateText(str(exc.to_dict()))}")
            message = INTERNAL_ERROR_MESSAGE
        return _error_response(exc.http_status(), _error_status(exc.error_code), message, exc.error_code)

    @app.exception_handler(RequestValidationError)
    async def handle_invalid_body(request: Request, exc: RequestValidationError):
        errors = exc.errors()
        location = errors[0].get("loc", ()) if errors else ()
        field = next((str(part) for part in reversed(location) if isinstance(part, str) and part != "body"), None)
        return await handle_app_error(request, ValidationError(INVALID_BODY_MESSAGE, field=field))

    def token_of(request: Request) -> str | None:
        return request.headers.get(settings.token_header)

    @app.post("/compliments", response_model=SubmissionResponse)
    def post_public_compliment(body: PublicComplimentRequest, request: Request) -> SubmissionResponse:
        form = PublicComplimentForm(
            author_name=body.author_name,
            plate=body.plate,
            phone=body.phone,
            message=body.message,
            driver_name=body.driver_name,
            coordinates=body.to_coordinates(),
        )
        outcome = runtime.public_compliments.submit(form, token_of(request), request.state.run_id)
        return SubmissionResponse(message="Compliment saved.", id=outcome.submission_id)

    @app.post("/incidents", response_model=SubmissionResponse)
    def post_incident(body: IncidentRequest, request: Request) -> SubmissionResponse:
        form = IncidentForm(
            author_name=body.author_name,
            plate=body.plate,
            phone=body.phone,
            incident_type=body.incident_type,
            description=body.description,
            coordinates=body.to_coordinates(),
        )
        outcome = runtime.incidents.submit(form, request.state.run_id)
        return SubmissionResponse(message="Incident saved.", id=outcome.submission_id)

    @app.post("/compliments/internal", response_model=SubmissionResponse)
    def post_internal_compliment(body: InternalComplimentRequest, request: Request) -> SubmissionResponse:
        form = InternalComplimentForm(
            registration=body.registration,
            message=body.message,
            author_name=body.author_name,
            phone=body.phone,
            coordinates=body.to_coordinates(),
        )
        outcome = runtime.internal_compliments.submit(form, token_of(request), request.state.run_id)
        return SubmissionResponse(message="Internal compliment saved.", id=outcome.submission_id)

    @app.get("/drivers/active", response_model=list[ActiveDriverSchema])
    def get_active_drivers() -> list[ActiveDriverSchema]:
        return [ActiveDriverSchema(registration=d.registration, name=d.name) for d in runtime.directory.active_drivers()]

    @app.get("/trailers/active", response_model=list[ActivePlateSchema])
    def get_active_trailers(q: str | None = None, limit: str | None = Query(default=None)) -> list[ActivePlateSchema]:
        return [ActivePlateSchema(plate=p) for p in runtime.directory.search_active_plates(q, limit)]

    return app
