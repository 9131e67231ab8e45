from __future__ import annotations

import logging

from fleetfeedback.common.time import Clock
from fleetfeedback.domain.assets.active_asset_checker import ActiveAssetChecker
from fleetfeedback.domain.dedup.duplicate_guard import DuplicateGuard
from fleetfeedback.domain.exceptions import DuplicateSubmission, NotFoundOrInactive, ValidationError
from fleetfeedback.domain.models import Submission, SubmissionKind, SubmissionOutcome
from fleetfeedback.domain.plates import normalize
from fleetfeedback.domain.ports.geocoding import GeoEnricherProtocol
from fleetfeedback.domain.ports.submissions import SubmissionStoreProtocol
from fleetfeedback.infra.logging.setup import logEvent
from fleetfeedback.usecases.forms import PublicComplimentForm
from fleetfeedback.usecases.submission_rules import (
    enrich_location,
    location_columns,
    require_actor_token,
    require_fields,
)

PUBLIC_KIND_LABEL = "Externo"
PUBLIC_POINTS = 1


class SubmitPublicComplimentUseCase:
    """
    Назначение/ответственность:
        Приём публичной похвалы водителю по номеру прицепа.

    Порядок (строгий):
        normalize -> проверка активности (шлюз) -> проверка дубля -> водитель
        -> геообогащение -> запись.
        Шлюз обрывает обработку до любой другой работы.
    """

    def __init__(
        self,
        checker: ActiveAssetChecker,
        guard: DuplicateGuard,
        store: SubmissionStoreProtocol,
        enricher: GeoEnricherProtocol | None,
        clock: Clock,
        logger: logging.Logger,
    ):
        if guard.kind is not SubmissionKind.PUBLIC_COMPLIMENT:
            raise ValueError("public compliments need a plate-keyed duplicate guard")
        self.checker = checker
        self.guard = guard
        self.store = store
        self.enricher = enricher
        self.clock = clock
        self.logger = logger

    def submit(self, form: PublicComplimentForm, actor_token: str | None, run_id: str) -> SubmissionOutcome:
        token = require_actor_token(actor_token)
        fields = require_fields(
            {
                "author_name": form.author_name,
                "plate": form.plate,
                "phone": form.phone,
                "message": form.message,
            }
        )
        key = normalize(fields["plate"])
        if not key:
            raise ValidationError("Invalid trailer plate.", field="plate")

        if not self.checker.exists_active_asset(key):
            raise NotFoundOrInactive(key)

        if self.guard.is_recent_duplicate(key, token):
            raise DuplicateSubmission(
                key,
                self.guard.window_days,
                f"You already complimented this trailer in the last {self.guard.window_days} days.",
            )

        driver_name = (form.driver_name or "").strip() or self.checker.lookup_operator(key)
        if not driver_name:
            raise ValidationError("Driver name is required: no active driver assigned to this trailer.", field="driver_name")

        location = enrich_location(self.enricher, form.coordinates, self.logger, run_id)

        submission = Submission(
            kind=SubmissionKind.PUBLIC_COMPLIMENT,
            entity_key=key,
            actor_token=token,
            timestamp=self.clock(),
            payload={
                "nome": fields["author_name"],
                "nome_motorista": driver_name,
                "telefone": fields["phone"],
                "elogio": fields["message"],
                "tipo": PUBLIC_KIND_LABEL,
                "pontos": PUBLIC_POINTS,
                "user_agent": form.coordinates.user_agent or None,
                **location_columns(form.coordinates, location),
            },
        )
        submission_id = self.store.insert(submission)
        logEvent(self.logger, logging.INFO, run_id, "compliment", f"public compliment stored plate={key} id={submission_id}")
        return SubmissionOutcome(kind=submission.kind, entity_key=key, submission_id=submission_id, geo=location)
