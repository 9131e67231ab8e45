from __future__ import annotations

import logging

from fleetfeedback.common.time import Clock
from fleetfeedback.domain.dedup.duplicate_guard import DuplicateGuard
from fleetfeedback.domain.exceptions import DuplicateSubmission, StoreQueryError, UpstreamUnavailable, ValidationError
from fleetfeedback.domain.models import Submission, SubmissionKind, SubmissionOutcome
from fleetfeedback.domain.plates import only_digits
from fleetfeedback.domain.ports.fleet import PersonnelRegistryProtocol
from fleetfeedback.domain.ports.geocoding import GeoEnricherProtocol
from fleetfeedback.domain.ports.submissions import SubmissionStoreProtocol
from fleetfeedback.infra.logging.setup import logEvent
from fleetfeedback.usecases.forms import InternalComplimentForm
from fleetfeedback.usecases.submission_rules import (
    enrich_location,
    location_columns,
    parse_phone,
    require_actor_token,
    require_fields,
)

INTERNAL_KIND_LABEL = "Interno"
INTERNAL_POINTS = 2
UNKNOWN_DRIVER = "Desconhecido"


class SubmitInternalComplimentUseCase:
    """
    Назначение/ответственность:
        Внутренняя похвала сотруднику по матрикуле.

    Поведение:
        - Дубли подавляются по (матрикула, токен).
        - Имя сотрудника необязательно: при недоступном реестре пишется UNKNOWN_DRIVER.
    """

    def __init__(
        self,
        personnel: PersonnelRegistryProtocol,
        guard: DuplicateGuard,
        store: SubmissionStoreProtocol,
        enricher: GeoEnricherProtocol | None,
        clock: Clock,
        logger: logging.Logger,
    ):
        if guard.kind is not SubmissionKind.INTERNAL_COMPLIMENT:
            raise ValueError("internal compliments need a registration-keyed duplicate guard")
        self.personnel = personnel
        self.guard = guard
        self.store = store
        self.enricher = enricher
        self.clock = clock
        self.logger = logger

    def submit(self, form: InternalComplimentForm, actor_token: str | None, run_id: str) -> SubmissionOutcome:
        token = require_actor_token(actor_token)
        fields = require_fields(
            {
                "registration": form.registration,
                "message": form.message,
                "author_name": form.author_name,
                "phone": form.phone,
            }
        )
        registration = only_digits(fields["registration"])
        if not registration:
            raise ValidationError("Invalid registration number.", field="registration")
        phone = parse_phone(fields["phone"])

        if self.guard.is_recent_duplicate(registration, token):
            raise DuplicateSubmission(
                registration,
                self.guard.window_days,
                f"You already complimented this driver in the last {self.guard.window_days} days.",
            )

        driver_name = self._driver_name(registration, run_id)
        location = enrich_location(self.enricher, form.coordinates, self.logger, run_id)

        submission = Submission(
            kind=SubmissionKind.INTERNAL_COMPLIMENT,
            entity_key=registration,
            actor_token=token,
            timestamp=self.clock(),
            payload={
                "elogio": fields["message"],
                "motorista": driver_name,
                "telefone": phone,
                "tipo": INTERNAL_KIND_LABEL,
                "pontos": INTERNAL_POINTS,
                **location_columns(form.coordinates, location),
            },
        )
        submission_id = self.store.insert(submission)
        logEvent(
            self.logger, logging.INFO, run_id, "compliment",
            f"internal compliment stored registration={registration} id={submission_id}",
        )
        return SubmissionOutcome(kind=submission.kind, entity_key=registration, submission_id=submission_id, geo=location)

    def _driver_name(self, registration: str, run_id: str) -> str:
        try:
            name = self.personnel.find_name_by_registration(registration)
        except (UpstreamUnavailable, StoreQueryError) as exc:
            logEvent(self.logger, logging.WARNING, run_id, "personnel", f"registry lookup failed: {exc.message}")
            return UNKNOWN_DRIVER
        return name or UNKNOWN_DRIVER
