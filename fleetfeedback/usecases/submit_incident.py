from __future__ import annotations

import logging

from fleetfeedback.common.time import Clock
from fleetfeedback.domain.assets.active_asset_checker import ActiveAssetChecker
from fleetfeedback.domain.exceptions import NotFoundOrInactive, ValidationError
from fleetfeedback.domain.models import Submission, SubmissionKind, SubmissionOutcome
from fleetfeedback.domain.plates import normalize
from fleetfeedback.domain.ports.geocoding import GeoEnricherProtocol
from fleetfeedback.domain.ports.submissions import SubmissionStoreProtocol
from fleetfeedback.infra.logging.setup import logEvent
from fleetfeedback.usecases.forms import IncidentForm
from fleetfeedback.usecases.submission_rules import enrich_location, location_columns, require_fields


class SubmitIncidentUseCase:
    """
    Назначение/ответственность:
        Приём сообщения об инциденте с ТС флота.
        Токен актора не требуется, дубли не подавляются.
    """

    def __init__(
        self,
        checker: ActiveAssetChecker,
        store: SubmissionStoreProtocol,
        enricher: GeoEnricherProtocol | None,
        clock: Clock,
        logger: logging.Logger,
    ):
        self.checker = checker
        self.store = store
        self.enricher = enricher
        self.clock = clock
        self.logger = logger

    def submit(self, form: IncidentForm, run_id: str) -> SubmissionOutcome:
        fields = require_fields(
            {
                "author_name": form.author_name,
                "plate": form.plate,
                "phone": form.phone,
                "incident_type": form.incident_type,
                "description": form.description,
            }
        )
        key = normalize(fields["plate"])
        if not key:
            raise ValidationError("Invalid trailer plate.", field="plate")

        if not self.checker.exists_active_asset(key):
            raise NotFoundOrInactive(key, "Plate not found in the fleet registry.")

        location = enrich_location(self.enricher, form.coordinates, self.logger, run_id)

        submission = Submission(
            kind=SubmissionKind.INCIDENT,
            entity_key=key,
            actor_token=None,
            timestamp=self.clock(),
            payload={
                "nome": fields["author_name"],
                "telefone": fields["phone"],
                "tipo_ocorrencia": fields["incident_type"],
                "descricao": fields["description"],
                "user_agent": form.coordinates.user_agent or None,
                **location_columns(form.coordinates, location),
            },
        )
        submission_id = self.store.insert(submission)
        logEvent(self.logger, logging.INFO, run_id, "incident", f"incident stored plate={key} id={submission_id}")
        return SubmissionOutcome(kind=submission.kind, entity_key=key, submission_id=submission_id, geo=location)
