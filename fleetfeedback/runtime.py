from __future__ import annotations

import logging
from dataclasses import dataclass

from fleetfeedback.common.time import Clock, civil_clock
from fleetfeedback.config import Settings
from fleetfeedback.domain.assets.active_asset_checker import ActiveAssetChecker
from fleetfeedback.domain.dedup.duplicate_guard import DuplicateGuard
from fleetfeedback.domain.models import SubmissionKind
from fleetfeedback.domain.ports.column_journal import ColumnJournalProtocol
from fleetfeedback.domain.ports.fleet import FleetStoreProtocol
from fleetfeedback.domain.ports.geocoding import GeoEnricherProtocol
from fleetfeedback.domain.ports.submissions import SubmissionStoreProtocol
from fleetfeedback.domain.resolution.column_resolver import ColumnResolver
from fleetfeedback.errors import AppError
from fleetfeedback.infra.db.sql_engine import SqlEngine
from fleetfeedback.infra.fleet.kmm_fleet_store import KmmFleetStore
from fleetfeedback.infra.geo.nominatim_enricher import NominatimGeoEnricher
from fleetfeedback.infra.logging.setup import logEvent
from fleetfeedback.infra.state.column_journal import SqliteColumnJournal
from fleetfeedback.infra.submissions.sql_submission_store import SqlSubmissionStore
from fleetfeedback.usecases.fleet_directory import FleetDirectoryUseCase
from fleetfeedback.usecases.submit_incident import SubmitIncidentUseCase
from fleetfeedback.usecases.submit_internal_compliment import SubmitInternalComplimentUseCase
from fleetfeedback.usecases.submit_public_compliment import SubmitPublicComplimentUseCase


@dataclass
class ServiceRuntime:
    """
    Назначение:
        Собранный граф сервиса: компоненты ядра и use-cases с общими зависимостями.

    Инварианты/гарантии:
        - Один ColumnResolver на процесс, внедрён во все компоненты, которым он нужен.
    """

    settings: Settings
    logger: logging.Logger
    run_id: str
    clock: Clock
    resolver: ColumnResolver
    checker: ActiveAssetChecker
    public_guard: DuplicateGuard
    internal_guard: DuplicateGuard
    public_compliments: SubmitPublicComplimentUseCase
    incidents: SubmitIncidentUseCase
    internal_compliments: SubmitInternalComplimentUseCase
    directory: FleetDirectoryUseCase


def build_runtime(
    settings: Settings,
    logger: logging.Logger,
    run_id: str,
    fleet: FleetStoreProtocol,
    submissions: SubmissionStoreProtocol,
    enricher: GeoEnricherProtocol | None,
    clock: Clock | None = None,
    journal: ColumnJournalProtocol | None = None,
) -> ServiceRuntime:
    """
    Назначение:
        Собирает граф сервиса из готовых адаптеров (используется и тестами с фейками).
    """
    clock = clock or civil_clock(settings.civil_timezone)
    resolver = ColumnResolver(
        catalog=fleet,
        sampler=fleet,
        logger=logger,
        run_id=run_id,
        activation_tag=settings.activation_tag,
        override=settings.assignment_plate_column,
        journal=journal,
    )
    checker = ActiveAssetChecker(fleet, fleet, resolver, activation_tag=settings.activation_tag)
    public_guard = DuplicateGuard(
        submissions, SubmissionKind.PUBLIC_COMPLIMENT, clock, settings.duplicate_window_days
    )
    internal_guard = DuplicateGuard(
        submissions, SubmissionKind.INTERNAL_COMPLIMENT, clock, settings.duplicate_window_days
    )
    return ServiceRuntime(
        settings=settings,
        logger=logger,
        run_id=run_id,
        clock=clock,
        resolver=resolver,
        checker=checker,
        public_guard=public_guard,
        internal_guard=internal_guard,
        public_compliments=SubmitPublicComplimentUseCase(checker, public_guard, submissions, enricher, clock, logger),
        incidents=SubmitIncidentUseCase(checker, submissions, enricher, clock, logger),
        internal_compliments=SubmitInternalComplimentUseCase(fleet, internal_guard, submissions, enricher, clock, logger),
        directory=FleetDirectoryUseCase(fleet, fleet, activation_tag=settings.activation_tag),
    )


def build_runtime_from_settings(settings: Settings, logger: logging.Logger, run_id: str) -> ServiceRuntime:
    """
    Назначение:
        Продакшен-сборка: SQLAlchemy-движки по URL, Nominatim, журнал колонок в state_dir.

    Поведение:
        - Отсутствие URL хранилищ -> ValueError (ошибка конфигурации).
    """
    missing = []
    if not settings.fleet_db_url:
        missing.append("fleet_db_url")
    if not settings.submissions_db_url:
        missing.append("submissions_db_url")
    if missing:
        raise ValueError(f"missing store settings: {', '.join(missing)}")

    fleet = KmmFleetStore(SqlEngine.from_url(settings.fleet_db_url, "fleet", settings.db_connect_timeout))
    submissions = SqlSubmissionStore(
        SqlEngine.from_url(settings.submissions_db_url, "submissions", settings.db_connect_timeout)
    )
    enricher = None
    if settings.geocoding_enabled:
        enricher = NominatimGeoEnricher(
            logger,
            run_id,
            reverseUrl=settings.geocoder_url,
            userAgent=settings.geocoder_user_agent,
            timeoutSeconds=settings.geocoder_timeout_seconds,
        )
    journal = _open_journal(settings.state_dir, logger, run_id)
    return build_runtime(settings, logger, run_id, fleet, submissions, enricher, journal=journal)


def _open_journal(stateDir: str, logger: logging.Logger, run_id: str) -> SqliteColumnJournal | None:
    """
    Назначение:
        Журнал колонок только для диагностики: недоступный state_dir не мешает старту.
    """
    try:
        return SqliteColumnJournal.open(stateDir, logger, run_id)
    except (OSError, AppError) as exc:
        logEvent(
            logger, logging.WARNING, run_id, "state",
            f"column journal disabled: {stateDir}: {exc.__class__.__name__}: {exc}",
        )
        return None
