from __future__ import annotations

import logging
import re
import threading
from dataclasses import dataclass

from fleetfeedback.domain.exceptions import ColumnResolutionError, StoreQueryError, UpstreamUnavailable
from fleetfeedback.domain.models import ColumnCandidate, PredicateColumns
from fleetfeedback.domain.plates import is_plate_shaped, normalize
from fleetfeedback.domain.ports.column_journal import ColumnJournalProtocol
from fleetfeedback.domain.ports.fleet import AssignmentSamplerProtocol, FleetCatalogProtocol
from fleetfeedback.infra.logging.setup import logEvent

SAFE_IDENTIFIER_RE = re.compile(r"^[A-Za-z0-9_]+$")

EXCLUDED_SCORE = -999
MAX_SAMPLED_CANDIDATES = 25
SAMPLE_ROWS = 50

# (подстрока, вес)
SCORE_WEIGHTS: tuple[tuple[str, int], ...] = (
    ("carreta", 50),
    ("placa", 30),
    ("veiculo", 10),
)

DEFAULT_PREDICATE_COLUMNS = PredicateColumns(modality="modalidade", cancellation="data_cancelamento")


def is_safe_identifier(name: str) -> bool:
    return bool(SAFE_IDENTIFIER_RE.match(name or ""))


@dataclass(frozen=True)
class AssignmentTableRef:
    """
    Назначение:
        Координаты нестабильной таблицы назначений во внешнем хранилище.
    """

    schema: str = "veiculo"
    table: str = "veiculo_motorista"

    @property
    def qualified(self) -> str:
        return f"{self.schema}.{self.table}"


def pick_predicate_columns(columns: list[str]) -> PredicateColumns:
    """
    Назначение:
        Подбирает фактические имена колонок-предикатов (регистр в каталоге произволен).

    Алгоритм:
        - Регистронезависимое точное совпадение с modalidade / data_cancelamento.
        - При отсутствии в каталоге используется имя по умолчанию.
    """
    by_lower = {c.lower(): c for c in columns}
    return PredicateColumns(
        modality=by_lower.get(DEFAULT_PREDICATE_COLUMNS.modality, DEFAULT_PREDICATE_COLUMNS.modality),
        cancellation=by_lower.get(DEFAULT_PREDICATE_COLUMNS.cancellation, DEFAULT_PREDICATE_COLUMNS.cancellation),
    )


def score_candidates(columns: list[str], predicates: PredicateColumns) -> list[ColumnCandidate]:
    """
    Назначение:
        Скоринг имён колонок по вероятности хранить номер прицепа.

    Контракт:
        - +50 'carreta', +30 'placa', +10 'veiculo' (без учёта регистра).
        - Точное совпадение с колонкой-предикатом -> EXCLUDED_SCORE независимо от подстрок.
        - Результат отсортирован по убыванию score (стабильно).
    """
    excluded = {predicates.modality.lower(), predicates.cancellation.lower()}
    scored: list[ColumnCandidate] = []
    for name in columns:
        lowered = name.lower()
        score = sum(weight for needle, weight in SCORE_WEIGHTS if needle in lowered)
        if lowered in excluded:
            score = EXCLUDED_SCORE
        scored.append(ColumnCandidate(name=name, score=score))
    return sorted(scored, key=lambda c: c.score, reverse=True)


class ColumnResolver:
    """
    Назначение/ответственность:
        Обнаруживает, кэширует и подтверждает колонку с номерами ТС
        в нестабильной таблице назначений.

    Инварианты/гарантии:
        - Кэш пишется только здесь и только после подтверждения данными.
        - Без подтверждения колонка не выбирается (ColumnResolutionError).
        - Кэш живёт до рестарта процесса; явной инвалидации нет.
        - Первичный резолв сериализован блокировкой; повторные вызовы без I/O.
    """

    def __init__(
        self,
        catalog: FleetCatalogProtocol,
        sampler: AssignmentSamplerProtocol,
        logger: logging.Logger,
        run_id: str,
        table: AssignmentTableRef | None = None,
        activation_tag: str = "frota",
        override: str | None = None,
        journal: ColumnJournalProtocol | None = None,
    ):
        if override is not None and not is_safe_identifier(override):
            raise ValueError(f"Unsafe plate column override: {override!r}")
        self.catalog = catalog
        self.sampler = sampler
        self.logger = logger
        self.run_id = run_id
        self.table = table or AssignmentTableRef()
        self.activation_tag = activation_tag
        self.override = override
        self.journal = journal
        self._cached: str | None = None
        self._lock = threading.Lock()

    @property
    def cached(self) -> str | None:
        return self._cached

    def resolve(self) -> str:
        """
        Назначение:
            Возвращает подтверждённое имя колонки, вычисляя его при первом обращении.
        """
        if self.override:
            return self.override
        cached = self._cached
        if cached is not None:
            return cached
        with self._lock:
            if self._cached is None:
                self._cached = self._discover()
            return self._cached

    def _discover(self) -> str:
        columns = list(self.catalog.list_columns(self.table.schema, self.table.table))
        predicates = pick_predicate_columns(columns)

        scored = score_candidates(columns, predicates)
        safe = [c for c in scored if is_safe_identifier(c.name) and c.score != EXCLUDED_SCORE]
        dropped = [c.name for c in scored if not is_safe_identifier(c.name)]
        if dropped:
            logEvent(self.logger, logging.WARNING, self.run_id, "resolver", f"unsafe column names skipped: {dropped}")

        attempted = 0
        unavailable = 0
        for candidate in safe[:MAX_SAMPLED_CANDIDATES]:
            attempted += 1
            try:
                values = self.sampler.sample_values(candidate.name, predicates, self.activation_tag, SAMPLE_ROWS)
            except UpstreamUnavailable as exc:
                unavailable += 1
                logEvent(
                    self.logger, logging.WARNING, self.run_id, "resolver",
                    f"sample column={candidate.name} unavailable: {exc.message}",
                )
                continue
            except StoreQueryError as exc:
                logEvent(
                    self.logger, logging.WARNING, self.run_id, "resolver",
                    f"sample column={candidate.name} failed: {exc.message}",
                )
                continue

            if any(is_plate_shaped(normalize(v)) for v in values if v is not None):
                self._adopt(candidate, scored)
                return candidate.name

        scoring = [c.to_dict() for c in scored]
        if attempted and unavailable == attempted:
            raise UpstreamUnavailable(
                "fleet",
                f"every sample of {self.table.qualified} failed: store unavailable",
                details={"candidates": scoring},
            )

        logEvent(
            self.logger, logging.ERROR, self.run_id, "resolver",
            f"plate column not detected in {self.table.qualified}; scoring={scoring}",
        )
        raise ColumnResolutionError(
            f"Could not detect the trailer plate column in {self.table.qualified}. "
            f"Set assignment_plate_column explicitly.",
            candidates=scoring,
            table=self.table.qualified,
        )

    def _adopt(self, candidate: ColumnCandidate, scored: list[ColumnCandidate]) -> None:
        logEvent(
            self.logger, logging.INFO, self.run_id, "resolver",
            f"plate column detected: {candidate.name} score={candidate.score} table={self.table.qualified}",
        )
        if self.journal is None:
            return
        previous = self.journal.last_adopted(self.table.qualified)
        if previous is not None and previous != candidate.name:
            logEvent(
                self.logger, logging.WARNING, self.run_id, "resolver",
                f"column drift: {self.table.qualified} previously used {previous}, now {candidate.name}; "
                f"scoring={[c.to_dict() for c in scored[:MAX_SAMPLED_CANDIDATES]]}",
            )
        self.journal.record_adopted(self.table.qualified, candidate.name)
