from __future__ import annotations

from typing import Any

from fleetfeedback.domain.models import ActiveDriver, PredicateColumns
from fleetfeedback.domain.resolution.column_resolver import AssignmentTableRef
from fleetfeedback.infra.db.identifiers import quote_identifier
from fleetfeedback.infra.db.sql_engine import SqlEngine

ACTIVATION_TABLE = "veiculo.veiculo_modalidade"
PERSONNEL_TABLE = "folha.funcionario_dados"

DRIVER_JOB_TITLES: tuple[str, ...] = (
    "MOTORISTA",
    "MOTORISTA CARRETEIRO",
    "MOTORISTA CARRETEIRO III",
    "MOTORISTA CHECK LIST",
    "MOTORISTA DE BITREM",
    "MOTORISTA DE MANUTENCAO",
    "MOTORISTA ENTREGADOR",
    "MOTORISTA INSTRUTOR",
    "MOTORISTA MANOBRA",
    "MOTORISTA TOCO",
    "MOTORISTA TRAINEE",
    "MOTORISTA TRUCK",
)


def normalized_plate_sql(column_ref: str) -> str:
    """SQL-выражение нормализации номера (upper + удаление всего вне [A-Z0-9])."""
    return f"regexp_replace(upper(CAST({column_ref} AS TEXT)), '[^A-Z0-9]', '', 'g')"


class KmmFleetStore:
    """
    Назначение/ответственность:
        Адаптер внешнего хранилища флота (KMM, PostgreSQL) для всех портов fleet.

    Взаимодействия:
        - Каталог метаданных (Inspector), стабильная таблица модальностей,
          нестабильная таблица назначений, реестр персонала.

    Инварианты/гарантии:
        - Только чтение.
        - Имена колонок, найденные во время работы, попадают в SQL только через quote_identifier.
    """

    def __init__(self, db: SqlEngine, assignment_table: AssignmentTableRef | None = None):
        self.db = db
        self.assignment_table = assignment_table or AssignmentTableRef()

    def list_columns(self, schema: str, table: str) -> list[str]:
        return self.db.column_names(schema, table)

    def sample_values(
        self,
        column: str,
        predicates: PredicateColumns,
        activation_tag: str,
        limit: int,
    ) -> list[Any]:
        col = f"vm.{quote_identifier(column)}"
        modality = f"vm.{quote_identifier(predicates.modality)}"
        cancellation = f"vm.{quote_identifier(predicates.cancellation)}"
        sql = f"""
            SELECT {col} AS v
            FROM {self.assignment_table.qualified} vm
            WHERE lower(CAST({modality} AS TEXT)) = :tag
              AND {cancellation} IS NULL
              AND {col} IS NOT NULL
            LIMIT :limit
        """
        rows = self.db.fetchall(sql, {"tag": activation_tag.lower(), "limit": int(limit)})
        return [row["v"] for row in rows]

    def exists_active(self, key: str, activation_tag: str) -> bool:
        sql = f"""
            SELECT 1 AS found
            FROM {ACTIVATION_TABLE} vm
            WHERE lower(CAST(vm."MODALIDADE" AS TEXT)) = :tag
              AND vm."DATA_CANCELAMENTO" IS NULL
              AND vm."PLACA" IS NOT NULL
              AND {normalized_plate_sql('vm."PLACA"')} = :key
            LIMIT 1
        """
        return self.db.fetchone(sql, {"tag": activation_tag.lower(), "key": key}) is not None

    def find_assigned_operator(self, plate_column: str, key: str) -> str | None:
        col = f"vm.{quote_identifier(plate_column)}"
        sql = f"""
            SELECT fd."NOME" AS operator_name
            FROM {self.assignment_table.qualified} vm
            JOIN {PERSONNEL_TABLE} fd
              ON fd."COD_PESSOA" = vm."COD_PESSOA"
            WHERE fd."DATA_DEMISSAO" IS NULL
              AND {normalized_plate_sql(col)} = :key
            ORDER BY vm."DATA_INICIO" DESC NULLS LAST
            LIMIT 1
        """
        row = self.db.fetchone(sql, {"key": key})
        if row is None:
            return None
        return row["operator_name"] or None

    def find_name_by_registration(self, registration: str) -> str | None:
        sql = f"""
            SELECT fd."NOME" AS name
            FROM {PERSONNEL_TABLE} fd
            WHERE CAST(fd."MATRICULA" AS TEXT) = :registration
            LIMIT 1
        """
        row = self.db.fetchone(sql, {"registration": registration})
        if row is None:
            return None
        return row["name"] or None

    def list_active_drivers(self) -> list[ActiveDriver]:
        params = {f"title_{i}": title for i, title in enumerate(DRIVER_JOB_TITLES)}
        placeholders = ", ".join(f":{name}" for name in params)
        sql = f"""
            SELECT fd."MATRICULA" AS registration, fd."NOME" AS name
            FROM {PERSONNEL_TABLE} fd
            WHERE fd."DATA_ADMISSAO" IS NOT NULL
              AND fd."NOME" IS NOT NULL
              AND fd."DATA_DEMISSAO" IS NULL
              AND upper(CAST(fd."CARGO" AS TEXT)) IN ({placeholders})
            ORDER BY fd."NOME"
        """
        rows = self.db.fetchall(sql, params)
        return [ActiveDriver(registration=str(row["registration"]), name=row["name"]) for row in rows]

    def list_active_plates(self, prefix: str, limit: int, activation_tag: str) -> list[str]:
        plate_sql = normalized_plate_sql('vm."PLACA"')
        params: dict[str, Any] = {"tag": activation_tag.lower(), "limit": int(limit)}
        prefix_filter = ""
        if prefix:
            prefix_filter = f"AND {plate_sql} LIKE :prefix"
            params["prefix"] = f"{prefix}%"
        sql = f"""
            SELECT DISTINCT {plate_sql} AS plate
            FROM {ACTIVATION_TABLE} vm
            WHERE lower(CAST(vm."MODALIDADE" AS TEXT)) = :tag
              AND vm."DATA_CANCELAMENTO" IS NULL
              AND vm."PLACA" IS NOT NULL
              {prefix_filter}
            ORDER BY plate
            LIMIT :limit
        """
        return [row["plate"] for row in self.db.fetchall(sql, params)]
