from __future__ import annotations

import logging
from datetime import datetime, timezone
from pathlib import Path

from fleetfeedback.errors import AppError
from fleetfeedback.infra.db.sql_engine import SqlEngine
from fleetfeedback.infra.logging.setup import logEvent

JOURNAL_FILE = "resolver_state.sqlite3"

_DDL = """
    CREATE TABLE IF NOT EXISTS resolved_columns (
        table_name TEXT PRIMARY KEY,
        column_name TEXT NOT NULL,
        adopted_at TEXT NOT NULL
    )
"""


def getJournalDbPath(stateDir: str) -> str:
    """
    Назначение:
        Путь к файлу журнала колонок внутри state_dir.
    """
    return str(Path(stateDir) / JOURNAL_FILE)


class SqliteColumnJournal:
    """
    Назначение/ответственность:
        Журнал последней принятой колонки на таблицу (SQLite-файл в state_dir).

    Поведение:
        - Только диагностика дрейфа: при старте колонка всё равно ищется заново.
        - Ошибки журнала логируются и не мешают резолву.
    """

    def __init__(self, db: SqlEngine, logger: logging.Logger, run_id: str):
        self.db = db
        self.logger = logger
        self.run_id = run_id
        self.db.execute(_DDL)

    @classmethod
    def open(cls, stateDir: str, logger: logging.Logger, run_id: str) -> "SqliteColumnJournal":
        Path(stateDir).mkdir(parents=True, exist_ok=True)
        db = SqlEngine.from_url(f"sqlite:///{getJournalDbPath(stateDir)}", service="state")
        return cls(db, logger, run_id)

    def last_adopted(self, table: str) -> str | None:
        try:
            row = self.db.fetchone(
                "SELECT column_name FROM resolved_columns WHERE table_name = :table",
                {"table": table},
            )
        except AppError as exc:
            logEvent(self.logger, logging.WARNING, self.run_id, "state", f"journal read failed: {exc.message}")
            return None
        return row["column_name"] if row else None

    def record_adopted(self, table: str, column: str) -> None:
        try:
            self.db.execute(
                """
                INSERT INTO resolved_columns (table_name, column_name, adopted_at)
                VALUES (:table, :column, :adopted_at)
                ON CONFLICT(table_name) DO UPDATE SET
                    column_name = excluded.column_name,
                    adopted_at = excluded.adopted_at
                """,
                {"table": table, "column": column, "adopted_at": datetime.now(timezone.utc).isoformat()},
            )
        except AppError as exc:
            logEvent(self.logger, logging.WARNING, self.run_id, "state", f"journal write failed: {exc.message}")
