from __future__ import annotations

from datetime import datetime

from sqlalchemy import insert, select

from fleetfeedback.common.time import to_store_datetime
from fleetfeedback.domain.models import Submission, SubmissionKind
from fleetfeedback.infra.db.sql_engine import SqlEngine
from fleetfeedback.infra.submissions.schema import LAYOUTS, TableLayout


class SqlSubmissionStore:
    """
    Назначение/ответственность:
        Хранилище отзывов (MySQL в продакшене, SQLite локально) поверх SQLAlchemy Core.

    Инварианты/гарантии:
        - Только добавление; строки не изменяются и не удаляются.
        - Время пишется и сравнивается как локальное гражданское время без смещения.
    """

    def __init__(self, db: SqlEngine):
        self.db = db

    def _layout(self, kind: SubmissionKind) -> TableLayout:
        return LAYOUTS[kind]

    def exists_since(self, kind: SubmissionKind, key: str, actor_token: str, cutoff: datetime) -> bool:
        layout = self._layout(kind)
        if layout.token_column is None:
            raise ValueError(f"{kind.value} submissions are not keyed by actor token")
        table = layout.table
        stmt = (
            select(table.c[layout.key_column])
            .where(table.c[layout.key_column] == key)
            .where(table.c[layout.token_column] == actor_token)
            .where(table.c[layout.time_column] >= to_store_datetime(cutoff))
            .limit(1)
        )
        return self.db.fetchone(stmt) is not None

    def insert(self, submission: Submission) -> int | None:
        layout = self._layout(submission.kind)
        table = layout.table
        unknown = [name for name in submission.payload if name not in table.c]
        if unknown:
            raise ValueError(f"Unknown columns for {table.name}: {unknown}")

        values = dict(submission.payload)
        values[layout.key_column] = submission.entity_key
        values[layout.time_column] = to_store_datetime(submission.timestamp)
        if layout.token_column is not None:
            values[layout.token_column] = submission.actor_token

        with self.db.transaction() as conn:
            result = conn.execute(insert(table).values(**values))
            primary_key = result.inserted_primary_key
        if primary_key:
            return primary_key[0]
        return None
