from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Iterator, Mapping

from sqlalchemy import create_engine, inspect, text
from sqlalchemy.engine import Connection, Engine, RowMapping
from sqlalchemy.sql import Executable
from sqlalchemy.exc import DBAPIError, InterfaceError, NoSuchTableError, OperationalError, SQLAlchemyError

from fleetfeedback.domain.exceptions import StoreQueryError, UpstreamUnavailable


class SqlEngine:
    """
    Назначение/ответственность:
        Тонкая обёртка над SQLAlchemy Engine с единым API для SQL-операций
        и единым переводом ошибок драйвера в доменные.

    Контракт:
        - service: логическое имя хранилища для диагностики (fleet, submissions, state).
        - Сбой соединения -> UpstreamUnavailable; прочие ошибки запроса -> StoreQueryError.
    """

    def __init__(self, engine: Engine, service: str):
        self.engine = engine
        self.service = service

    @classmethod
    def from_url(cls, url: str, service: str, connect_timeout: int | None = None) -> "SqlEngine":
        connect_args: dict[str, Any] = {}
        if connect_timeout is not None and not url.startswith("sqlite"):
            connect_args["connect_timeout"] = connect_timeout
        engine = create_engine(url, pool_pre_ping=True, connect_args=connect_args)
        return cls(engine, service)

    def _translate(self, exc: SQLAlchemyError) -> Exception:
        if isinstance(exc, (OperationalError, InterfaceError)):
            return UpstreamUnavailable(self.service, f"{self.service} store unavailable: {exc.__class__.__name__}")
        if isinstance(exc, DBAPIError) and exc.connection_invalidated:
            return UpstreamUnavailable(self.service, f"{self.service} connection lost")
        return StoreQueryError(self.service, f"{self.service} query failed: {exc.__class__.__name__}")

    def fetchone(self, sql: str | Executable, params: Mapping[str, Any] | None = None) -> RowMapping | None:
        try:
            with self.engine.connect() as conn:
                return conn.execute(_statement(sql), dict(params or {})).mappings().first()
        except SQLAlchemyError as exc:
            raise self._translate(exc) from exc

    def fetchall(self, sql: str | Executable, params: Mapping[str, Any] | None = None) -> list[RowMapping]:
        try:
            with self.engine.connect() as conn:
                return list(conn.execute(_statement(sql), dict(params or {})).mappings().all())
        except SQLAlchemyError as exc:
            raise self._translate(exc) from exc

    def execute(self, sql: str | Executable, params: Mapping[str, Any] | None = None) -> Any:
        """Выполняет запрос в отдельной транзакции; возвращает lastrowid (если есть)."""
        try:
            with self.engine.begin() as conn:
                result = conn.execute(_statement(sql), dict(params or {}))
                return getattr(result, "lastrowid", None)
        except SQLAlchemyError as exc:
            raise self._translate(exc) from exc

    def column_names(self, schema: str | None, table: str) -> list[str]:
        """
        Назначение:
            Имена колонок таблицы из каталога метаданных (SQLAlchemy Inspector).
            Отсутствующая таблица -> пустой список.
        """
        try:
            return [col["name"] for col in inspect(self.engine).get_columns(table, schema=schema)]
        except NoSuchTableError:
            return []
        except SQLAlchemyError as exc:
            raise self._translate(exc) from exc

    @contextmanager
    def transaction(self) -> Iterator[Connection]:
        try:
            with self.engine.begin() as conn:
                yield conn
        except SQLAlchemyError as exc:
            raise self._translate(exc) from exc

    def dispose(self) -> None:
        self.engine.dispose()


def _statement(sql: str | Executable) -> Executable:
    if isinstance(sql, str):
        return text(sql)
    return sql
