from __future__ import annotations

from fleetfeedback.domain.resolution.column_resolver import is_safe_identifier


class UnsafeIdentifierError(ValueError):
    """
    Назначение:
        Имя, найденное во время работы, не прошло белый список символов.
    """


def quote_identifier(name: str) -> str:
    """
    Назначение:
        Единственная точка подстановки имени колонки в динамический SQL.

    Контракт:
        - Разрешены только [A-Za-z0-9_]+, иначе UnsafeIdentifierError.
        - Возвращает имя в двойных кавычках (регистр сохраняется; PostgreSQL/SQLite).
    """
    if not is_safe_identifier(name):
        raise UnsafeIdentifierError(f"Unsafe SQL identifier: {name!r}")
    return f'"{name}"'
