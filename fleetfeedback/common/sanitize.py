from __future__ import annotations

from sqlalchemy.engine import make_url
from sqlalchemy.exc import ArgumentError


def maskDatabaseUrl(url: str | None) -> str | None:
    """
    Назначение:
        Скрывает пароль в URL подключения к БД.

    Алгоритм:
        - Разобрать URL через SQLAlchemy.
        - Вывести строку с паролем, заменённым на '***'.
        - Неразбираемый URL заменяется маской целиком.
    """
    if url is None:
        return None
    try:
        parsed = make_url(url)
    except ArgumentError:
        return "***"
    return parsed.render_as_string(hide_password=True)


def truncateText(value: str | None, limit: int = 500) -> str | None:
    """
    Назначение:
        Ограничивает длину текста, чтобы избежать раздувания логов.
    """
    if value is None:
        return None
    if len(value) <= limit:
        return value
    suffix = "..." if limit > 3 else ""
    head = limit - len(suffix)
    return value[:head] + suffix
