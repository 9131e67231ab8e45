from __future__ import annotations

from typing import Any

from fleetfeedback.domain.error_codes import ErrorCode
from fleetfeedback.errors import AppError


class ValidationError(AppError):
    """
    Назначение:
        Обязательные поля отсутствуют или некорректны. Исправляется пользователем.
    """

    def __init__(self, message: str, field: str | None = None):
        super().__init__(
            category="validation",
            code=ErrorCode.VALIDATION_ERROR.value,
            message=message,
            details={"field": field} if field else {},
        )
        self.field = field


class NotFoundOrInactive(AppError):
    """
    Назначение:
        Нормализованный ключ не прошёл проверку активности во флоте.
    """

    def __init__(self, key: str, message: str | None = None):
        super().__init__(
            category="authorization",
            code=ErrorCode.NOT_FOUND_OR_INACTIVE.value,
            message=message or "Trailer not found or inactive.",
            details={"key": key},
        )
        self.key = key


class DuplicateSubmission(AppError):
    """
    Назначение:
        Тот же актор уже отправлял отзыв о той же сущности внутри окна.
    """

    def __init__(self, key: str, window_days: int, message: str | None = None):
        super().__init__(
            category="rate_limit",
            code=ErrorCode.DUPLICATE_SUBMISSION.value,
            message=message or f"You already sent feedback for this key in the last {window_days} days.",
            details={"key": key, "window_days": window_days},
        )
        self.key = key
        self.window_days = window_days


class ColumnResolutionError(AppError):
    """
    Назначение:
        Ни один кандидат не подтвердился данными: дрейф схемы внешней таблицы.

    Инварианты/гарантии:
        - details["candidates"] содержит полный скоринг (name, score) для диагностики.
    """

    def __init__(self, message: str, candidates: list[dict[str, Any]] | None = None, table: str | None = None):
        super().__init__(
            category="schema",
            code=ErrorCode.COLUMN_RESOLUTION_FAILED.value,
            message=message,
            details={"table": table, "candidates": candidates or []},
        )
        self.candidates = candidates or []
        self.table = table


class UpstreamUnavailable(AppError):
    """
    Назначение:
        Внешнее хранилище (или сервис) недоступно.
    Контракт:
        - service: логическое имя коллаборатора (fleet, submissions, geocoder).
    """

    def __init__(self, service: str, message: str | None = None, details: dict[str, Any] | None = None):
        super().__init__(
            category="upstream",
            code=ErrorCode.UPSTREAM_UNAVAILABLE.value,
            message=message or f"{service} is unavailable",
            retryable=True,
            details={"service": service, **(details or {})},
        )
        self.service = service


class StoreQueryError(AppError):
    """
    Назначение:
        Хранилище доступно, но конкретный запрос отклонён (синтаксис, тип, права).
    """

    def __init__(self, service: str, message: str):
        super().__init__(
            category="store",
            code=ErrorCode.UNEXPECTED_ERROR.value,
            message=message,
            details={"service": service},
        )
        self.service = service


__all__ = [
    "ValidationError",
    "NotFoundOrInactive",
    "DuplicateSubmission",
    "ColumnResolutionError",
    "UpstreamUnavailable",
    "StoreQueryError",
]
