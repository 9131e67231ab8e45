from __future__ import annotations

from enum import Enum


class ErrorCode(str, Enum):
    """
    Назначение:
        Единая таксономия кодов ошибок приёма отзывов.
    """

    VALIDATION_ERROR = "VALIDATION_ERROR"
    NOT_FOUND_OR_INACTIVE = "NOT_FOUND_OR_INACTIVE"
    DUPLICATE_SUBMISSION = "DUPLICATE_SUBMISSION"
    COLUMN_RESOLUTION_FAILED = "COLUMN_RESOLUTION_FAILED"
    UPSTREAM_UNAVAILABLE = "UPSTREAM_UNAVAILABLE"
    UNEXPECTED_ERROR = "UNEXPECTED_ERROR"

    def http_status(self) -> int:
        """
        Назначение:
            Подбор HTTP-статуса по коду ошибки.
        """
        if self is ErrorCode.VALIDATION_ERROR:
            return 400
        if self is ErrorCode.NOT_FOUND_OR_INACTIVE:
            return 404
        if self is ErrorCode.DUPLICATE_SUBMISSION:
            return 409
        return 500

    @property
    def user_facing(self) -> bool:
        """Ожидаемые исходы (ошибки пользователя), в отличие от операционных сбоев."""
        return self in (
            ErrorCode.VALIDATION_ERROR,
            ErrorCode.NOT_FOUND_OR_INACTIVE,
            ErrorCode.DUPLICATE_SUBMISSION,
        )
