from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from fleetfeedback.domain.error_codes import ErrorCode


@dataclass
class AppError(Exception):
    """
    Назначение:
        Базовая ошибка приёма отзывов: категория, код из ErrorCode, сообщение.

    Контракт:
        - message уходит клиенту только для user_facing кодов (400/404/409).
        - details пишутся в лог и никогда не отдаются клиенту.
        - Неизвестный code трактуется как UNEXPECTED_ERROR (500).
    """

    category: str
    code: str
    message: str
    retryable: bool = False
    details: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        super().__init__(self.message)

    @property
    def error_code(self) -> ErrorCode:
        try:
            return ErrorCode(self.code)
        except ValueError:
            return ErrorCode.UNEXPECTED_ERROR

    @property
    def user_facing(self) -> bool:
        return self.error_code.user_facing

    def http_status(self) -> int:
        return self.error_code.http_status()

    def to_dict(self) -> dict[str, Any]:
        return {
            "category": self.category,
            "code": self.code,
            "message": self.message,
            "retryable": self.retryable,
            "details": self.details or {},
        }


__all__ = ["AppError"]
