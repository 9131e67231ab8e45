from __future__ import annotations

from datetime import datetime
from typing import Protocol, runtime_checkable

from fleetfeedback.domain.models import Submission, SubmissionKind


@runtime_checkable
class SubmissionStoreProtocol(Protocol):
    """
    Назначение/ответственность:
        Порт хранилища отзывов (только добавление + проверка существования).
    Взаимодействия:
        Используется DuplicateGuard и use-cases приёма отзывов.

    Контракт:
        - exists_since(kind, key, actor_token, cutoff) -> bool
            Есть ли строка с тем же ключом и токеном и временем >= cutoff.
        - insert(submission) -> id | None
        - Недоступность хранилища -> UpstreamUnavailable.
    """

    def exists_since(self, kind: SubmissionKind, key: str, actor_token: str, cutoff: datetime) -> bool: ...

    def insert(self, submission: Submission) -> int | None: ...
