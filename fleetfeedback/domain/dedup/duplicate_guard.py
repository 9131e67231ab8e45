from __future__ import annotations

from fleetfeedback.common.time import Clock, window_cutoff
from fleetfeedback.domain.models import SubmissionKind
from fleetfeedback.domain.ports.submissions import SubmissionStoreProtocol

DEFAULT_WINDOW_DAYS = 7


class DuplicateGuard:
    """
    Назначение/ответственность:
        Уникальность пары (ключ сущности, токен актора) в скользящем окне.

    Контракт:
        - kind задаёт схему ключа: номер ТС (публичные отзывы) или матрикула (внутренние).
        - cutoff = now(гражданская таймзона) - window_days суток, вычисляется при каждой проверке.

    Ограничения:
        Проверка рекомендательная: check и последующий insert не атомарны,
        конкурентные запросы с тем же ключом/токеном могут пройти оба.
    """

    def __init__(
        self,
        store: SubmissionStoreProtocol,
        kind: SubmissionKind,
        clock: Clock,
        window_days: int = DEFAULT_WINDOW_DAYS,
    ):
        if window_days <= 0:
            raise ValueError("window_days must be positive")
        self.store = store
        self.kind = kind
        self.clock = clock
        self.window_days = window_days

    def is_recent_duplicate(self, entity_key: str, actor_token: str, window_days: int | None = None) -> bool:
        days = self.window_days if window_days is None else window_days
        cutoff = window_cutoff(self.clock(), days)
        return self.store.exists_since(self.kind, entity_key, actor_token, cutoff)
