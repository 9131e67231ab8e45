from __future__ import annotations

from datetime import datetime, timedelta
from typing import Callable
from zoneinfo import ZoneInfo

DEFAULT_CIVIL_TIMEZONE = "America/Sao_Paulo"

Clock = Callable[[], datetime]


def civil_clock(tz_name: str = DEFAULT_CIVIL_TIMEZONE) -> Clock:
    """
    Назначение:
        Возвращает функцию "сейчас" в фиксированной гражданской таймзоне.

    Выходные данные:
        Clock
            Вызов даёт aware datetime в таймзоне tz_name.
    """
    zone = ZoneInfo(tz_name)

    def now() -> datetime:
        return datetime.now(zone)

    return now


def window_cutoff(now: datetime, window_days: int) -> datetime:
    """Начало скользящего окна: now - window_days суток."""
    return now - timedelta(days=window_days)


def to_store_datetime(value: datetime) -> datetime:
    """
    Назначение:
        Приводит момент к формату хранилища отзывов: локальное гражданское время
        без смещения, с точностью до секунды.

    Контракт:
        - value должен быть aware и уже в гражданской таймзоне (см. civil_clock).
    """
    return value.replace(tzinfo=None, microsecond=0)
