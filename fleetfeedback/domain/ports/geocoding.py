from __future__ import annotations

from typing import Protocol, runtime_checkable

from fleetfeedback.domain.models import GeoLocation


@runtime_checkable
class GeoEnricherProtocol(Protocol):
    """
    Назначение:
        Best-effort обратное геокодирование.

    Контракт:
        - enrich(lat, lon) -> GeoLocation | None
        - Никогда не бросает исключений; любая ошибка -> None.
        - Ограничено собственным таймаутом.
    """

    def enrich(self, latitude: str | float, longitude: str | float) -> GeoLocation | None: ...
