from __future__ import annotations

import json
import logging
import time
from typing import Any

import httpx

from fleetfeedback.domain.models import GeoLocation
from fleetfeedback.infra.logging.setup import logEvent

DEFAULT_REVERSE_URL = "https://nominatim.openstreetmap.org/reverse"
DEFAULT_USER_AGENT = "fleetfeedback/1.0"
DEFAULT_TIMEOUT_SECONDS = 5.0
MAX_RESPONSE_BYTES = 256 * 1024

_LOCALITY_KEYS = ("city", "town", "village")


def _parse_address(data: Any) -> GeoLocation | None:
    if not isinstance(data, dict):
        return None
    address = data.get("address")
    if not isinstance(address, dict):
        return None
    locality = next((address[k] for k in _LOCALITY_KEYS if address.get(k)), None)
    region = address.get("state") or None
    return GeoLocation(locality=locality, region=region)


class NominatimGeoEnricher:
    """
    Назначение/ответственность:
        Best-effort обратное геокодирование координат в город/штат.

    Контракт:
        - enrich(lat, lon) -> GeoLocation | None, без исключений.
        - timeoutSeconds: общий срок на весь запрос (соединение, заголовки, тело);
          ретраев нет.
        - Любая ошибка (таймаут, сеть, HTTP-статус, битый JSON) логируется и даёт None.

    Алгоритм:
        - httpx-таймауты ограничивают каждую фазу по отдельности, поэтому тело читается
          потоком и после каждого чанка сверяется с общим дедлайном (time.monotonic).
    """

    def __init__(
        self,
        logger: logging.Logger,
        run_id: str,
        reverseUrl: str = DEFAULT_REVERSE_URL,
        userAgent: str = DEFAULT_USER_AGENT,
        timeoutSeconds: float = DEFAULT_TIMEOUT_SECONDS,
        transport: httpx.BaseTransport | None = None,
    ):
        self.logger = logger
        self.run_id = run_id
        self.reverseUrl = reverseUrl
        self.timeoutSeconds = timeoutSeconds
        self.client = httpx.Client(
            timeout=timeoutSeconds,
            headers={"User-Agent": userAgent, "accept": "application/json"},
            transport=transport,
        )

    def enrich(self, latitude: str | float, longitude: str | float) -> GeoLocation | None:
        params = {"format": "json", "lat": str(latitude), "lon": str(longitude)}
        deadline = time.monotonic() + self.timeoutSeconds
        try:
            body = self._fetch(params, deadline)
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            self._warn(f"reverse geocode failed: {exc.__class__.__name__}: {exc}")
            return None
        if body is None:
            return None

        try:
            data = json.loads(body)
        except ValueError:
            self._warn("reverse geocode returned invalid JSON")
            return None

        location = _parse_address(data)
        if location is None:
            self._warn("reverse geocode response has no address")
        return location

    def _fetch(self, params: dict[str, str], deadline: float) -> bytes | None:
        with self.client.stream("GET", self.reverseUrl, params=params) as resp:
            resp.raise_for_status()
            body = bytearray()
            for chunk in resp.iter_bytes():
                if time.monotonic() > deadline:
                    self._warn(f"reverse geocode exceeded {self.timeoutSeconds}s deadline")
                    return None
                body.extend(chunk)
                if len(body) > MAX_RESPONSE_BYTES:
                    self._warn("reverse geocode response too large")
                    return None
        if time.monotonic() > deadline:
            self._warn(f"reverse geocode exceeded {self.timeoutSeconds}s deadline")
            return None
        return bytes(body)

    def _warn(self, message: str) -> None:
        logEvent(self.logger, logging.WARNING, self.run_id, "geo", message)

    def close(self) -> None:
        self.client.close()
