from __future__ import annotations

import logging
import re

from fleetfeedback.domain.exceptions import ValidationError
from fleetfeedback.domain.models import Coordinates, GeoLocation
from fleetfeedback.domain.plates import only_digits
from fleetfeedback.domain.ports.geocoding import GeoEnricherProtocol
from fleetfeedback.infra.logging.setup import logEvent

PHONE_RE = re.compile(r"^\d{10,11}$")


def require_actor_token(raw: str | None) -> str:
    """
    Назначение:
        Токен актора из заголовка: trim + lower. Происхождение не проверяется.
    """
    token = (raw or "").strip().lower()
    if not token:
        raise ValidationError("Evaluator token is missing.", field="token")
    return token


def require_fields(values: dict[str, str | None]) -> dict[str, str]:
    """
    Контракт:
        Все значения обязательны; пустые после trim -> ValidationError с именем первого поля.
    """
    cleaned: dict[str, str] = {}
    for name, value in values.items():
        text = str(value).strip() if value is not None else ""
        if not text:
            raise ValidationError("Required fields are missing.", field=name)
        cleaned[name] = text
    return cleaned


def parse_phone(raw: str) -> str:
    digits = only_digits(raw)
    if not PHONE_RE.match(digits):
        raise ValidationError("Invalid phone. Use digits only with area code (10 or 11 digits).", field="phone")
    return digits


def enrich_location(
    enricher: GeoEnricherProtocol | None,
    coordinates: Coordinates,
    logger: logging.Logger,
    run_id: str,
) -> GeoLocation | None:
    """
    Назначение:
        Best-effort обогащение: только при наличии обеих координат и включённом геокодере.
    """
    if enricher is None or not coordinates.present:
        return None
    location = enricher.enrich(coordinates.latitude, coordinates.longitude)
    if location is None:
        logEvent(logger, logging.INFO, run_id, "geo", "location enrichment skipped")
    return location


def location_columns(coordinates: Coordinates, location: GeoLocation | None) -> dict[str, str | None]:
    return {
        "latitude": coordinates.latitude or None,
        "longitude": coordinates.longitude or None,
        "maps_link": coordinates.maps_link or None,
        "cidade": location.locality if location else None,
        "estado": location.region if location else None,
    }
