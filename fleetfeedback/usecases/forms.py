from __future__ import annotations

from dataclasses import dataclass, field

from fleetfeedback.domain.models import Coordinates


@dataclass(frozen=True)
class PublicComplimentForm:
    """
    Назначение:
        Входные поля публичного отзыва-похвалы водителю (по номеру прицепа).
    """

    author_name: str | None
    plate: str | None
    phone: str | None
    message: str | None
    driver_name: str | None = None
    coordinates: Coordinates = field(default_factory=Coordinates)


@dataclass(frozen=True)
class IncidentForm:
    author_name: str | None
    plate: str | None
    phone: str | None
    incident_type: str | None
    description: str | None
    coordinates: Coordinates = field(default_factory=Coordinates)


@dataclass(frozen=True)
class InternalComplimentForm:
    """
    Назначение:
        Внутренний отзыв о сотруднике по табельному номеру (матрикуле).
    """

    registration: str | None
    message: str | None
    author_name: str | None
    phone: str | None
    coordinates: Coordinates = field(default_factory=Coordinates)
