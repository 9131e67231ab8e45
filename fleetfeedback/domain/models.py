from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


class SubmissionKind(str, Enum):
    """
    Назначение:
        Вид отзыва; определяет таблицу хранилища и схему ключа дедупликации.
    """

    PUBLIC_COMPLIMENT = "public_compliment"
    INCIDENT = "incident"
    INTERNAL_COMPLIMENT = "internal_compliment"


@dataclass(frozen=True)
class ColumnCandidate:
    """
    Назначение:
        Скорированная догадка о колонке с номерами ТС. Живёт одну попытку резолва.
    """

    name: str
    score: int

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "score": self.score}


@dataclass(frozen=True)
class PredicateColumns:
    """
    Назначение:
        Фактические имена стабильных колонок-предикатов таблицы назначений.
    """

    modality: str
    cancellation: str


@dataclass(frozen=True)
class GeoLocation:
    locality: str | None
    region: str | None


@dataclass(frozen=True)
class Coordinates:
    """
    Назначение:
        Необязательные координаты и метаданные клиента, общие для всех видов отзывов.
    """

    latitude: str | None = None
    longitude: str | None = None
    maps_link: str | None = None
    user_agent: str | None = None

    @property
    def present(self) -> bool:
        return bool(self.latitude) and bool(self.longitude)


@dataclass(frozen=True)
class Submission:
    """
    Назначение:
        Принятый отзыв, готовый к записи. Неизменяем после сохранения.

    Поля:
        kind: вид отзыва (таблица хранилища)
        entity_key: нормализованный номер или матрикула
        actor_token: непрозрачный токен клиента (None для инцидентов)
        timestamp: момент приёма в гражданской таймзоне
        payload: доменные поля (имена колонок хранилища)
    """

    kind: SubmissionKind
    entity_key: str
    actor_token: str | None
    timestamp: datetime
    payload: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class SubmissionOutcome:
    """Результат успешного приёма."""

    kind: SubmissionKind
    entity_key: str
    submission_id: int | None
    geo: GeoLocation | None


@dataclass(frozen=True)
class ActiveDriver:
    registration: str
    name: str
