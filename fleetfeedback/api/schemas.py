"""
HTTP request/response schemas. Pydantic only in the api layer.
"""

from __future__ import annotations

from typing import Annotated, Any

from pydantic import BaseModel, BeforeValidator

from fleetfeedback.domain.models import Coordinates


def _as_text(value: Any) -> str | None:
    """Числа из JSON (телефон, номер, матрикула) принимаются как текст; пустое -> None."""
    if value is None:
        return None
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        value = str(value)
    if not isinstance(value, str):
        return value
    text = value.strip()
    return text or None


# Поле формы: строка или число из JSON, в модели всегда str | None.
FormText = Annotated[str | None, BeforeValidator(_as_text)]


class LocationFields(BaseModel):
    latitude: FormText = None
    longitude: FormText = None
    maps_link: FormText = None
    user_agent: FormText = None

    def to_coordinates(self) -> Coordinates:
        return Coordinates(
            latitude=self.latitude,
            longitude=self.longitude,
            maps_link=self.maps_link,
            user_agent=self.user_agent,
        )


class PublicComplimentRequest(LocationFields):
    author_name: FormText = None
    driver_name: FormText = None
    plate: FormText = None
    phone: FormText = None
    message: FormText = None


class IncidentRequest(LocationFields):
    author_name: FormText = None
    plate: FormText = None
    phone: FormText = None
    incident_type: FormText = None
    description: FormText = None


class InternalComplimentRequest(LocationFields):
    registration: FormText = None
    message: FormText = None
    author_name: FormText = None
    phone: FormText = None


class SubmissionResponse(BaseModel):
    status: str = "success"
    message: str
    id: int | None = None


class ErrorResponse(BaseModel):
    status: str
    message: str
    code: str


class ActiveDriverSchema(BaseModel):
    registration: str
    name: str


class ActivePlateSchema(BaseModel):
    plate: str
