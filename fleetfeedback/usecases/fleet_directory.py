from __future__ import annotations

from fleetfeedback.domain.models import ActiveDriver
from fleetfeedback.domain.plates import normalize
from fleetfeedback.domain.ports.fleet import ActivePlatesProtocol, PersonnelRegistryProtocol

DEFAULT_PLATE_LIMIT = 20
MAX_PLATE_LIMIT = 50


def clamp_limit(raw: int | str | None) -> int:
    """
    Контракт:
        Нечисловое или отсутствующее значение -> DEFAULT_PLATE_LIMIT,
        иначе в пределах [1, MAX_PLATE_LIMIT].
    """
    try:
        value = int(raw) if raw is not None else None
    except (TypeError, ValueError):
        value = None
    if value is None:
        return DEFAULT_PLATE_LIMIT
    return min(max(value, 1), MAX_PLATE_LIMIT)


class FleetDirectoryUseCase:
    """
    Назначение/ответственность:
        Справочники для автодополнения на клиенте: действующие водители и активные прицепы.
    """

    def __init__(
        self,
        personnel: PersonnelRegistryProtocol,
        plates: ActivePlatesProtocol,
        activation_tag: str = "frota",
    ):
        self.personnel = personnel
        self.plates = plates
        self.activation_tag = activation_tag

    def active_drivers(self) -> list[ActiveDriver]:
        return self.personnel.list_active_drivers()

    def search_active_plates(self, query: str | None, limit: int | str | None = None) -> list[str]:
        return self.plates.list_active_plates(normalize(query), clamp_limit(limit), self.activation_tag)
