from __future__ import annotations

from typing import Any, Protocol, runtime_checkable

from fleetfeedback.domain.models import ActiveDriver, PredicateColumns


@runtime_checkable
class FleetCatalogProtocol(Protocol):
    """
    Назначение:
        Каталог метаданных внешнего хранилища флота.

    Контракт:
        - list_columns(schema, table) -> list[str]
            Имена колонок таблицы; порядок не важен. Только чтение.
        - Недоступность хранилища -> UpstreamUnavailable.
    """

    def list_columns(self, schema: str, table: str) -> list[str]: ...


@runtime_checkable
class AssignmentSamplerProtocol(Protocol):
    """
    Назначение:
        Ограниченная выборка значений колонки-кандидата таблицы назначений.

    Контракт:
        - Фильтр: lower(modality) = activation_tag, cancellation IS NULL, column IS NOT NULL.
        - Не более limit строк.
        - Ошибка запроса -> StoreQueryError, недоступность -> UpstreamUnavailable.
    """

    def sample_values(
        self,
        column: str,
        predicates: PredicateColumns,
        activation_tag: str,
        limit: int,
    ) -> list[Any]: ...


@runtime_checkable
class ActivationTableProtocol(Protocol):
    """
    Назначение:
        Стабильная таблица модальностей флота (фиксированные колонки).
    """

    def exists_active(self, key: str, activation_tag: str) -> bool: ...


@runtime_checkable
class AssignmentLookupProtocol(Protocol):
    """
    Назначение:
        Назначение водителя на ТС через нестабильную таблицу + реестр персонала.

    Контракт:
        - plate_column: имя, полученное от ColumnResolver.
        - Возвращает имя водителя последнего назначения или None.
    """

    def find_assigned_operator(self, plate_column: str, key: str) -> str | None: ...


@runtime_checkable
class PersonnelRegistryProtocol(Protocol):
    def find_name_by_registration(self, registration: str) -> str | None: ...

    def list_active_drivers(self) -> list[ActiveDriver]: ...


@runtime_checkable
class ActivePlatesProtocol(Protocol):
    def list_active_plates(self, prefix: str, limit: int, activation_tag: str) -> list[str]: ...


class FleetStoreProtocol(
    FleetCatalogProtocol,
    AssignmentSamplerProtocol,
    ActivationTableProtocol,
    AssignmentLookupProtocol,
    PersonnelRegistryProtocol,
    ActivePlatesProtocol,
    Protocol,
):
    """Объединённый порт хранилища флота (все протоколы fleet)."""
