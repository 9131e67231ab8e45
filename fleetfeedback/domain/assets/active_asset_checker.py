from __future__ import annotations

from fleetfeedback.domain.ports.fleet import ActivationTableProtocol, AssignmentLookupProtocol
from fleetfeedback.domain.resolution.column_resolver import ColumnResolver


class ActiveAssetChecker:
    """
    Назначение/ответственность:
        Шлюз авторизации отзыва: ТС существует во флоте, активно и не списано.
        Дополнительно определяет водителя, назначенного на ТС.

    Взаимодействия:
        - ActivationTableProtocol: стабильная таблица модальностей (без ColumnResolver).
        - AssignmentLookupProtocol + ColumnResolver: нестабильная таблица назначений.

    Инварианты/гарантии:
        - Не хранит состояние сущностей.
        - Недоступность хранилища не превращается в "неактивно": UpstreamUnavailable пробрасывается.
    """

    def __init__(
        self,
        activation_table: ActivationTableProtocol,
        assignments: AssignmentLookupProtocol,
        resolver: ColumnResolver,
        activation_tag: str = "frota",
    ):
        self.activation_table = activation_table
        self.assignments = assignments
        self.resolver = resolver
        self.activation_tag = activation_tag

    def exists_active_asset(self, key: str) -> bool:
        """
        Контракт:
            Вход: нормализованный ключ.
            Выход: True, если есть строка с тегом активации (без учёта регистра),
            без даты отмены и с тем же нормализованным номером.
        """
        if not key:
            return False
        return self.activation_table.exists_active(key, self.activation_tag.lower())

    def lookup_operator(self, key: str) -> str | None:
        """
        Контракт:
            Имя действующего водителя последнего назначения на ТС или None.
            ColumnResolutionError/UpstreamUnavailable пробрасываются вызывающему.
        """
        if not key:
            return None
        plate_column = self.resolver.resolve()
        return self.assignments.find_assigned_operator(plate_column, key)
