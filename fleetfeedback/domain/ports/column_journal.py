from __future__ import annotations

from typing import Protocol


class ColumnJournalProtocol(Protocol):
    """
    Назначение:
        Журнал последней принятой колонки (для обнаружения дрейфа схемы).
        Только для диагностики: никогда не заменяет поиск колонки.
    """

    def last_adopted(self, table: str) -> str | None: ...

    def record_adopted(self, table: str, column: str) -> None: ...
