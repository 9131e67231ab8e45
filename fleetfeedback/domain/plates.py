from __future__ import annotations

import re

_NON_KEY_CHARS = re.compile(r"[^A-Z0-9]")
_NON_DIGITS = re.compile(r"\D")

# классический формат (ABC1234) или альтернативный (ABC1D23)
PLATE_RE = re.compile(r"^([A-Z]{3}[0-9]{4}|[A-Z]{3}[0-9][A-Z0-9][0-9]{2})$")


def normalize(raw: object) -> str:
    """
    Назначение:
        Канонизирует свободный ввод номера ТС в сравнимый ключ.

    Контракт:
        - None -> "".
        - trim, upper, удаление всего вне [A-Z0-9].
        - Чистая, тотальная, идемпотентная функция.
    """
    if raw is None:
        return ""
    return _NON_KEY_CHARS.sub("", str(raw).strip().upper())


def is_plate_shaped(key: str) -> bool:
    """
    Назначение:
        Эвристика "похоже на номер" для поиска колонки.
        Не используется как проверка валидности при приёме отзыва.
    """
    return bool(PLATE_RE.match(key or ""))


def only_digits(raw: object) -> str:
    """Оставляет только цифры (матрикула, телефон)."""
    if raw is None:
        return ""
    return _NON_DIGITS.sub("", str(raw))
