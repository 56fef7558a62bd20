"""Модели данных для иконок.

Принципы:
- SRP: только структура данных и классификация содержимого, без загрузки и конвертации.
- Чистый код: неизменяемость (`frozen=True`), буфер принадлежит одному прогону конвейера.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

PNG_SIGNATURE = b"\x89PNG\r\n\x1a\n"


class IconKind(str, Enum):
    """Тип содержимого иконки."""
    RASTER = "raster"  # PNG
    VECTOR = "vector"  # SVG


class IconSource(str, Enum):
    """Откуда взята иконка: уровень цепочки резервных источников."""
    EMBEDDED = "embedded"
    DESKTOP = "desktop"
    GENERIC = "generic"


@dataclass(frozen=True)
class IconBytes:
    """Неизменяемый буфер иконки.

    Fields:
        data: Байты изображения (PNG или SVG).
        kind: Растровое или векторное содержимое.
    """
    data: bytes
    kind: IconKind

    @property
    def is_vector(self) -> bool:
        return self.kind is IconKind.VECTOR

    def __len__(self) -> int:
        return len(self.data)


def is_png(data: bytes) -> bool:
    """Проверяет PNG-сигнатуру в начале буфера."""
    return data[:len(PNG_SIGNATURE)] == PNG_SIGNATURE
