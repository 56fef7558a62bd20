"""Модели метаданных миниатюры (Thumbnail Managing Standard, раздел ADDINFOS).

Принципы:
- SRP: только структура данных и кодирование значений ключей.
- Результат разбора размечен (`MetadataState`) вместо исключения: отсутствие
  метаданных является ожидаемым состоянием, повреждённый файл отдельным случаем.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Mapping

URI_KEY = "Thumb::URI"
MTIME_KEY = "Thumb::MTime"
THUMB_KEY_PREFIX = "Thumb::"


def encode_mtime(mtime: float) -> str:
    """Целое число секунд с начала эпохи в десятичной записи."""
    return str(int(mtime))


@dataclass(frozen=True)
class ThumbnailMetadata:
    """Метаданные происхождения, которые записываются в PNG.

    Fields:
        uri: Канонический URI исходного пакета.
        mtime: Время модификации пакета, секунды с начала эпохи.
    """
    uri: str
    mtime: float

    def items(self) -> Dict[str, str]:
        # порядок ключей фиксирован: сначала URI, затем MTime
        return {URI_KEY: self.uri, MTIME_KEY: encode_mtime(self.mtime)}


class MetadataState(str, Enum):
    PRESENT = "present"
    ABSENT = "absent"
    MALFORMED = "malformed"


@dataclass(frozen=True)
class ParsedMetadata:
    """Результат разбора текстовых блоков PNG."""
    state: MetadataState
    fields: Mapping[str, str] = field(default_factory=dict)
    error: str | None = None

    def get(self, key: str) -> str | None:
        return self.fields.get(key)

    def matches(self, metadata: ThumbnailMetadata) -> bool:
        """True, если записанные `Thumb::URI` и `Thumb::MTime` совпадают с текущими."""
        if self.state is not MetadataState.PRESENT:
            return False
        expected = metadata.items()
        return all(self.fields.get(key) == value for key, value in expected.items())
