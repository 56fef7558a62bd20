"""Интерфейс пакета приложения, для которого строится миниатюра.

Конвейер зависит только от этого протокола; формат пакета разбирает отдельный сервис.
"""
from __future__ import annotations

from pathlib import Path
from typing import Protocol


class Bundle(Protocol):
    """Пакет приложения (внешняя сущность, конвейер ею не владеет).

    Fields:
        path: Абсолютный канонический путь к файлу.
        uri: Канонический `file://` URI: ключ кэша и значение `Thumb::URI`.
        mtime: Время модификации файла, секунды с начала эпохи.
    """
    path: Path
    uri: str
    mtime: float

    def embedded_icon(self) -> bytes:
        """Иконка по умолчанию, встроенная в пакет (`.DirIcon`).

        Raises:
            ResolutionFailure: если пакет не распознан или иконки нет.
        """
        ...

    def desktop_icon(self) -> bytes:
        """Иконка, указанная в ключе `Icon=` desktop-файла пакета.

        Raises:
            ResolutionFailure: если desktop-файл или иконка не найдены.
        """
        ...
