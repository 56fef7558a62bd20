"""Настройки генератора миниатюр.

Каталог кэша берётся из `$XDG_CACHE_HOME/thumbnails` (по умолчанию `~/.cache/thumbnails`),
как того требует Thumbnail Managing Standard. Создаётся только размер "normal".
"""
from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

from platformdirs import user_cache_path

NORMAL_SIZE_DIR = "normal"
NORMAL_SIZE_PX = 128


def default_cache_dir() -> Path:
    return user_cache_path() / "thumbnails"


@dataclass(frozen=True)
class ThumbnailSettings:
    """Неизменяемые настройки конвейера.

    Fields:
        cache_dir: Корень кэша миниатюр (`.../thumbnails`).
        verbose: Подробная диагностика в журнале.
        seven_zip: Исполняемый файл 7z для чтения содержимого AppImage.
    """
    cache_dir: Path
    verbose: bool = False
    seven_zip: str = "7z"

    @property
    def size_dir(self) -> Path:
        return self.cache_dir / NORMAL_SIZE_DIR

    @classmethod
    def from_env(
        cls,
        environ: Optional[Mapping[str, str]] = None,
        cache_dir: Optional[Path] = None,
        verbose: bool = False,
    ) -> "ThumbnailSettings":
        env = os.environ if environ is None else environ
        return cls(
            cache_dir=Path(cache_dir) if cache_dir is not None else default_cache_dir(),
            verbose=verbose,
            seven_zip=env.get("APPTHUMB_7Z", "7z"),
        )
