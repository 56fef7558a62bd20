"""Поиск иконки пакета по цепочке резервных источников.

Принципы:
- SRP: класс только выбирает источник и нормализует байты в `IconBytes`.
- OCP: цепочка задана явным упорядоченным списком стратегий; новый источник добавляется
  ещё одной функцией `Bundle -> IconBytes`.

Порядок: встроенная `.DirIcon` -> иконка из desktop-файла -> общая иконка AppImage,
поставляемая вместе с пакетом.
"""
from __future__ import annotations

import io
import logging
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Callable, Optional, Sequence, Tuple

from PIL import Image, UnidentifiedImageError

from appthumb.models.bundle_model import Bundle
from appthumb.models.errors import ResolutionFailure, ThumbnailError
from appthumb.models.icon_model import IconBytes, IconKind, IconSource, is_png
from appthumb.services.vector_rasterizer import is_svg

logger = logging.getLogger(__name__)

GENERIC_ICON_PATH = Path(__file__).resolve().parent.parent / "data" / "appimage.png"

IconStrategy = Callable[[Bundle], IconBytes]


def classify_icon(data: bytes) -> IconBytes:
    """Определяет тип содержимого; прочие растровые форматы приводятся к PNG.

    Raises:
        ResolutionFailure: если буфер пуст или не является изображением.
    """
    if not data:
        raise ResolutionFailure("Пустой поток иконки")
    if is_png(data):
        return IconBytes(data=data, kind=IconKind.RASTER)
    if is_svg(data):
        return IconBytes(data=data, kind=IconKind.VECTOR)

    # XPM, ICO, JPEG и т.п. перекодируем в PNG
    try:
        with Image.open(io.BytesIO(data)) as image:
            image.load()
            if image.mode not in ("1", "L", "LA", "P", "RGB", "RGBA", "I", "I;16"):
                image = image.convert("RGBA")
            out = io.BytesIO()
            image.save(out, format="PNG")
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError) as exc:
        raise ResolutionFailure(f"Поток иконки не является изображением: {exc}") from exc
    return IconBytes(data=out.getvalue(), kind=IconKind.RASTER)


def embedded_icon_strategy(bundle: Bundle) -> IconBytes:
    return classify_icon(bundle.embedded_icon())


def desktop_icon_strategy(bundle: Bundle) -> IconBytes:
    return classify_icon(bundle.desktop_icon())


DEFAULT_STRATEGIES: Tuple[Tuple[IconSource, IconStrategy], ...] = (
    (IconSource.EMBEDDED, embedded_icon_strategy),
    (IconSource.DESKTOP, desktop_icon_strategy),
)


@lru_cache(maxsize=None)
def _load_generic_icon(path: Path) -> bytes:
    return path.read_bytes()


def generic_icon(path: Path = GENERIC_ICON_PATH) -> IconBytes:
    """Общая иконка AppImage; читается с диска один раз за время жизни процесса.

    Raises:
        ResolutionFailure: если файл иконки отсутствует или повреждён.
    """
    try:
        data = _load_generic_icon(path)
    except OSError as exc:
        raise ResolutionFailure(f"Не удалось загрузить общую иконку {path}: {exc}") from exc
    if not is_png(data):
        raise ResolutionFailure(f"Общая иконка {path} не является PNG")
    return IconBytes(data=data, kind=IconKind.RASTER)


@dataclass(frozen=True)
class ResolvedIcon:
    icon: IconBytes
    source: IconSource


class IconResolver:
    def __init__(
        self,
        strategies: Sequence[Tuple[IconSource, IconStrategy]] = DEFAULT_STRATEGIES,
        generic_path: Optional[Path] = None,
    ) -> None:
        self._strategies = tuple(strategies)
        self._generic_path = generic_path or GENERIC_ICON_PATH

    def generic(self) -> ResolvedIcon:
        return ResolvedIcon(icon=generic_icon(self._generic_path), source=IconSource.GENERIC)

    def resolve(self, bundle: Bundle) -> ResolvedIcon:
        """Возвращает первую найденную иконку пакета.

        Args:
            bundle: Пакет приложения.

        Returns:
            `ResolvedIcon` с непустым буфером и уровнем цепочки, на котором он найден.

        Raises:
            ResolutionFailure: только если не загрузилась даже общая иконка.
        """
        for source, strategy in self._strategies:
            try:
                icon = strategy(bundle)
            except (ThumbnailError, OSError) as exc:
                logger.debug("Иконка (%s) для %s не найдена: %s", source.value, bundle.path, exc)
                continue
            except Exception as exc:
                logger.warning("Ошибка при чтении иконки (%s) из %s: %r", source.value, bundle.path, exc)
                continue
            return ResolvedIcon(icon=icon, source=source)

        logger.debug("Не удалось извлечь иконку из %s, используется общая иконка", bundle.path)
        return self.generic()
