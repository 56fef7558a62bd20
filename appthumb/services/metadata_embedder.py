"""Чтение и запись метаданных происхождения (`Thumb::URI`, `Thumb::MTime`) в PNG.

Принципы:
- SRP: сервис работает только с текстовыми блоками PNG.
- Перезапись, а не дописывание: любые прежние ключи `Thumb::*` отбрасываются,
  значения всегда отражают текущий пакет.
- Изображение не портится: если перекодированные пиксели отличаются от исходных,
  бросается `MetadataFailure`, прежние метаданные не публикуются.
"""
from __future__ import annotations

import io
import logging
from typing import Dict

import numpy as np
from PIL import Image, UnidentifiedImageError
from PIL.PngImagePlugin import PngInfo

from appthumb.models.errors import MetadataFailure
from appthumb.models.metadata_model import (
    MTIME_KEY,
    THUMB_KEY_PREFIX,
    URI_KEY,
    MetadataState,
    ParsedMetadata,
    ThumbnailMetadata,
)

logger = logging.getLogger(__name__)


def _pixels(image: Image.Image) -> np.ndarray:
    # индексы палитры сравнивать бессмысленно, сравниваем цвета
    if image.mode == "P":
        return np.asarray(image.convert("RGBA"))
    return np.asarray(image)


def _same_pixels(a: Image.Image, b: Image.Image) -> bool:
    if a.size != b.size:
        return False
    return bool(np.array_equal(_pixels(a), _pixels(b)))


def _add_key(info: PngInfo, key: str, value: str) -> None:
    try:
        info.add_text(key, value)
    except (UnicodeError, ValueError, TypeError) as exc:
        raise MetadataFailure(f"Не удалось записать {key}: {exc}") from exc


class MetadataEmbedder:
    def parse(self, data: bytes) -> ParsedMetadata:
        """Читает текстовые блоки PNG. Никогда не бросает исключений.

        Returns:
            `ParsedMetadata`: PRESENT с ключами, ABSENT для PNG без текста,
            MALFORMED если буфер не декодируется как PNG.
        """
        try:
            with Image.open(io.BytesIO(data)) as image:
                if image.format != "PNG":
                    return ParsedMetadata(MetadataState.MALFORMED, error=f"формат {image.format}")
                image.load()
                fields = {str(k): str(v) for k, v in getattr(image, "text", {}).items()}
        except (UnidentifiedImageError, Image.DecompressionBombError, OSError, SyntaxError, ValueError) as exc:
            return ParsedMetadata(MetadataState.MALFORMED, error=str(exc))
        if not fields:
            return ParsedMetadata(MetadataState.ABSENT)
        return ParsedMetadata(MetadataState.PRESENT, fields=fields)

    def embed(self, data: bytes, metadata: ThumbnailMetadata) -> bytes:
        """Возвращает новый PNG с актуальными `Thumb::URI` и `Thumb::MTime`.

        Ошибка записи отдельного ключа не фатальна: она журналируется, остальные
        ключи записываются. Повторный вызов на собственном результате даёт тот же
        набор метаданных.

        Args:
            data: PNG-буфер иконки.
            metadata: Метаданные текущего пакета.

        Returns:
            Байты PNG с метаданными.

        Raises:
            MetadataFailure: если буфер не декодируется как PNG, не перекодируется
            или пиксели после записи не совпадают с исходными.
        """
        try:
            source = Image.open(io.BytesIO(data))
            source.load()
        except (UnidentifiedImageError, Image.DecompressionBombError, OSError, SyntaxError, ValueError) as exc:
            raise MetadataFailure(f"Буфер не является PNG: {exc}") from exc

        with source:
            existing: Dict[str, str] = dict(getattr(source, "text", {}))
            self._report_stale(existing, metadata)

            info = PngInfo()
            for key, value in existing.items():
                if key.startswith(THUMB_KEY_PREFIX):
                    continue
                try:
                    _add_key(info, key, value)
                except MetadataFailure as exc:
                    logger.debug("Посторонний ключ пропущен: %s", exc)

            for key, value in metadata.items().items():
                try:
                    _add_key(info, key, value)
                except MetadataFailure as exc:
                    logger.warning("%s (%s)", exc, metadata.uri)

            out = io.BytesIO()
            try:
                source.save(out, format="PNG", pnginfo=info)
                with Image.open(io.BytesIO(out.getvalue())) as written:
                    written.load()
                    intact = _same_pixels(source, written)
            except (OSError, ValueError) as exc:
                raise MetadataFailure(f"Не удалось перекодировать PNG для {metadata.uri}: {exc}") from exc

        if not intact:
            raise MetadataFailure(f"Пиксели изменились при записи метаданных для {metadata.uri}")
        return out.getvalue()

    def _report_stale(self, existing: Dict[str, str], metadata: ThumbnailMetadata) -> None:
        for key, value in metadata.items().items():
            old = existing.get(key)
            if old is None:
                continue
            if old != value:
                logger.warning("Устаревшее значение %s=%r отброшено (%s)", key, old, metadata.uri)
            else:
                logger.debug("Значение %s уже актуально (%s)", key, metadata.uri)
        for key in existing:
            if key.startswith(THUMB_KEY_PREFIX) and key not in (URI_KEY, MTIME_KEY):
                logger.debug("Ключ %s отброшен (%s)", key, metadata.uri)
