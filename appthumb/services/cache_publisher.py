"""Публикация миниатюр в общий кэш `$XDG_CACHE_HOME/thumbnails/normal/`.

Принципы:
- SRP: только файловые операции с кэшем; содержимое готовит `MetadataEmbedder`.
- Атомарность: запись во временный файл в том же каталоге и `os.replace`,
  файловый менеджер никогда не видит недописанную миниатюру.

Требования стандарта к файлу: права 0600, время модификации файла равно времени
модификации исходного пакета, имя файла: MD5 от канонического URI.
"""
from __future__ import annotations

import hashlib
import logging
import os
import tempfile
import time
from enum import Enum
from pathlib import Path

from appthumb.config import ThumbnailSettings
from appthumb.models.errors import PublicationFailure
from appthumb.models.metadata_model import MetadataState, ThumbnailMetadata
from appthumb.services.metadata_embedder import MetadataEmbedder

logger = logging.getLogger(__name__)

THUMBNAIL_FILE_MODE = 0o600
THUMBNAIL_DIR_MODE = 0o700


class ThumbnailState(str, Enum):
    MISSING = "missing"
    FRESH = "fresh"
    STALE = "stale"


def thumbnail_name(uri: str) -> str:
    """Имя файла миниатюры: шестнадцатеричный MD5 от URI и `.png`."""
    return hashlib.md5(uri.encode("utf-8")).hexdigest() + ".png"  # noqa: S324


class CachePublisher:
    def __init__(self, settings: ThumbnailSettings, embedder: MetadataEmbedder | None = None) -> None:
        self._settings = settings
        self._embedder = embedder or MetadataEmbedder()

    @property
    def size_dir(self) -> Path:
        return self._settings.size_dir

    def thumbnail_path(self, uri: str) -> Path:
        return self.size_dir / thumbnail_name(uri)

    def publish(self, data: bytes, metadata: ThumbnailMetadata) -> Path:
        """Атомарно записывает миниатюру в кэш.

        Args:
            data: Готовый PNG с метаданными.
            metadata: URI (ключ кэша) и время модификации пакета.

        Returns:
            Путь к записанному файлу.

        Raises:
            PublicationFailure: при любой ошибке; временный файл удаляется,
            существующая миниатюра остаётся нетронутой.
        """
        if not data:
            raise PublicationFailure("Нет данных миниатюры")
        target = self.thumbnail_path(metadata.uri)

        try:
            self.size_dir.mkdir(parents=True, exist_ok=True, mode=THUMBNAIL_DIR_MODE)
        except OSError as exc:
            raise PublicationFailure(f"Не удалось создать каталог {self.size_dir}: {exc}") from exc

        if self._settings.verbose and target.exists():
            logger.debug("%s существует, будет заменён", target)

        try:
            fd, tmp_name = tempfile.mkstemp(dir=self.size_dir, prefix=".", suffix=".png.part")
        except OSError as exc:
            raise PublicationFailure(f"Не удалось создать временный файл в {self.size_dir}: {exc}") from exc

        tmp_path = Path(tmp_name)
        try:
            with os.fdopen(fd, "wb") as fh:
                fh.write(data)
                fh.flush()
                os.fsync(fh.fileno())
            try:
                os.chmod(tmp_path, THUMBNAIL_FILE_MODE)
            except OSError as exc:
                # mkstemp уже создаёт файл с правами 0600
                logger.warning("Не удалось установить права 0600 на %s: %s", tmp_path, exc)
            os.utime(tmp_path, (time.time(), metadata.mtime))
            os.replace(tmp_path, target)
        except OSError as exc:
            tmp_path.unlink(missing_ok=True)
            raise PublicationFailure(f"Не удалось записать миниатюру {target}: {exc}") from exc

        logger.info("Миниатюра записана: %s", target)
        return target

    def lookup(self, metadata: ThumbnailMetadata) -> ThumbnailState:
        """Проверяет, актуальна ли уже записанная миниатюра (по `Thumb::URI` и `Thumb::MTime`)."""
        path = self.thumbnail_path(metadata.uri)
        try:
            data = path.read_bytes()
        except FileNotFoundError:
            return ThumbnailState.MISSING
        except OSError as exc:
            logger.debug("Не удалось прочитать %s: %s", path, exc)
            return ThumbnailState.STALE

        parsed = self._embedder.parse(data)
        if parsed.state is MetadataState.MALFORMED:
            logger.warning("Миниатюра %s повреждена: %s", path, parsed.error)
            return ThumbnailState.STALE
        if parsed.matches(metadata):
            return ThumbnailState.FRESH
        return ThumbnailState.STALE
