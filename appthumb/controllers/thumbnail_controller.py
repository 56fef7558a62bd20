"""Контроллер конвейера миниатюр: оркестрация сервисов.

SOLID:
- SRP: класс связывает сервисы в конвейер (без логики работы с PNG, SVG и файлами).
- DIP: зависит от сервисов как от ролей; реализации подставляются через поля.
Clean Code:
- Ни одна ошибка конвейера не выходит за пределы `generate`: демон продолжает
  обрабатывать остальные пакеты, а у этого пакета просто не будет миниатюры.
"""
from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, List, Optional

from appthumb.config import ThumbnailSettings
from appthumb.models.bundle_model import Bundle
from appthumb.models.errors import ConversionFailure, MetadataFailure, ThumbnailError
from appthumb.models.icon_model import IconSource
from appthumb.models.metadata_model import ThumbnailMetadata
from appthumb.services.cache_publisher import CachePublisher, ThumbnailState
from appthumb.services.icon_resolver import IconResolver, ResolvedIcon
from appthumb.services.metadata_embedder import MetadataEmbedder
from appthumb.services.vector_rasterizer import VectorRasterizer

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ThumbnailResult:
    """Итог одного прогона конвейера для пакета.

    Fields:
        uri: URI пакета.
        path: Путь к записанной миниатюре, None если запись не состоялась.
        source: Уровень цепочки, с которого взята иконка.
        skipped: Миниатюра уже актуальна, прогон не выполнялся.
        error: Ошибка, прервавшая прогон.
    """
    uri: str
    path: Optional[Path] = None
    source: Optional[IconSource] = None
    skipped: bool = False
    error: Optional[Exception] = None

    @property
    def ok(self) -> bool:
        return self.error is None and (self.path is not None or self.skipped)


@dataclass
class ThumbnailController:
    """Связывает сервисы конвейера.

    Ответственности:
    - Поиск иконки через `IconResolver` (с переходом на общую иконку).
    - Растеризация SVG через `VectorRasterizer`.
    - Запись метаданных через `MetadataEmbedder`.
    - Публикация в кэш через `CachePublisher`.
    """
    settings: ThumbnailSettings
    resolver: IconResolver = field(default_factory=IconResolver)
    rasterizer: VectorRasterizer = field(default_factory=VectorRasterizer)
    embedder: MetadataEmbedder = field(default_factory=MetadataEmbedder)
    publisher: Optional[CachePublisher] = None

    def __post_init__(self) -> None:
        if self.publisher is None:
            self.publisher = CachePublisher(self.settings, self.embedder)

    def generate(self, bundle: Bundle) -> ThumbnailResult:
        """Строит и публикует миниатюру пакета. Не бросает исключений."""
        uri = getattr(bundle, "uri", "")
        try:
            metadata = ThumbnailMetadata(uri=bundle.uri, mtime=bundle.mtime)
            resolved = self._raster_icon(bundle)
            data, resolved = self._embed(resolved, metadata)
            if self.settings.verbose:
                logger.debug("Создаётся %s", self.publisher.thumbnail_path(metadata.uri))
            path = self.publisher.publish(data, metadata)
        except ThumbnailError as exc:
            logger.error("Миниатюра для %s не создана: %s", uri, exc)
            return ThumbnailResult(uri=uri, error=exc)
        except Exception as exc:
            logger.exception("Непредвиденная ошибка при создании миниатюры для %s", uri)
            return ThumbnailResult(uri=uri, error=exc)
        return ThumbnailResult(uri=uri, path=path, source=resolved.source)

    def generate_if_stale(self, bundle: Bundle) -> ThumbnailResult:
        """Как `generate`, но пропускает пакет, если миниатюра уже актуальна."""
        uri = getattr(bundle, "uri", "")
        try:
            state = self.publisher.lookup(ThumbnailMetadata(uri=bundle.uri, mtime=bundle.mtime))
        except Exception as exc:
            logger.warning("Не удалось проверить миниатюру для %s (%s); она будет создана заново", uri, exc)
            state = ThumbnailState.STALE
        if state is ThumbnailState.FRESH:
            logger.debug("Миниатюра для %s актуальна", uri)
            return ThumbnailResult(
                uri=uri,
                path=self.publisher.thumbnail_path(uri),
                skipped=True,
            )
        return self.generate(bundle)

    def generate_many(
        self,
        bundles: Iterable[Bundle],
        max_workers: int = 4,
        only_stale: bool = False,
    ) -> List[ThumbnailResult]:
        """Обрабатывает независимые пакеты параллельно; порядок результатов сохраняется."""
        run = self.generate_if_stale if only_stale else self.generate
        with ThreadPoolExecutor(max_workers=max(1, max_workers)) as executor:
            return list(executor.map(run, bundles))

    # ---- Helpers ----
    def _raster_icon(self, bundle: Bundle) -> ResolvedIcon:
        resolved = self.resolver.resolve(bundle)
        if not resolved.icon.is_vector:
            return resolved

        logger.warning("Иконка в %s в формате SVG, это нежелательно; выполняется конвертация", bundle.path)
        try:
            png = self.rasterizer.rasterize(resolved.icon)
        except ConversionFailure as exc:
            logger.warning("Не удалось конвертировать SVG из %s: %s; используется общая иконка", bundle.path, exc)
            return self.resolver.generic()
        return ResolvedIcon(icon=png, source=resolved.source)

    def _embed(self, resolved: ResolvedIcon, metadata: ThumbnailMetadata) -> tuple[bytes, ResolvedIcon]:
        try:
            return self.embedder.embed(resolved.icon.data, metadata), resolved
        except MetadataFailure as exc:
            if resolved.source is IconSource.GENERIC:
                raise
            logger.warning("Иконка для %s не декодируется (%s); используется общая иконка", metadata.uri, exc)
            generic = self.resolver.generic()
            return self.embedder.embed(generic.icon.data, metadata), generic
