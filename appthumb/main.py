"""Точка входа: создание миниатюр для AppImage из командной строки."""
from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from appthumb.config import ThumbnailSettings
from appthumb.controllers.thumbnail_controller import ThumbnailController, ThumbnailResult
from appthumb.services.appimage_service import AppImageBundle

logger = logging.getLogger("appthumb")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="appthumb",
        description="Создаёт миниатюры AppImage в кэше $XDG_CACHE_HOME/thumbnails/normal",
    )
    parser.add_argument("paths", nargs="+", type=Path, help="Файлы AppImage")
    parser.add_argument("-v", "--verbose", action="store_true", help="Подробный журнал")
    parser.add_argument("--only-stale", action="store_true", help="Пропускать актуальные миниатюры")
    parser.add_argument("--cache-dir", type=Path, default=None, help="Корень кэша миниатюр")
    parser.add_argument("-j", "--jobs", type=int, default=4, help="Число параллельных задач")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Возвращает 0, если все миниатюры записаны или уже актуальны."""
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    settings = ThumbnailSettings.from_env(cache_dir=args.cache_dir, verbose=args.verbose)
    controller = ThumbnailController(settings=settings)

    results: List[ThumbnailResult] = []
    bundles = []
    for path in args.paths:
        try:
            bundles.append(AppImageBundle(path, settings))
        except OSError as exc:
            logger.error("%s", exc)
            results.append(ThumbnailResult(uri=str(path), error=exc))

    results += controller.generate_many(bundles, max_workers=args.jobs, only_stale=args.only_stale)
    return 0 if all(result.ok for result in results) else 1


if __name__ == "__main__":
    sys.exit(main())
