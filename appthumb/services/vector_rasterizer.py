"""Растеризация SVG-иконок в PNG.

Принципы:
- SRP: распознавание SVG по содержимому и конвертация в растр, ничего больше.
- Размер холста равен объявленному viewBox: потребители миниатюр масштабируют сами.

SVG-иконки в пакетах нежелательны, но допустимы; конвертация дорогая и выполняется
только когда без неё не обойтись.
"""
from __future__ import annotations

import io
import logging
import re
import xml.etree.ElementTree as ET
from typing import Optional, Tuple

from PIL import Image, UnidentifiedImageError

from appthumb.models.errors import ConversionFailure
from appthumb.models.icon_model import IconBytes, IconKind

logger = logging.getLogger(__name__)

_COMMENT_RE = re.compile(rb"<!--.*?-->", re.DOTALL)
_PROLOG_RE = re.compile(
    rb"^\s*(?:<\?xml[^>]*\?>\s*)?(?:<!doctype\s+svg[^>\[]*(?:\[.*?\])?\s*>\s*)?",
    re.IGNORECASE | re.DOTALL,
)
_SVG_ROOT_RE = re.compile(rb"^<svg[\s>]", re.IGNORECASE)
_SVG_CLOSE_RE = re.compile(rb"</svg\s*>\s*$", re.IGNORECASE)
_LENGTH_RE = re.compile(r"^\s*([0-9]*\.?[0-9]+(?:[eE][-+]?[0-9]+)?)\s*(px)?\s*$")


def is_svg(data: bytes) -> bool:
    """Определяет SVG по структуре документа, а не по расширению файла."""
    if not data or b"\x00" in data:
        return False
    if data.startswith(b"\xef\xbb\xbf"):
        data = data[3:]
    body = _COMMENT_RE.sub(b"", data)
    body = _PROLOG_RE.sub(b"", body, count=1).lstrip()
    return bool(_SVG_ROOT_RE.match(body)) and bool(_SVG_CLOSE_RE.search(body))


def _parse_length(value: Optional[str]) -> Optional[float]:
    if value is None:
        return None
    match = _LENGTH_RE.match(value)
    if match is None:
        return None
    return float(match.group(1))


def parse_view_box(data: bytes) -> Tuple[int, int]:
    """Возвращает размеры (ширина, высота) в пикселях из viewBox корня SVG.

    Если viewBox не задан, используются атрибуты `width`/`height`.

    Raises:
        ConversionFailure: если документ не разбирается или размеры не положительны.
    """
    try:
        root = ET.fromstring(data)
    except ET.ParseError as exc:
        raise ConversionFailure(f"Некорректный SVG: {exc}") from exc

    width: Optional[float] = None
    height: Optional[float] = None
    view_box = root.get("viewBox")
    if view_box:
        parts = view_box.replace(",", " ").split()
        if len(parts) != 4:
            raise ConversionFailure(f"Некорректный viewBox: {view_box!r}")
        try:
            width, height = float(parts[2]), float(parts[3])
        except ValueError as exc:
            raise ConversionFailure(f"Некорректный viewBox: {view_box!r}") from exc
    else:
        width = _parse_length(root.get("width"))
        height = _parse_length(root.get("height"))

    if width is None or height is None:
        raise ConversionFailure("В SVG не заданы размеры (viewBox или width/height)")
    w, h = int(width), int(height)
    if w <= 0 or h <= 0:
        raise ConversionFailure(f"Недопустимые размеры viewBox: {width}x{height}")
    return w, h


class VectorRasterizer:
    def rasterize(self, icon: IconBytes) -> IconBytes:
        """Конвертирует SVG в PNG размером с viewBox.

        Args:
            icon: Буфер, уже распознанный как SVG.

        Returns:
            `IconBytes` с PNG-данными.

        Raises:
            ConversionFailure: ошибка разбора, размеров, растеризации или кодирования.
        """
        if not icon.is_vector:
            raise ConversionFailure("Буфер не является SVG")
        width, height = parse_view_box(icon.data)

        try:
            # cairosvg требует нативную libcairo
            import cairosvg
        except (ImportError, OSError) as exc:
            raise ConversionFailure(f"cairosvg недоступен: {exc}") from exc

        try:
            png_data = cairosvg.svg2png(
                bytestring=icon.data,
                output_width=width,
                output_height=height,
            )
        except Exception as exc:
            raise ConversionFailure(f"Не удалось растеризовать SVG: {exc}") from exc

        if not png_data:
            raise ConversionFailure("Растеризация вернула пустой буфер")
        try:
            with Image.open(io.BytesIO(png_data)) as rendered:
                size = rendered.size
        except (UnidentifiedImageError, OSError) as exc:
            raise ConversionFailure(f"Результат растеризации не PNG: {exc}") from exc
        if size != (width, height):
            raise ConversionFailure(f"Размер растра {size} не совпадает с viewBox {(width, height)}")

        logger.debug("SVG растеризован в %dx%d", width, height)
        return IconBytes(data=png_data, kind=IconKind.RASTER)
