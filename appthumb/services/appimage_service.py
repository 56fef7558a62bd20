"""Чтение иконок из AppImage без запуска самого пакета.

Содержимое встроенной файловой системы (squashfs / ISO 9660) читается через 7z:
`7z e -so` выводит файл в stdout, а для символической ссылки выводит путь, на который она указывает.
"""
from __future__ import annotations

import configparser
import logging
import posixpath
import re
import subprocess
from pathlib import Path
from typing import List, Optional, Tuple

from appthumb.config import ThumbnailSettings
from appthumb.models.errors import ResolutionFailure
from appthumb.models.icon_model import is_png

logger = logging.getLogger(__name__)

DIR_ICON = ".DirIcon"
MAX_LINK_HOPS = 5
COMMAND_TIMEOUT = 30
ICON_EXTENSIONS = (".png", ".svg", ".xpm")
_HICOLOR_RE = re.compile(r"^usr/share/icons/hicolor/(?P<size>[^/]+)/apps/(?P<file>[^/]+)$")


def appimage_type(path: Path) -> int:
    """Тип AppImage по магическим байтам на смещении 8: 1, 2 или -1 (не AppImage)."""
    try:
        with open(path, "rb") as fh:
            header = fh.read(11)
    except OSError:
        return -1
    magic = header[8:11]
    if magic == b"AI\x01":
        return 1
    if magic == b"AI\x02":
        return 2
    return -1


def _looks_like_link(data: bytes) -> bool:
    if not data or len(data) > 255 or b"\x00" in data or b"\n" in data.rstrip(b"\n"):
        return False
    if is_png(data) or data.lstrip().startswith(b"<"):
        return False
    return True


def _hicolor_rank(size: str) -> Tuple[int, int]:
    # растровые размеры по убыванию, scalable после них
    match = re.match(r"^(\d+)x\d+$", size)
    if match:
        return (0, -int(match.group(1)))
    return (1, 0)


class AppImageBundle:
    """Пакет AppImage на диске.

    Fields:
        path: Канонический абсолютный путь.
        uri: `file://` URI этого пути.
        mtime: Время модификации в целых секундах.
    """

    def __init__(self, path: str | Path, settings: Optional[ThumbnailSettings] = None) -> None:
        self.path = Path(path).resolve()
        if not self.path.is_file():
            raise FileNotFoundError(f"Файл не найден: {self.path}")
        self.uri = self.path.as_uri()
        self.mtime = float(int(self.path.stat().st_mtime))
        self._seven_zip = settings.seven_zip if settings is not None else "7z"
        self._type: Optional[int] = None

    @property
    def type(self) -> int:
        if self._type is None:
            self._type = appimage_type(self.path)
        return self._type

    def embedded_icon(self) -> bytes:
        self._require_appimage()
        return self._read_followed(DIR_ICON)

    def desktop_icon(self) -> bytes:
        self._require_appimage()
        members = self._list_members()
        desktop = next((m for m in members if "/" not in m and m.endswith(".desktop")), None)
        if desktop is None:
            raise ResolutionFailure(f"В {self.path} нет desktop-файла")

        icon_name = self._desktop_icon_name(self._read_followed(desktop))
        for candidate in self._icon_candidates(icon_name, members):
            try:
                return self._read_followed(candidate)
            except ResolutionFailure as exc:
                logger.debug("Кандидат %s не подошёл: %s", candidate, exc)
        raise ResolutionFailure(f"Иконка {icon_name!r} не найдена в {self.path}")

    # ---- Helpers ----
    def _require_appimage(self) -> None:
        if self.type <= 0:
            raise ResolutionFailure(f"{self.path} не является AppImage")

    def _run(self, args: List[str]) -> bytes:
        cmd = [self._seven_zip, *args]
        try:
            result = subprocess.run(cmd, capture_output=True, timeout=COMMAND_TIMEOUT, check=False)
        except (OSError, subprocess.TimeoutExpired) as exc:
            raise ResolutionFailure(f"Не удалось выполнить {self._seven_zip}: {exc}") from exc
        if result.returncode != 0:
            stderr = result.stderr.decode("utf-8", "replace").strip()
            raise ResolutionFailure(f"{self._seven_zip} завершился с кодом {result.returncode}: {stderr}")
        return result.stdout

    def _read_member(self, name: str) -> bytes:
        data = self._run(["e", "-so", str(self.path), name])
        if not data:
            raise ResolutionFailure(f"{name} отсутствует или пуст в {self.path}")
        return data

    def _read_followed(self, name: str) -> bytes:
        current = name
        for _ in range(MAX_LINK_HOPS):
            data = self._read_member(current)
            if not _looks_like_link(data):
                return data
            target = data.decode("utf-8", "replace").strip()
            if target.startswith("/"):
                current = target.lstrip("/")
            else:
                current = posixpath.normpath(posixpath.join(posixpath.dirname(current), target))
            logger.debug("%s -> %s", name, current)
        raise ResolutionFailure(f"Слишком длинная цепочка ссылок для {name} в {self.path}")

    def _list_members(self) -> List[str]:
        listing = self._run(["l", "-slt", str(self.path)]).decode("utf-8", "replace")
        members = []
        for line in listing.splitlines():
            if not line.startswith("Path = "):
                continue
            name = line[len("Path = "):].strip()
            if name and name != str(self.path):
                members.append(name)
        return members

    def _desktop_icon_name(self, data: bytes) -> str:
        parser = configparser.ConfigParser(interpolation=None, strict=False)
        parser.optionxform = str
        try:
            parser.read_string(data.decode("utf-8", "replace"))
        except configparser.Error as exc:
            raise ResolutionFailure(f"Некорректный desktop-файл в {self.path}: {exc}") from exc
        icon = parser.get("Desktop Entry", "Icon", fallback="").strip()
        if not icon:
            raise ResolutionFailure(f"В desktop-файле {self.path} не задан Icon=")
        return icon

    def _icon_candidates(self, icon_name: str, members: List[str]) -> List[str]:
        base = posixpath.basename(icon_name)
        candidates: List[str] = []
        if base.endswith(ICON_EXTENSIONS):
            candidates.append(base)
            stem = posixpath.splitext(base)[0]
        else:
            stem = base
        candidates += [f"{stem}{ext}" for ext in ICON_EXTENSIONS]

        themed = []
        for member in members:
            match = _HICOLOR_RE.match(member)
            if match and posixpath.splitext(match.group("file"))[0] == stem:
                themed.append((_hicolor_rank(match.group("size")), member))
        candidates += [member for _, member in sorted(themed)]

        present = set(members)
        return [c for c in dict.fromkeys(candidates) if c in present]
