"""
Run settings for the palette finder.

Settings come from a ten-line text file (one value per line, fixed order) and
fall back to compiled-in defaults when the file is missing or malformed. The
resulting ``Settings`` value is frozen and passed explicitly to every stage.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, replace
from typing import Callable, List, Optional, Tuple

from loguru import logger

SETTINGS_ENV = "PALETTESCAN_SETTINGS"
DEFAULT_SETTINGS_PATH = "../settings.txt"

PALETTE_ORDERS = ("channels", "luminance")
ERROR_POLICIES = ("continue", "abort")


def _parse_flag(raw: str) -> bool:
    return int(raw) == 1


@dataclass(frozen=True)
class Settings:
    n_clusters: int = 6
    resize: int = 120
    win_w: int = 512
    win_h: int = 512
    color_w: int = 128
    color_h: int = 139
    path: str = "../dataset/"
    threshold: float = 0.99
    vertical: bool = True
    reverse: bool = True
    palette_order: str = "channels"
    on_error: str = "continue"
    seed: Optional[int] = None

    def __post_init__(self) -> None:
        if self.n_clusters < 2:
            raise ValueError(f"n_clusters must be at least 2, got {self.n_clusters}")
        for name in ("resize", "win_w", "win_h", "color_w", "color_h"):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be positive, got {getattr(self, name)}")
        if self.resize * self.resize < self.n_clusters:
            raise ValueError(
                f"resize {self.resize} gives {self.resize * self.resize} samples, "
                f"fewer than n_clusters {self.n_clusters}"
            )
        if not -1.0 <= self.threshold <= 1.0:
            raise ValueError(f"threshold must lie in [-1, 1], got {self.threshold}")
        if self.palette_order not in PALETTE_ORDERS:
            raise ValueError(
                f"Unknown palette order '{self.palette_order}'. "
                f"Available: {', '.join(PALETTE_ORDERS)}"
            )
        if self.on_error not in ERROR_POLICIES:
            raise ValueError(
                f"Unknown error policy '{self.on_error}'. "
                f"Available: {', '.join(ERROR_POLICIES)}"
            )

    @property
    def colors(self) -> int:
        """Visible palette entries: every cluster except the background one."""
        return self.n_clusters - 1

    def with_overrides(self, **changes) -> "Settings":
        clean = {key: value for key, value in changes.items() if value is not None}
        if not clean:
            return self
        return replace(self, **clean)


DEFAULT_SETTINGS = Settings()

# (field, parser, short label used in the debug dump) in file order
SETTINGS_FIELDS: List[Tuple[str, Callable[[str], object], str]] = [
    ("n_clusters", int, "n_c"),
    ("resize", int, "rs"),
    ("win_w", int, "win_w"),
    ("win_h", int, "win_h"),
    ("color_w", int, "color_w"),
    ("color_h", int, "color_h"),
    ("path", str, "path"),
    ("threshold", float, "thr"),
    ("vertical", _parse_flag, "ver"),
    ("reverse", _parse_flag, "rev"),
]


def resolve_settings_path(explicit: Optional[str] = None) -> str:
    if explicit:
        return explicit
    return os.environ.get(SETTINGS_ENV, DEFAULT_SETTINGS_PATH)


def parse_settings(lines: List[str], base: Settings = DEFAULT_SETTINGS) -> Settings:
    """
    Apply settings lines on top of ``base``, in file order.

    Reading stops at the first missing or malformed value; everything read
    before it is kept and the remaining fields keep their ``base`` values.

    Raises:
        ValueError: If a line cannot be parsed or the file is too short.
            ``changes`` gathered so far are attached as ``exc.partial``.
    """
    changes = {}
    for idx, (name, parse, label) in enumerate(SETTINGS_FIELDS):
        if idx >= len(lines):
            exc = ValueError(f"settings ended before '{name}' (line {idx + 1})")
            exc.partial = replace(base, **changes)
            raise exc
        raw = lines[idx].rstrip("\r\n")
        try:
            value = parse(raw) if parse is str else parse(raw.strip())
        except ValueError as err:
            exc = ValueError(f"bad value for '{name}' on line {idx + 1}: {raw!r}")
            exc.partial = replace(base, **changes)
            raise exc from err
        changes[name] = value
        logger.debug(f"{label}\t: {value}")
    return replace(base, **changes)


def load_settings(path: Optional[str] = None, base: Settings = DEFAULT_SETTINGS) -> Settings:
    """
    Load run settings from a line-oriented settings file.

    Never fails: on I/O, parse or range problems a warning is logged and the
    values read so far (defaults for the rest) are returned.
    """
    settings_path = resolve_settings_path(path)
    try:
        with open(settings_path, "r", encoding="utf-8") as fh:
            lines = fh.readlines()
    except (OSError, UnicodeDecodeError) as exc:
        logger.warning(f"Error reading the settings file {settings_path}: {exc}")
        return base

    try:
        return parse_settings(lines, base)
    except ValueError as exc:
        logger.warning(f"Error reading the settings file {settings_path}: {exc}")
        return getattr(exc, "partial", base)
