"""
Font and logo assets.

Assets are plain byte blobs; files are read once and closed immediately.
"""
from __future__ import annotations

import hashlib
import logging
import os
from dataclasses import dataclass
from io import BytesIO

from reportlab.pdfbase import pdfmetrics
from reportlab.pdfbase.ttfonts import TTFError, TTFont

from facturation.errors import LoadError
from facturation.models import EmitterConfig

logger = logging.getLogger(__name__)

REGULAR_FONT_FILE = "LiberationSans-Regular.ttf"
BOLD_FONT_FILE = "LiberationSans-Bold.ttf"


def read_asset(path: str, what: str = "asset") -> bytes:
    try:
        with open(path, "rb") as f:
            data = f.read()
    except OSError as exc:
        raise LoadError(f"Cannot read {what} '{path}': {exc}", path) from exc
    if not data:
        raise LoadError(f"{what.capitalize()} '{path}' is empty", path)
    return data


@dataclass(frozen=True)
class FontSet:
    """Regular and bold TrueType font programs."""
    regular: bytes
    bold: bytes

    @classmethod
    def load(cls, fonts_dir: str, *, regular: str = REGULAR_FONT_FILE,
             bold: str = BOLD_FONT_FILE) -> "FontSet":
        return cls(
            regular=read_asset(os.path.join(fonts_dir, regular), "regular font"),
            bold=read_asset(os.path.join(fonts_dir, bold), "bold font"),
        )

    def register(self) -> tuple[str, str]:
        """Register both fonts with reportlab and return their names.

        Names are derived from the font bytes, so distinct font sets never
        shadow each other in reportlab's global registry.
        """
        return (_register_ttf("Regular", self.regular),
                _register_ttf("Bold", self.bold))


def _register_ttf(style: str, data: bytes) -> str:
    name = f"FX-{style}-{hashlib.md5(data).hexdigest()[:10]}"
    if name in pdfmetrics.getRegisteredFontNames():
        return name
    try:
        pdfmetrics.registerFont(TTFont(name, BytesIO(data)))
    except (TTFError, ValueError, OSError) as exc:
        raise LoadError(f"Cannot load {style.lower()} font: {exc}") from exc
    logger.debug("Registered TrueType font %s (%d bytes)", name, len(data))
    return name


def load_logo(path: str) -> bytes:
    return read_asset(path, "logo")


def resolve_logo_path(emitter: EmitterConfig, assets_dir: str) -> str | None:
    """Return the emitter logo path under ``assets_dir``, or None when no logo is set."""
    if not emitter.logo or not emitter.logo.strip():
        return None
    return os.path.join(assets_dir, emitter.logo.strip())
