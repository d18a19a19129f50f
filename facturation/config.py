"""
Runtime configuration.

Configuration via environment variables (a ``.env`` file is honoured):
  FACTURX_EMITTER_CONFIG – emitter TOML file (default config/emitter.toml)
  FACTURX_FONTS_DIR      – directory with the regular/bold TrueType fonts
  FACTURX_ASSETS_DIR     – directory the emitter logo is resolved against
  FACTURX_LOG_LEVEL      – logging level for ``setup_logging`` (default INFO)
"""
from __future__ import annotations

import logging
import os
import tomllib
from dataclasses import dataclass

from dotenv import load_dotenv

from facturation.errors import LoadError, ValidationError
from facturation.models import EmitterConfig, FieldError

REQUIRED_EMITTER_KEYS = ("siret", "name", "address")


@dataclass(frozen=True)
class Settings:
    emitter_config: str = "config/emitter.toml"
    fonts_dir: str = "assets/fonts"
    assets_dir: str = "assets"
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        load_dotenv()
        return cls(
            emitter_config=os.getenv("FACTURX_EMITTER_CONFIG", cls.emitter_config),
            fonts_dir=os.getenv("FACTURX_FONTS_DIR", cls.fonts_dir),
            assets_dir=os.getenv("FACTURX_ASSETS_DIR", cls.assets_dir),
            log_level=os.getenv("FACTURX_LOG_LEVEL", cls.log_level).strip().upper() or cls.log_level,
        )


def load_emitter_config(path: str) -> EmitterConfig:
    """Load the emitter identity from a TOML file."""
    try:
        with open(path, "rb") as f:
            data = tomllib.load(f)
    except OSError as exc:
        raise LoadError(f"Cannot read emitter config '{path}': {exc}", path) from exc
    except tomllib.TOMLDecodeError as exc:
        raise LoadError(f"Invalid TOML in emitter config '{path}': {exc}", path) from exc

    missing = [FieldError(key, "Required key is missing")
               for key in REQUIRED_EMITTER_KEYS if not str(data.get(key, "")).strip()]
    if missing:
        raise ValidationError(f"Emitter config '{path}' is incomplete", missing)

    return EmitterConfig.from_mapping({k: str(v) for k, v in data.items()})


def setup_logging(level: str = "INFO") -> None:
    """Console logging for scripts; the library itself never adds handlers."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s - %(levelname)-8s - %(name)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
