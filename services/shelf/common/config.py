# Centralised configuration and logging setup for the shelf service.

# What this module provides:
#   1) A Settings dataclass holding all env-driven configuration
#   2) get_settings(): reads env vars once, configures logging once
#   3) settings: a module-level singleton (import and use anywhere)

import os
import logging
from functools import lru_cache
from dataclasses import dataclass
from typing import Optional

# Project directory (the one holding services/); pdfs/ and covers/ live here by default
PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__)))))
PUBLIC_ROOT = os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), "app", "public")


# ----------------------------
# Env helpers
# ----------------------------
def _env_str(key: str, default: str) -> str:
    val = os.getenv(key)
    return val.strip() if val and val.strip() else default

def _env_int(key: str, default: int) -> int:
    raw = os.getenv(key)
    try:
        return int(raw) if raw is not None else default
    except ValueError:
        return default

def _env_bool(key: str, default: bool = False) -> bool:
    raw = os.getenv(key)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "t", "yes", "y", "on"}

def _env_optional_int(key: str, default: Optional[int]) -> Optional[int]:
    """
    Like _env_int, but "", "0", "none" and "off" switch the option off (None).
    Unparseable values fall back to the default.
    """
    raw = os.getenv(key)
    if raw is None:
        return default
    raw = raw.strip().lower()
    if raw in {"", "0", "none", "off"}:
        return None
    try:
        value = int(raw)
    except ValueError:
        return default
    return value if value > 0 else None


# ----------------------------
# Logging
# ----------------------------
# Server-side loggers that should follow LOG_LEVEL along with ours
ALIGNED_LOGGERS = ("uvicorn", "uvicorn.error", "uvicorn.access", "socketio", "engineio")

def setup_logging(level: str) -> None:
    """Configure the root logger and the server loggers once per process."""
    if getattr(setup_logging, "_configured", False):
        return
    lvl = getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
        level=lvl,
    )
    for name in ALIGNED_LOGGERS:
        logging.getLogger(name).setLevel(lvl)
    setup_logging._configured = True


# ----------------------------
# Settings model
# ----------------------------
@dataclass(frozen=True)
class Settings:
    # service identity
    service_name: str
    host: str
    port: int
    log_level: str

    # storage
    data_root: str
    pdf_dir: str
    covers_dir: str
    public_dir: str

    # cover generation
    cover_width: Optional[int]    # None -> no resize step
    cover_quality: Optional[int]  # None -> rasterizer default quality
    cover_workers: int
    pdftoppm_bin: str
    convert_bin: str

    # behavior
    log_downloads: bool


def ensure_dirs(*paths: str) -> None:
    for p in paths:
        os.makedirs(p, exist_ok=True)


def _clamp_quality(quality: Optional[int]) -> Optional[int]:
    if quality is None:
        return None
    return max(1, min(100, quality))


# ----------------------------
# Factory (cached)
# ----------------------------
@lru_cache(maxsize=1)
def get_settings() -> Settings:
    service_name = _env_str("SERVICE_NAME", "shelf-service")
    host         = _env_str("HOST", "0.0.0.0")
    port         = _env_int("PORT", 10000)
    log_level    = _env_str("LOG_LEVEL", "INFO")

    data_root  = _env_str("DATA_ROOT", PROJECT_ROOT)
    pdf_dir    = _env_str("PDF_DIR", os.path.join(data_root, "pdfs"))
    covers_dir = _env_str("COVERS_DIR", os.path.join(data_root, "covers"))
    public_dir = _env_str("PUBLIC_DIR", PUBLIC_ROOT)

    cover_width   = _env_optional_int("COVER_WIDTH", 200)
    cover_quality = _clamp_quality(_env_optional_int("COVER_QUALITY", 30))
    cover_workers = max(1, _env_int("COVER_WORKERS", 1))
    pdftoppm_bin  = _env_str("PDFTOPPM_BIN", "pdftoppm")
    convert_bin   = _env_str("CONVERT_BIN", "convert")

    log_downloads = _env_bool("LOG_DOWNLOADS", True)

    setup_logging(log_level)
    logging.getLogger(__name__).info(
        "Loaded settings service=%s port=%s pdf_dir=%s covers_dir=%s cover_width=%s cover_quality=%s workers=%s",
        service_name, port, pdf_dir, covers_dir, cover_width, cover_quality, cover_workers
    )

    return Settings(
        service_name=service_name,
        host=host,
        port=port,
        log_level=log_level,
        data_root=data_root,
        pdf_dir=pdf_dir,
        covers_dir=covers_dir,
        public_dir=public_dir,
        cover_width=cover_width,
        cover_quality=cover_quality,
        cover_workers=cover_workers,
        pdftoppm_bin=pdftoppm_bin,
        convert_bin=convert_bin,
        log_downloads=log_downloads,
    )


# Public singleton
settings = get_settings()
