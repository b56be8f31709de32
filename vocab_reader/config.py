from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import List

# CORS:
# - Default to a small allowlist (local dev). For production, set CORS_ORIGINS to your site origins.
#   Example:
#     CORS_ORIGINS=https://reader.example.com,https://notes.example.com
DEFAULT_CORS_ORIGINS = [
    "http://localhost",
    "http://localhost:3000",
    "http://127.0.0.1",
    "http://127.0.0.1:3000",
]

DEFAULT_YOUDAO_API_URL = "https://openapi.youdao.com/api"

# Rasterization below 2x is unreadable once scaled down to a PDF page.
MIN_EXPORT_SCALE = 2.0


def _parse_csv_env(name: str) -> list[str]:
    raw = os.getenv(name, "").strip()
    if not raw:
        return []
    return [x.strip() for x in raw.split(",") if x.strip()]


def _float_env(name: str, default: float) -> float:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


@dataclass(frozen=True)
class Settings:
    youdao_api_url: str = DEFAULT_YOUDAO_API_URL
    youdao_app_key: str = ""
    youdao_app_secret: str = ""
    youdao_timeout_s: float = 15.0
    cors_origins: List[str] = field(default_factory=lambda: list(DEFAULT_CORS_ORIGINS))
    export_scale: float = MIN_EXPORT_SCALE
    export_filename: str = "study_notes.pdf"
    export_font_path: str = ""
    log_level: str = "INFO"
    max_sessions: int = 1000


def load_settings() -> Settings:
    """Read settings from the environment; blank or invalid values fall back to defaults."""
    return Settings(
        youdao_api_url=os.getenv("YOUDAO_API_URL", "").strip() or DEFAULT_YOUDAO_API_URL,
        youdao_app_key=os.getenv("YOUDAO_APP_KEY", "").strip(),
        youdao_app_secret=os.getenv("YOUDAO_APP_SECRET", "").strip(),
        youdao_timeout_s=_float_env("YOUDAO_TIMEOUT_S", 15.0),
        cors_origins=_parse_csv_env("CORS_ORIGINS") or list(DEFAULT_CORS_ORIGINS),
        export_scale=max(MIN_EXPORT_SCALE, _float_env("EXPORT_SCALE", MIN_EXPORT_SCALE)),
        export_filename=os.getenv("EXPORT_FILENAME", "").strip() or "study_notes.pdf",
        export_font_path=os.getenv("EXPORT_FONT_PATH", "").strip(),
        log_level=(os.getenv("LOG_LEVEL", "").strip() or "INFO").upper(),
        max_sessions=max(1, int(_float_env("MAX_SESSIONS", 1000))),
    )
