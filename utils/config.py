"""Configuration management for the regulatory review explorer.

Provides:
- ``AppConfig``, the application settings read from environment variables
- Table-level constants shared by the controller and the templates
"""

from pathlib import Path
from typing import Any, Dict
import os

from utils.links import ClauseLinkSite


# ── Table constants ───────────────────────────────────────────────────────────

PAGE_SIZES = (10, 50, 100, 500, 1000, 5000, 10000)
FACET_LIMIT = 5000

RECORDS_DATASET = "reg_list"
SCHEDULE_DATASET = "sched"


def _normalize_base_path(raw: str) -> str:
    """Return ``raw`` as ``/segment/...`` with no trailing slash, or ``""``."""
    raw = raw.strip().strip("/")
    return f"/{raw}" if raw else ""


class AppConfig:
    """Application-level configuration loaded from environment variables.

    All env vars have defaults so the application works out of the box
    against a local ``data/`` directory.

    Environment variables:
        APP_DATA_DIR: Directory holding reg_list.json and sched.json (default: data)
        APP_DATA_URL: Remote origin to fetch the documents from instead (default: unset)
        APP_BASE_PATH: Deployment base path, e.g. "/scdar" (default: "")
        APP_PORT: Server port (default: 8000)
        APP_HOST: Server bind address (default: 127.0.0.1)
        APP_LOG_FORMAT: "text" or "json" (default: text)
        APP_LOG_LEVEL: Root log level (default: INFO)
        APP_CORS_ORIGINS: Comma-separated allowed origins (default: *)
        APP_FETCH_TIMEOUT: HTTP timeout in seconds for remote documents (default: 30)
        APP_FILTER_DEBOUNCE_MS: Delay before a filter keystroke is applied (default: 300)
        APP_PAGE_SIZE: Initial page size, one of PAGE_SIZES (default: 10)
        APP_CLAUSE_LINK_SITE: Initial clause link site, "Lawtext" or "e-Gov" (default: Lawtext)
    """

    def __init__(self) -> None:
        self.data_dir = Path(os.getenv("APP_DATA_DIR", "data"))
        self.data_url = os.getenv("APP_DATA_URL", "").rstrip("/")
        self.base_path = _normalize_base_path(os.getenv("APP_BASE_PATH", ""))
        self.api_port = int(os.getenv("APP_PORT", "8000"))
        self.api_host = os.getenv("APP_HOST", "127.0.0.1")
        self.log_format = os.getenv("APP_LOG_FORMAT", "text")
        self.log_level = os.getenv("APP_LOG_LEVEL", "INFO").upper()
        raw_origins = os.getenv("APP_CORS_ORIGINS", "*")
        self.cors_origins: list[str] = (
            ["*"] if raw_origins == "*"
            else [o.strip() for o in raw_origins.split(",") if o.strip()]
        )
        self.fetch_timeout = float(os.getenv("APP_FETCH_TIMEOUT", "30"))
        self.filter_debounce_ms = int(os.getenv("APP_FILTER_DEBOUNCE_MS", "300"))
        self.page_size = int(os.getenv("APP_PAGE_SIZE", "10"))
        self.clause_link_site = os.getenv("APP_CLAUSE_LINK_SITE", "Lawtext")

    @classmethod
    def from_env(cls) -> "AppConfig":
        """Create an AppConfig instance populated from environment variables."""
        return cls()

    def validate(self) -> "AppConfig":
        """Raise ValueError for settings the table controller cannot honour."""
        if self.page_size not in PAGE_SIZES:
            raise ValueError(
                f"APP_PAGE_SIZE must be one of {list(PAGE_SIZES)}, got {self.page_size}"
            )
        if ClauseLinkSite.parse(self.clause_link_site) is None:
            raise ValueError(
                "APP_CLAUSE_LINK_SITE must be one of "
                f"{[s.value for s in ClauseLinkSite]}, got {self.clause_link_site!r}"
            )
        if self.filter_debounce_ms < 0:
            raise ValueError("APP_FILTER_DEBOUNCE_MS must be >= 0")
        if self.log_format not in ("text", "json"):
            raise ValueError(
                f"APP_LOG_FORMAT must be 'text' or 'json', got {self.log_format!r}"
            )
        return self

    def to_dict(self) -> Dict[str, Any]:
        """Return the effective settings as JSON-ready values, for the startup log."""
        out: Dict[str, Any] = {}
        for key, value in self.__dict__.items():
            if key.startswith("_"):
                continue
            out[key] = str(value) if isinstance(value, Path) else value
        return out
