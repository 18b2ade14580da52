"""Application-wide configuration defaults and helpers."""
from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

# Base directory for resolving relative paths.
BASE_DIR = Path(__file__).resolve().parent

DEFAULT_FMP_BASE_URL = "https://financialmodelingprep.com/stable"


def _to_bool(value: Optional[str], default: bool = False) -> bool:
    """Parse truthy environment values like '1' or 'true'."""
    if value is None:
        return default
    # Normalize non-string inputs (e.g., int defaults) before parsing.
    if not isinstance(value, str):
        value = str(value)
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _to_int(value: Optional[str]) -> Optional[int]:
    """Safely parse an integer env var, returning None on failure."""
    if value is None:
        return None
    try:
        parsed = int(str(value).strip())
        return parsed
    except (TypeError, ValueError):
        return None


def _to_float(value: Optional[str]) -> Optional[float]:
    """Safely parse a float env var, returning None on failure."""
    if value is None:
        return None
    try:
        return float(str(value).strip())
    except (TypeError, ValueError):
        return None


@dataclass
class Config:
    """Runtime configuration loaded from environment variables."""

    debug: bool = False
    fmp_api_key: Optional[str] = None
    fmp_base_url: str = DEFAULT_FMP_BASE_URL
    http_timeout: float = 15.0
    max_retries: int = 3
    include_peers: bool = False
    peer_limit: int = 5
    poe_api_key: Optional[str] = None
    proxy_url: Optional[str] = None
    gemini_model: str = "gemini-2.5-flash"
    poe_thinking_budget: Optional[int] = None
    watchlist_db_path: Path = BASE_DIR / "data" / "watchlist.db"
    sqlite_echo: bool = False
    output_dir: Path = BASE_DIR / "reports"

    @classmethod
    def from_env(cls) -> "Config":
        """Build a configuration instance using environment overrides."""
        base = BASE_DIR
        watchlist_db_path = Path(os.getenv("WATCHLIST_DB_PATH", base / "data" / "watchlist.db"))
        output_dir = Path(os.getenv("OUTPUT_DIR", base / "reports"))

        config = cls(
            debug=_to_bool(os.getenv("APP_DEBUG")),
            fmp_api_key=os.getenv("FMP_API_KEY"),
            fmp_base_url=os.getenv("FMP_BASE_URL", DEFAULT_FMP_BASE_URL).rstrip("/"),
            http_timeout=_to_float(os.getenv("FMP_TIMEOUT")) or 15.0,
            max_retries=max(_to_int(os.getenv("FMP_MAX_RETRIES")) or 3, 1),
            include_peers=_to_bool(os.getenv("INCLUDE_PEERS")),
            peer_limit=max(_to_int(os.getenv("PEER_LIMIT")) or 5, 0),
            poe_api_key=os.getenv("POE_API_KEY"),
            proxy_url=os.getenv("PROXY_URL"),
            gemini_model=os.getenv("GEMINI_MODEL", "gemini-2.5-flash"),
            poe_thinking_budget=_to_int(os.getenv("POE_THINKING_BUDGET")),
            watchlist_db_path=watchlist_db_path,
            sqlite_echo=_to_bool(os.getenv("SQLITE_ECHO")),
            output_dir=output_dir,
        )
        config.ensure_directories()
        return config

    def ensure_directories(self) -> None:
        """Create directories needed for runtime artifacts."""
        self.watchlist_db_path.parent.mkdir(parents=True, exist_ok=True)
        self.output_dir.mkdir(parents=True, exist_ok=True)
