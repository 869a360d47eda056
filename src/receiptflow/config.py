"""Configuration for receiptflow.

Settings come from environment variables, optionally loaded from a ``.env``
file in the working directory.
"""

import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

from dotenv import find_dotenv, load_dotenv

DEFAULT_HOME = Path.home() / ".receiptflow"


def _float(environ: Mapping[str, str], key: str, default: float) -> float:
    raw = environ.get(key)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{key} must be a number, got '{raw}'")


@dataclass(frozen=True)
class Settings:
    """Application settings loaded from environment variables."""

    database_path: Optional[str] = None
    base_currency: str = "GBP"
    legacy_sheet_id: str = "legacy-ledger"
    ledger_root: str = str(DEFAULT_HOME / "ledgers")
    fx_api_url: str = "https://api.frankfurter.app"
    fx_timeout_seconds: float = 10.0
    fx_cache_ttl_hours: float = 24.0
    ledger_timeout_seconds: float = 30.0
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        """Build settings from an environment mapping (defaults to os.environ)."""
        env = os.environ if environ is None else environ
        settings = cls(
            database_path=env.get("RECEIPTFLOW_DB_PATH") or None,
            base_currency=env.get("BASE_CURRENCY", cls.base_currency).strip().upper(),
            legacy_sheet_id=env.get("LEGACY_SHEET_ID", cls.legacy_sheet_id),
            ledger_root=env.get("LEDGER_ROOT", cls.ledger_root),
            fx_api_url=env.get("FX_API_URL", cls.fx_api_url).rstrip("/"),
            fx_timeout_seconds=_float(env, "FX_TIMEOUT_SECONDS", cls.fx_timeout_seconds),
            fx_cache_ttl_hours=_float(env, "FX_CACHE_TTL_HOURS", cls.fx_cache_ttl_hours),
            ledger_timeout_seconds=_float(env, "LEDGER_TIMEOUT_SECONDS", cls.ledger_timeout_seconds),
            log_level=env.get("LOG_LEVEL", cls.log_level).upper(),
        )
        settings.validate()
        return settings

    def validate(self) -> None:
        """Validate settings.

        Raises:
            ValueError: Naming every invalid setting
        """
        problems = []
        if not re.fullmatch(r"[A-Z]{3}", self.base_currency):
            problems.append(f"BASE_CURRENCY must be a 3-letter ISO code, got '{self.base_currency}'")
        if not self.legacy_sheet_id.strip():
            problems.append("LEGACY_SHEET_ID must not be empty")
        for name, value in (
            ("FX_TIMEOUT_SECONDS", self.fx_timeout_seconds),
            ("FX_CACHE_TTL_HOURS", self.fx_cache_ttl_hours),
            ("LEDGER_TIMEOUT_SECONDS", self.ledger_timeout_seconds),
        ):
            if value <= 0:
                problems.append(f"{name} must be greater than zero")
        if self.log_level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            problems.append(f"LOG_LEVEL '{self.log_level}' is not a logging level")

        if problems:
            raise ValueError("Invalid configuration: " + "; ".join(problems))


def load_settings(dotenv_path: Optional[str] = None) -> Settings:
    """Load ``.env`` (without overriding real environment variables) and build settings."""
    load_dotenv(dotenv_path or find_dotenv(usecwd=True))
    return Settings.from_env()
