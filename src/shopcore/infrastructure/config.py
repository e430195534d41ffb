"""Runtime settings read from the environment (and a local ``.env`` file)."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

# Resolve data directory relative to the project root.
# When installed in editable mode the project root is the repo root.
_DEFAULT_DATA_DIR = Path(__file__).resolve().parents[3] / "data"


def _int_env(name: str, default: int) -> int:
    val = os.getenv(name)
    if val is None or not val.strip():
        return default
    try:
        parsed = int(val)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {val!r}") from None
    if parsed <= 0:
        raise ValueError(f"{name} must be positive, got {parsed}")
    return parsed


def _bool_env(name: str, default: bool = False) -> bool:
    val = os.getenv(name)
    if val is None:
        return default
    return val.strip().lower() in {"1", "true", "yes", "y", "on"}


@dataclass(frozen=True)
class Settings:
    data_dir: Path
    reservation_ttl_minutes: int = 15
    id_cache_ttl_seconds: int = 300
    store_lock_timeout_seconds: int = 10
    app_url: str = "http://localhost:3000"
    monnify_base_url: str = "https://sandbox.monnify.com"
    monnify_api_key: str = ""
    monnify_secret_key: str = ""
    monnify_contract_code: str = ""
    log_level: str = "INFO"
    log_json: bool = False

    @staticmethod
    def from_env() -> Settings:
        load_dotenv()
        return Settings(
            data_dir=Path(os.getenv("SHOPCORE_DATA_DIR") or _DEFAULT_DATA_DIR),
            reservation_ttl_minutes=_int_env("SHOPCORE_RESERVATION_TTL_MINUTES", 15),
            id_cache_ttl_seconds=_int_env("SHOPCORE_ID_CACHE_TTL_SECONDS", 300),
            store_lock_timeout_seconds=_int_env("SHOPCORE_STORE_LOCK_TIMEOUT_SECONDS", 10),
            app_url=os.getenv("SHOPCORE_APP_URL", "http://localhost:3000").rstrip("/"),
            monnify_base_url=os.getenv(
                "MONNIFY_BASE_URL", "https://sandbox.monnify.com"
            ).rstrip("/"),
            monnify_api_key=os.getenv("MONNIFY_API_KEY", ""),
            monnify_secret_key=os.getenv("MONNIFY_SECRET_KEY", ""),
            monnify_contract_code=os.getenv("MONNIFY_CONTRACT_CODE", ""),
            log_level=os.getenv("SHOPCORE_LOG_LEVEL", "INFO"),
            log_json=_bool_env("SHOPCORE_LOG_JSON", False),
        )
