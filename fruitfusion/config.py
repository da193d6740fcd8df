# fruitfusion/config.py
from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path


def _env_str(name: str, default: str = "") -> str:
    return os.getenv(name, default).strip()


def _env_int(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, str(default)))
    except (TypeError, ValueError):
        return default


def _env_float(name: str, default: float) -> float:
    try:
        return float(os.getenv(name, str(default)))
    except (TypeError, ValueError):
        return default


@dataclass(frozen=True)
class Settings:
    database_url: str = ""
    database_auth: str = ""
    timeout_sec: float = 10.0

    data_dir: Path = Path("data")
    log_dir: Path = Path("data/logs")
    log_level: str = "INFO"

    # checkout
    delivery_fee: int = 50
    delivery_city: str = "Islamabad"
    delivery_country: str = "Pakistan"

    admin_access_code: str = ""

    @property
    def cache_path(self) -> Path:
        return self.data_dir / "local_cache.json"

    @property
    def has_database(self) -> bool:
        return bool(self.database_url)


def load_settings() -> Settings:
    """
    Read settings from FF_* environment variables.

    Unparseable numbers fall back to the defaults rather than failing startup.
    """
    data_dir = Path(_env_str("FF_DATA_DIR", "data") or "data")
    return Settings(
        database_url=_env_str("FF_DATABASE_URL").rstrip("/"),
        database_auth=_env_str("FF_DATABASE_AUTH"),
        timeout_sec=_env_float("FF_TIMEOUT_SEC", 10.0),
        data_dir=data_dir,
        log_dir=Path(_env_str("FF_LOG_DIR") or (data_dir / "logs")),
        log_level=(_env_str("FF_LOG_LEVEL", "INFO") or "INFO").upper(),
        delivery_fee=_env_int("FF_DELIVERY_FEE", 50),
        delivery_city=_env_str("FF_DELIVERY_CITY", "Islamabad") or "Islamabad",
        delivery_country=_env_str("FF_DELIVERY_COUNTRY", "Pakistan") or "Pakistan",
        admin_access_code=_env_str("FF_ADMIN_ACCESS_CODE"),
    )
