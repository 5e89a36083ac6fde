# okr_dashboard/config.py
"""
Settings for the OKR dashboard.

Two sources, picked once at import:
    Streamlit Cloud  st.secrets  ([DB_CONFIG] table + top-level settings)
    local            .env loaded into the process environment

The rollup engine never needs a database, so an incomplete DB_CONFIG is
logged and left for the first store access to fail on.
"""

import os
import logging
from pathlib import Path
from dotenv import load_dotenv
from typing import Any, Callable, Dict, Mapping, Tuple
from dataclasses import dataclass
from urllib.parse import quote_plus

logger = logging.getLogger(__name__)


def _as_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ("1", "true", "yes", "on")


# name → (cast, default)
APP_SETTINGS: Dict[str, Tuple[Callable[[Any], Any], Any]] = {
    "DB_POOL_SIZE": (int, 5),
    "DB_POOL_RECYCLE": (int, 3600),
    "CACHE_TTL_SECONDS": (int, 300),
    "SCORE_UPSERT_CHUNK_SIZE": (int, 500),
    "ENABLE_ACTIVITY_LOG": (_as_bool, True),
    "ENABLE_DEBUG_MODE": (_as_bool, False),
}


def is_running_on_streamlit_cloud() -> bool:
    try:
        import streamlit as st
        return hasattr(st, 'secrets') and len(st.secrets) > 0
    except Exception:
        # st.secrets raises when no secrets.toml exists
        return False


@dataclass
class DatabaseConfig:
    """MySQL connection settings for the OKR store."""
    host: str
    port: int
    user: str
    password: str
    database: str

    @classmethod
    def from_mapping(cls, values: Mapping[str, Any]) -> "DatabaseConfig":
        return cls(
            host=values.get("host", ""),
            port=int(values.get("port", 3306)),
            user=values.get("user", ""),
            password=values.get("password", ""),
            database=values.get("database", "okr_dashboard"),
        )

    def is_configured(self) -> bool:
        return bool(self.host and self.user and self.password)

    def url(self, masked: bool = False) -> str:
        """SQLAlchemy URL; masked=True hides the password for logs."""
        password = "***" if masked else quote_plus(str(self.password))
        return f"mysql+pymysql://{self.user}:{password}@{self.host}:{self.port}/{self.database}"


class Config:
    """
    Process-wide settings (one instance).

    Usage:
        from okr_dashboard.config import config

        if config.is_db_configured():
            url = config.database.url()

        chunk_size = config.get_app_setting("SCORE_UPSERT_CHUNK_SIZE", 500)
        if config.is_feature_enabled("ACTIVITY_LOG"):
            ...
    """

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._initialized = False
        return cls._instance

    def __init__(self):
        if self._initialized:
            return

        self.is_cloud = is_running_on_streamlit_cloud()
        if self.is_cloud:
            source, db_values = self._cloud_sources()
        else:
            source, db_values = self._local_sources()

        self.database = DatabaseConfig.from_mapping(db_values)
        self._app_config = self._read_app_settings(source)
        self._initialized = True

        if self.database.is_configured():
            logger.info(f"✅ OKR store: {self.database.host}/{self.database.database}")
        else:
            logger.warning("⚠️ OKR store not configured - matrix save and loading are unavailable")

    @staticmethod
    def _cloud_sources() -> Tuple[Mapping[str, Any], Mapping[str, Any]]:
        import streamlit as st

        logger.info("☁️ Settings from Streamlit secrets")
        return st.secrets, st.secrets.get("DB_CONFIG", {})

    @staticmethod
    def _local_sources() -> Tuple[Mapping[str, Any], Mapping[str, Any]]:
        for env_path in (Path.cwd() / ".env", Path(__file__).parent.parent / ".env"):
            if env_path.exists():
                load_dotenv(env_path)
                logger.info(f"💻 Settings from {env_path}")
                break

        db_values = {
            "host": os.getenv("DB_HOST", ""),
            "port": os.getenv("DB_PORT", "3306"),
            "user": os.getenv("DB_USER", ""),
            "password": os.getenv("DB_PASSWORD", ""),
            "database": os.getenv("DB_NAME", "okr_dashboard"),
        }
        return os.environ, db_values

    @staticmethod
    def _read_app_settings(source: Mapping[str, Any]) -> Dict[str, Any]:
        settings = {}
        for name, (cast, default) in APP_SETTINGS.items():
            raw = source.get(name)
            if raw is None or raw == "":
                settings[name] = default
                continue
            try:
                settings[name] = cast(raw)
            except (TypeError, ValueError):
                logger.warning(f"Invalid {name}={raw!r}, using {default}")
                settings[name] = default
        return settings

    def is_db_configured(self) -> bool:
        return self.database.is_configured()

    def get_app_setting(self, key: str, default: Any = None) -> Any:
        return self._app_config.get(key, default)

    def is_feature_enabled(self, feature: str) -> bool:
        """ENABLE_<FEATURE>; flags that were never declared count as on."""
        return self._app_config.get(f"ENABLE_{feature.upper()}", True)


config = Config()

__all__ = [
    'config',
    'Config',
    'DatabaseConfig',
    'APP_SETTINGS',
]
