"""
OKR Dashboard

- config: settings from .env or Streamlit secrets
- db: shared engine for the OKR store
- okr_performance: OKR rollup, RAG classification and the customer × feature matrix

Usage:
    from okr_dashboard import config, get_db_engine
"""

# Configuration
from .config import (
    config,
    Config,
    DatabaseConfig,
)

# Database
from .db import get_db_engine

__all__ = [
    # Config
    'config',
    'Config',
    'DatabaseConfig',

    # Database
    'get_db_engine',
]
