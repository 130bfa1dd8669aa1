"""Configuration management for the cash-flow forecasting engine.

This module centralizes all configuration values including paths,
forecast defaults, sanity bounds and environment variable overrides.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Optional, Union

# Base project root - assumes this file is in cashflow_forecast/
_PROJECT_ROOT = Path(__file__).parent.parent.resolve()

# Data directories
DATA_DIR = Path(os.getenv("CASHFLOW_DATA_DIR", _PROJECT_ROOT / "data"))
ACCOUNTS_DIR = DATA_DIR / "accounts"

# Forecast horizons
HORIZON_SIX_MONTHS = "6months"
HORIZON_YEAR_END = "yearend"
HORIZONS = (HORIZON_SIX_MONTHS, HORIZON_YEAR_END)
DEFAULT_HORIZON = os.getenv("CASHFLOW_DEFAULT_HORIZON", HORIZON_SIX_MONTHS)
SIX_MONTH_WINDOW = 6

# Category sentinels
UNCATEGORIZED = "Uncategorized"
PLANNED_ITEMS_CATEGORY = "Planned Items"

# Planned item recurrence values
RECURRENCE_ONE_OFF = "one-off"
RECURRENCE_MONTHLY = "monthly"
RECURRENCES = (RECURRENCE_ONE_OFF, RECURRENCE_MONTHLY)

# Sanity bounds for stored or projected figures
MAX_CATEGORY_MONTH_VALUE = 1e9
MAX_BALANCE = 1e12
LARGE_VALUE_WARNING = 1e6

# Budget generation needs at least this many distinct months of history
MIN_HISTORY_MONTHS = 2

# Logging
LOG_LEVEL = os.getenv("CASHFLOW_LOG_LEVEL", "INFO")
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def ensure_data_directories() -> None:
    """Create all required data directories if they don't exist."""
    for directory in [DATA_DIR, ACCOUNTS_DIR]:
        directory.mkdir(parents=True, exist_ok=True)


def get_accounts_dir() -> str:
    """Get the accounts directory as a string."""
    return str(ACCOUNTS_DIR)


def configure_logging(level: Optional[Union[str, int]] = None) -> None:
    """Install a console handler for entry points (dashboard, scripts).

    Library modules only create loggers; they never configure handlers.
    """
    resolved = level if level is not None else LOG_LEVEL
    if isinstance(resolved, str):
        resolved = logging.getLevelName(resolved.upper())
        if not isinstance(resolved, int):
            resolved = logging.INFO
    logging.basicConfig(level=resolved, format=LOG_FORMAT)
