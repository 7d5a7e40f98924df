"""
settings.py: central config for movekit

Precedence for config values:
1) Environment variables
2) `.env` file in the working directory
3) Sensible defaults

Every public operation still takes its knobs as keyword arguments; 
the values here only supply the defaults.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Optional
from dotenv import load_dotenv

load_dotenv()

# --- Helpers ---------------------------------------------------------------

def from_env(key:str, default:Optional[str]=None) -> Optional[str]:
    """Return os.getenv(key) if set and non-empty, else default."""
    val = os.getenv(key)
    if val is None or val.strip() == "":
        return default
    return val

def as_bool(value:Optional[str], default:bool=False) -> bool:
    """Parse common truthy strings to bool."""
    if value is None:
        return default
    return str(value).strip().lower() in {"1", "true", "t", "yes", "y", "on"}

def as_int(value:Optional[str], default:Optional[int]) -> Optional[int]:
    try:
        return int(value) if value is not None else default
    except ValueError:
        return default

def as_float(value:Optional[str], default:float) -> float:
    try:
        return float(value) if value is not None else default
    except ValueError:
        return default

# --- Parallel fitting ------------------------------------------------------

# None == use every available core
CORES = as_int(from_env("MOVEKIT_CORES"), None)
PARALLEL = as_bool(from_env("MOVEKIT_PARALLEL"), default=True)

# --- Paths -----------------------------------------------------------------

LOG_DIR = from_env("MOVEKIT_LOG_DIR")
LOG_LEVEL = from_env("MOVEKIT_LOG_LEVEL", "INFO")
CACHE_DIR = Path(from_env("MOVEKIT_CACHE_DIR", ".movekit_cache")).expanduser()

# --- Telemetry -------------------------------------------------------------

# User equivalent range error (meters); location error = HDOP * UERE
UERE = as_float(from_env("MOVEKIT_UERE"), 10.0)
