"""
Runtime settings read from the environment.
"""

import os
from dataclasses import dataclass
from typing import Optional


DEFAULT_MANIFEST_EXT = ".tf"
DEFAULT_VARIABLES_FILE = "terraform.tfvars"
DEFAULT_STATE_OBJECT = "terraform/state/default.tfstate"
DEFAULT_IO_WORKERS = 8


@dataclass
class Settings:
    manifest_ext: str = DEFAULT_MANIFEST_EXT
    variables_file: str = DEFAULT_VARIABLES_FILE
    state_bucket: Optional[str] = None
    state_object: str = DEFAULT_STATE_OBJECT
    io_workers: int = DEFAULT_IO_WORKERS


def _int_env(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}")
    return max(1, value)


def get_settings() -> Settings:
    """
    Build settings from TFRECO_* environment variables.

    Returns:
        Settings: a fresh settings object; nothing is cached between calls
    """
    ext = os.environ.get("TFRECO_MANIFEST_EXT", DEFAULT_MANIFEST_EXT)
    if not ext.startswith("."):
        ext = "." + ext

    return Settings(
        manifest_ext=ext.lower(),
        variables_file=os.environ.get("TFRECO_VARIABLES_FILE", DEFAULT_VARIABLES_FILE),
        state_bucket=os.environ.get("TFRECO_STATE_BUCKET") or None,
        state_object=os.environ.get("TFRECO_STATE_OBJECT", DEFAULT_STATE_OBJECT),
        io_workers=_int_env("TFRECO_IO_WORKERS", DEFAULT_IO_WORKERS),
    )
