"""Typed environment variable parsing helpers used by ``DriverConfig.from_env``."""

import os
from typing import Optional

_TRUTHY = ("true", "1", "yes", "on")
_FALSEY = ("false", "0", "no", "off", "")


def get_env_str(name: str, default: Optional[str] = None) -> Optional[str]:
    """Get an environment variable as a string, treating blank values as unset."""
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    return value.strip()


def get_env_float(name: str, default: Optional[float] = None) -> Optional[float]:
    """Get an environment variable as a float."""
    value = get_env_str(name)
    if value is None:
        return default
    try:
        return float(value)
    except ValueError:
        raise ValueError(f"Environment variable '{name}' must be a number, got '{value}'.")


def get_env_bool(name: str, default: bool = False) -> bool:
    """Get an environment variable as a boolean.

    Truthy: true, 1, yes, on
    Falsey: false, 0, no, off, (empty string)
    """
    value = os.getenv(name)
    if value is None:
        return default

    val_lower = value.strip().lower()
    if val_lower in _TRUTHY:
        return True
    if val_lower in _FALSEY:
        return False

    raise ValueError(f"Environment variable '{name}' must be a boolean, got '{value}'.")
