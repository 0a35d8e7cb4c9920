from __future__ import annotations

import os
from typing import Callable, List, TypeVar

from dotenv import load_dotenv

# Load .env once on import.
load_dotenv()

T = TypeVar("T")


def _env_str(name: str, default: str = "") -> str:
    """Read a string env var, stripping whitespace."""
    return (os.getenv(name, default) or "").strip()


def _env_bool(name: str, default: bool = False) -> bool:
    """Read a boolean env var with common truthy values."""
    raw = _env_str(name, str(default)).lower()
    return raw in {"y", "yes", "t", "true", "on", "1"}


def _env_number(name: str, default: T, cast: Callable[[str], T]) -> T:
    # Unset and blank both mean the default.
    raw = _env_str(name, "")
    if not raw:
        return default
    try:
        return cast(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number. Got: {raw!r}") from None


def _env_int(name: str, default: int = 0) -> int:
    return _env_number(name, default, int)


def _env_float(name: str, default: float = 0.0) -> float:
    return _env_number(name, default, float)


def _env_csv(name: str, default: str = "") -> List[str]:
    """Comma separated list, blanks dropped."""
    raw = _env_str(name, default)
    return [x.strip() for x in raw.split(",") if x.strip()]
