"""
Environment loader for TriageQ.

Modules that read environment variables go through these helpers so the
project-root .env file is loaded exactly once, before the first lookup.

Side Effects:
    - Loads .env file from project root (or the current directory)

Usage:
    from triageq.infrastructure.env import get_env_float

    interval = get_env_float("TRIAGEQ_REFRESH_INTERVAL_SECONDS", 30.0)
"""

from __future__ import annotations

import os
from pathlib import Path

from dotenv import load_dotenv

_ENV_LOADED = False


def ensure_env_loaded(env_path: Path | None = None) -> None:
    """
    Ensure .env file is loaded exactly once.

    Args:
        env_path: Optional path to .env file. If None, walks up from this
            package looking for one.

    Side Effects:
        - Loads environment variables from .env file (existing vars win)
        - Sets module-level flag to prevent double-loading
    """
    global _ENV_LOADED
    if _ENV_LOADED:
        return

    if env_path is None:
        current = Path(__file__).parent
        while current != current.parent:
            env_candidate = current / ".env"
            if env_candidate.exists():
                env_path = env_candidate
                break
            current = current.parent

    if env_path and env_path.exists():
        load_dotenv(env_path)
    else:
        load_dotenv()
    _ENV_LOADED = True


def get_optional_env(key: str, default: str = "") -> str:
    """Environment variable value, or ``default`` when unset."""
    ensure_env_loaded()
    return os.getenv(key, default)


def get_env_float(key: str, default: float) -> float:
    """
    Float environment variable with a default.

    Raises:
        ValueError: If the variable is set but is not a number
    """
    raw = get_optional_env(key, "")
    if not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise ValueError(f"{key} must be a number, got {raw!r}") from exc
