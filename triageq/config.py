"""Centralized configuration for the TriageQ core.

Typed constants read once from the environment (after .env is loaded) with
safe defaults, so the library works without any extra configuration.
"""

from __future__ import annotations

from pathlib import Path

from triageq.infrastructure.env import get_env_float, get_optional_env

# --- App ---
APP_VERSION: str = "1.0.0"

# --- Policy ---
# Default thresholds, keywords and weights. The first existing path wins: a
# host-level config/ file, then the copy shipped inside the package.
POLICY_PATH_ENV_VAR: str = "TRIAGEQ_POLICY_PATH"
POLICY_SEARCH_PATHS: tuple[Path, ...] = (
    Path("config/triageq_policy.yaml"),
    Path(__file__).parent / "data" / "triageq_policy.yaml",
)


def policy_paths() -> list[Path]:
    """Candidate policy files, the explicit env override first."""
    override = get_optional_env(POLICY_PATH_ENV_VAR, "")
    paths = [Path(override)] if override else []
    paths.extend(POLICY_SEARCH_PATHS)
    return paths


# --- Data source contract ---
# Refresh cadence the data source is expected to honour. The core never
# schedules refreshes itself.
REFRESH_INTERVAL_SECONDS: float = get_env_float("TRIAGEQ_REFRESH_INTERVAL_SECONDS", 30.0)
