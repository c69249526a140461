import os
from dataclasses import dataclass
from typing import Optional

from .logging_utils import logger


DEFAULT_LOOKBACK_DAYS = 14
DEFAULT_CACHE_TTL_SECONDS = 3600
DEFAULT_CI_BASE_URL = "https://sippy.dptools.openshift.org"
DEFAULT_CI_TIMEOUT_SECONDS = 30.0


@dataclass
class Settings:
    repo_dir: str
    lookback_days: int = DEFAULT_LOOKBACK_DAYS
    component_repos_dir: str = "./.component-repos"
    pull_secret_dir: Optional[str] = None
    container_runtime: str = "podman"
    ci_base_url: str = DEFAULT_CI_BASE_URL
    ci_timeout_seconds: float = DEFAULT_CI_TIMEOUT_SECONDS
    ci_verify_tls: bool = True
    cache_ttl_seconds: float = DEFAULT_CACHE_TTL_SECONDS


def _env_any(*names: str) -> Optional[str]:
    """Return first non-empty environment variable value from given names."""
    for n in names:
        v = os.getenv(n)
        if v and str(v).strip():
            return str(v).strip()
    return None


def _env_int(name: str, default: int) -> int:
    raw = _env_any(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warn("invalid_setting", name=name, value=raw, default=default)
        return default


def _env_float(name: str, default: float) -> float:
    raw = _env_any(name)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warn("invalid_setting", name=name, value=raw, default=default)
        return default


def _env_bool(name: str, default: bool) -> bool:
    raw = _env_any(name)
    if raw is None:
        return default
    return raw.lower() in ("1", "true", "yes", "on")


def load_settings_from_env() -> Settings:
    """Build Settings from the process environment (call load_dotenv() first)."""
    return Settings(
        repo_dir=_env_any("RELEASE_REPO_DIR", "ARO_HCP_DIR") or "",
        lookback_days=_env_int("RELEASE_LOOKBACK_DAYS", DEFAULT_LOOKBACK_DAYS),
        component_repos_dir=_env_any("COMPONENT_REPOS_DIR") or "./.component-repos",
        pull_secret_dir=_env_any("PULL_SECRET_DIR"),
        container_runtime=_env_any("CONTAINER_RUNTIME") or "podman",
        ci_base_url=(_env_any("CI_BASE_URL") or DEFAULT_CI_BASE_URL).rstrip("/"),
        ci_timeout_seconds=_env_float("CI_TIMEOUT_SECONDS", DEFAULT_CI_TIMEOUT_SECONDS),
        ci_verify_tls=_env_bool("CI_VERIFY_TLS", True),
        cache_ttl_seconds=_env_float("CACHE_TTL_SECONDS", DEFAULT_CACHE_TTL_SECONDS),
    )
