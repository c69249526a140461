from datetime import datetime, timezone
from typing import Tuple

from .errors import InvalidNameError, UnknownEnvironmentError


ENVIRONMENT_RELEASE_SEPARATOR = "---"
RELEASE_TIME_FORMAT = "%Y-%m-%dT%H:%M:%SZ"
SHORT_SHA_LENGTH = 5

KNOWN_ENVIRONMENTS = ("int", "stg", "prod")

# CI "releases" are our environments.
_CI_RELEASE_NAMES = {
    "int": "aro-integration",
    "stg": "aro-stage",
    "prod": "aro-production",
}


def make_release_name(commit_time: datetime, sha: str) -> str:
    """`<UTC commit time>-<short sha>`; sorts lexicographically by time."""
    if commit_time.tzinfo is None:
        commit_time = commit_time.replace(tzinfo=timezone.utc)
    ts = commit_time.astimezone(timezone.utc).strftime(RELEASE_TIME_FORMAT)
    return f"{ts}-{sha[:SHORT_SHA_LENGTH]}"


def split_release_name(name: str) -> Tuple[str, datetime, str]:
    """Return (time string, commit time, short sha) for a release name."""
    time_string, sep, short_sha = (name or "").rpartition("-")
    if not sep or not time_string or not short_sha:
        raise InvalidNameError(f"malformed release name {name!r}")
    try:
        parsed = datetime.strptime(time_string, RELEASE_TIME_FORMAT).replace(tzinfo=timezone.utc)
    except ValueError:
        raise InvalidNameError(f"malformed release time in {name!r}") from None
    return time_string, parsed, short_sha


def release_time(name: str) -> datetime:
    return split_release_name(name)[1]


def make_environment_release_name(environment: str, release: str) -> str:
    return f"{environment}{ENVIRONMENT_RELEASE_SEPARATOR}{release}"


def split_environment_release_name(name: str) -> Tuple[str, str]:
    parts = (name or "").split(ENVIRONMENT_RELEASE_SEPARATOR)
    if len(parts) != 2 or not parts[0] or not parts[1]:
        raise InvalidNameError(f"malformed environment release name {name!r}")
    return parts[0], parts[1]


def environment_to_ci_release_name(environment: str) -> str:
    try:
        return _CI_RELEASE_NAMES[environment]
    except KeyError:
        raise UnknownEnvironmentError(environment) from None
