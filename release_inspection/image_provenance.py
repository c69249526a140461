"""Resolve container images to build provenance (creation time, source SHA).

Image pulls are expensive and idempotent by digest, so every unique pull spec
is resolved at most once per process. The outcome, including a failure, is
memoized and handed to every later caller; nothing is retried automatically.
"""
import json
import os
import re
import subprocess
import threading
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from .components import credential_file_for
from .errors import ImageProvenanceError
from .logging_utils import logger
from .models import ContainerImage, ImageProvenance


PULL_TIMEOUT_SECONDS = 300
INSPECT_TIMEOUT_SECONDS = 90
VCS_REF_LABEL = "vcs-ref"


def pull_spec_for(image: Optional[ContainerImage]) -> str:
    if image is None:
        raise ImageProvenanceError("container image is missing")
    if not image.registry:
        raise ImageProvenanceError("container registry is missing")
    if not image.digest:
        raise ImageProvenanceError("container digest is missing")
    if not image.repository:
        raise ImageProvenanceError("container repository is missing")
    return f"{image.registry}/{image.repository}@{image.digest}"


class ImageInspector(ABC):
    """Port to whatever can pull an image and report its local metadata."""

    @abstractmethod
    def pull(self, pull_spec: str, *, auth_file: str = "", timeout: float = PULL_TIMEOUT_SECONDS) -> None:
        ...

    @abstractmethod
    def inspect(self, pull_spec: str, *, timeout: float = INSPECT_TIMEOUT_SECONDS) -> Dict[str, Any]:
        ...


class ContainerRuntimeInspector(ImageInspector):
    """Shells out to a container runtime CLI (podman by default)."""

    def __init__(self, runtime: str = "podman"):
        self.runtime = runtime

    def _run(self, args: list, timeout: float, action: str, pull_spec: str) -> str:
        started = time.monotonic()
        try:
            proc = subprocess.run(
                [self.runtime, *args],
                capture_output=True,
                text=True,
                timeout=timeout,
                check=False,
            )
        except subprocess.TimeoutExpired:
            logger.warn(f"image_{action}_timeout", pull_spec=pull_spec, timeout_s=timeout)
            raise ImageProvenanceError(f"{action} of {pull_spec} timed out after {timeout:g}s") from None
        except OSError as e:
            raise ImageProvenanceError(f"failed to start {self.runtime} {action}: {e}") from e

        duration = round(time.monotonic() - started, 3)
        if proc.returncode != 0:
            logger.info(f"image_{action}_failed", pull_spec=pull_spec, duration_s=duration, returncode=proc.returncode)
            raise ImageProvenanceError((proc.stderr or "").strip() or f"{action} exited with {proc.returncode}")
        logger.info(f"image_{action}ed", pull_spec=pull_spec, duration_s=duration)
        return proc.stdout

    def pull(self, pull_spec: str, *, auth_file: str = "", timeout: float = PULL_TIMEOUT_SECONDS) -> None:
        args = ["pull", pull_spec]
        if auth_file:
            args += ["--authfile", auth_file]
        self._run(args, timeout, "pull", pull_spec)

    def inspect(self, pull_spec: str, *, timeout: float = INSPECT_TIMEOUT_SECONDS) -> Dict[str, Any]:
        out = self._run(["inspect", pull_spec], timeout, "inspect", pull_spec)
        try:
            parsed = json.loads(out)
        except json.JSONDecodeError as e:
            raise ImageProvenanceError(f"failed to parse inspect output: {e}") from e
        if isinstance(parsed, list):
            if not parsed:
                raise ImageProvenanceError("no content")
            parsed = parsed[0]
        if not isinstance(parsed, dict):
            raise ImageProvenanceError("unexpected inspect output")
        return parsed


_FRACTION_RE = re.compile(r"\.(\d+)")


def parse_rfc3339(value: str) -> Optional[datetime]:
    """Parse RFC3339 with up to nanosecond precision; None when unparseable."""
    if not value or not isinstance(value, str):
        return None
    s = value.strip()
    if s.endswith("Z") or s.endswith("z"):
        s = s[:-1] + "+00:00"
    s = _FRACTION_RE.sub(lambda m: "." + m.group(1)[:6].ljust(6, "0"), s, count=1)
    try:
        parsed = datetime.fromisoformat(s)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def provenance_from_inspect(inspect_doc: Dict[str, Any]) -> ImageProvenance:
    sha = None
    labels = ((inspect_doc.get("Config") or {}).get("Labels") or {})
    if isinstance(labels, dict):
        raw = labels.get(VCS_REF_LABEL)
        if isinstance(raw, str) and raw:
            sha = raw
    return ImageProvenance(
        imageCreationTime=parse_rfc3339(inspect_doc.get("Created")),
        sourceSHA=sha,
    )


@dataclass(frozen=True)
class _Outcome:
    provenance: Optional[ImageProvenance] = None
    error: Optional[ImageProvenanceError] = None


class ImageProvenanceResolver:
    def __init__(
        self,
        inspector: ImageInspector,
        *,
        pull_secret_dir: Optional[str] = None,
        pull_timeout: float = PULL_TIMEOUT_SECONDS,
        inspect_timeout: float = INSPECT_TIMEOUT_SECONDS,
    ):
        self.inspector = inspector
        self.pull_secret_dir = pull_secret_dir
        self.pull_timeout = pull_timeout
        self.inspect_timeout = inspect_timeout

        self._lock = threading.Lock()
        self._key_locks: Dict[str, threading.Lock] = {}
        self._outcomes: Dict[str, _Outcome] = {}

    def _auth_file(self, pull_spec: str) -> str:
        filename = credential_file_for(pull_spec)
        if filename and self.pull_secret_dir:
            return os.path.join(self.pull_secret_dir, filename)
        return ""

    def _resolve(self, pull_spec: str) -> _Outcome:
        # inspect works on local data, so pull first
        try:
            self.inspector.pull(pull_spec, auth_file=self._auth_file(pull_spec), timeout=self.pull_timeout)
            doc = self.inspector.inspect(pull_spec, timeout=self.inspect_timeout)
            return _Outcome(provenance=provenance_from_inspect(doc))
        except ImageProvenanceError as e:
            return _Outcome(error=e)

    def get_provenance(self, image: Optional[ContainerImage]) -> ImageProvenance:
        pull_spec = pull_spec_for(image)

        with self._lock:
            key_lock = self._key_locks.setdefault(pull_spec, threading.Lock())

        with key_lock:
            outcome = self._outcomes.get(pull_spec)
            if outcome is None:
                outcome = self._resolve(pull_spec)
                self._outcomes[pull_spec] = outcome

        if outcome.error is not None:
            raise outcome.error
        return outcome.provenance

    def clear(self) -> None:
        # per-key locks outlive clear(); a pull in flight keeps excluding new callers
        with self._lock:
            self._outcomes.clear()
