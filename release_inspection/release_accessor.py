"""Read operations served to the API layer, with and without caching."""
import time
from typing import Callable, Dict, List, Optional, Sequence

from .ci_client import CIClient, CIClientConfig
from .ci_correlator import CICorrelator, JobRun
from .component_extractor import ComponentExtractor
from .component_git import ComponentGitRepositories
from .diff_engine import DiffEngine
from .errors import CIServiceError, EnvironmentReleaseNotFoundError, NotFoundError, UnknownEnvironmentError
from .freshness_cache import FreshnessCache
from .image_provenance import ContainerRuntimeInspector, ImageProvenanceResolver
from .logging_utils import logger
from .models import (
    Environment,
    EnvironmentList,
    EnvironmentRelease,
    EnvironmentReleaseDiff,
    EnvironmentReleaseList,
    Release,
    ReleaseList,
)
from .naming import (
    KNOWN_ENVIRONMENTS,
    environment_to_ci_release_name,
    split_environment_release_name,
    split_release_name,
)
from .release_discovery import ReleaseDiscovery
from .settings import Settings
from .source_repository import SourceRepository


DIFF_KEY_SEPARATOR = "###"


def _distinct_releases(environment_releases: Sequence[EnvironmentRelease]) -> ReleaseList:
    seen: Dict[str, Release] = {}
    for er in environment_releases:
        seen.setdefault(er.releaseName, Release(name=er.releaseName, sha=er.sha))
    items = sorted(seen.values(), key=lambda r: r.name, reverse=True)
    return ReleaseList(items=items)


def _find_environment_release(releases: EnvironmentReleaseList, name: str) -> EnvironmentRelease:
    for er in releases.items:
        if er.name == name:
            return er
    raise EnvironmentReleaseNotFoundError(name)


def _find_release(releases: ReleaseList, name: str) -> Release:
    split_release_name(name)
    for release in releases.items:
        if release.name == name:
            return release
    raise NotFoundError(f"release {name!r} not found")


class ReleaseAccessor:
    def __init__(
        self,
        discovery: ReleaseDiscovery,
        diff_engine: DiffEngine,
        ci_correlator: Optional[CICorrelator] = None,
        ci_client: Optional[CIClient] = None,
        environments: Sequence[str] = KNOWN_ENVIRONMENTS,
    ):
        self.discovery = discovery
        self.diff_engine = diff_engine
        self.ci_correlator = ci_correlator or CICorrelator()
        self.ci_client = ci_client
        self.environments = tuple(environments)

    def _check_environment(self, environment: str) -> None:
        if environment not in self.environments:
            raise UnknownEnvironmentError(environment)

    def _job_runs(self, environment: str) -> List[JobRun]:
        if self.ci_client is None:
            return []
        try:
            return self.ci_client.list_job_runs(environment_to_ci_release_name(environment))
        except CIServiceError as e:
            logger.warn("ci_job_runs_unavailable", environment=environment, error=str(e))
            return []

    def list_environments(self) -> EnvironmentList:
        return EnvironmentList(items=[Environment(name=e) for e in self.environments])

    def get_environment(self, name: str) -> Environment:
        self._check_environment(name)
        return Environment(name=name)

    def list_environment_releases_for_environment(self, environment: str) -> EnvironmentReleaseList:
        self._check_environment(environment)
        releases = self.discovery.list_releases(environment)
        releases = self.ci_correlator.correlate(releases, self._job_runs(environment))
        return EnvironmentReleaseList(items=releases)

    def list_environment_releases(self) -> EnvironmentReleaseList:
        items: List[EnvironmentRelease] = []
        for environment in self.environments:
            items.extend(self.list_environment_releases_for_environment(environment).items)
        return EnvironmentReleaseList(items=items)

    def get_environment_release(self, name: str) -> EnvironmentRelease:
        environment, _ = split_environment_release_name(name)
        return _find_environment_release(self.list_environment_releases_for_environment(environment), name)

    def diff_environment_releases(self, target: EnvironmentRelease, source: EnvironmentRelease) -> EnvironmentReleaseDiff:
        return self.diff_engine.diff(target, source)

    def get_environment_release_diff(self, name: str, other_name: str) -> EnvironmentReleaseDiff:
        return self.diff_environment_releases(self.get_environment_release(name), self.get_environment_release(other_name))

    def list_releases(self) -> ReleaseList:
        return _distinct_releases(self.list_environment_releases().items)

    def get_release(self, name: str) -> Release:
        return _find_release(self.list_releases(), name)


class CachingReleaseAccessor:
    """Same operations as ReleaseAccessor, each behind its own FreshnessCache."""

    def __init__(
        self,
        delegate: ReleaseAccessor,
        ttl_seconds: float = 3600,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.delegate = delegate
        self.environments = delegate.environments

        def cache(producer, name):
            return FreshnessCache(producer, ttl_seconds=ttl_seconds, clock=clock, name=name)

        self._environment_releases = cache(delegate.list_environment_releases_for_environment, "environment_releases")
        self._diffs = cache(self._compute_diff, "environment_release_diffs")

    def _compute_diff(self, key: str) -> EnvironmentReleaseDiff:
        name, other_name = key.split(DIFF_KEY_SEPARATOR, 1)
        return self.delegate.diff_environment_releases(
            self.get_environment_release(name), self.get_environment_release(other_name)
        )

    def list_environments(self) -> EnvironmentList:
        return self.delegate.list_environments()

    def get_environment(self, name: str) -> Environment:
        return self.delegate.get_environment(name)

    def list_environment_releases_for_environment(self, environment: str) -> EnvironmentReleaseList:
        if environment not in self.environments:
            raise UnknownEnvironmentError(environment)
        return self._environment_releases.do(environment)

    def list_environment_releases(self) -> EnvironmentReleaseList:
        items: List[EnvironmentRelease] = []
        for environment in self.environments:
            items.extend(self.list_environment_releases_for_environment(environment).items)
        return EnvironmentReleaseList(items=items)

    def get_environment_release(self, name: str) -> EnvironmentRelease:
        environment, _ = split_environment_release_name(name)
        return _find_environment_release(self.list_environment_releases_for_environment(environment), name)

    def get_environment_release_diff(self, name: str, other_name: str) -> EnvironmentReleaseDiff:
        # validate before the names become a cache key
        split_environment_release_name(name)
        split_environment_release_name(other_name)
        return self._diffs.do(f"{name}{DIFF_KEY_SEPARATOR}{other_name}")

    def list_releases(self) -> ReleaseList:
        return _distinct_releases(self.list_environment_releases().items)

    def get_release(self, name: str) -> Release:
        return _find_release(self.list_releases(), name)

    def invalidate(self) -> None:
        self._environment_releases.invalidate()
        self._diffs.invalidate()


def build_release_accessor(settings: Settings) -> CachingReleaseAccessor:
    resolver = ImageProvenanceResolver(
        ContainerRuntimeInspector(settings.container_runtime),
        pull_secret_dir=settings.pull_secret_dir,
    )
    discovery = ReleaseDiscovery(
        SourceRepository(settings.repo_dir),
        ComponentExtractor(resolver),
        lookback_days=settings.lookback_days,
    )
    ci_client = CIClient(
        CIClientConfig(
            base_url=settings.ci_base_url,
            timeout=settings.ci_timeout_seconds,
            verify_tls=settings.ci_verify_tls,
        )
    )
    accessor = ReleaseAccessor(
        discovery,
        DiffEngine(ComponentGitRepositories(settings.component_repos_dir)),
        ci_client=ci_client,
    )
    logger.info("release_accessor_ready", repo_dir=settings.repo_dir, lookback_days=settings.lookback_days)
    return CachingReleaseAccessor(accessor, ttl_seconds=settings.cache_ttl_seconds)
