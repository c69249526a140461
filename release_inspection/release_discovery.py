"""Replay the configuration repository history into environment releases.

Walk, oldest to newest, the commits touching `config/` inside the lookback
window. A commit becomes a candidate only when it looks like a reviewed merge,
its interesting files differ from the previous replayed commit, and its merged
environment configuration differs from the previous candidate. Candidates whose
extracted components match the previous accepted release are collapsed.
"""
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, List, Optional, Sequence

from .component_extractor import ComponentExtractor
from .config_resolver import CONFIG_PATH_PREFIX, INTERESTING_FILES, ResolvedConfig, resolve_config
from .errors import ConfigSchemaError, UnknownEnvironmentError
from .logging_utils import logger
from .models import EnvironmentRelease
from .naming import KNOWN_ENVIRONMENTS, make_environment_release_name, make_release_name
from .settings import DEFAULT_LOOKBACK_DAYS
from .source_repository import CommitInfo, SourceRepository


@dataclass(frozen=True)
class ReleaseCandidate:
    environment: str
    commit: CommitInfo
    config: ResolvedConfig

    @property
    def release_name(self) -> str:
        return make_release_name(self.commit.committed_at, self.commit.sha)


class ReleaseDiscovery:
    def __init__(
        self,
        repository: SourceRepository,
        extractor: ComponentExtractor,
        lookback_days: int = DEFAULT_LOOKBACK_DAYS,
        known_environments: Sequence[str] = KNOWN_ENVIRONMENTS,
        now: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self.repository = repository
        self.extractor = extractor
        self.lookback = timedelta(days=lookback_days)
        self.known_environments = tuple(known_environments)
        self._now = now

    def find_candidates(self, environment: str, lookback: Optional[timedelta] = None) -> List[ReleaseCandidate]:
        """Candidate commits for `environment`, oldest first."""
        if environment not in self.known_environments:
            raise UnknownEnvironmentError(environment)

        since = self._now() - (lookback if lookback is not None else self.lookback)
        log = logger.bind(environment=environment)
        commits = self.repository.list_commits(CONFIG_PATH_PREFIX, since=since)
        log.info("discovery_commits_listed", count=len(commits), since=since.isoformat())

        candidates: List[ReleaseCandidate] = []
        previous_files = None
        previous_config = None
        with self.repository.checkout_session() as session:
            for commit in commits:
                if not commit.looks_like_reviewed_merge():
                    continue
                snapshot = session.checkout_and_read(commit.sha, INTERESTING_FILES)
                if snapshot == previous_files:
                    continue
                previous_files = snapshot

                try:
                    config = resolve_config(snapshot, environment, self.known_environments)
                except ConfigSchemaError as e:
                    log.warn("config_resolution_failed", sha=commit.sha, error=str(e))
                    continue
                if config is None:
                    log.debug("config_absent", sha=commit.sha)
                    continue
                if previous_config is not None and config.canonical_json == previous_config.canonical_json:
                    continue
                previous_config = config
                candidates.append(ReleaseCandidate(environment=environment, commit=commit, config=config))
        return candidates

    def list_releases(self, environment: str, lookback: Optional[timedelta] = None) -> List[EnvironmentRelease]:
        """Non-redundant environment releases, newest first."""
        accepted: List[EnvironmentRelease] = []
        previous_signature = None
        # image pulls happen here, outside the repository lock
        for candidate in self.find_candidates(environment, lookback):
            components = self.extractor.extract(candidate.config.document)
            release = EnvironmentRelease(
                name=make_environment_release_name(environment, candidate.release_name),
                releaseName=candidate.release_name,
                sha=candidate.commit.sha,
                environment=environment,
                components=components,
            )
            signature = release.image_signature()
            if signature == previous_signature:
                logger.debug("release_collapsed", environment=environment, sha=candidate.commit.sha)
                continue
            previous_signature = signature
            accepted.append(release)

        accepted.reverse()
        logger.info("discovery_complete", environment=environment, releases=len(accepted))
        return accepted
