"""Per-component source repositories, cloned lazily and queried for commit ranges."""
import os
import threading
from abc import ABC, abstractmethod
from typing import Dict, List, Optional

import git

from .components import DEFAULT_REGISTRY, ComponentRegistry
from .errors import RepositoryError
from .logging_utils import logger
from .source_repository import CommitInfo


COMMIT_RANGE_LIMIT = 1000


class ComponentGitAccessor(ABC):
    @abstractmethod
    def commits_between(self, newer_sha: str, older_sha: str, limit: int = COMMIT_RANGE_LIMIT) -> List[CommitInfo]:
        """Commits reachable from newer_sha, newest first, stopping before older_sha.

        Raises RepositoryError when older_sha is not met within `limit` commits.
        """


class ComponentsGitInfo(ABC):
    @abstractmethod
    def accessor_for(self, component_name: str) -> ComponentGitAccessor:
        ...


class LocalComponentGitAccessor(ComponentGitAccessor):
    def __init__(self, repo_url: str, repo_dir: str, default_branch: str):
        self.repo_url = repo_url
        self.repo_dir = repo_dir
        self.default_branch = default_branch or "main"
        self._lock = threading.Lock()

    def _sync(self) -> "git.Repo":
        log = logger.bind(repo_dir=self.repo_dir, branch=self.default_branch)
        if os.path.exists(self.repo_dir):
            if not os.path.isdir(self.repo_dir):
                raise RepositoryError(f"repository path {self.repo_dir} is not a directory")
            log.info("component_repo_fetch")
            try:
                repo = git.Repo(self.repo_dir)
                refspec = f"+refs/heads/{self.default_branch}:refs/remotes/origin/{self.default_branch}"
                repo.remotes.origin.fetch(refspec)
            except (git.exc.GitCommandError, git.exc.InvalidGitRepositoryError, AttributeError) as e:
                raise RepositoryError(f"failed to fetch {self.repo_url}: {e}") from e
            return repo

        log.info("component_repo_clone", repo_url=self.repo_url)
        try:
            return git.Repo.clone_from(self.repo_url, self.repo_dir)
        except git.exc.GitCommandError as e:
            raise RepositoryError(f"failed to clone {self.repo_url}: {e}") from e

    def commits_between(self, newer_sha: str, older_sha: str, limit: int = COMMIT_RANGE_LIMIT) -> List[CommitInfo]:
        with self._lock:
            repo = self._sync()
            try:
                repo.commit(newer_sha)
            except (ValueError, git.exc.BadName, git.exc.BadObject, git.exc.GitCommandError) as e:
                raise RepositoryError(f"failed to resolve newer SHA {newer_sha}: {e}") from e

            commits: List[CommitInfo] = []
            reached_older = False
            try:
                for commit in repo.iter_commits(newer_sha, max_count=limit):
                    if commit.hexsha.startswith(older_sha):
                        reached_older = True
                        break
                    commits.append(CommitInfo.from_git(commit))
            except git.exc.GitCommandError as e:
                raise RepositoryError(f"failed to read git log: {e}") from e

        if not reached_older:
            raise RepositoryError(f"older SHA {older_sha} not found within {limit} commits")
        return commits


class ComponentGitRepositories(ComponentsGitInfo):
    def __init__(self, repo_parent_dir: str, registry: ComponentRegistry = DEFAULT_REGISTRY):
        self.repo_parent_dir = repo_parent_dir
        self.registry = registry
        self._lock = threading.Lock()
        self._accessors: Dict[str, LocalComponentGitAccessor] = {}

    def accessor_for(self, component_name: str) -> ComponentGitAccessor:
        with self._lock:
            accessor = self._accessors.get(component_name)
            if accessor is None:
                definition = self.registry.get(component_name)
                if definition is None or not definition.repository_url:
                    raise RepositoryError(f"no repository known for component {component_name!r}")
                repo_dir = os.path.join(self.repo_parent_dir, component_name.replace(" ", "-"))
                accessor = LocalComponentGitAccessor(definition.repository_url, repo_dir, definition.default_branch)
                self._accessors[component_name] = accessor
            return accessor


def short(sha: Optional[str]) -> str:
    return (sha or "")[:8]
