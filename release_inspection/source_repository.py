"""Serialized access to the configuration source repository.

Replaying history physically checks out old commits into the one shared
working tree. All of that happens inside `checkout_session()`, which holds
an exclusive lock and puts the original HEAD back on every exit path.
"""
import os
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, Iterable, Iterator, List, Optional

import git

from .errors import RepositoryError
from .logging_utils import logger


@dataclass(frozen=True)
class CommitInfo:
    sha: str
    message: str
    parent_count: int
    committed_at: datetime

    @property
    def first_line(self) -> str:
        return self.message.split("\n", 1)[0].rstrip()

    def looks_like_reviewed_merge(self) -> bool:
        """Two parents, or a squash merge titled like `Fix thing (#1234)`."""
        return self.parent_count == 2 or self.first_line.endswith(")")

    @classmethod
    def from_git(cls, commit: "git.Commit") -> "CommitInfo":
        message = commit.message
        if isinstance(message, bytes):
            message = message.decode("utf-8", errors="replace")
        return cls(
            sha=commit.hexsha,
            message=message,
            parent_count=len(commit.parents),
            committed_at=commit.committed_datetime.astimezone(timezone.utc),
        )


def _touches_path(commit: "git.Commit", path_prefix: str) -> bool:
    if not commit.parents:
        try:
            commit.tree / path_prefix
            return True
        except KeyError:
            return False
    return len(commit.parents[0].diff(commit, paths=path_prefix)) > 0


class CheckoutSession:
    """Handle returned by SourceRepository.checkout_session(); only valid inside it."""

    def __init__(self, repository: "SourceRepository", repo: "git.Repo"):
        self._repository = repository
        self._repo = repo

    def checkout_and_read(self, sha: str, paths: Iterable[str]) -> Dict[str, bytes]:
        """Check out `sha` and return the content of the listed files that exist."""
        try:
            self._repo.git.checkout("--force", "--detach", sha)
        except git.exc.GitCommandError as e:
            raise RepositoryError(f"failed to check out {sha}: {e}") from e

        snapshot: Dict[str, bytes] = {}
        for rel in sorted(paths):
            full = os.path.join(self._repository.repo_dir, rel)
            try:
                with open(full, "rb") as f:
                    snapshot[rel] = f.read()
            except FileNotFoundError:
                continue
            except OSError as e:
                raise RepositoryError(f"failed to read {rel} at {sha}: {e}") from e
        return snapshot


class SourceRepository:
    def __init__(self, repo_dir: str):
        self.repo_dir = repo_dir
        self._lock = threading.Lock()

    def _open(self) -> "git.Repo":
        try:
            return git.Repo(self.repo_dir)
        except (git.exc.InvalidGitRepositoryError, git.exc.NoSuchPathError) as e:
            raise RepositoryError(f"failed to open repository {self.repo_dir}: {e}") from e

    def list_commits(self, path_prefix: str, since: Optional[datetime] = None) -> List[CommitInfo]:
        """Commits on HEAD touching `path_prefix` since `since`, oldest first."""
        with self._lock:
            repo = self._open()
            kwargs = {}
            if since is not None:
                kwargs["since"] = since.astimezone(timezone.utc).strftime("%Y-%m-%d %H:%M:%S +0000")
            try:
                newest_first = [
                    CommitInfo.from_git(c)
                    for c in repo.iter_commits("HEAD", **kwargs)
                    if _touches_path(c, path_prefix)
                ]
            except (git.exc.GitCommandError, ValueError) as e:
                raise RepositoryError(f"failed to read history of {self.repo_dir}: {e}") from e
        newest_first.reverse()
        return newest_first

    @contextmanager
    def checkout_session(self) -> Iterator[CheckoutSession]:
        with self._lock:
            repo = self._open()
            try:
                original_sha = repo.head.commit.hexsha
            except ValueError as e:
                raise RepositoryError(f"repository {self.repo_dir} has no HEAD commit") from e
            original_branch = None if repo.head.is_detached else repo.active_branch.name
            logger.info("checkout_session_start", repo_dir=self.repo_dir, head=original_sha, branch=original_branch)
            try:
                yield CheckoutSession(self, repo)
            finally:
                try:
                    if original_branch:
                        repo.git.checkout("--force", original_branch)
                    else:
                        repo.git.checkout("--force", "--detach", original_sha)
                except git.exc.GitCommandError as e:
                    logger.error("checkout_restore_failed", repo_dir=self.repo_dir, head=original_sha, error=str(e))

    def checkout_and_read(self, sha: str, paths: Iterable[str]) -> Dict[str, bytes]:
        with self.checkout_session() as session:
            return session.checkout_and_read(sha, paths)
