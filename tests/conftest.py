"""
Shared test fixtures: fake collaborators and a throwaway git repository.

LOG_LEVEL is raised before any package import so test output stays quiet.
"""

import os

os.environ.setdefault("LOG_LEVEL", "ERROR")

from datetime import datetime, timezone  # noqa: E402
from pathlib import Path  # noqa: E402
from typing import Dict, List, Optional  # noqa: E402

import git  # noqa: E402
import pytest  # noqa: E402

from release_inspection.component_git import ComponentGitAccessor, ComponentsGitInfo  # noqa: E402
from release_inspection.errors import ImageProvenanceError, RepositoryError  # noqa: E402
from release_inspection.image_provenance import ImageInspector  # noqa: E402
from release_inspection.source_repository import CommitInfo  # noqa: E402


class FakeClock:
    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeInspector(ImageInspector):
    """Serves canned inspect documents per pull spec and counts calls."""

    def __init__(self, docs: Optional[Dict[str, dict]] = None, pull_errors: Optional[Dict[str, str]] = None):
        self.docs = dict(docs or {})
        self.pull_errors = dict(pull_errors or {})
        self.pulls: List[str] = []
        self.inspects: List[str] = []
        self.auth_files: List[str] = []

    def pull(self, pull_spec, *, auth_file="", timeout=300):
        self.pulls.append(pull_spec)
        self.auth_files.append(auth_file)
        if pull_spec in self.pull_errors:
            raise ImageProvenanceError(self.pull_errors[pull_spec])

    def inspect(self, pull_spec, *, timeout=90):
        self.inspects.append(pull_spec)
        if pull_spec not in self.docs:
            raise ImageProvenanceError(f"image not known: {pull_spec}")
        return self.docs[pull_spec]


def inspect_doc(sha: str, created: str = "2026-10-01T12:00:00.123456789Z") -> dict:
    return {"Created": created, "Config": {"Labels": {"vcs-ref": sha}}}


class FakeComponentGit(ComponentGitAccessor):
    def __init__(self, commits: List[CommitInfo], error: Optional[Exception] = None):
        self.commits = commits
        self.error = error
        self.calls = []

    def commits_between(self, newer_sha, older_sha, limit=1000):
        self.calls.append((newer_sha, older_sha, limit))
        if self.error is not None:
            raise self.error
        return list(self.commits)


class FakeComponentsGitInfo(ComponentsGitInfo):
    def __init__(self, accessors: Optional[Dict[str, FakeComponentGit]] = None):
        self.accessors = dict(accessors or {})
        self.requested: List[str] = []

    def accessor_for(self, component_name):
        self.requested.append(component_name)
        if component_name not in self.accessors:
            raise RepositoryError(f"no repository known for component {component_name!r}")
        return self.accessors[component_name]


def commit_info(sha: str, message: str, parent_count: int = 2) -> CommitInfo:
    return CommitInfo(
        sha=sha,
        message=message,
        parent_count=parent_count,
        committed_at=datetime(2026, 10, 1, tzinfo=timezone.utc),
    )


class GitRepoBuilder:
    """Builds commits with fixed dates in a fresh repository."""

    def __init__(self, path: Path):
        self.path = path
        self.repo = git.Repo.init(str(path))
        self.actor = git.Actor("Release Bot", "release-bot@example.com")

    def commit(self, files: Dict[str, str], message: str, when: datetime, merge: bool = False) -> git.Commit:
        for rel, content in files.items():
            full = self.path / rel
            full.parent.mkdir(parents=True, exist_ok=True)
            full.write_text(content, encoding="utf-8")
        self.repo.index.add(list(files))

        parents = []
        if self.repo.head.is_valid():
            parents.append(self.repo.head.commit)
            if merge:
                # a side commit sharing the first parent's tree stands in for the merged branch
                side = git.Commit.create_from_tree(
                    self.repo, parents[0].tree, f"side of {message}", parent_commits=[parents[0]],
                    head=False, author=self.actor, committer=self.actor,
                    author_date=self._date(when), commit_date=self._date(when),
                )
                parents.append(side)

        return self.repo.index.commit(
            message,
            parent_commits=parents,
            author=self.actor,
            committer=self.actor,
            author_date=self._date(when),
            commit_date=self._date(when),
        )

    @staticmethod
    def _date(when: datetime) -> str:
        return f"{int(when.timestamp())} +0000"


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def git_repo(tmp_path):
    return GitRepoBuilder(tmp_path / "config-repo")
