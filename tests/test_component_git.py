"""Tests for component repository clones and commit ranges."""

from datetime import datetime, timedelta, timezone

import pytest

from conftest import GitRepoBuilder
from release_inspection.component_git import ComponentGitRepositories, LocalComponentGitAccessor
from release_inspection.components import ComponentDefinition, ComponentRegistry
from release_inspection.errors import RepositoryError

START = datetime(2026, 9, 1, tzinfo=timezone.utc)


@pytest.fixture
def upstream(tmp_path):
    builder = GitRepoBuilder(tmp_path / "upstream")
    shas = []
    for i in range(5):
        commit = builder.commit(
            {"main.go": f"package main // {i}\n"},
            f"Merge pull request #{i} from dev/change-{i}\n\nChange {i}",
            START + timedelta(hours=i),
            merge=i > 0,
        )
        shas.append(commit.hexsha)
    builder.shas = shas
    return builder


def _accessor(upstream, tmp_path) -> LocalComponentGitAccessor:
    branch = upstream.repo.active_branch.name
    return LocalComponentGitAccessor(str(upstream.path), str(tmp_path / "clones" / "Frontend"), branch)


class TestLocalComponentGitAccessor:
    def test_commits_between_newest_first(self, upstream, tmp_path):
        commits = _accessor(upstream, tmp_path).commits_between(upstream.shas[4], upstream.shas[1])

        first_parent_shas = [c.sha for c in commits if c.parent_count == 2]
        assert first_parent_shas == [upstream.shas[4], upstream.shas[3], upstream.shas[2]]
        assert upstream.shas[1] not in [c.sha for c in commits]

    def test_fetches_on_second_use(self, upstream, tmp_path):
        accessor = _accessor(upstream, tmp_path)
        accessor.commits_between(upstream.shas[2], upstream.shas[1])

        newer = upstream.commit({"main.go": "package main // 5\n"}, "Merge pull request #5", START + timedelta(hours=6), merge=True)
        commits = accessor.commits_between(newer.hexsha, upstream.shas[4])

        assert commits[0].sha == newer.hexsha

    def test_older_sha_outside_limit(self, upstream, tmp_path):
        with pytest.raises(RepositoryError, match="not found within 3 commits"):
            _accessor(upstream, tmp_path).commits_between(upstream.shas[4], upstream.shas[0], limit=3)

    def test_unknown_newer_sha(self, upstream, tmp_path):
        with pytest.raises(RepositoryError):
            _accessor(upstream, tmp_path).commits_between("f" * 40, upstream.shas[0])

    def test_clone_failure(self, tmp_path):
        accessor = LocalComponentGitAccessor(str(tmp_path / "nowhere"), str(tmp_path / "clone"), "main")
        with pytest.raises(RepositoryError):
            accessor.commits_between("a" * 40, "b" * 40)


class TestComponentGitRepositories:
    def test_accessor_is_reused_and_named_after_component(self, tmp_path):
        registry = ComponentRegistry(
            (ComponentDefinition("Cluster Service", "quay.io", "app-sre/cs", repository_url="https://gitlab.example.com/cs", default_branch="master"),)
        )
        repos = ComponentGitRepositories(str(tmp_path), registry)

        accessor = repos.accessor_for("Cluster Service")

        assert accessor is repos.accessor_for("Cluster Service")
        assert accessor.repo_dir == str(tmp_path / "Cluster-Service")
        assert accessor.default_branch == "master"

    def test_component_without_repository(self, tmp_path):
        registry = ComponentRegistry((ComponentDefinition("ACR Pull", "mcr.microsoft.com", "aks/msi-acrpull"),))
        with pytest.raises(RepositoryError):
            ComponentGitRepositories(str(tmp_path), registry).accessor_for("ACR Pull")
