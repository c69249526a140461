"""Tests for the release accessor facade and its caching wrapper."""

from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest

from conftest import FakeComponentGit, FakeComponentsGitInfo, commit_info
from release_inspection.ci_correlator import JobRun
from release_inspection.diff_engine import DiffEngine
from release_inspection.errors import (
    CIServiceError,
    EnvironmentReleaseNotFoundError,
    InvalidNameError,
    NotFoundError,
    UnknownEnvironmentError,
)
from release_inspection.models import Component, EnvironmentRelease, JobOverallResult
from release_inspection.naming import make_environment_release_name, make_release_name
from release_inspection.release_accessor import CachingReleaseAccessor, ReleaseAccessor

GITHUB = "https://github.com/Azure/ARO-HCP"
BLOCKING_JOB = "periodic-ci-Azure-ARO-HCP-main-periodic-create-aro-hcp-in-westus3"


def _release(environment: str, day: int, sha: str, frontend_sha: str) -> EnvironmentRelease:
    name = make_release_name(datetime(2026, 10, day, tzinfo=timezone.utc), sha)
    return EnvironmentRelease(
        name=make_environment_release_name(environment, name),
        releaseName=name,
        sha=sha,
        environment=environment,
        components={"Frontend": Component(name="Frontend", repoURL=GITHUB, sourceSHA=frontend_sha)},
    )


class FakeDiscovery:
    def __init__(self, releases):
        self.releases = releases
        self.calls = []

    def list_releases(self, environment):
        self.calls.append(environment)
        return list(self.releases.get(environment, []))


INT_NEW = _release("int", 3, "cccccccc", "f2")
INT_OLD = _release("int", 1, "aaaaaaaa", "f1")
STG = _release("stg", 1, "aaaaaaaa", "f1")


def _accessor(ci_client=None, git_info=None):
    discovery = FakeDiscovery({"int": [INT_NEW, INT_OLD], "stg": [STG]})
    git_info = git_info or FakeComponentsGitInfo(
        {"Frontend": FakeComponentGit([commit_info("m1", "Merge pull request #7 from a/b\n\nBump")])}
    )
    return ReleaseAccessor(discovery, DiffEngine(git_info), ci_client=ci_client), discovery


class TestReleaseAccessor:
    def test_list_environments(self):
        accessor, _ = _accessor()
        assert [e.name for e in accessor.list_environments().items] == ["int", "stg", "prod"]

    def test_get_environment(self):
        accessor, _ = _accessor()
        assert accessor.get_environment("stg").name == "stg"
        with pytest.raises(UnknownEnvironmentError):
            accessor.get_environment("dev")

    def test_list_environment_releases_for_environment(self):
        accessor, _ = _accessor()
        items = accessor.list_environment_releases_for_environment("int").items
        assert [r.sha for r in items] == ["cccccccc", "aaaaaaaa"]

    def test_list_environment_releases_covers_all_environments(self):
        accessor, _ = _accessor()
        assert {r.environment for r in accessor.list_environment_releases().items} == {"int", "stg"}

    def test_get_environment_release(self):
        accessor, _ = _accessor()
        assert accessor.get_environment_release(INT_OLD.name).sha == "aaaaaaaa"

    def test_get_environment_release_not_found(self):
        accessor, _ = _accessor()
        with pytest.raises(EnvironmentReleaseNotFoundError):
            accessor.get_environment_release("int---2020-01-01T00:00:00Z-00000")
        with pytest.raises(UnknownEnvironmentError):
            accessor.get_environment_release("dev---2020-01-01T00:00:00Z-00000")
        with pytest.raises(InvalidNameError):
            accessor.get_environment_release("garbage")

    def test_diff(self):
        accessor, _ = _accessor()
        diff = accessor.get_environment_release_diff(INT_NEW.name, INT_OLD.name)
        assert diff.differentComponents["Frontend"].changes[0].githubPRMerge.number == 7

    def test_releases_are_distinct_newest_first(self):
        accessor, _ = _accessor()
        releases = accessor.list_releases().items
        assert [r.sha for r in releases] == ["cccccccc", "aaaaaaaa"]

    def test_get_release(self):
        accessor, _ = _accessor()
        assert accessor.get_release(INT_NEW.releaseName).sha == "cccccccc"
        with pytest.raises(NotFoundError):
            accessor.get_release("2020-01-01T00:00:00Z-00000")

    def test_job_runs_are_correlated(self):
        ci_client = MagicMock()
        started = int(datetime(2026, 10, 2, tzinfo=timezone.utc).timestamp() * 1000)
        ci_client.list_job_runs.return_value = [JobRun(BLOCKING_JOB, started, JobOverallResult.SUCCEEDED)]
        accessor, _ = _accessor(ci_client=ci_client)

        items = accessor.list_environment_releases_for_environment("int").items

        ci_client.list_job_runs.assert_called_once_with("aro-integration")
        assert items[1].blockingJobRunResults["bare-minimum"][0].jobName == BLOCKING_JOB
        assert items[0].blockingJobRunResults == {}

    def test_ci_failure_still_lists_releases(self):
        ci_client = MagicMock()
        ci_client.list_job_runs.side_effect = CIServiceError("HTTP 502")
        accessor, _ = _accessor(ci_client=ci_client)
        assert len(accessor.list_environment_releases_for_environment("int").items) == 2


class TestCachingReleaseAccessor:
    def test_releases_computed_once_within_ttl(self, fake_clock):
        delegate, discovery = _accessor()
        cached = CachingReleaseAccessor(delegate, ttl_seconds=60, clock=fake_clock)

        cached.list_environment_releases_for_environment("int")
        cached.get_environment_release(INT_OLD.name)
        cached.list_releases()

        assert discovery.calls.count("int") == 1

    def test_releases_recomputed_after_ttl(self, fake_clock):
        delegate, discovery = _accessor()
        cached = CachingReleaseAccessor(delegate, ttl_seconds=60, clock=fake_clock)

        cached.list_environment_releases_for_environment("int")
        fake_clock.advance(61)
        cached.list_environment_releases_for_environment("int")

        assert discovery.calls.count("int") == 2

    def test_diff_is_cached(self, fake_clock):
        accessor = FakeComponentGit([commit_info("m1", "Merge pull request #7 from a/b\n\nBump")])
        delegate, _ = _accessor(git_info=FakeComponentsGitInfo({"Frontend": accessor}))
        cached = CachingReleaseAccessor(delegate, ttl_seconds=60, clock=fake_clock)

        first = cached.get_environment_release_diff(INT_NEW.name, INT_OLD.name)
        second = cached.get_environment_release_diff(INT_NEW.name, INT_OLD.name)

        assert first == second
        assert len(accessor.calls) == 1

    def test_unknown_environment_not_cached(self, fake_clock):
        delegate, discovery = _accessor()
        cached = CachingReleaseAccessor(delegate, ttl_seconds=60, clock=fake_clock)
        with pytest.raises(UnknownEnvironmentError):
            cached.list_environment_releases_for_environment("dev")
        assert discovery.calls == []

    def test_invalid_diff_names(self, fake_clock):
        delegate, _ = _accessor()
        cached = CachingReleaseAccessor(delegate, ttl_seconds=60, clock=fake_clock)
        with pytest.raises(InvalidNameError):
            cached.get_environment_release_diff("bad", INT_OLD.name)

    def test_invalidate(self, fake_clock):
        delegate, discovery = _accessor()
        cached = CachingReleaseAccessor(delegate, ttl_seconds=60, clock=fake_clock)
        cached.list_environment_releases_for_environment("int")
        cached.invalidate()
        cached.list_environment_releases_for_environment("int")
        assert discovery.calls.count("int") == 2
