"""Tests for the static export and the command line."""

import json
from unittest.mock import MagicMock, patch

import pytest

from release_inspection.cli import build_parser, main
from release_inspection.errors import RepositoryError
from release_inspection.export import atomic_write_json, export_api
from release_inspection.models import (
    Environment,
    EnvironmentList,
    EnvironmentRelease,
    EnvironmentReleaseList,
    Release,
    ReleaseList,
)

RELEASE = EnvironmentRelease(
    name="int---2026-10-01T00:00:00Z-abcde",
    releaseName="2026-10-01T00:00:00Z-abcde",
    sha="abcdef",
    environment="int",
)


def _accessor():
    accessor = MagicMock()
    accessor.list_environments.return_value = EnvironmentList(items=[Environment(name="int"), Environment(name="stg")])
    accessor.list_environment_releases_for_environment.side_effect = lambda env: EnvironmentReleaseList(
        items=[RELEASE] if env == "int" else []
    )
    accessor.list_releases.return_value = ReleaseList(items=[Release(name=RELEASE.releaseName, sha="abcdef")])
    return accessor


class TestAtomicWriteJson:
    def test_writes_and_replaces(self, tmp_path):
        path = tmp_path / "nested" / "out.json"
        atomic_write_json(path, {"a": 1})
        atomic_write_json(path, {"a": 2})
        assert json.loads(path.read_text()) == {"a": 2}
        assert not (tmp_path / "nested" / "out.json.tmp").exists()


class TestExportApi:
    def test_tree_layout(self, tmp_path):
        written = export_api(_accessor(), tmp_path)

        assert sorted(p.relative_to(tmp_path).as_posix() for p in written) == [
            "environmentreleases/int.json",
            "environmentreleases/stg.json",
            "environments.json",
            "releases.json",
        ]
        int_releases = json.loads((tmp_path / "environmentreleases" / "int.json").read_text())
        assert int_releases["items"][0]["name"] == RELEASE.name
        assert json.loads((tmp_path / "releases.json").read_text())["kind"] == "ReleaseList"


class TestCli:
    def test_subcommand_required(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args([])

    def test_serve_defaults(self):
        args = build_parser().parse_args(["serve", "--repo-dir", "/src"])
        assert (args.host, args.port, args.repo_dir) == ("127.0.0.1", 8001, "/src")

    def test_export(self, tmp_path):
        accessor = _accessor()
        with patch("release_inspection.cli.build_release_accessor", return_value=accessor) as build:
            code = main(["export", "--repo-dir", "/src", "--lookback-days", "3", "--out-dir", str(tmp_path)])
        assert code == 0
        settings = build.call_args[0][0]
        assert settings.repo_dir == "/src"
        assert settings.lookback_days == 3
        assert (tmp_path / "environments.json").exists()

    def test_export_failure_exit_code(self, tmp_path):
        accessor = _accessor()
        accessor.list_releases.side_effect = RepositoryError("boom")
        with patch("release_inspection.cli.build_release_accessor", return_value=accessor):
            assert main(["export", "--repo-dir", "/src", "--out-dir", str(tmp_path)]) == 1

    def test_missing_repo_dir(self, monkeypatch, tmp_path):
        monkeypatch.delenv("RELEASE_REPO_DIR", raising=False)
        monkeypatch.delenv("ARO_HCP_DIR", raising=False)
        with patch("release_inspection.cli.load_dotenv"):
            with pytest.raises(SystemExit):
                main(["export", "--out-dir", str(tmp_path)])

    def test_serve_runs_uvicorn(self):
        with patch("release_inspection.cli.build_release_accessor", return_value=_accessor()), \
                patch("uvicorn.run") as run:
            assert main(["serve", "--repo-dir", "/src", "--port", "9000"]) == 0
        assert run.call_args[1] == {"host": "127.0.0.1", "port": 9000}
