"""Tests for the CLI: output, manifest writing and error mapping to exit code 1."""

import json
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
import yaml

from dependent_discovery.__main__ import main
from dependent_discovery.config import GitHubConfig
from dependent_discovery.errors import ProviderError, RateLimitError, VersionResolutionError
from dependent_discovery.models import DependentDescriptor, VersionResolution, VersionSource

TARGET = "github.com/acme/go-errors"


def _engine():
    engine = MagicMock()
    engine.discover_dependents = AsyncMock(return_value=[
        DependentDescriptor(repository="acme/billing", clone_url="https://github.com/acme/billing",
                            module_path="github.com/acme/billing", current_version="v1.0.0"),
    ])
    engine.resolve_version = AsyncMock(return_value=VersionResolution(
        version="v1.2.0", source=VersionSource.LOCAL, warnings=["resolved locally"],
    ))
    return engine


@pytest.fixture(autouse=True)
def no_dotenv(monkeypatch):
    monkeypatch.setattr("dependent_discovery.__main__.load_dotenv", lambda: None)


@pytest.fixture
def engine():
    engine = _engine()
    with patch("dependent_discovery.__main__.select_discovery", return_value=engine):
        yield engine


def _run(monkeypatch, capsys, *argv):
    monkeypatch.setattr("sys.argv", ["dependent_discovery", *argv])
    main()
    return capsys.readouterr()


def _run_error(monkeypatch, capsys, *argv):
    monkeypatch.setattr("sys.argv", ["dependent_discovery", *argv])
    with pytest.raises(SystemExit) as exc_info:
        main()
    return exc_info.value.code, capsys.readouterr().err


class TestDiscover:
    def test_json_to_stdout(self, engine, monkeypatch, capsys, tmp_path):
        out = _run(monkeypatch, capsys, "discover", "--target", TARGET, "--workspace", str(tmp_path))
        data = json.loads(out.out)
        assert data["target_module"] == TARGET
        assert data["dependents"][0]["repository"] == "acme/billing"
        assert data["dependents"][0]["current_version"] == "v1.0.0"
        request = engine.discover_dependents.call_args.args[0]
        assert request.workspace_dir == str(tmp_path.resolve())

    def test_filters_passed_through(self, engine, monkeypatch, capsys, tmp_path):
        _run(
            monkeypatch, capsys, "discover", "--target", TARGET, "--workspace", str(tmp_path),
            "--include", "services/*", "--exclude", "vendor", "--exclude", "legacy",
            "--max-depth", "3", "--target-version", "v1.2.0",
        )
        request = engine.discover_dependents.call_args.args[0]
        assert request.include_patterns == ("services/*",)
        assert request.exclude_patterns == ("vendor", "legacy")
        assert request.max_depth == 3
        assert request.target_version == "v1.2.0"

    def test_output_file(self, engine, monkeypatch, capsys, tmp_path):
        out_file = tmp_path / "out.json"
        out = _run(monkeypatch, capsys, "-o", str(out_file), "discover", "--target", TARGET)
        assert json.loads(out_file.read_text())["dependents"]
        assert "Results written to" in out.err
        assert out.out == ""

    def test_github_requires_org(self, engine, monkeypatch, capsys):
        monkeypatch.setattr(
            "dependent_discovery.__main__.GitHubConfig.from_env",
            staticmethod(lambda: GitHubConfig(token="t")),
        )
        code, err = _run_error(monkeypatch, capsys, "discover", "--target", TARGET, "--source", "github")
        assert code == 1
        assert "--org is required" in err

    def test_github_missing_token(self, engine, monkeypatch, capsys):
        for var in ("GITHUB_TOKEN", "GH_TOKEN", "GITHUB_ACCESS_TOKEN"):
            monkeypatch.delenv(var, raising=False)
        code, err = _run_error(monkeypatch, capsys, "discover", "--target", TARGET, "--source", "github", "--org", "acme")
        assert code == 1
        assert "GitHub config error" in err

    def test_rate_limit_error(self, engine, monkeypatch, capsys):
        monkeypatch.setattr(
            "dependent_discovery.__main__.GitHubConfig.from_env",
            staticmethod(lambda: GitHubConfig(token="t")),
        )
        engine.discover_dependents.side_effect = RateLimitError("GitHub API rate limit critically low: 50/5000 remaining")
        code, err = _run_error(monkeypatch, capsys, "discover", "--target", TARGET, "--source", "github", "--org", "acme")
        assert code == 1
        assert "GitHub API error" in err
        assert "50/5000" in err


class TestResolveVersion:
    def test_resolution_output(self, engine, monkeypatch, capsys):
        out = _run(monkeypatch, capsys, "resolve-version", "--target", TARGET, "--strategy", "local")
        data = json.loads(out.out)
        assert data["version"] == "v1.2.0"
        assert data["source"] == "local"
        assert data["warnings"] == ["resolved locally"]

    def test_failure_prints_warnings(self, engine, monkeypatch, capsys):
        engine.resolve_version.side_effect = VersionResolutionError("all strategies failed", ["Local resolution failed: x"])
        code, err = _run_error(monkeypatch, capsys, "resolve-version", "--target", TARGET)
        assert code == 1
        assert "Version resolution failed: all strategies failed" in err
        assert "warning: Local resolution failed: x" in err

    def test_invalid_strategy(self, engine, monkeypatch, capsys):
        code, err = _run_error(monkeypatch, capsys, "resolve-version", "--target", TARGET, "--strategy", "tags")
        assert code == 1
        assert "Invalid input: unknown strategy" in err

    def test_provider_error(self, engine, monkeypatch, capsys):
        engine.resolve_version.side_effect = ProviderError("GET /repos/acme/x/tags: 500")
        code, err = _run_error(monkeypatch, capsys, "resolve-version", "--target", TARGET)
        assert code == 1
        assert "GitHub API error" in err


class TestPlan:
    def test_writes_manifest(self, engine, monkeypatch, capsys, tmp_path):
        manifest_out = tmp_path / ".dependents.yaml"
        out = _run(monkeypatch, capsys, "plan", "--target", TARGET, "--manifest-out", str(manifest_out))
        data = json.loads(out.out)
        assert data["version"]["version"] == "v1.2.0"
        written = yaml.safe_load(manifest_out.read_text())
        assert written["manifest_version"] == 1
        assert written["modules"][0]["module"] == TARGET
        assert written["modules"][0]["repo"] == "acme/go-errors"
        assert written["modules"][0]["dependents"][0]["repo"] == "acme/billing"


class TestValidate:
    def test_valid(self, monkeypatch, capsys, tmp_path):
        path = tmp_path / "m.yaml"
        path.write_text(
            "manifest_version: 1\n"
            "modules:\n"
            "  - name: a\n    module: github.com/acme/a\n    repo: acme/a\n    dependents: []\n"
        )
        out = _run(monkeypatch, capsys, "validate", str(path))
        assert json.loads(out.out)["status"] == "valid"

    def test_invalid(self, monkeypatch, capsys, tmp_path):
        path = tmp_path / "m.yaml"
        path.write_text("manifest_version: 2\n")
        code, err = _run_error(monkeypatch, capsys, "validate", str(path))
        assert code == 1
        assert "validation failed with 2 issues" in err
        assert "unsupported manifest version: 2" in err

    def test_missing_file(self, monkeypatch, capsys, tmp_path):
        code, err = _run_error(monkeypatch, capsys, "validate", str(tmp_path / "none.yaml"))
        assert code == 1
        assert "failed to load" in err
