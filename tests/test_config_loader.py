"""Tests for YAML config discovery, !include and env interpolation."""

from pathlib import Path

import pytest

from spec_git_sync.config_loader import (
    discover_config_files,
    ensure_config,
    interpolate_env_vars,
    load_hierarchical_config,
)


@pytest.fixture
def project(tmp_path, monkeypatch):
    """CWD with an empty .spec_git dir and an isolated home."""
    home = tmp_path / "home"
    home.mkdir()
    work = tmp_path / "work"
    (work / ".spec_git").mkdir(parents=True)
    monkeypatch.chdir(work)
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.delenv("SPEC_GIT_CONFIG", raising=False)
    return work


class TestInterpolation:
    def test_set_variable(self, monkeypatch):
        monkeypatch.setenv("SPEC_X", "value")
        assert interpolate_env_vars("a-${SPEC_X}-b") == "a-value-b"

    def test_default(self, monkeypatch):
        monkeypatch.delenv("SPEC_MISSING", raising=False)
        assert interpolate_env_vars("${SPEC_MISSING:-main}") == "main"

    def test_unset_without_default(self, monkeypatch):
        monkeypatch.delenv("SPEC_MISSING", raising=False)
        assert interpolate_env_vars("[${SPEC_MISSING}]") == "[]"

    def test_unterminated_left_alone(self):
        assert interpolate_env_vars("${OOPS") == "${OOPS"


class TestDiscovery:
    def test_none(self, project):
        assert discover_config_files() == []

    def test_project_file(self, project):
        path = project / ".spec_git" / "config.yml"
        path.write_text("sync: {}\n")
        assert discover_config_files() == [path.resolve()]

    def test_explicit_env_first(self, project, tmp_path, monkeypatch):
        explicit = tmp_path / "explicit.yml"
        explicit.write_text("{}\n")
        (project / ".spec_git" / "config.yml").write_text("{}\n")
        monkeypatch.setenv("SPEC_GIT_CONFIG", str(explicit))
        assert discover_config_files()[0] == explicit.resolve()


class TestLoadHierarchical:
    def test_empty_when_no_files(self, project):
        assert load_hierarchical_config() == {}

    def test_project_wins_over_user(self, project):
        user = Path.home() / ".config" / "spec_git"
        user.mkdir(parents=True)
        (user / "config.yml").write_text(
            "github:\n  token: user-token\nsync:\n  repo: user/repo\n"
        )
        (project / ".spec_git" / "config.yml").write_text(
            "sync:\n  repo: project/repo\n"
        )
        raw = load_hierarchical_config()
        assert raw["sync"] == {"repo": "project/repo"}
        assert raw["github"] == {"token": "user-token"}

    def test_include_and_interpolation(self, project, monkeypatch):
        monkeypatch.setenv("SPEC_TEST_TOKEN", "from-env")
        monkeypatch.delenv("SPEC_BRANCH", raising=False)
        cfg = project / ".spec_git"
        (cfg / "github.yml").write_text("token: ${SPEC_TEST_TOKEN}\n")
        (cfg / "config.yml").write_text(
            "github: !include github.yml\nsync:\n  branch: ${SPEC_BRANCH:-main}\n"
        )
        raw = load_hierarchical_config()
        assert raw["github"] == {"token": "from-env"}
        assert raw["sync"] == {"branch": "main"}

    def test_circular_include(self, project):
        cfg = project / ".spec_git"
        (cfg / "a.yml").write_text("x: !include config.yml\n")
        (cfg / "config.yml").write_text("a: !include a.yml\n")
        with pytest.raises(ValueError, match="Circular include"):
            load_hierarchical_config()

    def test_missing_include(self, project):
        (project / ".spec_git" / "config.yml").write_text("a: !include nope.yml\n")
        with pytest.raises(FileNotFoundError, match="Include file not found"):
            load_hierarchical_config()

    def test_non_dict_root_skipped(self, project):
        (project / ".spec_git" / "config.yml").write_text("- a\n- b\n")
        assert load_hierarchical_config() == {}


class TestEnsureConfig:
    def test_writes_starter(self, project):
        path = ensure_config()
        assert path.resolve() == (project / ".spec_git" / "config.yml").resolve()
        assert "spec-git-sync configuration" in path.read_text()

    def test_returns_existing(self, project):
        existing = project / ".spec_git" / "config.yaml"
        existing.write_text("sync: {}\n")
        assert ensure_config().resolve() == existing.resolve()
