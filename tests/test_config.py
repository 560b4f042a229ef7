"""Tests for config models and YAML loader."""

from __future__ import annotations

import os
from pathlib import Path
from unittest.mock import patch

import pytest

from steptrail.config.loader import (
    _interpolate_env,
    _interpolate_recursive,
    find_config_file,
    load_config,
)
from steptrail.config.models import DriverConfig, StepTrailConfig, TestMetadata, WebhookConfig

# ─── Model tests ───


class TestDriverConfig:
    def test_defaults(self):
        cfg = DriverConfig()
        assert cfg.test_timeout is None
        assert cfg.skip_after_failure is True

    def test_custom_values(self):
        cfg = DriverConfig(test_timeout=2.5, skip_after_failure=False)
        assert cfg.test_timeout == 2.5
        assert not cfg.skip_after_failure


class TestTestMetadata:
    def test_minimal(self):
        meta = TestMetadata()
        assert meta.title is None
        assert meta.requirements == []


class TestWebhookConfig:
    def test_default_events(self):
        wh = WebhookConfig(url="https://example.com/hook")
        assert wh.events == ["test.completed"]
        assert wh.secret == ""


class TestStepTrailConfig:
    def test_defaults(self):
        cfg = StepTrailConfig()
        assert cfg.project.name == "steptrail"
        assert cfg.tests == {}
        assert cfg.webhooks == []
        assert cfg.history_db_path == "steptrail_history.db"
        assert cfg.history_max_records == 0

    def test_from_dict(self, sample_config_dict):
        cfg = StepTrailConfig(**sample_config_dict)
        assert cfg.project.name == "widget-shop"
        assert cfg.driver.test_timeout == 5.0
        assert cfg.tests["purchase_new_widget"].title == "Purchase a new widget"
        assert cfg.tests["browse_catalog"].requirements == ["CATALOG"]
        assert cfg.event_log_size == 50


# ─── Loader tests ───


class TestEnvInterpolation:
    def test_simple_var(self):
        with patch.dict(os.environ, {"MY_DB": "/tmp/history.db"}):
            assert _interpolate_env("${MY_DB}") == "/tmp/history.db"

    def test_var_with_default(self):
        os.environ.pop("MISSING_VAR", None)
        assert _interpolate_env("${MISSING_VAR:-fallback}") == "fallback"

    def test_var_with_default_overridden(self):
        with patch.dict(os.environ, {"MY_VAR": "real"}):
            assert _interpolate_env("${MY_VAR:-fallback}") == "real"

    def test_unset_var_preserved(self):
        os.environ.pop("UNSET_12345", None)
        assert _interpolate_env("${UNSET_12345}") == "${UNSET_12345}"

    def test_no_interpolation(self):
        assert _interpolate_env("plain string") == "plain string"

    def test_recursive_dict(self):
        with patch.dict(os.environ, {"PORT": "9090"}):
            data = {"url": "http://host:${PORT}", "nested": {"key": "${PORT}"}}
            result = _interpolate_recursive(data)
            assert result["url"] == "http://host:9090"
            assert result["nested"]["key"] == "9090"

    def test_recursive_list(self):
        with patch.dict(os.environ, {"TAG": "v1"}):
            assert _interpolate_recursive(["${TAG}", "plain"]) == ["v1", "plain"]

    def test_non_string_passthrough(self):
        assert _interpolate_recursive(42) == 42
        assert _interpolate_recursive(None) is None
        assert _interpolate_recursive(True) is True


class TestFindConfigFile:
    @pytest.fixture(autouse=True)
    def _no_override(self, monkeypatch):
        monkeypatch.delenv("STEPTRAIL_CONFIG", raising=False)

    def test_finds_in_directory(self, tmp_path: Path):
        config = tmp_path / ".steptrail.yaml"
        config.touch()
        assert find_config_file(tmp_path) == config

    def test_finds_in_parent(self, tmp_path: Path):
        config = tmp_path / ".steptrail.yaml"
        config.touch()
        child = tmp_path / "sub" / "deep"
        child.mkdir(parents=True)
        assert find_config_file(child) == config

    def test_returns_none_when_missing(self, tmp_path: Path):
        assert find_config_file(tmp_path) is None

    def test_finds_yml_variant(self, tmp_path: Path):
        config = tmp_path / ".steptrail.yml"
        config.touch()
        assert find_config_file(tmp_path) == config

    def test_env_override_wins(self, tmp_path: Path, monkeypatch):
        (tmp_path / ".steptrail.yaml").touch()
        elsewhere = tmp_path / "ci" / "steptrail.yaml"
        monkeypatch.setenv("STEPTRAIL_CONFIG", str(elsewhere))
        assert find_config_file(tmp_path) == elsewhere


class TestLoadConfig:
    def test_loads_valid_config(self, config_file: Path):
        cfg = load_config(path=config_file)
        assert cfg.project.name == "widget-shop"
        assert "purchase_new_widget" in cfg.tests

    def test_empty_file_gives_defaults(self, tmp_path: Path):
        path = tmp_path / ".steptrail.yaml"
        path.write_text("")
        assert load_config(path=path) == StepTrailConfig()

    def test_raises_on_missing_file(self, tmp_path: Path):
        with pytest.raises(FileNotFoundError, match="Could not find"):
            load_config(path=tmp_path / "nonexistent.yaml")

    def test_raises_on_invalid_config(self, tmp_path: Path):
        bad = tmp_path / ".steptrail.yaml"
        bad.write_text("driver:\n  test_timeout: soon\n")
        with pytest.raises(ValueError, match="Invalid configuration"):
            load_config(path=bad)

    def test_raises_on_non_mapping(self, tmp_path: Path):
        bad = tmp_path / ".steptrail.yaml"
        bad.write_text("- just\n- a list\n")
        with pytest.raises(ValueError, match="expected a mapping"):
            load_config(path=bad)

    def test_env_interpolation_in_file(self, tmp_path: Path):
        config = tmp_path / ".steptrail.yaml"
        config.write_text("history_db_path: ${TEST_HISTORY_DB:-/var/lib/steptrail.db}\n")
        os.environ.pop("TEST_HISTORY_DB", None)
        assert load_config(path=config).history_db_path == "/var/lib/steptrail.db"
