"""
Tests for Settings — defaults, config.json, env precedence, overrides.
"""

import json
import os

import pytest

from debug_bridge.config import DEFAULT_STORAGE_PATH, ENV_PREFIX, Settings, load_settings, read_config_file


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    for key in list(os.environ):
        if key.startswith(ENV_PREFIX):
            monkeypatch.delenv(key)
    # keep a developer's .env out of the picture
    monkeypatch.chdir(tmp_path)


def write_config(directory, data):
    directory.mkdir(parents=True, exist_ok=True)
    (directory / "config.json").write_text(json.dumps(data))


class TestDefaults:
    def test_defaults(self, monkeypatch, tmp_path):
        monkeypatch.setenv(f"{ENV_PREFIX}STORAGE_PATH", str(tmp_path / "empty"))
        s = Settings()
        assert s.port == 4000
        assert s.host == "127.0.0.1"
        assert s.retention_days == 7
        assert s.max_report_size == 10 * 1024 * 1024
        assert s.max_screenshot_size == 5 * 1024 * 1024
        assert s.question_timeout_ms == 120_000
        assert s.auto_questions is True
        assert s.log_level == "info"

    def test_default_storage_path(self):
        assert DEFAULT_STORAGE_PATH.name == ".debug-mcp"

    def test_log_dir_defaults_under_storage(self, tmp_path):
        s = load_settings(storage_path=str(tmp_path))
        assert s.resolved_log_dir == tmp_path / "logs"


class TestConfigFile:
    def test_camel_case_keys_are_read(self, tmp_path):
        write_config(tmp_path, {"retentionDays": 3, "autoQuestions": False, "logLevel": "debug", "unknown": 1})

        values = read_config_file(tmp_path)

        assert values == {"retention_days": 3, "auto_questions": False, "log_level": "debug"}

    def test_missing_or_broken_file_is_empty(self, tmp_path):
        assert read_config_file(tmp_path / "nowhere") == {}
        (tmp_path / "config.json").write_text("{oops")
        assert read_config_file(tmp_path) == {}
        (tmp_path / "config.json").write_text("[1, 2]")
        assert read_config_file(tmp_path) == {}

    def test_file_overrides_defaults(self, monkeypatch, tmp_path):
        write_config(tmp_path, {"port": 4100, "questionTimeoutMs": 5000})
        monkeypatch.setenv(f"{ENV_PREFIX}STORAGE_PATH", str(tmp_path))

        s = Settings()

        assert s.port == 4100
        assert s.question_timeout_ms == 5000
        assert s.storage_path == tmp_path

    def test_explicit_storage_path_selects_config_file(self, tmp_path):
        write_config(tmp_path / "custom", {"port": 4200})

        s = load_settings(storage_path=str(tmp_path / "custom"))

        assert s.port == 4200


class TestPrecedence:
    def test_env_beats_file(self, monkeypatch, tmp_path):
        write_config(tmp_path, {"port": 4100, "retentionDays": 3})
        monkeypatch.setenv(f"{ENV_PREFIX}STORAGE_PATH", str(tmp_path))
        monkeypatch.setenv(f"{ENV_PREFIX}PORT", "4300")

        s = Settings()

        assert s.port == 4300
        assert s.retention_days == 3

    def test_overrides_beat_env(self, monkeypatch, tmp_path):
        monkeypatch.setenv(f"{ENV_PREFIX}STORAGE_PATH", str(tmp_path))
        monkeypatch.setenv(f"{ENV_PREFIX}PORT", "4300")

        assert load_settings(port=4400).port == 4400


class TestLogLevel:
    @pytest.mark.parametrize("raw,expected", [("DEBUG", "debug"), ("warning", "warn"), ("warn", "warn")])
    def test_normalized(self, tmp_path, raw, expected):
        assert load_settings(storage_path=str(tmp_path), log_level=raw).log_level == expected

    def test_invalid_level_rejected(self, tmp_path):
        with pytest.raises(ValueError):
            load_settings(storage_path=str(tmp_path), log_level="verbose")
