"""Tests for engine settings: defaults, YAML files, environment, validation."""

from pathlib import Path

import pytest

from background_theories import ConfigError, EngineSettings, get_settings, load_settings

DEFAULT_CONFIG = Path(__file__).resolve().parent.parent / "config" / "background_theories.yaml"


class TestDefaults:
    def test_defaults(self):
        settings = EngineSettings()

        assert settings.max_execution_depth == 10
        assert settings.execution_timeout == 30
        assert settings.enable_parallel_execution is False
        assert settings.max_concurrent_axioms == 5
        assert settings.convergence_threshold == 0.001
        assert settings.auto_register_executors is True
        assert settings.log_axiom_executions is True
        assert settings.axiom_executors == ["5.1", "6.13"]
        assert settings.audit_db_path is None
        assert settings.log_level == "INFO"

    def test_shipped_config_matches_defaults(self):
        assert load_settings(DEFAULT_CONFIG) == EngineSettings()

    def test_get_settings_is_cached(self):
        get_settings.cache_clear()
        assert get_settings() is get_settings()
        get_settings.cache_clear()


class TestYaml:
    def test_camel_case_keys_under_reasoning(self, tmp_path):
        path = tmp_path / "bt.yaml"
        path.write_text(
            "reasoning:\n"
            "  maxExecutionDepth: 3\n"
            "  enableParallelExecution: true\n"
            "logAxiomExecutions: false\n"
            "axiomExecutors: ['6.13']\n"
        )

        settings = load_settings(path)

        assert settings.max_execution_depth == 3
        assert settings.enable_parallel_execution is True
        assert settings.log_axiom_executions is False
        assert settings.axiom_executors == ["6.13"]

    def test_snake_case_keys(self, tmp_path):
        path = tmp_path / "bt.yaml"
        path.write_text("max_execution_depth: 4\nlog_level: debug\n")

        settings = load_settings(path)

        assert settings.max_execution_depth == 4
        assert settings.log_level == "DEBUG"

    def test_overrides_beat_file(self, tmp_path):
        path = tmp_path / "bt.yaml"
        path.write_text("maxExecutionDepth: 4\n")

        settings = load_settings(path, max_execution_depth=2, enable_parallel_execution=None)

        assert settings.max_execution_depth == 2
        assert settings.enable_parallel_execution is False

    def test_empty_file(self, tmp_path):
        path = tmp_path / "bt.yaml"
        path.write_text("")
        assert load_settings(path) == EngineSettings()


class TestEnvironment:
    def test_env_prefix(self, monkeypatch):
        monkeypatch.setenv("BT_MAX_EXECUTION_DEPTH", "7")
        monkeypatch.setenv("BT_ENABLE_PARALLEL_EXECUTION", "true")

        settings = EngineSettings()

        assert settings.max_execution_depth == 7
        assert settings.enable_parallel_execution is True

    def test_file_beats_env(self, monkeypatch, tmp_path):
        monkeypatch.setenv("BT_MAX_EXECUTION_DEPTH", "7")
        monkeypatch.setenv("BT_EXECUTION_TIMEOUT", "12")
        path = tmp_path / "bt.yaml"
        path.write_text("maxExecutionDepth: 4\n")

        settings = load_settings(path)

        assert settings.max_execution_depth == 4
        assert settings.execution_timeout == 12


class TestErrors:
    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigError, match="not found"):
            load_settings(tmp_path / "missing.yaml")

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "bt.yaml"
        path.write_text("reasoning: [unclosed\n")
        with pytest.raises(ConfigError, match="Invalid YAML"):
            load_settings(path)

    def test_not_a_mapping(self, tmp_path):
        path = tmp_path / "bt.yaml"
        path.write_text("- 1\n- 2\n")
        with pytest.raises(ConfigError, match="mapping"):
            load_settings(path)

    @pytest.mark.parametrize(
        "overrides",
        [
            {"max_execution_depth": 0},
            {"execution_timeout": -1},
            {"max_concurrent_axioms": 0},
            {"log_level": "LOUD"},
        ],
    )
    def test_invalid_values(self, overrides):
        with pytest.raises(ConfigError):
            load_settings(**overrides)
