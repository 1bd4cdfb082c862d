"""Tests for config loading and the config -> policy mapping."""

from pathlib import Path

import pytest

from cli.config import load_config, load_config_model
from cli.config_models import ApprovalConfig, FactFusionConfig, FusionConfig


@pytest.fixture
def write_config(tmp_path):
    def _write(text: str) -> Path:
        path = tmp_path / "config.yaml"
        path.write_text(text)
        return path

    return _write


class TestLoadConfig:
    def test_defaults_without_file(self, tmp_path):
        config = load_config_model(tmp_path / "missing.yaml")
        assert config.llm.provider == "auto"
        assert config.logging.level == "INFO"
        assert config.paths.db_path == Path("~/.factfusion/factfusion.db").expanduser()

    def test_yaml_values(self, write_config, tmp_path):
        path = write_config(
            f"""
llm:
  provider: openai
paths:
  db_path: {tmp_path / 'data.db'}
  chroma_dir: null
logging:
  level: debug
fusion:
  fusion_confidence_threshold: 0.6
"""
        )
        config = load_config_model(path)
        assert config.llm.provider == "openai"
        assert config.paths.db_path == tmp_path / "data.db"
        assert config.paths.chroma_dir is None
        assert config.logging.level == "DEBUG"
        assert config.fusion.fusion_confidence_threshold == 0.6

    def test_empty_file(self, write_config):
        config = load_config_model(write_config(""))
        assert config.retry.max_attempts == 3

    def test_invalid_yaml(self, write_config):
        with pytest.raises(ValueError, match="Invalid YAML"):
            load_config_model(write_config("llm: [unclosed"))

    def test_non_mapping(self, write_config):
        with pytest.raises(ValueError, match="must contain a mapping"):
            load_config_model(write_config("- a\n- b\n"))

    def test_invalid_provider(self, write_config):
        with pytest.raises(ValueError, match="Config validation failed"):
            load_config_model(write_config("llm:\n  provider: llama\n"))

    def test_threshold_out_of_range(self, write_config):
        with pytest.raises(ValueError, match="Config validation failed"):
            load_config_model(write_config("fusion:\n  auto_merge_threshold: 1.5\n"))

    def test_load_config_dict(self, write_config):
        data = load_config(write_config("logging:\n  json_mode: true\n"))
        assert data["logging"]["json_mode"] is True


class TestConfigModels:
    def test_api_key_env_expansion(self, monkeypatch):
        monkeypatch.setenv("FF_TEST_KEY", "sk-ant-secret")
        config = FactFusionConfig.from_dict({"llm": {"api_key": "${FF_TEST_KEY}"}})
        assert config.llm.api_key == "sk-ant-secret"

    def test_api_key_missing_env_becomes_empty(self, monkeypatch):
        monkeypatch.delenv("FF_TEST_KEY", raising=False)
        config = FactFusionConfig.from_dict({"llm": {"api_key": "${FF_TEST_KEY}"}})
        assert config.llm.api_key == ""

    def test_literal_api_key_kept(self):
        config = FactFusionConfig.from_dict({"llm": {"api_key": "sk-literal"}})
        assert config.llm.api_key == "sk-literal"


class TestFusionConfig:
    def test_defaults_map_to_policy_defaults(self):
        policy = FusionConfig().to_policy()
        assert policy.fusion_confidence_threshold == 0.7
        assert policy.auto_merge_threshold == 0.9
        assert policy.semantic_top_k == 5

    def test_overrides(self):
        policy = FusionConfig(approval_threshold=0.6, semantic_top_k=10, oracle_model="default").to_policy()
        assert policy.approval_threshold == 0.6
        assert policy.semantic_top_k == 10
        assert policy.oracle_model == "default"
        assert policy.auto_merge_threshold == 0.9

    def test_cache_enabled_not_passed_to_policy(self):
        policy = FusionConfig(cache_enabled=False).to_policy()
        assert not hasattr(policy, "cache_enabled")


class TestApprovalConfig:
    def test_default_thirty_days(self):
        assert ApprovalConfig().to_policy().retention_days == 30

    def test_config_value(self):
        assert ApprovalConfig(retention_days=7).to_policy().retention_days == 7

    def test_env_var_wins(self, monkeypatch):
        monkeypatch.setenv("PENDING_APPROVAL_RETENTION_DAYS", "0")
        policy = ApprovalConfig(retention_days=7).to_policy()
        assert policy.retention_days == 0
        assert policy.hard_delete_on_reject

    def test_negative_rejected(self):
        with pytest.raises(ValueError):
            ApprovalConfig(retention_days=-1)
