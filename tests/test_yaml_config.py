"""YAML 配置加载测试"""

from pathlib import Path

import pytest

from feature_router.exceptions import ConfigurationError, ErrorCode
from feature_router.utils.config import get_config_value, load_config, mask_credential
from feature_router.yaml_config import YAMLConfigLoader

EXAMPLE_CONFIG = Path(__file__).parent.parent / "config" / "router_config.example.yaml"

MINIMAL_CONFIG = """
settings:
  timezone: ${ROUTER_TZ:UTC}
  database_url: ${ROUTER_TEST_DB:}
providers:
  - id: local
    kind: builtin_local
    cost_tier: free
    models:
      - model_id: llama
        is_default: true
  - id: openai
    capabilities: [Vision, JSON_MODE]
    enabled: true
    validated: true
    api_key_env: ROUTER_TEST_OPENAI_KEY
    models:
      - model_id: gpt
        context_window: 128000
feature_mappings:
  - feature_type: chat
    required_tags: [json_mode]
    priority: 3
budgets:
  - tenant_id: acme
    period: weekly
    budget_usd: 20
"""


def write_config(tmp_path, text: str) -> str:
    path = tmp_path / "router_config.yaml"
    path.write_text(text, encoding="utf-8")
    return str(path)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ("DATABASE_URL", "LOG_LEVEL", "ROUTER_TZ", "ROUTER_TEST_DB", "ROUTER_TEST_OPENAI_KEY"):
        monkeypatch.delenv(name, raising=False)


class TestLoadConfig:
    """原始配置读取"""

    def test_env_substitution_with_default(self, tmp_path, monkeypatch):
        monkeypatch.setenv("ROUTER_TZ", "Asia/Tokyo")
        config = load_config(write_config(tmp_path, MINIMAL_CONFIG))
        assert config["settings"]["timezone"] == "Asia/Tokyo"
        assert config["settings"]["database_url"] == ""

    def test_unset_variable_without_default_kept(self, tmp_path):
        config = load_config(write_config(tmp_path, "value: ${ROUTER_TEST_MISSING_VAR}\n"))
        assert config["value"] == "${ROUTER_TEST_MISSING_VAR}"

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config(tmp_path / "nope.yaml")

    def test_invalid_yaml(self, tmp_path):
        with pytest.raises(ValueError):
            load_config(write_config(tmp_path, "providers: [unclosed\n"))

    def test_top_level_must_be_mapping(self, tmp_path):
        with pytest.raises(ValueError):
            load_config(write_config(tmp_path, "- a\n- b\n"))

    def test_get_config_value(self):
        config = {"settings": {"logging": {"level": "DEBUG"}}}
        assert get_config_value(config, "settings.logging.level") == "DEBUG"
        assert get_config_value(config, "settings.missing", "x") == "x"


class TestMaskCredential:
    def test_long_secret(self):
        assert mask_credential("sk-1234567890abcd") == "sk-1****abcd"

    def test_short_secret(self):
        assert mask_credential("abc") == "***"

    def test_empty(self):
        assert mask_credential(None) is None
        assert mask_credential("") is None


class TestYAMLConfigLoader:
    """YAML 加载器"""

    def test_builds_store(self, tmp_path):
        loader = YAMLConfigLoader(write_config(tmp_path, MINIMAL_CONFIG))
        catalog = loader.store.load_catalog()

        assert [p.id for p in catalog.providers] == ["local", "openai"]
        assert catalog.get_model("openai:gpt").context_window == 128000
        assert catalog.get_provider("openai").capabilities == ["vision", "json_mode"]
        assert catalog.builtin_default()[1].id == "local:llama"
        assert loader.settings.timezone == "UTC"

        (mapping,) = loader.store.list_mappings("chat")
        assert mapping.priority == 3
        (budget,) = loader.store.list_budgets("acme")
        assert budget.period.value == "weekly"

    def test_credentials_are_referenced_and_masked(self, tmp_path, monkeypatch):
        monkeypatch.setenv("ROUTER_TEST_OPENAI_KEY", "sk-test-abcdefghijkl")
        loader = YAMLConfigLoader(write_config(tmp_path, MINIMAL_CONFIG))
        provider = loader.store.load_catalog().get_provider("openai")

        assert provider.credential_ref == "env:ROUTER_TEST_OPENAI_KEY"
        assert provider.credential_display == "sk-t****ijkl"
        assert "sk-test-abcdefghijkl" not in provider.model_dump_json()

    def test_env_overrides(self, tmp_path, monkeypatch):
        monkeypatch.setenv("DATABASE_URL", "sqlite:///router.db")
        monkeypatch.setenv("LOG_LEVEL", "debug")
        loader = YAMLConfigLoader(write_config(tmp_path, MINIMAL_CONFIG))
        assert loader.settings.database_url == "sqlite:///router.db"
        assert loader.settings.logging.level == "DEBUG"

    def test_invalid_config_raises_configuration_error(self, tmp_path):
        text = """
feature_mappings:
  - feature_type: chat
    match_mode: specific_model
"""
        with pytest.raises(ConfigurationError) as exc_info:
            YAMLConfigLoader(write_config(tmp_path, text))
        assert exc_info.value.error_code == ErrorCode.CONFIG_INVALID

    def test_missing_file_raises_configuration_error(self, tmp_path):
        with pytest.raises(ConfigurationError) as exc_info:
            YAMLConfigLoader(str(tmp_path / "missing.yaml"))
        assert exc_info.value.error_code == ErrorCode.CONFIG_LOAD_FAILED

    def test_duplicate_provider_rejected(self, tmp_path):
        text = """
providers:
  - id: local
    kind: builtin_local
  - id: local
"""
        with pytest.raises(ConfigurationError):
            YAMLConfigLoader(write_config(tmp_path, text))

    def test_example_config_loads(self):
        loader = YAMLConfigLoader(str(EXAMPLE_CONFIG))
        catalog = loader.store.load_catalog()

        provider, model = catalog.builtin_default()
        assert provider.id == "ollama"
        assert model.id == "ollama:llama3.2"
        assert set(loader.store.list_feature_types()) == {
            "face_analysis",
            "counseling_suggest",
            "learning_analysis",
        }
        assert catalog.get_model("anthropic:claude-sonnet-4-5").is_default
