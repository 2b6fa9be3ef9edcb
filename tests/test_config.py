"""Tests for node_wallet_ai.config and the LLM router."""

from unittest.mock import patch

import pytest
import yaml

from node_wallet_ai.config import (
    AppConfig,
    LLMConfig,
    LLMProviderConfig,
    get_app_dir,
    is_unresolved,
    load_config,
    save_config,
)
from node_wallet_ai.llm.anthropic import AnthropicProvider
from node_wallet_ai.llm.base import LLMMessage, ToolDefinition
from node_wallet_ai.llm.openai import OpenAIProvider
from node_wallet_ai.llm.router import LLMRouter


class TestLoadConfig:
    """Tests for YAML loading and environment expansion."""

    def test_missing_file_gives_defaults(self, tmp_path):
        """Test the default configuration."""
        config = load_config(tmp_path / "config.yaml")

        assert config.wallet.cluster == "devnet"
        assert config.wallet.backend == "keypair"
        assert config.storage.backend == "sqlite"
        assert config.limits.transfers_per_hour == 5

    def test_env_vars_are_expanded(self, tmp_path, monkeypatch):
        """Test that ${VAR} placeholders are replaced from the environment."""
        monkeypatch.setenv("TEST_ANTHROPIC_KEY", "sk-test")
        path = tmp_path / "config.yaml"
        path.write_text(yaml.dump({
            "llm": {"anthropic": {"api_key": "${TEST_ANTHROPIC_KEY}"}},
            "wallet": {"cluster": "mainnet-beta", "secret_key": "${UNSET_SECRET_FOR_TEST}"},
        }))

        config = load_config(path)

        assert config.llm.anthropic.api_key == "sk-test"
        assert config.wallet.cluster == "mainnet-beta"
        assert is_unresolved(config.wallet.secret_key)

    def test_save_and_load(self, tmp_path):
        """Test that a saved config loads back unchanged."""
        path = tmp_path / "sub" / "config.yaml"
        config = AppConfig(name="Test Wallet")
        config.llm.openai = LLMProviderConfig(api_key="${OPENAI_API_KEY}", model="gpt-4o")
        save_config(config, path)

        loaded = load_config(path)
        assert loaded.name == "Test Wallet"
        assert loaded.llm.openai.model == "gpt-4o"

    def test_get_app_dir(self, tmp_path):
        """Test that the app directory is created under the base path."""
        app_dir = get_app_dir(tmp_path)
        assert app_dir == tmp_path / ".node-wallet-ai"
        assert app_dir.is_dir()


class TestLLMRouter:
    """Tests for provider resolution."""

    def test_unknown_provider(self):
        """Test that an unknown provider name is rejected."""
        with pytest.raises(ValueError, match="Unknown provider"):
            LLMRouter(LLMConfig()).get_provider("gemini")

    def test_unconfigured_provider(self):
        """Test that a provider without a config block is rejected."""
        with pytest.raises(ValueError, match="not configured"):
            LLMRouter(LLMConfig()).get_provider("anthropic")

    def test_unresolved_key(self):
        """Test that an unexpanded key placeholder is rejected."""
        config = LLMConfig(anthropic=LLMProviderConfig(api_key="${NOT_SET_ANYWHERE}"))
        with pytest.raises(ValueError, match="API key"):
            LLMRouter(config).get_provider()

    def test_provider_is_cached(self):
        """Test that the same provider instance is reused."""
        config = LLMConfig(default_provider="openai", openai=LLMProviderConfig(api_key="sk-test"))
        router = LLMRouter(config)

        with patch("node_wallet_ai.llm.openai.openai.AsyncOpenAI"):
            provider = router.get_provider()
            assert isinstance(provider, OpenAIProvider)
            assert provider.model == "gpt-4o"
            assert router.get_provider("openai") is provider
            assert router.get_provider("openai", "gpt-4o-mini") is not provider


class TestMessageConversion:
    """Tests for provider-specific message formats."""

    def test_anthropic_groups_tool_results(self):
        """Test that consecutive tool results share one user turn."""
        messages = [
            LLMMessage(role="system", content="sys"),
            LLMMessage(role="user", content="hi"),
            LLMMessage(role="assistant", tool_calls=[
                {"id": "a", "name": "x", "arguments": {}},
                {"id": "b", "name": "y", "arguments": "{\"q\": 1}"},
            ]),
            LLMMessage(role="tool", content="r1", tool_call_id="a"),
            LLMMessage(role="tool", content="r2", tool_call_id="b"),
        ]

        system, rest = AnthropicProvider._split_system(messages)
        converted = AnthropicProvider._convert_messages(rest)

        assert system == "sys"
        assert [m["role"] for m in converted] == ["user", "assistant", "user"]
        assert converted[1]["content"][1]["input"] == {"q": 1}
        assert [b["tool_use_id"] for b in converted[2]["content"]] == ["a", "b"]

    def test_anthropic_tool_schema(self):
        """Test the Anthropic tool format."""
        tools = AnthropicProvider._convert_tools([ToolDefinition("t", "d", {"type": "object"})])
        assert tools == [{"name": "t", "description": "d", "input_schema": {"type": "object"}}]

    def test_openai_tool_schema(self):
        """Test the OpenAI function tool format."""
        tools = OpenAIProvider._convert_tools([ToolDefinition("t", "d", {"type": "object"})])
        assert tools[0]["type"] == "function"
        assert tools[0]["function"]["name"] == "t"
