"""Tests for the Claude client factory."""

import os
from unittest.mock import patch

import pytest

from src.config import Settings
from src.integrations.claude.client import (
    DEFAULT_MODEL_ID,
    ClaudeNotConfiguredError,
    get_claude_client,
    get_model_id,
)


def make_settings(**env: str) -> Settings:
    with patch.dict(os.environ, env, clear=True):
        return Settings()


class TestGetClaudeClient:
    """Tests for client selection."""

    def test_anthropic_with_key(self):
        config = make_settings(ANTHROPIC_API_KEY="sk-ant-test", CLAUDE_TIMEOUT="30")

        with patch("src.integrations.claude.client.Anthropic") as mock_anthropic:
            get_claude_client(config=config)

        mock_anthropic.assert_called_once_with(api_key="sk-ant-test", timeout=30.0, max_retries=2)

    def test_explicit_key_wins(self):
        config = make_settings(ANTHROPIC_API_KEY="sk-ant-env")

        with patch("src.integrations.claude.client.Anthropic") as mock_anthropic:
            get_claude_client("sk-ant-cli", config=config)

        assert mock_anthropic.call_args.kwargs["api_key"] == "sk-ant-cli"

    def test_missing_key(self):
        with pytest.raises(ClaudeNotConfiguredError):
            get_claude_client(config=make_settings())

    def test_bedrock(self):
        config = make_settings(BEDROCK_ENABLED="true", BEDROCK_REGION="eu-west-1")

        with patch("src.integrations.claude.client.AnthropicBedrock") as mock_bedrock:
            get_claude_client(config=config)

        assert mock_bedrock.call_args.kwargs["aws_region"] == "eu-west-1"


class TestGetModelId:
    """Tests for model selection."""

    def test_default(self):
        assert get_model_id(make_settings()) == DEFAULT_MODEL_ID

    def test_bedrock_model(self):
        config = make_settings(BEDROCK_ENABLED="true", BEDROCK_MODEL_ID="anthropic.claude-x")

        assert get_model_id(config) == "anthropic.claude-x"

    def test_override(self):
        config = make_settings(BEDROCK_ENABLED="true", CLAUDE_MODEL="claude-custom")

        assert get_model_id(config) == "claude-custom"
