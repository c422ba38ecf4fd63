"""Claude client factory: direct Anthropic API or AWS Bedrock."""

import logging
from typing import Union

from anthropic import Anthropic, AnthropicBedrock

from src.config import Settings, settings

logger = logging.getLogger(__name__)

ClaudeClient = Union[Anthropic, AnthropicBedrock]

DEFAULT_MODEL_ID = "claude-sonnet-4-20250514"


class ClaudeNotConfiguredError(ValueError):
    """No API key and Bedrock disabled."""


def get_claude_client(api_key: str | None = None, config: Settings | None = None) -> ClaudeClient:
    """
    Build a Claude client for form analysis.

    Args:
        api_key: Overrides ANTHROPIC_API_KEY. Ignored when Bedrock is enabled.
        config: Settings to read, the process settings by default.

    Raises:
        ClaudeNotConfiguredError: No API key and Bedrock is not enabled.
    """
    config = config or settings

    if config.bedrock_enabled:
        logger.debug(f"Using AWS Bedrock in {config.bedrock_region}")
        # Credentials come from the AWS environment or ~/.aws/credentials
        return AnthropicBedrock(
            aws_region=config.bedrock_region,
            timeout=config.claude_timeout,
            max_retries=config.claude_max_retries,
        )

    key = api_key or config.anthropic_api_key
    if not key:
        raise ClaudeNotConfiguredError(
            "Set ANTHROPIC_API_KEY, pass --api-key, or enable BEDROCK_ENABLED=true."
        )
    return Anthropic(
        api_key=key,
        timeout=config.claude_timeout,
        max_retries=config.claude_max_retries,
    )


def get_model_id(config: Settings | None = None) -> str:
    """Model id for the configured backend. CLAUDE_MODEL wins when set."""
    config = config or settings
    if config.claude_model:
        return config.claude_model
    if config.bedrock_enabled:
        return config.bedrock_model_id
    return DEFAULT_MODEL_ID
