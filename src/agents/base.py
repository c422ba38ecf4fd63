"""Base class for Claude agents, traced with Langfuse."""

import logging
from abc import ABC, abstractmethod
from typing import Any, Generic, TypeVar

from langfuse import get_client, observe
from pydantic import BaseModel, ValidationError

from src.integrations.claude.client import ClaudeClient, get_claude_client, get_model_id

logger = logging.getLogger(__name__)

# Type variable for agent output
T = TypeVar("T", bound=BaseModel)


def extract_json_text(response_text: str) -> str:
    """
    Pull the first JSON object or array out of a model response.

    Handles markdown code fences and trailing prose after the JSON.
    """
    clean_text = response_text.strip()

    # Remove markdown code blocks
    if clean_text.startswith("```"):
        lines = clean_text.split("\n")
        clean_text = "\n".join(lines[1:-1]) if lines[-1].strip() == "```" else "\n".join(lines[1:])
        clean_text = clean_text.strip()

    if not clean_text or clean_text[0] not in "{[":
        return clean_text

    # Find the matching closing bracket, ignoring brackets inside strings
    opening = clean_text[0]
    closing = "}" if opening == "{" else "]"
    depth = 0
    in_string = False
    escaped = False
    for i, char in enumerate(clean_text):
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue

        if char == '"':
            in_string = True
        elif char == opening:
            depth += 1
        elif char == closing:
            depth -= 1
            if depth == 0:
                return clean_text[: i + 1]

    return clean_text


class BaseAgent(ABC, Generic[T]):
    """
    Claude agent with typed input and output.

    Subclasses set `name` and `system_prompt` and implement `_execute`,
    usually as one `_call_claude_json` call. `run` wraps the call in a
    Langfuse trace named after the agent.
    """

    def __init__(
        self,
        claude_api_key: str | None = None,
        model: str | None = None,
        max_tokens: int = 4096,
        temperature: float = 0.3,
        json_repair_attempts: int = 1,
    ):
        """
        Args:
            claude_api_key: Overrides ANTHROPIC_API_KEY. Ignored for Bedrock.
            model: Model id, from settings if None.
            max_tokens: Maximum tokens for the reply.
            temperature: Kept low so selectors and option values are copied exactly.
            json_repair_attempts: Extra calls allowed when a reply is not valid JSON.
        """
        self.client: ClaudeClient = get_claude_client(claude_api_key)
        self.model = model or get_model_id()
        self.max_tokens = max_tokens
        self.temperature = temperature
        self.json_repair_attempts = json_repair_attempts

    @property
    @abstractmethod
    def name(self) -> str:
        """Agent name for tracing and logging."""
        pass

    @property
    @abstractmethod
    def system_prompt(self) -> str:
        pass

    @observe()
    async def run(self, input_data: Any, **kwargs: Any) -> T:
        """Execute the agent inside its own trace."""
        langfuse = get_client()
        langfuse.update_current_trace(
            name=f"{self.name}-execution",
            tags=[self.name],
            metadata={
                "model": self.model,
                "max_tokens": self.max_tokens,
                "temperature": self.temperature,
            },
        )
        langfuse.update_current_span(
            input=input_data.model_dump() if isinstance(input_data, BaseModel) else input_data
        )

        try:
            result = await self._execute(input_data, **kwargs)
        except Exception as e:
            logger.error(f"Agent {self.name} failed: {e}")
            langfuse.update_current_span(level="ERROR", status_message=str(e))
            raise

        langfuse.update_current_span(
            output=result.model_dump() if isinstance(result, BaseModel) else result
        )
        return result

    @abstractmethod
    async def _execute(self, input_data: Any, **kwargs: Any) -> T:
        pass

    @observe(as_type="generation")
    async def _call_claude(
        self,
        prompt: str | list[dict[str, str]],
        system: str | None = None,
        **kwargs: Any,
    ) -> str:
        """
        Send one request and return the concatenated text blocks.

        Args:
            prompt: A user prompt, or a full message list for follow-ups.
            system: Overrides the agent's system prompt.
        """
        messages = [{"role": "user", "content": prompt}] if isinstance(prompt, str) else prompt

        response = self.client.messages.create(
            model=self.model,
            max_tokens=self.max_tokens,
            temperature=self.temperature,
            system=system or self.system_prompt,
            messages=messages,
            **kwargs,
        )

        if response.usage:
            get_client().update_current_generation(
                model=self.model,
                usage_details={
                    "input": response.usage.input_tokens,
                    "output": response.usage.output_tokens,
                },
            )

        return "".join(block.text for block in response.content if block.type == "text")

    @staticmethod
    def _parse_json(response_text: str, output_model: type[BaseModel]) -> BaseModel:
        clean_text = extract_json_text(response_text)

        # Some models answer with a bare array of fields
        if clean_text.startswith("[") and "fields" in output_model.model_fields:
            clean_text = f'{{"fields": {clean_text}}}'

        return output_model.model_validate_json(clean_text)

    async def _call_claude_json(
        self,
        prompt: str,
        output_model: type[BaseModel],
        system: str | None = None,
        **kwargs: Any,
    ) -> BaseModel:
        """
        Call Claude and parse the reply into output_model.

        A reply that does not validate is sent back with the error for up
        to json_repair_attempts more tries.

        Raises:
            ValidationError: The last reply still did not validate.
        """
        json_prompt = f"""{prompt}

IMPORTANT: Return your response as valid JSON that matches this schema:
{output_model.model_json_schema()}

Return ONLY the JSON object, no markdown code blocks or additional text."""

        messages = [{"role": "user", "content": json_prompt}]
        attempt = 0
        while True:
            response_text = await self._call_claude(messages, system=system, **kwargs)
            try:
                return self._parse_json(response_text, output_model)
            except ValidationError as e:
                if attempt >= self.json_repair_attempts:
                    raise
                attempt += 1
                logger.warning(f"Agent {self.name} returned invalid JSON, asking for a fix: {e}")
                messages = messages + [
                    {"role": "assistant", "content": response_text},
                    {
                        "role": "user",
                        "content": f"That reply was not valid JSON for the schema:\n{e}\n\n"
                        "Return ONLY the corrected JSON.",
                    },
                ]
