"""Text generation through the Claude API."""

import logging
from typing import Any, Protocol

from ..errors import GenerationFailure

logger = logging.getLogger(__name__)


class Generator(Protocol):
    """Anything that turns a prompt into text."""

    def generate(self, prompt: str, system: str | None = None) -> str:
        ...


class ClaudeGenerator:
    """Generates text with Claude, raising GenerationFailure on any API error or timeout."""

    def __init__(
        self,
        api_key: str,
        model: str = "claude-sonnet-4-20250514",
        max_tokens: int = 1000,
        timeout: float = 30.0,
        max_retries: int = 2,
    ):
        import anthropic
        self.client = anthropic.Anthropic(api_key=api_key, timeout=timeout, max_retries=max_retries)
        self.model = model
        self.max_tokens = max_tokens

    @classmethod
    def from_config(cls, config: dict[str, Any]) -> "ClaudeGenerator":
        api_key = config.get("claude_api_key")
        if not api_key:
            raise ValueError("Claude API key required. Set ANTHROPIC_API_KEY or claude_api_key in config.")
        gen_cfg = config.get("generation", {})
        return cls(
            api_key,
            model=config.get("claude_model", "claude-sonnet-4-20250514"),
            max_tokens=gen_cfg.get("max_tokens", 1000),
            timeout=gen_cfg.get("timeout", 30.0),
            max_retries=gen_cfg.get("max_retries", 2),
        )

    def generate(self, prompt: str, system: str | None = None) -> str:
        kwargs: dict[str, Any] = {
            "model": self.model,
            "max_tokens": self.max_tokens,
            "messages": [{"role": "user", "content": prompt}],
        }
        if system:
            kwargs["system"] = system
        try:
            response = self.client.messages.create(**kwargs)
        except Exception as e:
            logger.error(f"Generation with {self.model} failed: {e}")
            raise GenerationFailure(str(e)) from e

        text = "".join(block.text for block in response.content if getattr(block, "type", "text") == "text")
        if not text:
            raise GenerationFailure(f"{self.model} returned no text")
        return text
