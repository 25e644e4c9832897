"""Advisory model access through LangChain chat models."""

import asyncio
import logging
import re
from dataclasses import dataclass
from typing import Optional

from langchain_core.language_models import BaseChatModel
from langchain_core.messages import HumanMessage, SystemMessage

from .config import LLMConfig

logger = logging.getLogger(__name__)


class AdvisoryError(Exception):
    """Base class for advisory model failures. Always recoverable by the caller."""


class AdvisoryTimeoutError(AdvisoryError):
    """The advisory call did not finish within its timeout."""


class AdvisoryResponseError(AdvisoryError):
    """The provider rejected the call or returned an unusable response."""


@dataclass
class AdvisoryMessage:
    """A user turn, optionally carrying an inline image."""

    text: str
    image_base64: Optional[str] = None
    image_mime: str = "image/jpeg"

    def to_langchain(self) -> HumanMessage:
        if self.image_base64 is None:
            return HumanMessage(content=self.text)
        return HumanMessage(
            content=[
                {
                    "type": "image_url",
                    "image_url": {"url": f"data:{self.image_mime};base64,{self.image_base64}"},
                },
                {"type": "text", "text": self.text},
            ]
        )


def sanitize_text(text: str) -> str:
    """Strip characters that tend to break provider calls.

    Removes object-replacement characters, zero-width characters and control
    characters other than newlines and tabs.
    """
    text = text.replace("\ufffc", "")
    text = re.sub(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f-\x9f]", "", text)
    for char in ("\u200b", "\u200c", "\u200d", "\ufeff"):
        text = text.replace(char, "")
    return text.strip()


class AdvisoryModel:
    """Single-shot completion client for the advisory model."""

    def __init__(self, config: LLMConfig, llm: BaseChatModel | None = None) -> None:
        self.config = config
        self.llm = llm if llm is not None else self._create_llm()

    def _create_llm(self) -> BaseChatModel:
        """Create the appropriate LLM based on config."""
        if self.config.api_key is None:
            raise ValueError("LLM api_key is required when the advisory model is enabled")

        if self.config.provider == "anthropic":
            from langchain_anthropic import ChatAnthropic

            return ChatAnthropic(
                model=self.config.model,
                api_key=self.config.api_key.get_secret_value(),
                max_tokens=self.config.max_tokens,
                temperature=self.config.temperature,
                max_retries=0,
            )
        elif self.config.provider == "openai":
            from langchain_openai import ChatOpenAI

            return ChatOpenAI(
                model=self.config.model,
                api_key=self.config.api_key.get_secret_value(),
                max_tokens=self.config.max_tokens,
                temperature=self.config.temperature,
                max_retries=0,
            )
        else:
            raise ValueError(f"Unsupported LLM provider: {self.config.provider}")

    async def complete(self, system_prompt: str, messages: list[AdvisoryMessage]) -> str:
        """Send one completion request and return the response text.

        Raises:
            AdvisoryTimeoutError: If the call exceeds the configured timeout.
            AdvisoryResponseError: If the provider fails or returns no text.
        """
        lc_messages = [SystemMessage(content=system_prompt)]
        lc_messages.extend(message.to_langchain() for message in messages)

        try:
            response = await asyncio.wait_for(
                self.llm.ainvoke(lc_messages), timeout=self.config.timeout
            )
        except asyncio.TimeoutError as e:
            raise AdvisoryTimeoutError(
                f"Advisory call timed out after {self.config.timeout}s"
            ) from e
        except Exception as e:
            raise AdvisoryResponseError(f"Advisory call failed: {e}") from e

        text = self._response_text(response.content)
        if not text:
            raise AdvisoryResponseError("Advisory call returned no text")

        logger.debug("Advisory response: %s", text[:200])
        return text

    @staticmethod
    def _response_text(content) -> str:
        if isinstance(content, str):
            return content.strip()
        parts = []
        for block in content or []:
            if isinstance(block, str):
                parts.append(block)
            elif isinstance(block, dict) and block.get("type") == "text":
                parts.append(block.get("text", ""))
        return "".join(parts).strip()


def create_advisory_model(config: LLMConfig) -> AdvisoryModel | None:
    """Build the advisory model, or None for rule-only mode."""
    if not config.enabled:
        logger.info("Advisory model disabled, running in rule-only mode")
        return None
    if config.api_key is None:
        logger.warning("LLM api_key not set, falling back to rule-only mode")
        return None
    return AdvisoryModel(config)
