"""Centralized LLM configuration for the CardStack assistant.

This module provides environment variable-based configuration for the chat
model and a factory that creates the configured LangChain chat client.
"""

import os
from dataclasses import dataclass
from functools import lru_cache

from dotenv import load_dotenv
from langchain_openai import ChatOpenAI

load_dotenv()


DEFAULT_CHAT_MODEL = "gpt-4o-mini"
DEFAULT_MAX_TOOL_ITERATIONS = 5


@dataclass(frozen=True)
class LLMConfig:
    """Configuration for the assistant model.

    Attributes:
        chat_model: Model name used for chat completions.
        api_key: OpenAI API key, if configured.
        temperature: Sampling temperature.
        max_tool_iterations: Ceiling on model invocations per user message.
    """

    chat_model: str
    api_key: str | None
    temperature: float = 0.0
    max_tool_iterations: int = DEFAULT_MAX_TOOL_ITERATIONS


@lru_cache(maxsize=1)
def get_llm_config() -> LLMConfig:
    """Load LLM configuration from environment variables.

    Returns:
        LLMConfig with model name, API key and loop limits.
    """
    return LLMConfig(
        chat_model=os.getenv("CHAT_MODEL", DEFAULT_CHAT_MODEL),
        api_key=os.getenv("OPENAI_API_KEY"),
        temperature=float(os.getenv("CHAT_TEMPERATURE", "0.0")),
        # The loop always makes at least one model call
        max_tool_iterations=max(
            1, int(os.getenv("MAX_TOOL_ITERATIONS", str(DEFAULT_MAX_TOOL_ITERATIONS)))
        ),
    )


def get_chat_llm() -> ChatOpenAI:
    """Create a ChatOpenAI client configured for the chat assistant.

    Returns:
        Configured ChatOpenAI instance.

    Raises:
        ValueError: If OPENAI_API_KEY is not set.
    """
    config = get_llm_config()
    if not config.api_key:
        raise ValueError("OPENAI_API_KEY environment variable is required")

    return ChatOpenAI(
        model=config.chat_model,
        temperature=config.temperature,
        api_key=config.api_key,
    )


def clear_config_cache() -> None:
    """Clear the cached LLM configuration.

    Useful for testing when environment variables change.
    """
    get_llm_config.cache_clear()
