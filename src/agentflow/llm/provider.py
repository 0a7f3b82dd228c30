"""LLM provider factory - supports Anthropic, OpenAI, Groq, Ollama."""

from __future__ import annotations

import logging
import os

import httpx

from agentflow.config import AgentFlowConfig
from agentflow.errors import ConfigError

logger = logging.getLogger(__name__)


def _is_ollama_available(base_url: str = "http://localhost:11434") -> bool:
    try:
        httpx.get(f"{base_url}/api/tags", timeout=2)
        return True
    except httpx.HTTPError:
        return False


def _with_llm(config: AgentFlowConfig, **changes: str) -> AgentFlowConfig:
    """Copy ``config`` with LLM settings replaced, leaving the caller's untouched."""
    return config.model_copy(update={"llm": config.llm.model_copy(update=changes)})


def create_llm(config: AgentFlowConfig):
    """Create a LangChain chat model based on configuration."""
    provider = config.llm.provider.lower()
    model = config.llm.model
    temperature = config.llm.temperature
    max_tokens = config.llm.max_tokens

    if provider == "anthropic":
        from langchain_anthropic import ChatAnthropic
        api_key = config.llm.api_key or os.getenv("ANTHROPIC_API_KEY")
        if not api_key:
            raise ConfigError("Anthropic API key not found. Set ANTHROPIC_API_KEY.")
        logger.info(f"Using Anthropic: {model}")
        return ChatAnthropic(
            model=model,
            api_key=api_key,
            temperature=temperature,
            max_tokens=max_tokens,
        )

    elif provider == "openai":
        from langchain_openai import ChatOpenAI
        api_key = config.llm.api_key or os.getenv("OPENAI_API_KEY")
        if not api_key:
            raise ConfigError("OPENAI_API_KEY not set")
        logger.info(f"Using OpenAI: {model}")
        return ChatOpenAI(
            model=model,
            api_key=api_key,
            base_url=config.llm.base_url,
            temperature=temperature,
            max_tokens=max_tokens,
        )

    elif provider == "groq":
        from langchain_groq import ChatGroq
        api_key = os.getenv("GROQ_API_KEY")
        if not api_key:
            raise ConfigError("GROQ_API_KEY not set")
        logger.info(f"Using Groq: {model}")
        return ChatGroq(
            model=model,
            api_key=api_key,
            temperature=temperature,
            max_tokens=max_tokens,
        )

    elif provider == "ollama":
        from langchain_ollama import ChatOllama
        base_url = config.llm.base_url or "http://localhost:11434"
        if not _is_ollama_available(base_url):
            raise ConfigError(f"Ollama not available at {base_url}")
        logger.info(f"Using Ollama: {model}")
        return ChatOllama(
            model=model,
            base_url=base_url,
            temperature=temperature,
        )

    elif provider == "auto":
        # Anthropic first (the default model is Claude), then Groq, then Ollama
        if config.llm.api_key or os.getenv("ANTHROPIC_API_KEY"):
            return create_llm(_with_llm(config, provider="anthropic"))
        if os.getenv("GROQ_API_KEY"):
            return create_llm(_with_llm(config, provider="groq", model="llama-3.3-70b-versatile"))
        if _is_ollama_available():
            return create_llm(_with_llm(config, provider="ollama"))
        raise ConfigError("No LLM provider available. Set ANTHROPIC_API_KEY, GROQ_API_KEY, or run Ollama.")

    else:
        raise ConfigError(f"Unknown LLM provider: {provider}")
