"""AgentFlow configuration - Pydantic-based with environment variable and file support."""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any, Literal, Optional, Union

from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError

from agentflow.errors import ConfigError

load_dotenv()

logger = logging.getLogger(__name__)


def default_config_path() -> Path:
    return Path(os.getenv("AGENTFLOW_CONFIG", str(Path.home() / ".agentflow.json")))


class LLMConfig(BaseModel):
    provider: str = Field(default_factory=lambda: os.getenv("LLM_PROVIDER", "anthropic"))
    model: str = Field(default_factory=lambda: os.getenv("LLM_MODEL", "claude-3-5-sonnet-20241022"))
    temperature: float = 0.2
    max_tokens: int = 4000
    base_url: Optional[str] = Field(default_factory=lambda: os.getenv("LLM_BASE_URL"))
    api_key: Optional[str] = Field(
        default_factory=lambda: os.getenv("LLM_API_KEY") or os.getenv("ANTHROPIC_API_KEY")
    )


class AgentConfig(BaseModel):
    max_iterations: int = Field(default=100, ge=1)
    confidence_threshold: float = Field(default=0.8, ge=0.0, le=1.0)
    parallel_execution: bool = True
    max_concurrency: int = Field(default=3, ge=1)
    batch_size: int = Field(default=3, ge=1)
    reflection_window: int = Field(default=5, ge=1)
    failure_rate_threshold: float = Field(default=0.6, ge=0.0, le=1.0)
    task_selection: Literal["insertion", "oracle"] = "insertion"
    history_limit: Optional[int] = 1000  # None keeps every tool invocation
    tool_timeout_seconds: Optional[float] = 300
    oracle_timeout_seconds: Optional[float] = 120

    @property
    def effective_concurrency(self) -> int:
        return self.max_concurrency if self.parallel_execution else 1


class ToolsConfig(BaseModel):
    workspace: str = Field(default_factory=lambda: os.getenv("AGENTFLOW_WORKSPACE", "."))
    http_timeout_seconds: float = 30.0
    code_timeout_seconds: float = 30.0


class AgentFlowConfig(BaseModel):
    llm: LLMConfig = Field(default_factory=LLMConfig)
    agent: AgentConfig = Field(default_factory=AgentConfig)
    tools: ToolsConfig = Field(default_factory=ToolsConfig)
    log_level: str = Field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO"))

    @classmethod
    def from_env(cls) -> AgentFlowConfig:
        return cls()

    @classmethod
    def load(cls, path: Union[str, Path, None] = None) -> AgentFlowConfig:
        """Load the config file over the environment defaults.

        A missing file yields defaults; an unreadable one is logged and ignored.
        """
        path = Path(path) if path else default_config_path()
        config = cls.from_env()
        if not path.exists():
            return config
        try:
            user_data = json.loads(path.read_text())
            if not isinstance(user_data, dict):
                raise ValueError("top-level value must be an object")
            merged = _deep_merge(config.model_dump(), user_data)
            return cls.model_validate(merged)
        except (OSError, ValueError, ValidationError) as e:
            logger.warning(f"Failed to parse config file {path}, using defaults: {e}")
            return config

    def save(self, path: Union[str, Path, None] = None) -> Path:
        path = Path(path) if path else default_config_path()
        data = self.model_dump(mode="json")
        # Keys belong in the environment, not on disk.
        data["llm"].pop("api_key", None)
        try:
            path.write_text(json.dumps(data, indent=2))
        except OSError as e:
            raise ConfigError(f"Failed to save config: {e}") from e
        return path

    def set_value(self, key: str, raw_value: str) -> AgentFlowConfig:
        """Return a copy with the dotted ``key`` set to ``raw_value``.

        The value is parsed as JSON when possible, otherwise kept as a string.
        """
        try:
            value: Any = json.loads(raw_value)
        except json.JSONDecodeError:
            value = raw_value

        data = self.model_dump()
        parts = key.split(".")
        current = data
        for part in parts[:-1]:
            if not isinstance(current.get(part), dict):
                raise ConfigError(f"Unknown configuration section: {part}")
            current = current[part]
        if parts[-1] not in current:
            raise ConfigError(f"Unknown configuration key: {key}")
        current[parts[-1]] = value

        try:
            return type(self).model_validate(data)
        except ValidationError as e:
            raise ConfigError(f"Invalid value for {key}: {e.errors()[0]['msg']}") from e


def _deep_merge(base: dict, override: dict) -> dict:
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged
