"""Test configuration and fixtures."""

from __future__ import annotations

import pytest

from agentflow.tools.registry import ToolRegistry
from tests.helpers import ScriptedTool


@pytest.fixture
def search_tool() -> ScriptedTool:
    return ScriptedTool("search", output={"results": ["a"], "confidence": 0.7})


@pytest.fixture
def registry(search_tool: ScriptedTool) -> ToolRegistry:
    reg = ToolRegistry()
    reg.register(search_tool)
    return reg


@pytest.fixture
def isolated_env(monkeypatch: pytest.MonkeyPatch, tmp_path):
    """Point config lookups at a temp dir and clear provider keys."""
    for var in (
        "LLM_PROVIDER", "LLM_MODEL", "LLM_BASE_URL", "LLM_API_KEY",
        "ANTHROPIC_API_KEY", "OPENAI_API_KEY", "GROQ_API_KEY", "LOG_LEVEL",
    ):
        monkeypatch.delenv(var, raising=False)
    config_path = tmp_path / "agentflow.json"
    monkeypatch.setenv("AGENTFLOW_CONFIG", str(config_path))
    return config_path
