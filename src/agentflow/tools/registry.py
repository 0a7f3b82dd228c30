"""Tool registry - the catalogue of capability tools available to a run."""

from __future__ import annotations

import logging
from typing import Optional

from agentflow.config import AgentFlowConfig
from agentflow.models import ToolSpec
from agentflow.tools.base import BaseTool

logger = logging.getLogger(__name__)


class ToolRegistry:
    def __init__(self) -> None:
        self._tools: dict[str, BaseTool] = {}

    def __len__(self) -> int:
        return len(self._tools)

    def register(self, tool: BaseTool) -> None:
        if not tool.id:
            raise ValueError(f"Tool {tool!r} has no id")
        if tool.id in self._tools:
            logger.warning(f"Replacing registered tool: {tool.id}")
        self._tools[tool.id] = tool
        logger.debug(f"Registered tool: {tool.id}")

    def get(self, tool_id: str) -> Optional[BaseTool]:
        return self._tools.get(tool_id)

    def list_tools(self) -> list[BaseTool]:
        return list(self._tools.values())

    def catalogue(self) -> list[ToolSpec]:
        return [t.spec() for t in self._tools.values()]

    def find_by_capability(self, capability: str) -> list[BaseTool]:
        return [t for t in self._tools.values() if capability in t.capabilities]

    def get_tool_descriptions(self) -> str:
        lines = []
        for t in self._tools.values():
            caps = ", ".join(t.capabilities)
            lines.append(f"- {t.id}: {t.description} [{caps}]")
        return "\n".join(lines)

    @classmethod
    def with_default_tools(cls, config: Optional[AgentFlowConfig] = None) -> ToolRegistry:
        from agentflow.tools.code_executor import CodeExecutorTool
        from agentflow.tools.data_analysis import DataAnalysisTool
        from agentflow.tools.file_system import FileSystemTool
        from agentflow.tools.http_request import HTTPRequestTool
        from agentflow.tools.web_search import WebSearchTool

        config = config or AgentFlowConfig.from_env()
        registry = cls()
        registry.register(WebSearchTool(timeout=config.tools.http_timeout_seconds))
        registry.register(CodeExecutorTool(
            workspace=config.tools.workspace,
            default_timeout=config.tools.code_timeout_seconds,
        ))
        registry.register(FileSystemTool(root=config.tools.workspace))
        registry.register(HTTPRequestTool(timeout=config.tools.http_timeout_seconds))
        registry.register(DataAnalysisTool())
        return registry
