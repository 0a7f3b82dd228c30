"""Base tool framework for AgentFlow capability tools."""

from __future__ import annotations

import asyncio
import time
from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Optional

from agentflow.errors import ToolError
from agentflow.models import ToolResult, ToolSpec, clamp_confidence


class BaseTool(ABC):
    id: str = ""
    name: str = ""
    description: str = ""
    capabilities: list[str] = []
    input_schema: dict = {}
    output_schema: dict = {}

    @abstractmethod
    async def execute(self, payload: Any) -> Any:
        """Perform the work. Raise on failure; return JSON-like output."""
        ...

    def spec(self) -> ToolSpec:
        return ToolSpec(
            id=self.id,
            name=self.name or self.id,
            description=self.description,
            capabilities=list(self.capabilities),
            input_schema=dict(self.input_schema),
            output_schema=dict(self.output_schema),
        )

    def validate_input(self, payload: Any) -> Optional[str]:
        """Check required top-level keys declared in ``input_schema``."""
        required = self.input_schema.get("required", [])
        if not required:
            return None
        if not isinstance(payload, dict):
            return f"Expected an object input, got {type(payload).__name__}"
        for param in required:
            if param not in payload:
                return f"Missing required parameter: {param}"
        return None

    async def timed_execute(self, payload: Any, timeout: Optional[float] = None) -> ToolResult:
        """Execute with timing; failures become a zero-confidence result."""
        start = time.perf_counter()
        try:
            error = self.validate_input(payload)
            if error:
                raise ToolError(error)
            if timeout:
                output = await asyncio.wait_for(self.execute(payload), timeout)
            else:
                output = await self.execute(payload)
        except asyncio.TimeoutError:
            return ToolResult(
                success=False,
                tool=self.name or self.id,
                duration=time.perf_counter() - start,
                confidence=0.0,
                error=f"Tool timed out after {timeout}s",
            )
        except Exception as e:
            return ToolResult(
                success=False,
                tool=self.name or self.id,
                duration=time.perf_counter() - start,
                confidence=0.0,
                error=str(e) or type(e).__name__,
            )

        reported = output.get("confidence") if isinstance(output, dict) else None
        return ToolResult(
            success=True,
            tool=self.name or self.id,
            output=output,
            duration=time.perf_counter() - start,
            confidence=1.0 if reported is None else clamp_confidence(reported),
        )


class FunctionTool(BaseTool):
    """Adapt a plain async callable into a tool."""

    def __init__(
        self,
        id: str,
        func: Callable[[Any], Awaitable[Any]],
        name: str = "",
        description: str = "",
        capabilities: Optional[list[str]] = None,
        input_schema: Optional[dict] = None,
        output_schema: Optional[dict] = None,
    ) -> None:
        self.id = id
        self.name = name or id
        self.description = description
        self.capabilities = list(capabilities or [])
        self.input_schema = dict(input_schema or {})
        self.output_schema = dict(output_schema or {})
        self._func = func

    async def execute(self, payload: Any) -> Any:
        return await self._func(payload)
