"""Task executor - runs one task through its selected tools.

Single-mode tasks invoke their primary tool once. Iterative tasks cycle
through every selected tool, asking the oracle to score cumulative progress
after each call, until the task's success threshold is met or its iteration
budget runs out.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Awaitable, Optional, TypeVar

from agentflow.errors import OracleUnavailableError
from agentflow.memory.history import ExecutionHistory
from agentflow.models import (
    Task,
    TaskResult,
    ToolInvocation,
    ToolResult,
    clamp_confidence,
)
from agentflow.oracle.base import ReasoningOracle
from agentflow.tools.base import BaseTool
from agentflow.tools.registry import ToolRegistry

logger = logging.getLogger(__name__)

T = TypeVar("T")

NO_TOOL_ERROR = "No suitable tools found for this task"


async def call_oracle(operation: str, awaitable: Awaitable[T], timeout: Optional[float]) -> T:
    """Await an oracle call, turning a timeout into OracleUnavailableError."""
    if not timeout:
        return await awaitable
    try:
        return await asyncio.wait_for(awaitable, timeout)
    except asyncio.TimeoutError as e:
        raise OracleUnavailableError(operation, f"no answer within {timeout}s") from e


class TaskExecutor:
    def __init__(
        self,
        oracle: ReasoningOracle,
        tool_registry: ToolRegistry,
        tool_timeout: Optional[float] = None,
        oracle_timeout: Optional[float] = None,
    ) -> None:
        self._oracle = oracle
        self._tools = tool_registry
        self._tool_timeout = tool_timeout
        self._oracle_timeout = oracle_timeout

    async def execute(
        self,
        task: Task,
        context: dict[str, Any],
        history: Optional[ExecutionHistory] = None,
    ) -> TaskResult:
        start = time.perf_counter()
        tools = await self.select_tools(task)
        logger.info(
            f"Task {task.id}: {len(tools)} tool(s) selected "
            f"({'iterative' if task.requires_iterative_execution else 'single'})"
        )

        if task.requires_iterative_execution:
            result = await self._execute_iterative(task, tools, context, history)
        else:
            result = await self._execute_single(task, tools, context, history)

        result.duration = time.perf_counter() - start
        return result

    async def select_tools(self, task: Task) -> list[BaseTool]:
        """Ask the oracle for tools, dropping ids the registry does not know."""
        selected = await call_oracle(
            "select_tools",
            self._oracle.select_tools(task, self._tools.catalogue()),
            self._oracle_timeout,
        )
        tools = []
        for tool_id in selected:
            tool = self._tools.get(tool_id)
            if tool is None:
                logger.debug(f"Task {task.id}: oracle picked unknown tool {tool_id!r}")
                continue
            tools.append(tool)
        return tools

    async def _execute_single(
        self,
        task: Task,
        tools: list[BaseTool],
        context: dict[str, Any],
        history: Optional[ExecutionHistory],
    ) -> TaskResult:
        if not tools:
            return TaskResult(
                success=False,
                confidence=0.0,
                iterations=1,
                results=[],
                error=NO_TOOL_ERROR,
            )

        result = await self.call_tool(tools[0], task, context, [], history)
        return TaskResult(
            success=result.success,
            confidence=result.confidence,
            iterations=1,
            results=[result],
            error=result.error,
        )

    async def _execute_iterative(
        self,
        task: Task,
        tools: list[BaseTool],
        context: dict[str, Any],
        history: Optional[ExecutionHistory],
    ) -> TaskResult:
        results: list[ToolResult] = []
        confidence = 0.0
        iterations = 0
        threshold = task.success_threshold

        while confidence < threshold and iterations < task.max_iterations:
            for tool in tools:
                results.append(await self.call_tool(tool, task, context, results, history))
                confidence = await self.evaluate(task, results)
                if confidence >= threshold:
                    break
            iterations += 1
            logger.debug(f"Task {task.id}: round {iterations} confidence {confidence:.2f}")

        success = confidence >= threshold
        error = None
        if not success:
            error = NO_TOOL_ERROR if not tools else (
                f"Confidence {confidence:.2f} below threshold {threshold:.2f} "
                f"after {iterations} iteration(s)"
            )
        return TaskResult(
            success=success,
            confidence=confidence,
            iterations=iterations,
            results=results,
            error=error,
        )

    async def evaluate(self, task: Task, results: list[ToolResult]) -> float:
        raw = await call_oracle(
            "evaluate",
            self._oracle.evaluate(task, list(results)),
            self._oracle_timeout,
        )
        return clamp_confidence(raw)

    async def call_tool(
        self,
        tool: BaseTool,
        task: Task,
        context: dict[str, Any],
        previous: list[ToolResult],
        history: Optional[ExecutionHistory] = None,
    ) -> ToolResult:
        """Generate input, invoke the tool, and record the call.

        Tool failures come back as a zero-confidence result; oracle failures
        while generating the input propagate.
        """
        tool_input = await call_oracle(
            "generate_tool_input",
            self._oracle.generate_tool_input(tool.spec(), task, context, list(previous)),
            self._oracle_timeout,
        )
        result = await tool.timed_execute(tool_input, timeout=self._tool_timeout)
        if not result.success:
            logger.warning(f"Tool {tool.id} failed for task {task.id}: {result.error}")

        if history is not None:
            history.record(ToolInvocation(
                tool=result.tool,
                task_id=task.id,
                input=tool_input,
                output=result.output,
                success=result.success,
                error=result.error,
                duration=result.duration,
            ))
        return result
