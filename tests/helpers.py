"""Shared test helpers: task builders, a scripted oracle and scripted tools."""

from __future__ import annotations

from collections import Counter
from typing import Any, Callable, Optional, Sequence, Union

from agentflow.models import (
    Adjustment,
    ExecutionRecord,
    GoalAnalysis,
    GoalDefinition,
    Task,
    ToolResult,
    ToolSpec,
)
from agentflow.oracle.base import ReasoningOracle
from agentflow.tools.base import BaseTool


def make_task(task_id: str, *deps: str, **fields: Any) -> Task:
    """Create a Task with a readable default name."""
    fields.setdefault("name", f"Task {task_id}")
    return Task(id=task_id, dependencies=list(deps), **fields)


def make_goal(goal: str = "Ship the thing") -> GoalDefinition:
    return GoalDefinition(original_goal=goal, success_criteria=["it ships"])


class ScriptedOracle(ReasoningOracle):
    """Deterministic oracle driven by canned answers.

    ``tools`` may be a list of tool ids or a callable ``task -> ids``;
    ``confidences`` and ``assessments`` are consumed front to back and fall
    back to 0.0 / False when exhausted.
    """

    def __init__(
        self,
        tasks: Sequence[Task] = (),
        tools: Union[Sequence[str], Callable[[Task], list[str]]] = (),
        confidences: Sequence[float] = (),
        assessments: Sequence[bool] = (),
        adjustments: Sequence[Adjustment] = (),
        next_task: Optional[str] = None,
    ) -> None:
        self.tasks = list(tasks)
        self.tools = tools
        self.confidences = list(confidences)
        self.assessments = list(assessments)
        self.adjustments = list(adjustments)
        self.next_task = next_task
        self.calls: Counter[str] = Counter()
        self.strategize_inputs: list[list[ExecutionRecord]] = []
        self.tool_inputs: list[tuple[str, str]] = []
        self.evaluated: list[int] = []

    async def analyze(self, goal: str, context: dict[str, Any]) -> GoalAnalysis:
        self.calls["analyze"] += 1
        return GoalAnalysis(success_criteria=[f"{goal} is done"])

    async def decompose(self, goal_definition: GoalDefinition) -> list[Task]:
        self.calls["decompose"] += 1
        return [t.model_copy(deep=True) for t in self.tasks]

    async def select_tools(self, task: Task, catalogue: Sequence[ToolSpec]) -> list[str]:
        self.calls["select_tools"] += 1
        if callable(self.tools):
            return list(self.tools(task))
        return list(self.tools)

    async def select_task(
        self,
        available: Sequence[Task],
        ledger: Sequence[ExecutionRecord],
        goal_definition: GoalDefinition,
    ) -> Optional[str]:
        self.calls["select_task"] += 1
        return self.next_task

    async def generate_tool_input(
        self,
        tool: ToolSpec,
        task: Task,
        context: dict[str, Any],
        previous: Sequence[ToolResult],
    ) -> Any:
        self.calls["generate_tool_input"] += 1
        self.tool_inputs.append((tool.id, task.id))
        return {"task": task.id, "previous": len(previous)}

    async def evaluate(self, task: Task, results: Sequence[ToolResult]) -> float:
        self.calls["evaluate"] += 1
        self.evaluated.append(len(results))
        return self.confidences.pop(0) if self.confidences else 0.0

    async def strategize(self, recent: Sequence[ExecutionRecord]) -> list[Adjustment]:
        self.calls["strategize"] += 1
        self.strategize_inputs.append(list(recent))
        return list(self.adjustments)

    async def assess(
        self,
        goal_definition: GoalDefinition,
        completed: Sequence[Task],
        completion_rate: float,
    ) -> bool:
        self.calls["assess"] += 1
        return self.assessments.pop(0) if self.assessments else False


class ScriptedTool(BaseTool):
    """Tool returning canned outputs, or raising when ``fail_for`` matches the task."""

    def __init__(
        self,
        tool_id: str,
        output: Any = None,
        fail_for: Sequence[str] = (),
        capabilities: Sequence[str] = ("test",),
    ) -> None:
        self.id = tool_id
        self.name = tool_id
        self.description = f"Scripted tool {tool_id}"
        self.capabilities = list(capabilities)
        self.input_schema = {"type": "object", "properties": {"task": {"type": "string"}}}
        self._output = output if output is not None else {"ok": True}
        self._fail_for = set(fail_for)
        self.calls: list[Any] = []

    async def execute(self, payload: Any) -> Any:
        self.calls.append(payload)
        if isinstance(payload, dict) and payload.get("task") in self._fail_for:
            raise RuntimeError(f"{self.id} exploded on {payload['task']}")
        return self._output
