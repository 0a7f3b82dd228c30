"""Reasoning oracle interface - one async method per decision point.

The scheduler only ever talks to this interface. Backends decide how the
answers are produced (remote LLM, fixtures, mocks); the scheduler never sees
prompt text.

Failure contract:

* ``analyze``, ``decompose``, ``select_task`` and ``generate_tool_input`` are
  structural: an unusable answer raises :class:`OracleResponseError`.
* ``select_tools``, ``evaluate``, ``strategize`` and ``assess`` are advisory:
  an unusable answer degrades to ``[]``, ``0.0``, ``[]`` and ``False``.
* Transport failures raise :class:`OracleUnavailableError` from any method.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Optional, Sequence

from agentflow.models import (
    Adjustment,
    ExecutionRecord,
    GoalAnalysis,
    GoalDefinition,
    Task,
    ToolResult,
    ToolSpec,
)


class ReasoningOracle(ABC):

    @abstractmethod
    async def analyze(self, goal: str, context: dict[str, Any]) -> GoalAnalysis:
        """Restate a goal as success criteria, constraints, outcomes and challenges."""

    @abstractmethod
    async def decompose(self, goal_definition: GoalDefinition) -> list[Task]:
        """Break a goal into tasks, defaults applied for omitted fields."""

    @abstractmethod
    async def select_tools(self, task: Task, catalogue: Sequence[ToolSpec]) -> list[str]:
        """Pick tool ids for a task, in the order they should be used."""

    @abstractmethod
    async def select_task(
        self,
        available: Sequence[Task],
        ledger: Sequence[ExecutionRecord],
        goal_definition: GoalDefinition,
    ) -> Optional[str]:
        """Name the task that should run next."""

    @abstractmethod
    async def generate_tool_input(
        self,
        tool: ToolSpec,
        task: Task,
        context: dict[str, Any],
        previous: Sequence[ToolResult],
    ) -> Any:
        """Produce input matching ``tool.input_schema``."""

    @abstractmethod
    async def evaluate(self, task: Task, results: Sequence[ToolResult]) -> float:
        """Score cumulative progress on a task; callers clamp to [0, 1]."""

    @abstractmethod
    async def strategize(self, recent: Sequence[ExecutionRecord]) -> list[Adjustment]:
        """Suggest checklist adjustments after a run of failures."""

    @abstractmethod
    async def assess(
        self,
        goal_definition: GoalDefinition,
        completed: Sequence[Task],
        completion_rate: float,
    ) -> bool:
        """Decide whether the goal has been achieved."""
