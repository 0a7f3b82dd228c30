"""Adaptive controller - the goal-execution loop.

One run:

1. ANALYZE the goal into a GoalDefinition and DECOMPOSE it into a Checklist.
2. Each iteration: ASSESS the goal, pull a batch of available tasks, run it
   through the coordinator, record results in submission order, then REFLECT
   on the recent ledger and apply oracle adjustments on sustained failure.

Only this module writes the checklist, and only between batches.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Optional, Union

from agentflow.checklist import Checklist
from agentflow.config import AgentConfig
from agentflow.errors import OracleError, RunAbortedError
from agentflow.memory.history import ExecutionHistory, HistorySink
from agentflow.models import (
    ExecutionRecord,
    ExecutionResult,
    GoalDefinition,
    RunStatus,
    Task,
    TaskResult,
)
from agentflow.oracle.base import ReasoningOracle
from agentflow.orchestrator.coordinator import ConcurrencyCoordinator
from agentflow.orchestrator.executor import TaskExecutor, call_oracle
from agentflow.tools.registry import ToolRegistry

logger = logging.getLogger(__name__)

EmitFn = Callable[..., Any]


class Orchestrator:
    def __init__(
        self,
        oracle: ReasoningOracle,
        tool_registry: Optional[ToolRegistry] = None,
        config: Optional[AgentConfig] = None,
        emit: Optional[EmitFn] = None,
        history_sink: Optional[HistorySink] = None,
    ) -> None:
        self.config = config or AgentConfig()
        self.oracle = oracle
        self.tool_registry = tool_registry if tool_registry is not None else ToolRegistry()
        self.coordinator = ConcurrencyCoordinator(self.config.effective_concurrency)
        self.executor = TaskExecutor(
            oracle,
            self.tool_registry,
            tool_timeout=self.config.tool_timeout_seconds,
            oracle_timeout=self.config.oracle_timeout_seconds,
        )
        self._emit = emit or (lambda *a, **kw: None)
        self._history_sink = history_sink
        self.history = ExecutionHistory(self.config.history_limit, history_sink)
        self.checklist: Optional[Checklist] = None

    def set_emit(self, emit: EmitFn) -> None:
        self._emit = emit

    async def _oracle(self, operation: str, awaitable):
        return await call_oracle(operation, awaitable, self.config.oracle_timeout_seconds)

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------

    async def achieve_goal(self, goal: str, context: Optional[dict[str, Any]] = None) -> ExecutionResult:
        """Run the goal to a terminal state or the iteration cap.

        Raises RunAbortedError (carrying the partial result) on any failure
        that is not absorbed as a task failure.
        """
        context = context or {}
        execution = ExecutionResult(goal=goal)
        self.history = ExecutionHistory(self.config.history_limit, self._history_sink)
        self.checklist = None
        logger.info(f"Goal: {goal}")

        try:
            goal_definition = await self.define_goal(goal, context)
            self._emit("goal_defined", data=goal_definition)

            checklist = await self.create_checklist(goal_definition)
            self.checklist = checklist
            self._emit("checklist_created", data=checklist.all_tasks())

            while execution.iterations < self.config.max_iterations:
                status = await self._run_iteration(checklist, execution, context)
                if status is not None:
                    execution.status = status
                    break
                execution.iterations += 1
                progress = checklist.progress_summary()
                logger.info(
                    f"Progress: {progress.completed}/{progress.total} tasks completed "
                    f"({progress.completion_rate:.0%})"
                )
            else:
                logger.warning(f"Max iterations ({self.config.max_iterations}) reached")

        except Exception as e:
            logger.error(f"Goal execution failed: {e}", exc_info=True)
            execution.status = RunStatus.FAILED
            self._finalize(execution)
            self._emit("error", message=str(e), data=execution)
            raise RunAbortedError(f"Goal execution failed: {e}", result=execution) from e

        self._finalize(execution)
        self._emit("completed", data=execution)
        return execution

    def _finalize(self, execution: ExecutionResult) -> None:
        execution.finish()
        if self.checklist is not None:
            execution.tasks = [t.model_copy(deep=True) for t in self.checklist.all_tasks()]
            execution.summary = self.checklist.progress_summary()

    # ------------------------------------------------------------------
    # Setup
    # ------------------------------------------------------------------

    async def define_goal(self, goal: str, context: dict[str, Any]) -> GoalDefinition:
        analysis = await self._oracle("analyze", self.oracle.analyze(goal, context))
        return GoalDefinition(original_goal=goal, **analysis.model_dump())

    async def create_checklist(self, goal_definition: GoalDefinition) -> Checklist:
        tasks = await self._oracle("decompose", self.oracle.decompose(goal_definition))
        checklist = Checklist(tasks, goal_definition)
        logger.info(f"Checklist created with {len(checklist)} task(s)")
        return checklist

    # ------------------------------------------------------------------
    # Loop body
    # ------------------------------------------------------------------

    async def _run_iteration(
        self,
        checklist: Checklist,
        execution: ExecutionResult,
        context: dict[str, Any],
    ) -> Optional[RunStatus]:
        """Run one iteration; return a terminal status to stop the loop."""
        if await self.is_goal_achieved(checklist):
            logger.info("Goal achieved")
            return RunStatus.COMPLETED

        available = checklist.available_tasks()
        if not available:
            self._log_no_viable_tasks(checklist)
            return RunStatus.NO_VIABLE_TASKS

        batch = await self.select_batch(checklist, available, execution)
        self._emit(
            "iteration_start",
            iteration=execution.iterations + 1,
            data={"max": self.config.max_iterations, "tasks": [t.name for t in batch]},
        )
        logger.info(f"Iteration {execution.iterations + 1}: executing {len(batch)} task(s)")

        await self.execute_batch(checklist, batch, execution, context)
        await self.reflect_and_adapt(checklist, execution)
        return None

    async def is_goal_achieved(self, checklist: Checklist) -> bool:
        summary = checklist.progress_summary()
        return await self._oracle(
            "assess",
            self.oracle.assess(
                checklist.goal_definition,
                checklist.completed_tasks(),
                summary.completion_rate,
            ),
        )

    async def select_batch(
        self,
        checklist: Checklist,
        available: list[Task],
        execution: ExecutionResult,
    ) -> list[Task]:
        """First ``batch_size`` available tasks in insertion order.

        With oracle task selection the oracle's pick is moved to the front;
        an unknown pick leaves the order unchanged.
        """
        ordered = list(available)
        if self.config.task_selection == "oracle":
            chosen = await self.select_next_task(checklist, execution, available)
            if chosen is not None:
                ordered.remove(chosen)
                ordered.insert(0, chosen)
        return ordered[: self.config.batch_size]

    async def select_next_task(
        self,
        checklist: Checklist,
        execution: ExecutionResult,
        available: Optional[list[Task]] = None,
    ) -> Optional[Task]:
        available = available if available is not None else checklist.available_tasks()
        if not available:
            return None
        task_id = await self._oracle(
            "select_task",
            self.oracle.select_task(available, execution.tasks_completed, checklist.goal_definition),
        )
        for task in available:
            if task.id == task_id:
                return task
        logger.debug(f"Oracle selected unavailable task {task_id!r}")
        return None

    async def execute_batch(
        self,
        checklist: Checklist,
        batch: list[Task],
        execution: ExecutionResult,
        context: dict[str, Any],
    ) -> list[TaskResult]:
        """Dispatch a batch, join it, then record results in submission order."""
        for task in batch:
            checklist.mark_in_progress(task.id)

        units = [self._task_unit(task, context) for task in batch]
        outcomes = await self.coordinator.run_batch(units)

        abort: Optional[BaseException] = None
        results: list[TaskResult] = []
        for task, outcome in zip(batch, outcomes):
            result = self._as_task_result(task, outcome)
            if isinstance(outcome, OracleError) and abort is None:
                abort = outcome
            checklist.record_result(task.id, result)
            recorded = checklist.get_task(task.id)
            execution.tasks_completed.append(ExecutionRecord(
                task=recorded.model_copy(deep=True) if recorded else task,
                result=result,
            ))
            results.append(result)
            self._emit("task_finished", data={"task": task, "result": result})

        if abort is not None:
            raise abort
        return results

    def _task_unit(self, task: Task, context: dict[str, Any]):
        async def unit() -> TaskResult:
            self._emit("task_started", data={"task": task})
            return await self.executor.execute(task, context, self.history)
        return unit

    @staticmethod
    def _as_task_result(task: Task, outcome: Union[TaskResult, BaseException]) -> TaskResult:
        if isinstance(outcome, TaskResult):
            if outcome.success:
                logger.info(f"Task {task.id} completed (confidence {outcome.confidence:.0%})")
            else:
                logger.warning(f"Task {task.id} failed: {outcome.error or 'Unknown error'}")
            return outcome
        logger.error(f"Task {task.id} raised: {outcome!r}")
        return TaskResult(
            success=False,
            confidence=0.0,
            iterations=1,
            results=[],
            error=str(outcome) or type(outcome).__name__,
        )

    async def reflect_and_adapt(self, checklist: Checklist, execution: ExecutionResult) -> bool:
        """Ask for adjustments when recent failures exceed the threshold.

        Returns True when the oracle was consulted.
        """
        recent = execution.recent(self.config.reflection_window)
        if not recent:
            return False
        failure_rate = sum(1 for r in recent if not r.result.success) / len(recent)
        if failure_rate <= self.config.failure_rate_threshold:
            return False

        logger.info(f"Failure rate {failure_rate:.0%} over last {len(recent)} task(s) - reassessing strategy")
        adjustments = await self._oracle("strategize", self.oracle.strategize(recent))
        applied = checklist.apply_adjustments(
            adjustments, default_threshold=self.config.confidence_threshold
        )
        logger.info(f"Applied {applied}/{len(adjustments)} adjustment(s)")
        self._emit("reflection", data={"failure_rate": failure_rate, "adjustments": adjustments})
        return True

    @staticmethod
    def _log_no_viable_tasks(checklist: Checklist) -> None:
        pending = checklist.pending_tasks()
        if not pending:
            logger.info("No viable tasks remaining")
            return
        cycles = checklist.find_cycles()
        if cycles:
            rendered = "; ".join(" -> ".join(c) for c in cycles)
            logger.warning(f"{len(pending)} pending task(s) blocked by dependency cycle(s): {rendered}")
        else:
            logger.warning(f"{len(pending)} pending task(s) blocked by failed or missing dependencies")
