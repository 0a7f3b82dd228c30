"""Tests for the adaptive controller loop."""

import asyncio
import logging

import pytest

from agentflow.config import AgentConfig
from agentflow.errors import OracleResponseError, OracleUnavailableError, RunAbortedError
from agentflow.models import (
    AddAdjustment,
    ModifyAdjustment,
    RunStatus,
    TaskDraft,
    TaskStatus,
)
from agentflow.orchestrator.controller import Orchestrator
from agentflow.tools.base import FunctionTool
from agentflow.tools.registry import ToolRegistry
from tests.helpers import ScriptedOracle, ScriptedTool, make_task


def config(**overrides) -> AgentConfig:
    overrides.setdefault("tool_timeout_seconds", None)
    overrides.setdefault("oracle_timeout_seconds", None)
    return AgentConfig(**overrides)


def registry_with(*tools) -> ToolRegistry:
    registry = ToolRegistry()
    for tool in tools:
        registry.register(tool)
    return registry


def independent(n: int):
    return [make_task(f"t{i}") for i in range(1, n + 1)]


class TestTermination:
    async def test_completes_when_goal_achieved(self, registry):
        oracle = ScriptedOracle(
            tasks=[make_task("A"), make_task("B", "A")],
            tools=["search"],
            assessments=[False, False, True],
        )
        result = await Orchestrator(oracle, registry, config()).achieve_goal("Ship it")

        assert result.status == RunStatus.COMPLETED
        assert result.iterations == 2
        assert [r.task.id for r in result.tasks_completed] == ["A", "B"]
        assert result.summary.completed == 2
        assert result.duration is not None
        assert result.end_time is not None

    async def test_assessed_before_any_work(self, registry):
        oracle = ScriptedOracle(tasks=[make_task("A")], tools=["search"], assessments=[True])
        result = await Orchestrator(oracle, registry, config()).achieve_goal("Already done")

        assert result.status == RunStatus.COMPLETED
        assert result.iterations == 0
        assert result.tasks_completed == []
        assert oracle.calls["select_tools"] == 0

    async def test_dependency_cycle_is_no_viable_tasks(self, registry):
        oracle = ScriptedOracle(tasks=[make_task("A", "B"), make_task("B", "A")], tools=["search"])
        result = await Orchestrator(oracle, registry, config()).achieve_goal("Deadlock")

        assert result.status == RunStatus.NO_VIABLE_TASKS
        assert result.iterations == 0
        assert result.tasks_completed == []
        assert oracle.calls["assess"] == 1

    async def test_failed_dependency_ends_run(self):
        tool = ScriptedTool("search", fail_for=["A"])
        oracle = ScriptedOracle(tasks=[make_task("A"), make_task("B", "A")], tools=["search"])
        result = await Orchestrator(oracle, registry_with(tool), config()).achieve_goal("Blocked")

        assert result.status == RunStatus.NO_VIABLE_TASKS
        statuses = {t.id: t.status for t in result.tasks}
        assert statuses == {"A": TaskStatus.FAILED, "B": TaskStatus.PENDING}

    async def test_cycle_and_blocked_dependency_are_logged_differently(self, registry, caplog):
        caplog.set_level(logging.WARNING, logger="agentflow.orchestrator.controller")
        oracle = ScriptedOracle(tasks=[make_task("A", "B"), make_task("B", "A")], tools=["search"])
        await Orchestrator(oracle, registry, config()).achieve_goal("Deadlock")
        assert "dependency cycle" in caplog.text

        caplog.clear()
        oracle = ScriptedOracle(tasks=[make_task("A", "ghost")], tools=["search"])
        result = await Orchestrator(oracle, registry, config()).achieve_goal("Orphan")
        assert result.status == RunStatus.NO_VIABLE_TASKS
        assert "failed or missing dependencies" in caplog.text
        assert "cycle" not in caplog.text

    async def test_empty_checklist(self, registry):
        oracle = ScriptedOracle(tasks=[], tools=["search"])
        result = await Orchestrator(oracle, registry, config()).achieve_goal("Nothing to do")
        assert result.status == RunStatus.NO_VIABLE_TASKS
        assert result.summary.total == 0

    async def test_iteration_cap(self, registry):
        oracle = ScriptedOracle(tasks=independent(5), tools=["search"])
        cfg = config(max_iterations=2, batch_size=1)
        result = await Orchestrator(oracle, registry, cfg).achieve_goal("Too much")

        assert result.status == RunStatus.IN_PROGRESS
        assert result.iterations == 2
        assert len(result.tasks_completed) == 2
        assert result.summary.pending == 3


class TestBatches:
    async def test_batch_size_and_insertion_order(self, registry):
        oracle = ScriptedOracle(tasks=independent(5), tools=["search"])
        cfg = config(batch_size=2, max_iterations=1)
        result = await Orchestrator(oracle, registry, cfg).achieve_goal("Batching")
        assert [r.task.id for r in result.tasks_completed] == ["t1", "t2"]

    async def test_ledger_follows_submission_order(self):
        delays = {"t1": 0.05, "t2": 0.0, "t3": 0.02}

        async def sleepy(payload):
            await asyncio.sleep(delays[payload["task"]])
            return {"confidence": 0.9}

        oracle = ScriptedOracle(tasks=independent(3), tools=["sleepy"])
        cfg = config(batch_size=3, max_iterations=1)
        result = await Orchestrator(
            oracle, registry_with(FunctionTool("sleepy", sleepy)), cfg
        ).achieve_goal("Order")
        assert [r.task.id for r in result.tasks_completed] == ["t1", "t2", "t3"]

    async def test_failure_does_not_stop_siblings(self):
        tool = ScriptedTool("search", fail_for=["t1"])
        oracle = ScriptedOracle(tasks=independent(3), tools=["search"])
        result = await Orchestrator(oracle, registry_with(tool), config(max_iterations=1)).achieve_goal("Mixed")

        outcomes = [(r.task.id, r.result.success) for r in result.tasks_completed]
        assert outcomes == [("t1", False), ("t2", True), ("t3", True)]

    async def test_ledger_holds_recorded_snapshots(self, registry):
        oracle = ScriptedOracle(tasks=[make_task("A")], tools=["search"])
        result = await Orchestrator(oracle, registry, config(max_iterations=1)).achieve_goal("Snapshot")

        record = result.tasks_completed[0]
        assert record.task.status == TaskStatus.COMPLETED
        assert record.task.result == record.result

    async def test_sequential_mode_runs_one_at_a_time(self):
        active = 0
        peak = 0

        async def track(payload):
            nonlocal active, peak
            active += 1
            peak = max(peak, active)
            await asyncio.sleep(0.01)
            active -= 1
            return {}

        oracle = ScriptedOracle(tasks=independent(3), tools=["track"])
        cfg = config(parallel_execution=False, max_concurrency=5, max_iterations=1)
        orchestrator = Orchestrator(oracle, registry_with(FunctionTool("track", track)), cfg)
        await orchestrator.achieve_goal("Sequential")

        assert peak == 1
        assert orchestrator.coordinator.limit == 1

    async def test_oracle_task_selection_moves_pick_to_front(self, registry):
        oracle = ScriptedOracle(tasks=independent(3), tools=["search"], next_task="t3")
        cfg = config(task_selection="oracle", batch_size=1, max_iterations=1)
        result = await Orchestrator(oracle, registry, cfg).achieve_goal("Pick")

        assert [r.task.id for r in result.tasks_completed] == ["t3"]
        assert oracle.calls["select_task"] == 1

    async def test_unknown_oracle_pick_keeps_order(self, registry):
        oracle = ScriptedOracle(tasks=independent(3), tools=["search"], next_task="nope")
        cfg = config(task_selection="oracle", batch_size=1, max_iterations=1)
        result = await Orchestrator(oracle, registry, cfg).achieve_goal("Pick")
        assert [r.task.id for r in result.tasks_completed] == ["t1"]

    async def test_insertion_mode_never_asks_for_selection(self, registry):
        oracle = ScriptedOracle(tasks=independent(2), tools=["search"])
        await Orchestrator(oracle, registry, config(max_iterations=1)).achieve_goal("Plain")
        assert oracle.calls["select_task"] == 0


class TestReflection:
    def _run(self, failing, adjustments=()):
        tool = ScriptedTool("search", fail_for=failing)
        oracle = ScriptedOracle(tasks=independent(5), tools=["search"], adjustments=adjustments)
        cfg = config(batch_size=5, reflection_window=5, failure_rate_threshold=0.6)
        return oracle, Orchestrator(oracle, registry_with(tool), cfg)

    async def test_high_failure_rate_triggers_strategize(self):
        oracle, orchestrator = self._run(["t1", "t2", "t3", "t4"])
        await orchestrator.achieve_goal("Struggle")

        assert oracle.calls["strategize"] == 1
        assert len(oracle.strategize_inputs[0]) == 5

    async def test_low_failure_rate_skips_strategize(self):
        oracle, orchestrator = self._run(["t1", "t2"])
        await orchestrator.achieve_goal("Mostly fine")
        assert oracle.calls["strategize"] == 0

    async def test_rate_equal_to_threshold_skips_strategize(self):
        oracle, orchestrator = self._run(["t1", "t2", "t3"])
        await orchestrator.achieve_goal("Borderline")
        assert oracle.calls["strategize"] == 0

    async def test_window_covers_only_recent_records(self):
        tool = ScriptedTool("search", fail_for=["t1", "t2"])
        oracle = ScriptedOracle(tasks=independent(4), tools=["search"])
        cfg = config(batch_size=2, reflection_window=2, failure_rate_threshold=0.6)
        await Orchestrator(oracle, registry_with(tool), cfg).achieve_goal("Recover")

        # Only the first batch (two failures) exceeds the threshold.
        assert oracle.calls["strategize"] == 1
        assert [r.task.id for r in oracle.strategize_inputs[0]] == ["t1", "t2"]

    async def test_added_task_runs_next_iteration(self):
        adjustments = [AddAdjustment(task=TaskDraft(id="retry", name="Retry"))]
        oracle, orchestrator = self._run(["t1", "t2", "t3", "t4"], adjustments)
        result = await orchestrator.achieve_goal("Adapt")

        ids = [r.task.id for r in result.tasks_completed]
        assert ids[-1] == "retry"
        added = next(t for t in result.tasks if t.id == "retry")
        assert added.status == TaskStatus.COMPLETED
        assert added.success_threshold == 0.8

    async def test_modify_adjustment_is_applied(self):
        tool = ScriptedTool("search", fail_for=["A"])
        oracle = ScriptedOracle(
            tasks=[make_task("A"), make_task("B", "A")],
            tools=["search"],
            adjustments=[ModifyAdjustment(task_id="B", modifications={"dependencies": []})],
        )
        cfg = config(reflection_window=1, failure_rate_threshold=0.5)
        result = await Orchestrator(oracle, registry_with(tool), cfg).achieve_goal("Unblock")

        statuses = {t.id: t.status for t in result.tasks}
        assert statuses == {"A": TaskStatus.FAILED, "B": TaskStatus.COMPLETED}


class TestAborts:
    async def test_analysis_failure_aborts(self, registry):
        class Offline(ScriptedOracle):
            async def analyze(self, goal, context):
                raise OracleUnavailableError("analyze", "connection refused")

        with pytest.raises(RunAbortedError) as exc_info:
            await Orchestrator(Offline(), registry, config()).achieve_goal("Unreachable")

        result = exc_info.value.result
        assert result.status == RunStatus.FAILED
        assert result.tasks == []
        assert isinstance(exc_info.value.__cause__, OracleUnavailableError)

    async def test_oracle_error_in_batch_records_all_then_aborts(self, registry):
        class Garbled(ScriptedOracle):
            async def generate_tool_input(self, tool, task, context, previous):
                if task.id == "t2":
                    raise OracleResponseError("generate_tool_input", "not json")
                return await super().generate_tool_input(tool, task, context, previous)

        oracle = Garbled(tasks=independent(3), tools=["search"])
        with pytest.raises(RunAbortedError) as exc_info:
            await Orchestrator(oracle, registry, config()).achieve_goal("Half broken")

        result = exc_info.value.result
        assert result.status == RunStatus.FAILED
        assert [(r.task.id, r.result.success) for r in result.tasks_completed] == [
            ("t1", True), ("t2", False), ("t3", True),
        ]
        assert all(t.status != TaskStatus.IN_PROGRESS for t in result.tasks)
        assert result.summary.failed == 1

    async def test_non_oracle_exception_is_task_failure(self, registry):
        class Buggy(ScriptedOracle):
            async def select_tools(self, task, catalogue):
                if task.id == "t1":
                    raise KeyError("catalogue")
                return ["search"]

        oracle = Buggy(tasks=independent(2))
        result = await Orchestrator(oracle, registry, config(max_iterations=1)).achieve_goal("Odd")

        outcomes = [(r.task.id, r.result.success) for r in result.tasks_completed]
        assert outcomes == [("t1", False), ("t2", True)]
        assert "catalogue" in result.tasks_completed[0].result.error


class TestObservability:
    async def test_emits_lifecycle_events(self, registry):
        events: list[str] = []
        oracle = ScriptedOracle(tasks=[make_task("A")], tools=["search"], assessments=[False, True])
        orchestrator = Orchestrator(oracle, registry, config())
        orchestrator.set_emit(lambda event, **kw: events.append(event))
        await orchestrator.achieve_goal("Watch")

        assert events == [
            "goal_defined",
            "checklist_created",
            "iteration_start",
            "task_started",
            "task_finished",
            "completed",
        ]

    async def test_error_event_on_abort(self, registry):
        events: list[str] = []

        class Offline(ScriptedOracle):
            async def decompose(self, goal_definition):
                raise OracleResponseError("decompose", "no tasks")

        orchestrator = Orchestrator(
            Offline(), registry, config(), emit=lambda event, **kw: events.append(event)
        )
        with pytest.raises(RunAbortedError):
            await orchestrator.achieve_goal("Broken")
        assert events[-1] == "error"

    async def test_history_is_run_scoped_and_sinks(self, registry):
        sunk = []
        oracle = ScriptedOracle(tasks=independent(2), tools=["search"])
        orchestrator = Orchestrator(oracle, registry, config(), history_sink=sunk.append)

        await orchestrator.achieve_goal("First")
        assert len(orchestrator.history) == 2

        oracle.tasks = independent(1)
        await orchestrator.achieve_goal("Second")
        assert len(orchestrator.history) == 1
        assert len(sunk) == 3

    async def test_goal_definition_keeps_original_goal(self, registry):
        oracle = ScriptedOracle(tasks=[], tools=["search"])
        orchestrator = Orchestrator(oracle, registry, config())
        await orchestrator.achieve_goal("Exact words", {"k": "v"})
        assert orchestrator.checklist.goal_definition.original_goal == "Exact words"
        assert orchestrator.checklist.goal_definition.success_criteria == ["Exact words is done"]


class TestReuse:
    def test_sequential_runs_in_fresh_event_loops(self):
        async def sleepy(payload):
            await asyncio.sleep(0.01)
            return {"confidence": 0.9}

        oracle = ScriptedOracle(tasks=independent(3), tools=["sleepy"])
        cfg = config(parallel_execution=False, max_iterations=1)
        orchestrator = Orchestrator(oracle, registry_with(FunctionTool("sleepy", sleepy)), cfg)

        for goal in ("First run", "Second run"):
            result = asyncio.run(orchestrator.achieve_goal(goal))
            assert [r.result.success for r in result.tasks_completed] == [True, True, True]
