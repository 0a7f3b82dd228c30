"""Checklist - the dependency-aware task graph for one goal run.

The checklist exclusively owns its Task objects. Only the controlling
coroutine calls the mutating methods, and only between batches, so no
locking is needed.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, Optional

from pydantic import ValidationError

from agentflow.models import (
    AddAdjustment,
    Adjustment,
    GoalDefinition,
    ModifyAdjustment,
    ProgressSummary,
    ReorderAdjustment,
    Task,
    TaskResult,
    TaskStatus,
    utcnow,
)

logger = logging.getLogger(__name__)

# Fields a "modify" adjustment may never touch.
_PROTECTED_FIELDS = frozenset({"id", "status", "result", "completed_at"})


class Checklist:
    def __init__(self, tasks: Iterable[Task], goal_definition: GoalDefinition) -> None:
        self.goal_definition = goal_definition
        self._tasks: dict[str, Task] = {}
        for task in tasks:
            if task.id in self._tasks:
                logger.warning(f"Duplicate task id {task.id!r} - keeping the first definition")
                continue
            self._tasks[task.id] = task.model_copy(
                deep=True,
                update={"status": TaskStatus.PENDING, "result": None, "completed_at": None},
            )

    def __len__(self) -> int:
        return len(self._tasks)

    def __contains__(self, task_id: object) -> bool:
        return task_id in self._tasks

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_task(self, task_id: str) -> Optional[Task]:
        return self._tasks.get(task_id)

    def all_tasks(self) -> list[Task]:
        return list(self._tasks.values())

    def _with_status(self, status: TaskStatus) -> list[Task]:
        return [t for t in self._tasks.values() if t.status == status]

    def completed_tasks(self) -> list[Task]:
        return self._with_status(TaskStatus.COMPLETED)

    def failed_tasks(self) -> list[Task]:
        return self._with_status(TaskStatus.FAILED)

    def pending_tasks(self) -> list[Task]:
        return self._with_status(TaskStatus.PENDING)

    def in_progress_tasks(self) -> list[Task]:
        return self._with_status(TaskStatus.IN_PROGRESS)

    def available_tasks(self) -> list[Task]:
        """Pending tasks whose dependencies have all completed.

        Returned in insertion order. Priority is informational and is not
        used for ordering. A dependency on an unknown id never resolves.
        """
        available = []
        for task in self._tasks.values():
            if task.status != TaskStatus.PENDING:
                continue
            if all(self._is_completed(dep) for dep in task.dependencies):
                available.append(task)
        return available

    def _is_completed(self, task_id: str) -> bool:
        dep = self._tasks.get(task_id)
        return dep is not None and dep.status == TaskStatus.COMPLETED

    def progress_summary(self) -> ProgressSummary:
        total = len(self._tasks)
        completed = len(self.completed_tasks())
        return ProgressSummary(
            total=total,
            completed=completed,
            failed=len(self.failed_tasks()),
            pending=len(self.pending_tasks()),
            in_progress=len(self.in_progress_tasks()),
            completion_rate=completed / total if total else 0.0,
        )

    def find_cycles(self) -> list[list[str]]:
        """Return dependency cycles among known tasks, each as a list of ids.

        Diagnostic only: the scheduler never consults this.
        """
        cycles: list[list[str]] = []
        state: dict[str, int] = {}  # 1 = on stack, 2 = done
        stack: list[str] = []

        def visit(task_id: str) -> None:
            state[task_id] = 1
            stack.append(task_id)
            for dep in self._tasks[task_id].dependencies:
                if dep not in self._tasks:
                    continue
                if state.get(dep) == 1:
                    cycles.append(stack[stack.index(dep):])
                elif dep not in state:
                    visit(dep)
            stack.pop()
            state[task_id] = 2

        for task_id in self._tasks:
            if task_id not in state:
                visit(task_id)
        return cycles

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def mark_in_progress(self, task_id: str) -> None:
        task = self._tasks.get(task_id)
        if task is None:
            return
        if task.status != TaskStatus.PENDING:
            logger.debug(f"Task {task_id} is {task.status.value}, not marking in progress")
            return
        task.status = TaskStatus.IN_PROGRESS

    def record_result(self, task_id: str, result: TaskResult) -> None:
        task = self._tasks.get(task_id)
        if task is None:
            return
        if task.is_terminal:
            logger.warning(f"Task {task_id} already {task.status.value}; ignoring new result")
            return
        task.status = TaskStatus.COMPLETED if result.success else TaskStatus.FAILED
        task.result = result
        task.completed_at = utcnow()

    def apply_adjustments(
        self,
        adjustments: Iterable[Adjustment],
        default_threshold: Optional[float] = None,
    ) -> int:
        """Apply reflection adjustments in order. Returns how many took effect."""
        applied = 0
        for adj in adjustments:
            if isinstance(adj, ReorderAdjustment):
                ok = self._reorder(adj)
            elif isinstance(adj, ModifyAdjustment):
                ok = self._modify(adj)
            elif isinstance(adj, AddAdjustment):
                ok = self._add(adj, default_threshold)
            else:
                logger.debug(f"Ignoring unknown adjustment: {adj!r}")
                ok = False
            applied += int(ok)
        return applied

    def _reorder(self, adj: ReorderAdjustment) -> bool:
        task = self._tasks.get(adj.task_id)
        if task is None:
            logger.debug(f"reorder: unknown task {adj.task_id}")
            return False
        task.priority = adj.new_priority
        logger.info(f"Task {task.id} priority -> {adj.new_priority}")
        return True

    def _modify(self, adj: ModifyAdjustment) -> bool:
        task = self._tasks.get(adj.task_id)
        if task is None:
            logger.debug(f"modify: unknown task {adj.task_id}")
            return False

        patch = self._normalize_patch(adj.modifications)
        if not patch:
            return False
        data = task.model_dump()
        data.update(patch)
        try:
            updated = Task.model_validate(data)
        except ValidationError as e:
            logger.warning(f"modify: rejected patch for {task.id}: {e.error_count()} error(s)")
            return False

        self._tasks[task.id] = updated
        logger.info(f"Task {task.id} modified: {sorted(patch)}")
        return True

    @staticmethod
    def _normalize_patch(modifications: dict[str, Any]) -> dict[str, Any]:
        by_alias = {
            (info.alias or name): name for name, info in Task.model_fields.items()
        }
        patch: dict[str, Any] = {}
        for key, value in modifications.items():
            name = key if key in Task.model_fields else by_alias.get(key)
            if name is None or name in _PROTECTED_FIELDS:
                logger.debug(f"modify: ignoring field {key!r}")
                continue
            patch[name] = value
        return patch

    def _add(self, adj: AddAdjustment, default_threshold: Optional[float]) -> bool:
        draft = adj.task
        if draft.id and draft.id in self._tasks:
            # Keep ids unique; the new work gets a fresh identity.
            draft = draft.model_copy(update={"id": None})
        if default_threshold is None:
            task = draft.to_task()
        else:
            task = draft.to_task(default_threshold)
        while task.id in self._tasks:
            task = task.model_copy(update={"id": f"{task.id}_1"})
        self._tasks[task.id] = task
        logger.info(f"Added task {task.id}: {task.name}")
        return True
