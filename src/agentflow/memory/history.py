"""Run-scoped tool execution history.

Every tool invocation of a run is recorded here for observability only; the
scheduler never reads it back to make decisions.
"""

from __future__ import annotations

import logging
from collections import Counter, deque
from typing import Callable, Iterator, Optional

from agentflow.models import ToolInvocation

logger = logging.getLogger(__name__)

HistorySink = Callable[[ToolInvocation], None]


class ExecutionHistory:
    def __init__(self, limit: Optional[int] = 1000, sink: Optional[HistorySink] = None) -> None:
        # Oldest entries are evicted once ``limit`` is reached; None keeps everything.
        self._entries: deque[ToolInvocation] = deque(maxlen=limit)
        self._sink = sink
        self._total = 0

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[ToolInvocation]:
        return iter(list(self._entries))

    @property
    def total_recorded(self) -> int:
        """Invocations seen, including any evicted ones."""
        return self._total

    def record(self, invocation: ToolInvocation) -> None:
        self._entries.append(invocation)
        self._total += 1
        if self._sink is not None:
            try:
                self._sink(invocation)
            except Exception as e:
                logger.warning(f"History sink failed for {invocation.tool}: {e}")

    def for_task(self, task_id: str) -> list[ToolInvocation]:
        return [e for e in self._entries if e.task_id == task_id]

    def stats(self) -> dict[str, dict[str, float]]:
        """Per-tool call counts, failures and mean duration."""
        calls: Counter[str] = Counter()
        failures: Counter[str] = Counter()
        durations: dict[str, float] = {}
        for e in self._entries:
            calls[e.tool] += 1
            if not e.success:
                failures[e.tool] += 1
            durations[e.tool] = durations.get(e.tool, 0.0) + e.duration
        return {
            tool: {
                "calls": calls[tool],
                "failures": failures[tool],
                "mean_duration": durations[tool] / calls[tool],
            }
            for tool in calls
        }
