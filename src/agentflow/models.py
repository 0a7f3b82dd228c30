"""AgentFlow data models - tasks, results, goal definitions and adjustments."""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError
from pydantic.alias_generators import to_camel

logger = logging.getLogger(__name__)

DEFAULT_PRIORITY = 5
DEFAULT_SUCCESS_THRESHOLD = 0.8
DEFAULT_COMPLEXITY = 5
DEFAULT_MAX_ITERATIONS = 10


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_task_id() -> str:
    return f"task_{uuid.uuid4().hex[:8]}"


def clamp_confidence(value: Any) -> float:
    """Fold any oracle/tool confidence into [0, 1]; unusable values become 0."""
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    if number != number:  # NaN
        return 0.0
    return max(0.0, min(1.0, number))


class _Model(BaseModel):
    # Oracle payloads arrive camelCased; code uses field names.
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class TaskStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"


class RunStatus(str, Enum):
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"
    NO_VIABLE_TASKS = "no_viable_tasks"


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------

class ToolResult(_Model):
    success: bool
    tool: str
    output: Any = None
    duration: float = 0.0  # seconds
    confidence: float = 1.0
    error: Optional[str] = None


class TaskResult(_Model):
    success: bool
    confidence: float = 0.0
    iterations: int = 0
    results: list[ToolResult] = Field(default_factory=list)
    duration: Optional[float] = None
    error: Optional[str] = None


# ---------------------------------------------------------------------------
# Goal & Tasks
# ---------------------------------------------------------------------------

class GoalAnalysis(_Model):
    success_criteria: list[str] = Field(default_factory=list)
    constraints: list[str] = Field(default_factory=list)
    expected_outcomes: list[str] = Field(default_factory=list)
    challenges: list[str] = Field(default_factory=list)


class GoalDefinition(GoalAnalysis):
    original_goal: str


class Task(_Model):
    id: str = Field(default_factory=new_task_id)
    name: str = ""
    description: str = ""
    priority: int = DEFAULT_PRIORITY
    dependencies: list[str] = Field(default_factory=list)
    success_threshold: float = Field(default=DEFAULT_SUCCESS_THRESHOLD, ge=0.0, le=1.0)
    estimated_complexity: int = DEFAULT_COMPLEXITY
    requires_iterative_execution: bool = False
    max_iterations: int = Field(default=DEFAULT_MAX_ITERATIONS, ge=1)
    required_capabilities: list[str] = Field(default_factory=list)
    status: TaskStatus = TaskStatus.PENDING
    result: Optional[TaskResult] = None
    completed_at: Optional[datetime] = None

    @property
    def is_terminal(self) -> bool:
        return self.status in (TaskStatus.COMPLETED, TaskStatus.FAILED)


class TaskDraft(_Model):
    """A task proposed by the oracle; omitted fields fall back to Task defaults."""
    id: Optional[str] = None
    name: str = ""
    description: str = ""
    priority: Optional[int] = None
    dependencies: list[str] = Field(default_factory=list)
    success_threshold: Optional[float] = None
    estimated_complexity: Optional[int] = None
    requires_iterative_execution: bool = False
    max_iterations: Optional[int] = None
    required_capabilities: list[str] = Field(default_factory=list)

    def to_task(self, default_threshold: float = DEFAULT_SUCCESS_THRESHOLD) -> Task:
        return Task(
            id=self.id or new_task_id(),
            name=self.name,
            description=self.description,
            priority=self.priority if self.priority is not None else DEFAULT_PRIORITY,
            dependencies=list(self.dependencies),
            success_threshold=clamp_confidence(
                self.success_threshold if self.success_threshold is not None else default_threshold
            ),
            estimated_complexity=(
                self.estimated_complexity
                if self.estimated_complexity is not None
                else DEFAULT_COMPLEXITY
            ),
            requires_iterative_execution=self.requires_iterative_execution,
            max_iterations=max(1, self.max_iterations or DEFAULT_MAX_ITERATIONS),
            required_capabilities=list(self.required_capabilities),
        )


class ProgressSummary(_Model):
    total: int = 0
    completed: int = 0
    failed: int = 0
    pending: int = 0
    in_progress: int = 0
    completion_rate: float = 0.0


# ---------------------------------------------------------------------------
# Adjustments (reflection output)
# ---------------------------------------------------------------------------

class ReorderAdjustment(_Model):
    type: Literal["reorder"] = "reorder"
    task_id: str
    new_priority: int


class ModifyAdjustment(_Model):
    type: Literal["modify"] = "modify"
    task_id: str
    modifications: dict[str, Any] = Field(default_factory=dict)


class AddAdjustment(_Model):
    type: Literal["add"] = "add"
    task: TaskDraft


Adjustment = Annotated[
    Union[ReorderAdjustment, ModifyAdjustment, AddAdjustment],
    Field(discriminator="type"),
]

_adjustment_adapter: TypeAdapter[Adjustment] = TypeAdapter(Adjustment)


def parse_adjustments(raw: Any) -> list[Adjustment]:
    """Validate raw adjustment records, dropping unknown tags and malformed entries."""
    if not isinstance(raw, list):
        return []
    adjustments: list[Adjustment] = []
    for item in raw:
        try:
            adjustments.append(_adjustment_adapter.validate_python(item))
        except ValidationError as e:
            kind = item.get("type") if isinstance(item, dict) else type(item).__name__
            logger.debug(f"Ignoring adjustment {kind!r}: {e.error_count()} validation error(s)")
    return adjustments


# ---------------------------------------------------------------------------
# Tool catalogue & history
# ---------------------------------------------------------------------------

class ToolSpec(_Model):
    """What the oracle sees of a tool when selecting and feeding it."""
    id: str
    name: str
    description: str = ""
    capabilities: list[str] = Field(default_factory=list)
    input_schema: dict[str, Any] = Field(default_factory=dict)
    output_schema: dict[str, Any] = Field(default_factory=dict)


class ToolInvocation(_Model):
    tool: str
    task_id: str
    input: Any = None
    output: Any = None
    success: bool = True
    error: Optional[str] = None
    duration: float = 0.0
    timestamp: datetime = Field(default_factory=utcnow)


# ---------------------------------------------------------------------------
# Run ledger
# ---------------------------------------------------------------------------

class ExecutionRecord(_Model):
    task: Task
    result: TaskResult
    timestamp: datetime = Field(default_factory=utcnow)


class ExecutionResult(_Model):
    goal: str
    start_time: datetime = Field(default_factory=utcnow)
    end_time: Optional[datetime] = None
    duration: Optional[float] = None  # seconds
    iterations: int = 0
    tasks_completed: list[ExecutionRecord] = Field(default_factory=list)
    status: RunStatus = RunStatus.IN_PROGRESS
    tasks: list[Task] = Field(default_factory=list)
    summary: Optional[ProgressSummary] = None

    def recent(self, window: int) -> list[ExecutionRecord]:
        if window <= 0:
            return []
        return self.tasks_completed[-window:]

    def finish(self) -> None:
        self.end_time = utcnow()
        self.duration = (self.end_time - self.start_time).total_seconds()
