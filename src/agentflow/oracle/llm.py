"""LLM-backed reasoning oracle built on LangChain chat models."""

from __future__ import annotations

import json
import logging
from typing import Any, Optional, Sequence

from langchain_core.messages import HumanMessage, SystemMessage
from pydantic import ValidationError

from agentflow.errors import OracleResponseError, OracleUnavailableError
from agentflow.llm_json import extract_json, extract_json_array, extract_json_object
from agentflow.models import (
    DEFAULT_SUCCESS_THRESHOLD,
    Adjustment,
    ExecutionRecord,
    GoalAnalysis,
    GoalDefinition,
    Task,
    TaskDraft,
    ToolResult,
    ToolSpec,
    clamp_confidence,
    parse_adjustments,
)
from agentflow.oracle import prompts
from agentflow.oracle.base import ReasoningOracle

logger = logging.getLogger(__name__)


def _dump(value: Any) -> str:
    return json.dumps(value, indent=2, default=str)


def _task_json(task: Task) -> str:
    return _dump(task.model_dump(mode="json", exclude={"result"}))


class LLMOracle(ReasoningOracle):
    def __init__(self, llm: Any, default_threshold: float = DEFAULT_SUCCESS_THRESHOLD) -> None:
        self._llm = llm
        self._default_threshold = default_threshold

    async def _ask(self, operation: str, system_prompt: str, prompt: str) -> str:
        messages = [
            SystemMessage(content=system_prompt),
            HumanMessage(content=prompt),
        ]
        try:
            response = await self._llm.ainvoke(messages)
        except Exception as e:
            raise OracleUnavailableError(operation, f"LLM request failed: {e}") from e

        content = response.content
        if isinstance(content, list):
            content = "".join(
                part.get("text", "") if isinstance(part, dict) else str(part) for part in content
            )
        logger.debug(f"{operation} raw LLM response ({len(content)} chars): {content[:300]}")
        return content

    # ------------------------------------------------------------------
    # Structural calls - unusable answers raise
    # ------------------------------------------------------------------

    async def analyze(self, goal: str, context: dict[str, Any]) -> GoalAnalysis:
        raw = await self._ask(
            "analyze",
            prompts.ANALYZE_SYSTEM_PROMPT,
            prompts.ANALYZE_PROMPT.format(goal=goal, context=_dump(context or {})),
        )
        try:
            return GoalAnalysis.model_validate(extract_json_object(raw))
        except (ValueError, ValidationError) as e:
            raise OracleResponseError("analyze", f"Failed to parse goal analysis response: {e}") from e

    async def decompose(self, goal_definition: GoalDefinition) -> list[Task]:
        raw = await self._ask(
            "decompose",
            prompts.DECOMPOSE_SYSTEM_PROMPT,
            prompts.DECOMPOSE_PROMPT.format(
                goal_definition=_dump(goal_definition.model_dump(mode="json"))
            ),
        )
        try:
            items = extract_json_array(raw, key="tasks")
            tasks = []
            for index, item in enumerate(items):
                draft = TaskDraft.model_validate(item)
                if not draft.id:
                    draft.id = f"task_{index + 1}"
                if not draft.name:
                    draft.name = f"Task {index + 1}"
                tasks.append(draft.to_task(self._default_threshold))
        except (ValueError, ValidationError) as e:
            raise OracleResponseError(
                "decompose", f"Failed to parse task decomposition response: {e}"
            ) from e
        logger.info(f"Decomposed goal into {len(tasks)} task(s)")
        return tasks

    async def select_task(
        self,
        available: Sequence[Task],
        ledger: Sequence[ExecutionRecord],
        goal_definition: GoalDefinition,
    ) -> Optional[str]:
        completed = [
            {"task_id": r.task.id, "name": r.task.name, "success": r.result.success}
            for r in ledger
        ]
        raw = await self._ask(
            "select_task",
            prompts.SELECT_TASK_SYSTEM_PROMPT,
            prompts.SELECT_TASK_PROMPT.format(
                available=_dump([t.model_dump(mode="json", exclude={"result"}) for t in available]),
                completed=_dump(completed),
                goal_definition=_dump(goal_definition.model_dump(mode="json")),
            ),
        )
        try:
            data = extract_json_object(raw)
        except ValueError as e:
            raise OracleResponseError("select_task", f"Failed to select next task: {e}") from e
        task_id = data.get("task_id", data.get("taskId"))
        return str(task_id) if task_id is not None else None

    async def generate_tool_input(
        self,
        tool: ToolSpec,
        task: Task,
        context: dict[str, Any],
        previous: Sequence[ToolResult],
    ) -> Any:
        raw = await self._ask(
            "generate_tool_input",
            prompts.TOOL_INPUT_SYSTEM_PROMPT,
            prompts.TOOL_INPUT_PROMPT.format(
                tool_name=tool.name,
                tool_id=tool.id,
                input_schema=_dump(tool.input_schema),
                task=_task_json(task),
                context=_dump(context or {}),
                previous=_dump([r.model_dump(mode="json") for r in previous]),
            ),
        )
        try:
            return extract_json(raw)
        except ValueError as e:
            raise OracleResponseError("generate_tool_input", f"Failed to generate tool input: {e}") from e

    # ------------------------------------------------------------------
    # Advisory calls - unusable answers degrade to safe defaults
    # ------------------------------------------------------------------

    async def select_tools(self, task: Task, catalogue: Sequence[ToolSpec]) -> list[str]:
        tools = [
            {"id": t.id, "name": t.name, "description": t.description, "capabilities": t.capabilities}
            for t in catalogue
        ]
        raw = await self._ask(
            "select_tools",
            prompts.SELECT_TOOLS_SYSTEM_PROMPT,
            prompts.SELECT_TOOLS_PROMPT.format(task=_task_json(task), tools=_dump(tools)),
        )
        try:
            selected = extract_json_object(raw).get("tools", [])
        except ValueError as e:
            logger.warning(f"Tool selection unparseable for {task.id}: {e}")
            return []
        if not isinstance(selected, list):
            return []
        return [str(tool_id) for tool_id in selected]

    async def evaluate(self, task: Task, results: Sequence[ToolResult]) -> float:
        raw = await self._ask(
            "evaluate",
            prompts.EVALUATE_SYSTEM_PROMPT,
            prompts.EVALUATE_PROMPT.format(
                task=_task_json(task),
                results=_dump([r.model_dump(mode="json") for r in results]),
            ),
        )
        try:
            data = extract_json_object(raw)
        except ValueError as e:
            logger.warning(f"Evaluation unparseable for {task.id}: {e}")
            return 0.0
        return clamp_confidence(data.get("confidence", 0))

    async def strategize(self, recent: Sequence[ExecutionRecord]) -> list[Adjustment]:
        history = [
            {
                "task": r.task.model_dump(mode="json", exclude={"result"}),
                "success": r.result.success,
                "confidence": r.result.confidence,
                "error": r.result.error,
            }
            for r in recent
        ]
        raw = await self._ask(
            "strategize",
            prompts.STRATEGIZE_SYSTEM_PROMPT,
            prompts.STRATEGIZE_PROMPT.format(history=_dump(history)),
        )
        try:
            data = extract_json_object(raw)
        except ValueError as e:
            logger.warning(f"Strategy response unparseable: {e}")
            return []
        return parse_adjustments(data.get("adjustments", []))

    async def assess(
        self,
        goal_definition: GoalDefinition,
        completed: Sequence[Task],
        completion_rate: float,
    ) -> bool:
        summary = [
            {
                "id": t.id,
                "name": t.name,
                "confidence": t.result.confidence if t.result else None,
            }
            for t in completed
        ]
        raw = await self._ask(
            "assess",
            prompts.ASSESS_SYSTEM_PROMPT,
            prompts.ASSESS_PROMPT.format(
                goal_definition=_dump(goal_definition.model_dump(mode="json")),
                completed=_dump(summary),
                completion_rate=completion_rate,
            ),
        )
        try:
            data = extract_json_object(raw)
        except ValueError as e:
            logger.warning(f"Goal assessment unparseable: {e}")
            return False
        achieved = data.get("goal_achieved", data.get("goalAchieved", False))
        if isinstance(achieved, str):
            return achieved.strip().lower() == "true"
        return achieved is True
