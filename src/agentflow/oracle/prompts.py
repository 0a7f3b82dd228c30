"""Prompt templates for the LLM-backed reasoning oracle."""

from __future__ import annotations

ANALYZE_SYSTEM_PROMPT = """You are an AI goal analysis expert. Analyze the given goal and provide
a structured response with clear success criteria, constraints, expected outcomes,
and potential challenges.

Respond with ONLY valid JSON, no other text:
{
    "success_criteria": ["measurable outcome", "..."],
    "constraints": ["requirement or limit", "..."],
    "expected_outcomes": ["deliverable", "..."],
    "challenges": ["risk", "..."]
}"""

ANALYZE_PROMPT = """Given the goal: "{goal}"

## Context
{context}

Define:
1. Clear success criteria (list of measurable outcomes)
2. Key constraints or requirements
3. Expected outcomes
4. Potential challenges

Respond with JSON only."""


DECOMPOSE_SYSTEM_PROMPT = """You are an AI task decomposition expert. Break the goal down into
specific, actionable tasks.

Respond with ONLY a valid JSON array, no other text:
[
    {
        "id": "task_1",
        "name": "Short descriptive name",
        "description": "What has to be done",
        "priority": 8,
        "dependencies": [],
        "success_threshold": 0.8,
        "estimated_complexity": 3,
        "requires_iterative_execution": false,
        "max_iterations": 10,
        "required_capabilities": ["search"]
    }
]

Rules:
- ids must be unique; dependencies refer to ids from the same list
- priority and estimated_complexity are 1-10 (10 = highest)
- success_threshold is the 0-1 confidence needed to consider the task complete
- set requires_iterative_execution when the task needs repeated tool calls to converge"""

DECOMPOSE_PROMPT = """## Goal
{goal_definition}

Create a checklist of tasks that need to be completed to achieve this goal.

Respond with a JSON array only."""


SELECT_TOOLS_SYSTEM_PROMPT = """You are an AI tool selection expert. Based on the task requirements
and the available tools, select the most appropriate tools in the order they should be used.

Respond with ONLY valid JSON: {"tools": ["tool_id", "..."]}"""

SELECT_TOOLS_PROMPT = """## Task
{task}

## Available Tools
{tools}

Select the most appropriate tool(s) for this task.
Consider tool capabilities, task requirements, and efficiency.
Respond with JSON only."""


SELECT_TASK_SYSTEM_PROMPT = """You are an AI task prioritization expert. Based on the current state
and the available tasks, select the most appropriate task to execute next.

Respond with ONLY valid JSON: {"task_id": "id of the chosen task"}"""

SELECT_TASK_PROMPT = """## Available Tasks
{available}

## Completed So Far
{completed}

## Goal
{goal_definition}

Select the next task considering priority, dependencies, current progress and efficiency.
Respond with JSON only."""


TOOL_INPUT_SYSTEM_PROMPT = """You are an AI tool input generator. Based on the tool's input schema,
the task and the context, generate appropriate input parameters.

Respond with ONLY valid JSON matching the tool's input schema."""

TOOL_INPUT_PROMPT = """## Tool
{tool_name} ({tool_id})

## Tool Expects
{input_schema}

## Task
{task}

## Context
{context}

## Previous Results
{previous}

Generate input for this tool based on the task requirements. Respond with JSON only."""


EVALUATE_SYSTEM_PROMPT = """You are an AI progress evaluator. Assess progress towards completing
the task and return a confidence score between 0 and 1.

Respond with ONLY valid JSON: {"confidence": 0.0}"""

EVALUATE_PROMPT = """## Task
{task}

## Results So Far
{results}

Evaluate progress (0-1) towards task completion.
Consider the task's success threshold and the quality of the results.
Respond with JSON only."""


STRATEGIZE_SYSTEM_PROMPT = """You are an AI strategy advisor. Recent task executions show a high
failure rate. Suggest adjustments to the task checklist that improve the chance of success.

Respond with ONLY valid JSON, no other text:
{
    "adjustments": [
        {"type": "reorder", "task_id": "task_2", "new_priority": 9},
        {"type": "modify", "task_id": "task_3", "modifications": {"description": "...", "requires_iterative_execution": true}},
        {"type": "add", "task": {"name": "...", "description": "...", "dependencies": [], "required_capabilities": []}}
    ]
}

Only "reorder", "modify" and "add" are understood. Failed tasks are not retried;
add a new task to attempt equivalent work differently."""

STRATEGIZE_PROMPT = """Recent execution history shows a high failure rate.

## Recent Tasks
{history}

Suggest strategy adjustments: alternative approaches, different tool requirements,
task reordering, or new tasks to add.
Respond with JSON only."""


ASSESS_SYSTEM_PROMPT = """You are an AI goal assessment expert. Determine whether the goal has been
achieved based on its success criteria and the completed tasks.

Respond with ONLY valid JSON: {"goal_achieved": false}"""

ASSESS_PROMPT = """## Goal
{goal_definition}

## Completed Tasks
{completed}

## Completion Rate
{completion_rate:.2f}

Has the goal been achieved? Consider success criteria satisfaction, quality of
completed tasks and overall objective completion.
Respond with JSON only."""
