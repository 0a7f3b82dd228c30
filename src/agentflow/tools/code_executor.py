"""Code executor tool - run Python or shell snippets in a subprocess."""

from __future__ import annotations

import asyncio
import logging
import sys
from pathlib import Path
from typing import Any

from agentflow.errors import ToolError
from agentflow.tools.base import BaseTool

logger = logging.getLogger(__name__)

MAX_OUTPUT_CHARS = 20_000


class CodeExecutorTool(BaseTool):
    id = "code_executor"
    name = "Code Executor"
    description = "Execute Python or shell code and capture its output"
    capabilities = ["execute", "test", "code_analysis"]
    input_schema = {
        "type": "object",
        "properties": {
            "language": {"type": "string", "enum": ["python", "shell"]},
            "code": {"type": "string"},
            "timeout": {"type": "number", "default": 30},
        },
        "required": ["language", "code"],
    }
    output_schema = {
        "type": "object",
        "properties": {
            "output": {"type": "string"},
            "exit_code": {"type": "number"},
            "error": {"type": "string"},
        },
    }

    def __init__(self, workspace: str = ".", default_timeout: float = 30.0) -> None:
        self._workspace = Path(workspace)
        self._default_timeout = default_timeout

    async def execute(self, payload: dict[str, Any]) -> dict[str, Any]:
        language = str(payload["language"]).lower()
        code = str(payload["code"])
        timeout = float(payload.get("timeout", self._default_timeout))

        if language in ("python", "py"):
            cmd = [sys.executable, "-c", code]
        elif language in ("shell", "bash", "sh"):
            cmd = ["sh", "-c", code]
        else:
            raise ToolError(f"Unsupported language: {language}")

        proc = await asyncio.create_subprocess_exec(
            *cmd,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            cwd=str(self._workspace),
        )
        try:
            stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout)
        except asyncio.TimeoutError:
            proc.kill()
            await proc.wait()
            raise ToolError(f"{language} code timed out after {timeout}s")

        exit_code = proc.returncode
        logger.info(f"code_executor: {language} exited with {exit_code}")
        return {
            "output": stdout.decode(errors="replace")[:MAX_OUTPUT_CHARS],
            "error": stderr.decode(errors="replace")[:MAX_OUTPUT_CHARS],
            "exit_code": exit_code,
            "confidence": 0.9 if exit_code == 0 else 0.2,
        }
