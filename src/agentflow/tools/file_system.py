"""File system tool - read, write, list and delete files under a workspace root."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Any

from agentflow.errors import ToolError
from agentflow.tools.base import BaseTool

logger = logging.getLogger(__name__)


class FileSystemTool(BaseTool):
    id = "file_system"
    name = "File System"
    description = "Read, write, and manipulate files"
    capabilities = ["file_read", "file_write", "file_manipulation"]
    input_schema = {
        "type": "object",
        "properties": {
            "operation": {"type": "string", "enum": ["read", "write", "list", "delete"]},
            "path": {"type": "string"},
            "content": {"type": "string"},
        },
        "required": ["operation", "path"],
    }
    output_schema = {
        "type": "object",
        "properties": {
            "success": {"type": "boolean"},
            "result": {"type": "string"},
        },
    }

    def __init__(self, root: str = ".") -> None:
        self._root = Path(root).resolve()

    def _resolve(self, relative: str) -> Path:
        target = (self._root / relative).resolve()
        if target != self._root and self._root not in target.parents:
            raise ToolError(f"Path escapes workspace: {relative}")
        return target

    async def execute(self, payload: dict[str, Any]) -> dict[str, Any]:
        operation = str(payload["operation"]).lower()
        target = self._resolve(str(payload["path"]))
        handler = {
            "read": self._read,
            "write": self._write,
            "list": self._list,
            "delete": self._delete,
        }.get(operation)
        if handler is None:
            raise ToolError(f"Unknown file operation: {operation}")

        result = await asyncio.to_thread(handler, target, payload)
        logger.info(f"file_system: {operation} {target}")
        return {"success": True, "result": result, "confidence": 0.95}

    @staticmethod
    def _read(target: Path, payload: dict[str, Any]) -> str:
        if not target.is_file():
            raise ToolError(f"File not found: {payload['path']}")
        return target.read_text()

    @staticmethod
    def _write(target: Path, payload: dict[str, Any]) -> str:
        content = payload.get("content")
        if content is None:
            raise ToolError("write requires 'content'")
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(str(content))
        return f"Wrote {len(str(content))} characters to {payload['path']}"

    @staticmethod
    def _list(target: Path, payload: dict[str, Any]) -> str:
        if not target.is_dir():
            raise ToolError(f"Directory not found: {payload['path']}")
        entries = sorted(
            p.name + ("/" if p.is_dir() else "") for p in target.iterdir()
        )
        return "\n".join(entries)

    @staticmethod
    def _delete(target: Path, payload: dict[str, Any]) -> str:
        if not target.is_file():
            raise ToolError(f"File not found: {payload['path']}")
        target.unlink()
        return f"Deleted {payload['path']}"
