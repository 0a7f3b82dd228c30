"""Data analysis tool - descriptive statistics over small in-memory datasets."""

from __future__ import annotations

import statistics
from collections import Counter
from typing import Any

from agentflow.errors import ToolError
from agentflow.tools.base import BaseTool


class DataAnalysisTool(BaseTool):
    id = "data_analysis"
    name = "Data Analysis"
    description = "Analyze and process data (describe, frequency, correlation)"
    capabilities = ["data_analysis", "statistics"]
    input_schema = {
        "type": "object",
        "properties": {
            "data": {"type": "array"},
            "analysis_type": {"type": "string", "enum": ["describe", "frequency", "correlation"]},
            "parameters": {"type": "object"},
        },
        "required": ["data", "analysis_type"],
    }
    output_schema = {
        "type": "object",
        "properties": {
            "results": {"type": "object"},
            "insights": {"type": "array"},
        },
    }

    async def execute(self, payload: dict[str, Any]) -> dict[str, Any]:
        data = payload["data"]
        if not isinstance(data, list) or not data:
            raise ToolError("'data' must be a non-empty array")
        analysis = str(payload["analysis_type"]).lower()

        if analysis in ("describe", "summary"):
            results = self._describe(data)
            insights = [
                f"{results['count']} values, mean {results['mean']:.4g}, "
                f"range {results['min']:.4g}..{results['max']:.4g}"
            ]
        elif analysis == "frequency":
            top = int((payload.get("parameters") or {}).get("top", 10))
            counts = Counter(str(v) for v in data).most_common(top)
            results = {"counts": dict(counts), "distinct": len(set(map(str, data)))}
            insights = [f"Most common value: {counts[0][0]} ({counts[0][1]}x)"]
        elif analysis == "correlation":
            results = self._correlation(data)
            insights = [f"Pearson correlation {results['pearson']:.3f} over {results['count']} pairs"]
        else:
            raise ToolError(f"Unknown analysis type: {analysis}")

        return {"results": results, "insights": insights, "confidence": 0.85}

    @staticmethod
    def _numbers(values: list[Any]) -> list[float]:
        try:
            return [float(v) for v in values]
        except (TypeError, ValueError) as e:
            raise ToolError(f"Non-numeric value in data: {e}") from e

    def _describe(self, data: list[Any]) -> dict[str, Any]:
        numbers = self._numbers(data)
        return {
            "count": len(numbers),
            "mean": statistics.fmean(numbers),
            "median": statistics.median(numbers),
            "stdev": statistics.stdev(numbers) if len(numbers) > 1 else 0.0,
            "min": min(numbers),
            "max": max(numbers),
        }

    def _correlation(self, data: list[Any]) -> dict[str, Any]:
        if not all(isinstance(p, (list, tuple)) and len(p) == 2 for p in data):
            raise ToolError("correlation expects [[x, y], ...] pairs")
        xs = self._numbers([p[0] for p in data])
        ys = self._numbers([p[1] for p in data])
        if len(xs) < 2:
            raise ToolError("correlation needs at least two pairs")
        try:
            pearson = statistics.correlation(xs, ys)
        except statistics.StatisticsError as e:
            raise ToolError(str(e)) from e
        return {"count": len(xs), "pearson": pearson}
