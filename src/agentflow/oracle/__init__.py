"""Reasoning oracle interface and backends."""

from agentflow.oracle.base import ReasoningOracle
from agentflow.oracle.llm import LLMOracle

__all__ = ["LLMOracle", "ReasoningOracle"]
