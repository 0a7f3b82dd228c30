"""Goal-execution scheduler: controller, executor and concurrency coordinator."""

from agentflow.orchestrator.controller import Orchestrator
from agentflow.orchestrator.coordinator import ConcurrencyCoordinator
from agentflow.orchestrator.executor import TaskExecutor

__all__ = ["ConcurrencyCoordinator", "Orchestrator", "TaskExecutor"]
