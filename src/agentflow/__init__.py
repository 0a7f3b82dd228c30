"""AgentFlow - goal-driven autonomous task execution."""

__version__ = "1.0.0"
