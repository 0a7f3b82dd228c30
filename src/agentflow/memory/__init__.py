"""Run-scoped execution history."""
