"""LLM provider factory."""
