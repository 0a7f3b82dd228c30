"""Capability tools and the tool registry."""
