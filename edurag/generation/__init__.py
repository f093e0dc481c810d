"""Prompting, text-generation services and structured output parsing."""
