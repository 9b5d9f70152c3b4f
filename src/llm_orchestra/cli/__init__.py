"""Command-line interface for LLM Orchestra."""
