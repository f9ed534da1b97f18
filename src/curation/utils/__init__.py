"""Shared utilities: logging, retry policy, LLM client and file I/O."""
