"""LLM prompt, providers and response parsing."""
