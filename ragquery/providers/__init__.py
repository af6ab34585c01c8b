"""Remote model providers.

This module provides:
- Embedding clients (OpenAI-compatible HTTP, Ollama)
- Streaming completion clients (Anthropic messages API, Ollama)
"""
