"""Grounded assistant pipeline.

This module contains:
- Prompts: persona and grounding directives
- Dialogue builder: system instruction, context and conversation ordering
- Completion relay: streaming and buffered calls to the completion provider
- Assistant: the single query pipeline tying retrieval and generation together
"""
