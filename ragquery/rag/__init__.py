"""Retrieval-Augmented Generation (RAG) pipeline.

This module handles:
- Relevance selection over scored passages (vector or lexical)
- Context assembly within a character budget
- Retrieval orchestration from query text to grounding context
"""
