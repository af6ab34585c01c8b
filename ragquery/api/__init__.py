"""HTTP API for the RAG query service."""

from ragquery.api.main import create_app

__all__ = ["create_app"]
