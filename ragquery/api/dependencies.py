"""
Process-scoped service state and FastAPI dependency providers.
"""

from dataclasses import dataclass
from typing import Optional

from fastapi import Request

from ragquery.agents.assistant import QueryAssistant
from ragquery.api.feedback import FeedbackLog
from ragquery.providers.completion import CompletionProvider
from ragquery.providers.embeddings import EmbeddingProvider
from ragquery.vectorstore.corpus_store import CorpusStore
from ragquery.utils.config import Settings


@dataclass
class ServiceState:
    """Everything built once at startup and shared read-only by requests."""
    settings: Settings
    store: CorpusStore
    assistant: QueryAssistant
    completion_provider: CompletionProvider
    feedback_log: FeedbackLog
    embedder: Optional[EmbeddingProvider] = None

    async def aclose(self) -> None:
        await self.completion_provider.aclose()
        if self.embedder is not None:
            await self.embedder.aclose()


def get_service_state(request: Request) -> ServiceState:
    return request.app.state.service
