"""The grounded query assistant: retrieval, dialogue, completion, extraction."""

import time
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Dict, List, Optional, Tuple

from ragquery.agents.dialogue import ConversationTurn, GroundingDialogueBuilder
from ragquery.agents.prompts import PersonaConfig
from ragquery.agents.relay import CompletionRelay
from ragquery.providers.completion import CompletionProvider
from ragquery.providers.embeddings import EmbeddingProvider
from ragquery.rag.retriever import RAGRetriever, RetrievalResult, build_retriever
from ragquery.response.suggestions import ExtractionResult, SuggestionExtractor, get_suggestion_extractor
from ragquery.safety.request_validator import RequestValidator, get_request_validator
from ragquery.vectorstore.corpus_store import CorpusStore
from ragquery.utils.config import Settings
from ragquery.utils.logger import get_logger

logger = get_logger()


@dataclass
class QueryRequest:
    """A conversation to answer, with optional category and user name."""
    conversation: List[ConversationTurn]
    category_filter: Optional[str] = None
    display_name: Optional[str] = None


@dataclass
class AssistantResponse:
    """Buffered answer with extracted suggestions."""
    reply_text: str
    suggestions: List[str]
    sources: List[Dict[str, Any]]
    processing_time: float
    metadata: Dict[str, Any] = field(default_factory=dict)


class QueryAssistant:
    """Single pipeline behind every query, whatever the persona or provider."""

    def __init__(
        self,
        retriever: RAGRetriever,
        dialogue_builder: GroundingDialogueBuilder,
        relay: CompletionRelay,
        extractor: Optional[SuggestionExtractor] = None,
        validator: Optional[RequestValidator] = None,
        suggestions_enabled: bool = True
    ):
        self.retriever = retriever
        self.dialogue_builder = dialogue_builder
        self.relay = relay
        self.extractor = extractor or get_suggestion_extractor()
        self.validator = validator or get_request_validator()
        self.suggestions_enabled = suggestions_enabled

    async def prepare(
        self,
        request: QueryRequest,
        with_suggestions: bool = False
    ) -> Tuple[List[ConversationTurn], RetrievalResult]:
        """
        Validate the request, retrieve context and build the grounded dialogue.

        Args:
            request: Query request
            with_suggestions: Whether to ask the model for the suggestion trailer

        Returns:
            Tuple of (messages, retrieval result)

        Raises:
            ValidationError: If the conversation is malformed
            ProviderError: If retrieval cannot embed the query
        """
        query = self.validator.validate_conversation(request.conversation)

        retrieval = await self.retriever.retrieve(query, category=request.category_filter)

        if retrieval.found_documents == 0:
            logger.warning("No passages selected; the model will be told context is missing")

        messages = self.dialogue_builder.build(
            conversation=request.conversation,
            context=retrieval.context,
            display_name=request.display_name,
            with_suggestions=with_suggestions,
        )
        return messages, retrieval

    async def open_stream(self, request: QueryRequest) -> AsyncIterator[str]:
        """
        Prepare the request and return the live fragment stream.

        Validation and retrieval happen before this returns, so their errors
        surface before any output is produced.

        Args:
            request: Query request

        Returns:
            Async iterator of reply fragments
        """
        messages, _ = await self.prepare(request, with_suggestions=False)
        return self.relay.stream(messages)

    async def answer(self, request: QueryRequest) -> AssistantResponse:
        """
        Produce a complete reply with follow-up suggestions.

        Args:
            request: Query request

        Returns:
            AssistantResponse
        """
        start_time = time.time()

        messages, retrieval = await self.prepare(
            request, with_suggestions=self.suggestions_enabled
        )
        reply = await self.relay.complete(messages)

        if self.suggestions_enabled:
            extracted = self.extractor.extract(reply)
        else:
            extracted = ExtractionResult(reply_text=reply)

        processing_time = time.time() - start_time
        logger.info(
            f"Answered in {processing_time:.2f}s with "
            f"{len(extracted.suggestions)} suggestions"
        )

        return AssistantResponse(
            reply_text=extracted.reply_text,
            suggestions=extracted.suggestions,
            sources=retrieval.sources,
            processing_time=processing_time,
            metadata={
                "found_documents": retrieval.found_documents,
                "strategy": retrieval.strategy,
                "provider": self.relay.provider.name,
            },
        )


def build_assistant(
    store: CorpusStore,
    settings: Settings,
    embedder: Optional[EmbeddingProvider],
    completion_provider: CompletionProvider
) -> QueryAssistant:
    """
    Wire the pipeline from settings and already-built providers.

    Args:
        store: Loaded corpus
        settings: Application settings
        embedder: Embedding provider (may be None for the lexical strategy)
        completion_provider: Completion provider

    Returns:
        QueryAssistant
    """
    persona = PersonaConfig(
        company_name=settings.assistant_company_name,
        contact_url=settings.assistant_contact_url,
    )

    return QueryAssistant(
        retriever=build_retriever(store, settings, embedder),
        dialogue_builder=GroundingDialogueBuilder(persona, settings.rag_context_injection),
        relay=CompletionRelay(completion_provider),
        suggestions_enabled=settings.suggestions_enabled,
    )
