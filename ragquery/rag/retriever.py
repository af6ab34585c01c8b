"""RAG retrieval and context preparation."""

from typing import List, Dict, Any, Optional
from dataclasses import dataclass

from ragquery.exceptions import ProviderError
from ragquery.providers.embeddings import EmbeddingProvider
from ragquery.rag.context import ContextAssembler
from ragquery.rag.selector import (
    LexicalRelevanceSelector,
    RelevanceSelector,
    SelectionQuery,
    VectorRelevanceSelector,
)
from ragquery.vectorstore.corpus_store import CorpusStore, ScoredPassage
from ragquery.utils.config import Settings
from ragquery.utils.logger import get_logger

logger = get_logger()


@dataclass
class RetrievalResult:
    """Result from RAG retrieval."""
    context: str
    sources: List[Dict[str, Any]]
    query: str
    found_documents: int
    strategy: str


class RAGRetriever:
    """Turns query text into a bounded grounding context."""

    def __init__(
        self,
        selector: RelevanceSelector,
        assembler: ContextAssembler,
        embedder: Optional[EmbeddingProvider] = None,
        lexical_fallback: Optional[RelevanceSelector] = None
    ):
        """
        Initialize RAG retriever.

        Args:
            selector: Primary relevance strategy
            assembler: Context assembler
            embedder: Embedding provider, required by vector strategies
            lexical_fallback: Strategy used when embedding the query fails
        """
        if selector.requires_embedding and embedder is None:
            raise ValueError(f"{selector.name} requires an embedding provider")

        self.selector = selector
        self.assembler = assembler
        self.embedder = embedder
        self.lexical_fallback = lexical_fallback

    async def retrieve(self, query: str, category: Optional[str] = None) -> RetrievalResult:
        """
        Retrieve relevant passages for a query.

        Args:
            query: User query text
            category: Optional category tag to restrict the corpus

        Returns:
            RetrievalResult with context and sources

        Raises:
            ProviderError: If embedding fails or returns the wrong dimension
                and no lexical fallback is set
        """
        logger.info(f"Retrieving passages for query: '{query[:50]}...'")

        selector = self.selector
        vector = None

        if selector.requires_embedding:
            try:
                vector = await self.embedder.embed(query)
                self._check_dimension(vector)
            except ProviderError as e:
                if self.lexical_fallback is None:
                    raise
                logger.warning(f"Embedding failed ({e}), using {self.lexical_fallback.name}")
                selector = self.lexical_fallback

        selected = selector.select(
            SelectionQuery(text=query, vector=vector, category=category)
        )
        context = self.assembler.assemble(selected)

        logger.info(
            f"Selected {len(selected)} passages via {selector.name}, "
            f"context length: {len(context)} characters"
        )

        return RetrievalResult(
            context=context,
            sources=self._describe_sources(selected),
            query=query,
            found_documents=len(selected),
            strategy=selector.name,
        )

    def _check_dimension(self, vector) -> None:
        """Reject a query embedding the corpus cannot be scored against."""
        expected = self.selector.store.dimension
        if expected is not None and len(vector) != expected:
            raise ProviderError(
                f"{self.embedder.name} returned a {len(vector)}-dimensional embedding, "
                f"corpus expects {expected}"
            )

    def _describe_sources(self, selected: List[ScoredPassage]) -> List[Dict[str, Any]]:
        return [
            {
                "index": s.index,
                "score": s.score,
                "tags": sorted(s.passage.tags),
                "text": s.content[:200],
            }
            for s in selected
        ]


def build_retriever(
    store: CorpusStore,
    settings: Settings,
    embedder: Optional[EmbeddingProvider] = None
) -> RAGRetriever:
    """
    Build a retriever from settings.

    Args:
        store: Loaded corpus
        settings: Application settings
        embedder: Embedding provider for the vector strategy

    Returns:
        Configured RAGRetriever
    """
    lexical = LexicalRelevanceSelector(
        store,
        fallback_count=settings.rag_fallback_count,
        tag_match=settings.rag_tag_match,
    )

    if settings.rag_selector_strategy == "lexical":
        selector: RelevanceSelector = lexical
        fallback = None
    else:
        selector = VectorRelevanceSelector(
            store,
            threshold=settings.rag_similarity_threshold,
            fallback_count=settings.rag_fallback_count,
            max_selected=settings.rag_max_selected,
            tag_match=settings.rag_tag_match,
        )
        fallback = lexical if settings.rag_lexical_fallback else None

    return RAGRetriever(
        selector=selector,
        assembler=ContextAssembler(settings.rag_context_char_budget),
        embedder=embedder,
        lexical_fallback=fallback,
    )
