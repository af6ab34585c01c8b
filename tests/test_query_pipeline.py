"""
Pipeline tests: retrieval, grounding and answering with in-process providers.

No network access is needed; embedding and completion providers are replaced
by small scripted fakes.
"""

import pytest

from ragquery.agents.assistant import QueryAssistant, QueryRequest
from ragquery.agents.dialogue import ConversationTurn, GroundingDialogueBuilder
from ragquery.agents.relay import CompletionRelay
from ragquery.exceptions import ProviderError, ValidationError
from ragquery.providers.completion import CompletionProvider
from ragquery.providers.embeddings import EmbeddingProvider
from ragquery.rag.context import ContextAssembler
from ragquery.rag.retriever import RAGRetriever, build_retriever
from ragquery.rag.selector import LexicalRelevanceSelector, VectorRelevanceSelector
from ragquery.utils.config import Settings
from ragquery.vectorstore.corpus_store import CorpusStore


CORPUS = [
    {"content": "We automate loan underwriting for banks.", "vector": [1.0, 0.0, 0.0], "tags": ["banking"]},
    {"content": "Retail demand forecasting for stores.", "vector": [0.0, 1.0, 0.0], "tags": ["retail"]},
    {"content": "Fraud detection for banks and retailers.", "vector": [0.6, 0.6, 0.0], "tags": ["banking", "retail"]},
]


class FakeEmbedder(EmbeddingProvider):
    name = "fake"

    def __init__(self, vector=None, error=None):
        self.vector = vector or [1.0, 0.0, 0.0]
        self.error = error
        self.calls = []

    async def embed(self, text):
        self.calls.append(text)
        if self.error:
            raise self.error
        return self.vector


class RecordingProvider(CompletionProvider):
    """Records the messages it was asked to complete and replies with fixed text."""

    name = "recording"

    def __init__(self, fragments):
        self.fragments = fragments
        self.requests = []

    async def stream(self, messages):
        self.requests.append(list(messages))
        for fragment in self.fragments:
            yield fragment


class TestRAGRetriever:
    """Test cases for RAGRetriever."""

    def setup_method(self):
        """Set up test fixtures."""
        self.store = CorpusStore.from_records(CORPUS)
        self.selector = VectorRelevanceSelector(
            self.store, threshold=0.4, fallback_count=2, max_selected=4
        )

    @pytest.mark.asyncio
    async def test_vector_retrieval(self):
        """Test embedding-based retrieval and source summaries."""
        retriever = RAGRetriever(self.selector, ContextAssembler(), embedder=FakeEmbedder())

        result = await retriever.retrieve("loans for banks")

        assert result.strategy == "vector_selector"
        assert result.found_documents == 2
        assert result.context.startswith(CORPUS[0]["content"])
        assert [s["index"] for s in result.sources] == [0, 2]

    @pytest.mark.asyncio
    async def test_category_filter(self):
        """Test the category filter excludes other passages."""
        retriever = RAGRetriever(
            self.selector, ContextAssembler(), embedder=FakeEmbedder([0.0, 1.0, 0.0])
        )

        result = await retriever.retrieve("stores", category="banking")

        assert {s["index"] for s in result.sources} <= {0, 2}
        assert CORPUS[1]["content"] not in result.context

    @pytest.mark.asyncio
    async def test_lexical_fallback_on_embedding_failure(self):
        """Test lexical selection takes over when embedding fails."""
        retriever = RAGRetriever(
            self.selector,
            ContextAssembler(),
            embedder=FakeEmbedder(error=ProviderError("embedding down")),
            lexical_fallback=LexicalRelevanceSelector(self.store),
        )

        result = await retriever.retrieve("retail forecasting")

        assert result.strategy == "lexical_selector"
        assert result.sources[0]["index"] == 1

    @pytest.mark.asyncio
    async def test_embedding_failure_without_fallback(self):
        """Test embedding failure propagates without a fallback."""
        retriever = RAGRetriever(
            self.selector,
            ContextAssembler(),
            embedder=FakeEmbedder(error=ProviderError("embedding down")),
        )

        with pytest.raises(ProviderError):
            await retriever.retrieve("anything")

    @pytest.mark.asyncio
    async def test_lexical_fallback_on_wrong_dimension(self):
        """Test a query vector of the wrong size falls back to lexical selection."""
        retriever = RAGRetriever(
            self.selector,
            ContextAssembler(),
            embedder=FakeEmbedder([1.0, 0.0]),
            lexical_fallback=LexicalRelevanceSelector(self.store),
        )

        result = await retriever.retrieve("retail forecasting")

        assert result.strategy == "lexical_selector"
        assert result.sources[0]["index"] == 1

    @pytest.mark.asyncio
    async def test_wrong_dimension_without_fallback(self):
        """Test a query vector of the wrong size is a provider error without a fallback."""
        retriever = RAGRetriever(
            self.selector, ContextAssembler(), embedder=FakeEmbedder([1.0, 0.0])
        )

        with pytest.raises(ProviderError, match="2-dimensional"):
            await retriever.retrieve("anything")

    def test_vector_selector_needs_embedder(self):
        """Test a vector selector cannot be used without an embedder."""
        with pytest.raises(ValueError):
            RAGRetriever(self.selector, ContextAssembler())

    @pytest.mark.asyncio
    async def test_build_retriever_lexical_strategy(self):
        """Test the lexical strategy from settings."""
        settings = Settings(_env_file=None, rag_selector_strategy="lexical")
        retriever = build_retriever(self.store, settings)

        result = await retriever.retrieve("fraud detection")

        assert retriever.embedder is None
        assert result.strategy == "lexical_selector"
        assert result.sources[0]["index"] == 2


class TestQueryAssistant:
    """Test cases for QueryAssistant."""

    def setup_method(self):
        """Set up test fixtures."""
        self.store = CorpusStore.from_records(CORPUS)
        self.embedder = FakeEmbedder()

    def make_assistant(self, fragments, store=None, suggestions_enabled=True):
        store = store if store is not None else self.store
        self.provider = RecordingProvider(fragments)
        selector = VectorRelevanceSelector(store, threshold=0.4, fallback_count=2, max_selected=4)
        return QueryAssistant(
            retriever=RAGRetriever(selector, ContextAssembler(), embedder=self.embedder),
            dialogue_builder=GroundingDialogueBuilder(),
            relay=CompletionRelay(self.provider),
            suggestions_enabled=suggestions_enabled,
        )

    @pytest.mark.asyncio
    async def test_answer_with_suggestions(self):
        """Test a buffered answer with suggestions and persona."""
        assistant = self.make_assistant(
            ["We help banks.", "\nSUGGESTED: [Pricing] | [Case studies]"]
        )
        request = QueryRequest([ConversationTurn("user", "What about banks?")], display_name="Sam")

        response = await assistant.answer(request)

        assert response.reply_text == "We help banks."
        assert response.suggestions == ["Pricing", "Case studies"]
        assert response.metadata["found_documents"] == 2
        assert response.metadata["provider"] == "recording"

        system = self.provider.requests[0][0]
        assert system.role == "system"
        assert "SUGGESTED:" in system.content
        assert "Sam" in system.content

    @pytest.mark.asyncio
    async def test_stream_omits_suggestion_directive(self):
        """Test streaming does not request the suggestion trailer."""
        assistant = self.make_assistant(["Hel", "lo"])
        request = QueryRequest([ConversationTurn("user", "Hi there")])

        fragments = await assistant.open_stream(request)
        received = [f async for f in fragments]

        assert received == ["Hel", "lo"]
        assert "SUGGESTED:" not in self.provider.requests[0][0].content

    @pytest.mark.asyncio
    async def test_empty_corpus_still_answers(self):
        """Test an empty corpus still produces a grounded dialogue."""
        assistant = self.make_assistant(["I don't have that information."], store=CorpusStore([]))
        request = QueryRequest([ConversationTurn("user", "Anything?")])

        response = await assistant.answer(request)

        assert response.reply_text == "I don't have that information."
        assert response.metadata["found_documents"] == 0
        sent_user = self.provider.requests[0][1]
        assert "No relevant information" in sent_user.content

    @pytest.mark.asyncio
    async def test_invalid_request_makes_no_upstream_calls(self):
        """Test validation happens before any provider call."""
        assistant = self.make_assistant(["unused"])

        with pytest.raises(ValidationError):
            await assistant.answer(QueryRequest([]))

        assert self.embedder.calls == []
        assert self.provider.requests == []

    @pytest.mark.asyncio
    async def test_suggestions_disabled(self):
        """Test extraction is skipped when suggestions are disabled."""
        assistant = self.make_assistant(
            ["Answer\nSUGGESTED: [One]"], suggestions_enabled=False
        )

        response = await assistant.answer(QueryRequest([ConversationTurn("user", "Hi")]))

        assert response.reply_text == "Answer\nSUGGESTED: [One]"
        assert response.suggestions == []


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
