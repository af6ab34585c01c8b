"""Unit tests for relevance selectors."""

import pytest

from ragquery.rag.selector import (
    LexicalRelevanceSelector,
    SelectionQuery,
    VectorRelevanceSelector,
)
from ragquery.vectorstore.corpus_store import CorpusStore


def make_store(vectors, tags=None, contents=None):
    tags = tags or [[] for _ in vectors]
    contents = contents or [f"passage {i}" for i in range(len(vectors))]
    return CorpusStore.from_records([
        {"content": c, "vector": v, "tags": t}
        for c, v, t in zip(contents, vectors, tags)
    ])


class TestVectorRelevanceSelector:
    """Test cases for VectorRelevanceSelector."""

    def setup_method(self):
        """Set up test fixtures."""
        # Cosine against [1, 0]: 1.0, ~0.707, 0.0, ~0.447
        self.store = make_store([
            [1.0, 0.0],
            [1.0, 1.0],
            [0.0, 1.0],
            [1.0, 2.0],
        ])

    def selector(self, threshold=0.4, fallback_count=2, max_selected=4):
        return VectorRelevanceSelector(
            self.store,
            threshold=threshold,
            fallback_count=fallback_count,
            max_selected=max_selected,
        )

    def test_above_threshold_sorted_descending(self):
        """Test passages above threshold are returned best first."""
        selected = self.selector().select(SelectionQuery("q", vector=[1.0, 0.0]))

        assert [s.index for s in selected] == [0, 1, 3]
        scores = [s.score for s in selected]
        assert scores == sorted(scores, reverse=True)
        assert all(s.score > 0.4 for s in selected)

    def test_max_selected_cap(self):
        """Test selection is truncated to max_selected."""
        selected = self.selector(max_selected=2).select(SelectionQuery("q", vector=[1.0, 0.0]))
        assert [s.index for s in selected] == [0, 1]

    def test_fallback_when_nothing_clears_threshold(self):
        """Test top-F fallback when every score is below threshold."""
        selected = self.selector(threshold=1.5).select(SelectionQuery("q", vector=[1.0, 0.0]))

        assert len(selected) == 2
        assert [s.index for s in selected] == [0, 1]

    def test_fallback_smaller_corpus(self):
        """Test fallback returns min(F, n) passages."""
        store = make_store([[0.0, 1.0]])
        selector = VectorRelevanceSelector(store, threshold=0.4, fallback_count=2, max_selected=4)

        selected = selector.select(SelectionQuery("q", vector=[1.0, 0.0]))

        assert len(selected) == 1
        assert selected[0].score == pytest.approx(0.0)

    def test_threshold_is_strict(self):
        """Test a score equal to the threshold does not clear it."""
        selected = self.selector(threshold=1.0, fallback_count=1).select(
            SelectionQuery("q", vector=[1.0, 0.0])
        )
        # Still picked, but only through the fallback
        assert [s.index for s in selected] == [0]

    def test_ties_keep_corpus_order(self):
        """Test equal scores keep their corpus order."""
        store = make_store([[0.0, 1.0], [2.0, 0.0], [1.0, 0.0]])
        selector = VectorRelevanceSelector(store, threshold=0.4, fallback_count=2, max_selected=4)

        selected = selector.select(SelectionQuery("q", vector=[1.0, 0.0]))

        assert [s.index for s in selected] == [1, 2]

    def test_empty_corpus(self):
        """Test an empty corpus selects nothing."""
        selector = VectorRelevanceSelector(
            CorpusStore([]), threshold=0.4, fallback_count=2, max_selected=4
        )
        assert selector.select(SelectionQuery("q", vector=[1.0, 0.0])) == []

    def test_requires_vector(self):
        """Test vector selection without an embedding is an error."""
        with pytest.raises(ValueError):
            self.selector().select(SelectionQuery("q"))


class TestCategoryFilter:
    """A category filter must restrict selection to matching passages."""

    def setup_method(self):
        """Set up test fixtures."""
        self.store = make_store(
            [[1.0, 0.0], [0.0, 1.0], [0.5, 0.5]],
            tags=[["banking"], ["retail"], ["banking", "retail"]],
        )
        self.selector = VectorRelevanceSelector(
            self.store, threshold=0.4, fallback_count=2, max_selected=4
        )

    @pytest.mark.parametrize("vector", [[1.0, 0.0], [0.0, 1.0], [-1.0, -1.0], [0.0, 0.0]])
    def test_only_tagged_passages_selected(self, vector):
        """Test a banking filter never selects the retail-only passage."""
        selected = self.selector.select(
            SelectionQuery("q", vector=vector, category="banking")
        )

        indexes = {s.index for s in selected}
        assert indexes, "Filtered corpus is non-empty so selection must be non-empty"
        assert indexes <= {0, 2}
        assert 1 not in indexes

    def test_unknown_category_gives_empty(self):
        """Test a category with no passages selects nothing."""
        selected = self.selector.select(
            SelectionQuery("q", vector=[1.0, 0.0], category="energy")
        )
        assert selected == []

    def test_blank_category_means_no_filter(self):
        """Test a whitespace category is treated as no filter."""
        selected = self.selector.select(
            SelectionQuery("q", vector=[0.0, 1.0], category="  ")
        )
        assert 1 in {s.index for s in selected}


class TestLexicalRelevanceSelector:
    """Test cases for LexicalRelevanceSelector."""

    def setup_method(self):
        """Set up test fixtures."""
        self.store = make_store(
            [[1.0], [1.0], [1.0]],
            tags=[["banking"], ["healthcare"], []],
            contents=[
                "We automate loan processing for banks.",
                "Clinical documentation for hospitals.",
                "General company overview.",
            ],
        )
        self.selector = LexicalRelevanceSelector(self.store)

    def test_extract_keywords_removes_stop_words(self):
        """Test stop words and punctuation are dropped."""
        keywords = self.selector.extract_keywords("Tell me about your banks?")
        assert "tell" not in keywords
        assert "your" not in keywords
        assert keywords[0] == "banks"

    def test_extract_keywords_expands_synonyms(self):
        """Test keywords are expanded through the synonym table."""
        keywords = self.selector.extract_keywords("banks")
        assert "banking" in keywords
        assert "loan" in keywords
        assert len(keywords) == len(set(keywords))

    def test_tag_match_outweighs_content(self):
        """Test a tag hit scores at least the tag weight."""
        scored = self.selector.score(
            SelectionQuery("banking"), self.store.passages
        )
        assert scored[0].score >= LexicalRelevanceSelector.TAG_WEIGHT
        assert scored[1].score == 0.0

    def test_select_relevant_passage_first(self):
        """Test the passage mentioning the keyword ranks first."""
        selected = self.selector.select(SelectionQuery("What do you do for hospitals?"))
        assert selected[0].index == 1

    def test_no_keyword_hits_falls_back(self):
        """Test zero scores fall back to the first passages in corpus order."""
        selected = self.selector.select(SelectionQuery("zebra"))
        assert [s.index for s in selected] == [0, 1]
        assert all(s.score == 0.0 for s in selected)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
