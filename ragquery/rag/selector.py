"""Relevance selection strategies over the corpus."""

import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

from ragquery.vectorstore.corpus_store import CorpusStore, Passage, ScoredPassage, TagMatch
from ragquery.utils.logger import get_logger

logger = get_logger()


@dataclass
class SelectionQuery:
    """Inputs a selector may use to score passages."""
    text: str
    vector: Optional[Sequence[float]] = None
    category: Optional[str] = None


def rank(scored: Sequence[ScoredPassage]) -> List[ScoredPassage]:
    """Sort by descending score; ties keep corpus order."""
    return sorted(scored, key=lambda s: (-s.score, s.index))


class RelevanceSelector(ABC):
    """Threshold-with-fallback selection shared by every scoring strategy.

    Subclasses only decide how a passage is scored. Selection keeps every
    passage scoring above the threshold (up to ``max_selected``); when none
    clears it, the top ``fallback_count`` passages are returned instead so a
    non-empty corpus never yields an empty context.
    """

    name = "base"
    requires_embedding = False

    def __init__(
        self,
        store: CorpusStore,
        threshold: float,
        fallback_count: int,
        max_selected: int,
        tag_match: TagMatch = "exact"
    ):
        self.store = store
        self.threshold = threshold
        self.fallback_count = fallback_count
        self.max_selected = max_selected
        self.tag_match = tag_match

    @abstractmethod
    def score(self, query: SelectionQuery, passages: Sequence[Passage]) -> List[ScoredPassage]:
        """Score each passage for the query, preserving input order."""
        pass

    def candidates(self, category: Optional[str] = None) -> Sequence[Passage]:
        """Passages eligible for scoring after the optional category filter."""
        if category and category.strip():
            return self.store.filter_by_tag(category, self.tag_match)
        return self.store.passages

    def select(self, query: SelectionQuery) -> List[ScoredPassage]:
        """
        Select the passages to ground a reply on.

        Args:
            query: Query text, optional vector and optional category

        Returns:
            Selected passages sorted by descending score (may be empty)
        """
        passages = self.candidates(query.category)

        if not passages:
            logger.warning(
                f"{self.name}: no passages left after category filter "
                f"'{query.category}'"
            )
            return []

        ranked = rank(self.score(query, passages))

        selected = [s for s in ranked if s.score > self.threshold][:self.max_selected]
        if selected:
            logger.debug(
                f"{self.name}: {len(selected)} passages above threshold {self.threshold}"
            )
            return selected

        logger.info(
            f"{self.name}: nothing above threshold {self.threshold}, "
            f"falling back to top {self.fallback_count}"
        )
        return ranked[:self.fallback_count]


class VectorRelevanceSelector(RelevanceSelector):
    """Scores passages by cosine similarity to the query embedding."""

    name = "vector_selector"
    requires_embedding = True

    def score(self, query: SelectionQuery, passages: Sequence[Passage]) -> List[ScoredPassage]:
        if query.vector is None:
            raise ValueError("Vector selection requires a query embedding")
        return self.store.score(query.vector, passages)


class LexicalRelevanceSelector(RelevanceSelector):
    """Keyword scoring used when no query embedding is available.

    Tags that contain a query keyword weigh far more than occurrences in
    the passage text. Keywords are expanded through a small synonym table.
    """

    name = "lexical_selector"

    STOP_WORDS = {
        "tell", "me", "about", "what", "is", "are", "the", "a", "an", "and",
        "or", "but", "in", "on", "at", "to", "for", "of", "with", "by",
        "you", "your", "our", "can", "how", "does", "do",
    }

    EXPANSIONS: Dict[str, List[str]] = {
        "banks": ["banking", "financial", "finance", "credit", "loan"],
        "bank": ["banking", "financial", "finance", "credit", "loan"],
        "banking": ["banks", "bank", "financial", "finance"],
        "healthcare": ["health", "medical", "medicine", "hospital", "clinical"],
        "health": ["healthcare", "medical", "medicine", "hospital"],
        "manufacturing": ["production", "factory", "industrial", "assembly"],
        "insurance": ["coverage", "policy", "claims", "underwriting"],
        "retail": ["commerce", "shopping", "store", "sales"],
        "logistics": ["supply", "chain", "shipping", "distribution"],
        "construction": ["building", "contractor", "architecture"],
        "education": ["school", "university", "learning", "academic"],
        "government": ["public", "municipal", "federal", "state"],
        "energy": ["power", "utility", "electricity", "oil", "gas"],
        "telecommunications": ["telecom", "network", "communications"],
    }

    TAG_WEIGHT = 10
    CONTENT_WEIGHT = 2

    def __init__(
        self,
        store: CorpusStore,
        threshold: float = 0.0,
        fallback_count: int = 2,
        max_selected: int = 5,
        tag_match: TagMatch = "exact"
    ):
        super().__init__(store, threshold, fallback_count, max_selected, tag_match)

    def extract_keywords(self, text: str) -> List[str]:
        """
        Extract and expand meaningful keywords from query text.

        Args:
            text: Query text

        Returns:
            Deduplicated keyword list in first-seen order
        """
        words = [
            word.strip(".,!?;:'\"()[]")
            for word in text.lower().split()
        ]
        words = [w for w in words if len(w) > 2 and w not in self.STOP_WORDS]

        expanded = list(words)
        for word in words:
            expanded.extend(self.EXPANSIONS.get(word, []))

        return list(dict.fromkeys(expanded))

    def score(self, query: SelectionQuery, passages: Sequence[Passage]) -> List[ScoredPassage]:
        keywords = self.extract_keywords(query.text)
        logger.debug(f"{self.name}: keywords {keywords}")

        scored = []
        for passage in passages:
            score = 0
            for tag in passage.tags:
                score += self.TAG_WEIGHT * sum(1 for kw in keywords if kw in tag)

            content = passage.content.lower()
            score += self.CONTENT_WEIGHT * sum(
                len(re.findall(re.escape(kw), content)) for kw in keywords
            )

            scored.append(ScoredPassage(passage=passage, score=float(score)))

        return scored
