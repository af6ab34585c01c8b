"""Immutable in-memory vector store over the pre-embedded corpus."""

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, FrozenSet, Iterable, List, Literal, Optional, Sequence

import numpy as np

from ragquery.exceptions import ConfigurationError
from ragquery.utils.logger import get_logger

logger = get_logger()

TagMatch = Literal["exact", "substring"]


@dataclass(frozen=True, eq=False)
class Passage:
    """A single embedded passage from the corpus."""
    index: int
    content: str
    vector: np.ndarray = field(repr=False)
    tags: FrozenSet[str] = frozenset()

    def matches_category(self, category: str, match: TagMatch = "exact") -> bool:
        """
        Check whether any tag matches a category.

        Args:
            category: Category name (compared lowercase)
            match: "exact" for tag equality, "substring" for containment

        Returns:
            True if at least one tag matches
        """
        wanted = category.strip().lower()
        if match == "substring":
            return any(wanted in tag for tag in self.tags)
        return wanted in self.tags


@dataclass(frozen=True)
class ScoredPassage:
    """A passage paired with its similarity to one query."""
    passage: Passage
    score: float

    @property
    def content(self) -> str:
        return self.passage.content

    @property
    def index(self) -> int:
        return self.passage.index


class CorpusStore:
    """Read-only corpus of embedded passages with cosine scoring.

    Built once at startup and shared by reference between requests.
    Nothing mutates it after construction, so concurrent readers are safe.
    """

    def __init__(self, passages: Iterable[Passage]):
        self._passages = tuple(passages)
        self._dimension: Optional[int] = None

        if self._passages:
            dimensions = {p.vector.shape[0] for p in self._passages}
            if len(dimensions) != 1:
                raise ConfigurationError(
                    f"Corpus vectors have inconsistent dimensions: {sorted(dimensions)}"
                )
            self._dimension = dimensions.pop()
            self._matrix = np.vstack([p.vector for p in self._passages])
        else:
            self._matrix = np.zeros((0, 0), dtype=np.float64)

        self._norms = np.linalg.norm(self._matrix, axis=1) if self._passages else np.zeros(0)
        self._matrix.setflags(write=False)
        self._norms.setflags(write=False)

    @classmethod
    def from_records(cls, records: Sequence[Dict[str, Any]]) -> "CorpusStore":
        """
        Build a store from raw corpus records.

        Args:
            records: Sequence of {content, vector, tags?} mappings

        Returns:
            CorpusStore

        Raises:
            ConfigurationError: If any record is malformed
        """
        passages = []

        for idx, record in enumerate(records):
            if not isinstance(record, dict):
                raise ConfigurationError(f"Corpus entry {idx} is not an object")

            content = record.get("content")
            if not isinstance(content, str):
                raise ConfigurationError(f"Corpus entry {idx} has no text content")

            try:
                vector = np.asarray(record.get("vector"), dtype=np.float64)
            except (TypeError, ValueError) as e:
                raise ConfigurationError(f"Corpus entry {idx} has a non-numeric vector: {e}")

            if vector.ndim != 1 or vector.size == 0:
                raise ConfigurationError(f"Corpus entry {idx} has no usable vector")
            if not np.all(np.isfinite(vector)):
                raise ConfigurationError(f"Corpus entry {idx} vector contains non-finite values")

            raw_tags = record.get("tags") or []
            if not isinstance(raw_tags, list):
                raise ConfigurationError(f"Corpus entry {idx} tags must be a list")

            vector.setflags(write=False)
            passages.append(
                Passage(
                    index=idx,
                    content=content,
                    vector=vector,
                    tags=frozenset(str(tag).strip().lower() for tag in raw_tags),
                )
            )

        return cls(passages)

    @property
    def dimension(self) -> Optional[int]:
        """Vector dimensionality, or None for an empty corpus."""
        return self._dimension

    @property
    def passages(self) -> Sequence[Passage]:
        return self._passages

    def __len__(self) -> int:
        return len(self._passages)

    def filter_by_tag(self, category: str, match: TagMatch = "exact") -> List[Passage]:
        """Passages whose tags match the category, in corpus order."""
        return [p for p in self._passages if p.matches_category(category, match)]

    def score(
        self,
        query_vector: Sequence[float],
        passages: Optional[Sequence[Passage]] = None
    ) -> List[ScoredPassage]:
        """
        Score passages against a query vector using cosine similarity.

        Args:
            query_vector: Query embedding
            passages: Subset to score (defaults to the whole corpus)

        Returns:
            ScoredPassage list in the same order as the input passages
        """
        subset = self._passages if passages is None else passages
        if not subset:
            return []

        query = np.asarray(query_vector, dtype=np.float64)
        if query.ndim != 1 or query.shape[0] != self._dimension:
            raise ConfigurationError(
                f"Query vector dimension {query.shape[-1] if query.ndim else 0} "
                f"does not match corpus dimension {self._dimension}"
            )

        indexes = [p.index for p in subset]
        dots = self._matrix[indexes] @ query
        denom = self._norms[indexes] * np.linalg.norm(query)

        # Zero-norm vectors score 0 instead of NaN so sorting stays total
        scores = np.divide(dots, denom, out=np.zeros_like(dots), where=denom > 0)
        scores = np.clip(np.nan_to_num(scores, nan=0.0), -1.0, 1.0)

        return [
            ScoredPassage(passage=p, score=float(s))
            for p, s in zip(subset, scores)
        ]


def load_corpus(path: str | Path) -> CorpusStore:
    """
    Load the corpus artifact from disk.

    Args:
        path: Path to a JSON array of {content, vector, tags?}

    Returns:
        CorpusStore

    Raises:
        ConfigurationError: If the file is missing or malformed
    """
    corpus_path = Path(path)
    logger.info(f"Loading corpus from {corpus_path}")

    if not corpus_path.is_file():
        raise ConfigurationError(f"Corpus artifact not found: {corpus_path}")

    try:
        with open(corpus_path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"Corpus artifact is not valid JSON: {e}")
    except OSError as e:
        raise ConfigurationError(f"Failed to read corpus artifact: {e}")

    if not isinstance(data, list):
        raise ConfigurationError("Corpus artifact must be a JSON array")

    store = CorpusStore.from_records(data)

    if len(store) == 0:
        logger.warning("Corpus is empty; every query will get an empty context")
    else:
        logger.info(f"Loaded {len(store)} passages (dimension {store.dimension})")

    return store
