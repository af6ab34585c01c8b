"""Grounding context assembly."""

from typing import Sequence

from ragquery.vectorstore.corpus_store import ScoredPassage
from ragquery.utils.logger import get_logger

logger = get_logger()


class ContextAssembler:
    """Joins selected passages into one context string within a budget."""

    SEPARATOR = "\n\n"

    def __init__(self, char_budget: int = 8000):
        """
        Initialize context assembler.

        Args:
            char_budget: Maximum context length in characters
        """
        if char_budget < 0:
            raise ValueError("char_budget must be non-negative")
        self.char_budget = char_budget

    def assemble(self, selected: Sequence[ScoredPassage]) -> str:
        """
        Build the context string.

        Passages are joined in selection order and the result is cut at the
        budget boundary, possibly mid-word.

        Args:
            selected: Selected passages

        Returns:
            Context string, empty when nothing was selected
        """
        if not selected:
            return ""

        context = self.SEPARATOR.join(s.content for s in selected)

        if len(context) > self.char_budget:
            logger.debug(
                f"Context truncated from {len(context)} to {self.char_budget} characters"
            )
            context = context[:self.char_budget]

        return context
