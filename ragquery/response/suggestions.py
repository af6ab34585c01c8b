"""Follow-up suggestion extraction from completed replies."""

import re
from dataclasses import dataclass, field
from typing import List, Optional

from ragquery.agents.prompts import SUGGESTION_MARKER
from ragquery.utils.logger import get_logger

logger = get_logger()


@dataclass
class ExtractionResult:
    """Reply text with any recovered follow-up suggestions."""
    reply_text: str
    suggestions: List[str] = field(default_factory=list)


class SuggestionExtractor:
    """Recovers short follow-up actions from a completed reply.

    The model is asked to end its reply with a marker line such as
    ``SUGGESTED: [Pricing] | [Case studies]``. When that line is missing
    or carries no bracketed items, a heuristic looks for short enumerations
    after cue phrases ("such as", "including", ...) in the prose instead.
    """

    MAX_SUGGESTIONS = 3
    MIN_LENGTH = 2
    MAX_LENGTH = 40

    MARKER_PATTERN = re.compile(
        r"(?:^|\n)[ \t]*" + re.escape(SUGGESTION_MARKER), re.IGNORECASE
    )
    TOKEN_PATTERN = re.compile(r"\[([^\[\]]*)\]")

    CUE_PATTERN = re.compile(
        r"\b(?:such as|including|for example|for instance|e\.g\.|like|"
        r"interested in|options are|options include|help with|"
        r"questions about|learn more about)(?!\w)\s*:?\s+(?P<items>[^.?!\n]+)",
        re.IGNORECASE,
    )
    SPLIT_PATTERN = re.compile(r"\s*,\s*(?:and\s+|or\s+)?|\s+or\s+|\s+and\s+|\s*/\s*", re.IGNORECASE)

    LEADING_STOP_WORDS = {
        "a", "an", "the", "to", "our", "your", "any", "some", "more", "about",
        "hear", "know", "learn", "explore", "discuss", "with", "on", "in",
        "maybe", "perhaps", "also", "other", "things",
    }
    TRAILING_STOP_WORDS = {"etc", "too", "more", "instead", "first", "today", "next"}

    def extract(self, full_reply: str) -> ExtractionResult:
        """
        Split a reply into display text and suggestions.

        Args:
            full_reply: Complete reply from the completion provider

        Returns:
            ExtractionResult; suggestions is empty when nothing matched
        """
        if not full_reply:
            return ExtractionResult(reply_text=full_reply or "")

        try:
            match = self.MARKER_PATTERN.search(full_reply)

            if match:
                reply_text = full_reply[:match.start()].strip()
                suggestions = self._parse_marker(full_reply[match.end():])
                if not suggestions:
                    suggestions = self._heuristic(reply_text)
                return ExtractionResult(reply_text=reply_text, suggestions=suggestions)

            return ExtractionResult(
                reply_text=full_reply,
                suggestions=self._heuristic(full_reply),
            )

        except Exception as e:
            logger.error(f"Suggestion extraction failed: {e}")
            return ExtractionResult(reply_text=full_reply)

    def _parse_marker(self, trailer: str) -> List[str]:
        suggestions = []
        for raw in self.TOKEN_PATTERN.findall(trailer):
            item = raw.strip()
            if item:
                suggestions.append(item)
            if len(suggestions) == self.MAX_SUGGESTIONS:
                break
        return suggestions

    def _heuristic(self, text: str) -> List[str]:
        """Best-effort enumeration mining; returns [] when nothing looks like a list."""
        suggestions: List[str] = []
        seen = set()

        for match in self.CUE_PATTERN.finditer(text):
            candidates = []
            for piece in self.SPLIT_PATTERN.split(match.group("items")):
                cleaned = self._clean_candidate(piece)
                if cleaned:
                    candidates.append(cleaned)

            # A single phrase after a cue word is not an enumeration
            if len(candidates) < 2:
                continue

            for candidate in candidates:
                key = candidate.lower()
                if key in seen:
                    continue
                seen.add(key)
                suggestions.append(candidate)
                if len(suggestions) == self.MAX_SUGGESTIONS:
                    return suggestions

        if suggestions:
            logger.debug(f"Heuristic suggestions: {suggestions}")
        return suggestions

    def _clean_candidate(self, piece: str) -> Optional[str]:
        words = re.sub(r"[\"'*_`()\[\]:;]", " ", piece).split()

        while words and words[0].lower() in self.LEADING_STOP_WORDS:
            words.pop(0)
        while words and words[-1].lower().strip("-") in self.TRAILING_STOP_WORDS:
            words.pop()

        candidate = " ".join(words).strip(" -")
        if not (self.MIN_LENGTH <= len(candidate) <= self.MAX_LENGTH):
            return None

        return " ".join(word[:1].upper() + word[1:] for word in candidate.split())


# Singleton instance
_extractor = None


def get_suggestion_extractor() -> SuggestionExtractor:
    """Get or create the global suggestion extractor instance."""
    global _extractor
    if _extractor is None:
        _extractor = SuggestionExtractor()
    return _extractor
