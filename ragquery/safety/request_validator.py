"""Validation of incoming query conversations."""

from typing import Sequence

from ragquery.agents.dialogue import ConversationTurn
from ragquery.exceptions import ValidationError
from ragquery.utils.logger import get_logger

logger = get_logger()


class RequestValidator:
    """Rejects conversations the pipeline cannot answer."""

    VALID_ROLES = {"system", "user", "assistant"}

    # Maximum allowed length of a single turn
    MAX_MESSAGE_LENGTH = 16000

    # Maximum number of turns forwarded to the provider
    MAX_TURNS = 50

    # Query length above which retrieval quality tends to drop
    MAX_QUERY_LENGTH = 2000

    def validate_conversation(self, conversation: Sequence[ConversationTurn]) -> str:
        """
        Validate a conversation before any upstream call is made.

        Args:
            conversation: Caller-supplied turns

        Returns:
            The latest user utterance

        Raises:
            ValidationError: If the conversation is empty or malformed
        """
        if not conversation:
            raise ValidationError("Invalid request: missing messages")

        if len(conversation) > self.MAX_TURNS:
            raise ValidationError(f"Too many messages (max {self.MAX_TURNS})")

        for idx, turn in enumerate(conversation):
            if turn.role not in self.VALID_ROLES:
                raise ValidationError(f"Invalid role '{turn.role}' in message {idx}")
            if len(turn.content) > self.MAX_MESSAGE_LENGTH:
                raise ValidationError(
                    f"Message {idx} too long (max {self.MAX_MESSAGE_LENGTH} characters)"
                )

        last = conversation[-1]
        if last.role != "user":
            raise ValidationError("Invalid request: last message must come from the user")
        if not last.content or not last.content.strip():
            raise ValidationError("Invalid request: missing messages")

        if len(last.content) > self.MAX_QUERY_LENGTH:
            # Still allow, but log warning
            logger.warning(f"Query too long for optimal retrieval: {len(last.content)} chars")

        return last.content


# Singleton instance
_request_validator = None


def get_request_validator() -> RequestValidator:
    """Get or create the global request validator instance."""
    global _request_validator
    if _request_validator is None:
        _request_validator = RequestValidator()
    return _request_validator
