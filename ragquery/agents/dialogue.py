"""Grounded message sequence construction."""

from dataclasses import dataclass
from typing import Dict, List, Literal, Optional, Sequence

from ragquery.agents.prompts import NO_CONTEXT_NOTICE, PersonaConfig, build_system_prompt

Role = Literal["system", "user", "assistant"]
ContextInjection = Literal["last_user", "first_user", "turn"]


@dataclass(frozen=True)
class ConversationTurn:
    """One provider-agnostic chat message."""
    role: Role
    content: str

    def to_message(self) -> Dict[str, str]:
        return {"role": self.role, "content": self.content}


class GroundingDialogueBuilder:
    """Combines instructions, context and conversation into one message list.

    The output always starts with a single system instruction. The context
    is prefixed to the latest user turn (or the first, when configured) or
    sent as its own system turn placed right before the conversation;
    caller turns otherwise keep their order and content.
    """

    def __init__(
        self,
        persona: Optional[PersonaConfig] = None,
        injection: ContextInjection = "last_user"
    ):
        self.persona = persona or PersonaConfig()
        self.injection = injection

    def format_context(self, context: str) -> str:
        return f"CONTEXT:\n{context if context else NO_CONTEXT_NOTICE}"

    def build(
        self,
        conversation: Sequence[ConversationTurn],
        context: str,
        display_name: Optional[str] = None,
        with_suggestions: bool = False
    ) -> List[ConversationTurn]:
        """
        Build the message sequence for the completion provider.

        Args:
            conversation: Caller-supplied turns in order
            context: Assembled grounding context (may be empty)
            display_name: Optional user name for the persona
            with_suggestions: Whether to request the suggestion trailer

        Returns:
            Ordered list of ConversationTurn
        """
        system = ConversationTurn(
            role="system",
            content=build_system_prompt(self.persona, display_name, with_suggestions),
        )
        context_block = self.format_context(context)

        if self.injection == "turn":
            return [system, ConversationTurn("system", context_block), *conversation]

        user_positions = [i for i, turn in enumerate(conversation) if turn.role == "user"]
        if not user_positions:
            return [system, ConversationTurn("system", context_block), *conversation]

        # Context was retrieved for the latest utterance unless told otherwise
        target = user_positions[0] if self.injection == "first_user" else user_positions[-1]

        messages = [system]
        for idx, turn in enumerate(conversation):
            if idx == target:
                messages.append(
                    ConversationTurn("user", f"{context_block}\n\n---\n\n{turn.content}")
                )
            else:
                messages.append(turn)

        return messages
