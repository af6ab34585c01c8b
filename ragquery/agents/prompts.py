"""System instruction templates for the grounded assistant."""

from dataclasses import dataclass
from typing import Optional

SUGGESTION_MARKER = "SUGGESTED:"


@dataclass(frozen=True)
class PersonaConfig:
    """Who the assistant speaks for and where to send unanswered questions."""
    company_name: str = "Digital Labor Factory"
    contact_url: str = "https://www.digitallaborfactory.ai/contact"

    @property
    def contact_link(self) -> str:
        display = self.contact_url.replace("https://", "").replace("www.", "")
        return f"[{display}]({self.contact_url})"


PERSONA_TEMPLATE = (
    "You are the conversational AI assistant for {company_name}. "
    "You speak as part of our team using \"we\" and \"our\". "
    "Your tone is warm, confident and human, never robotic."
)

GROUNDING_DIRECTIVE = (
    "Answer ONLY from the information in the CONTEXT section. "
    "Never invent information. It is better to ask the user a question "
    "or say you are not sure than to guess."
)

REFUSAL_TEMPLATE = (
    "If the context provides only a partial answer, explain what is known "
    "and clearly note what is missing. If the answer is not in the context, "
    "say so plainly and suggest they contact us at {contact_link}."
)

TONE_DIRECTIVE = (
    "Be concise. Replies should feel like smart chat messages, not long emails. "
    "Use short paragraphs or bullet points when helpful and avoid repeating yourself. "
    "If a question is very broad, ask one brief clarifying question first."
)

LANGUAGE_DIRECTIVE = (
    "Always reply in the same language as the user's latest message. "
    "Use Markdown for light formatting when appropriate."
)

NAME_TEMPLATE = (
    "The user's name is \"{display_name}\". Occasionally refer to them by it "
    "to keep the tone personal."
)

SUGGESTION_DIRECTIVE = (
    "After your answer, on a new line, add up to three short follow-up "
    "topics the user might want next, exactly in this format:\n"
    f"{SUGGESTION_MARKER} [First topic] | [Second topic] | [Third topic]"
)

NO_CONTEXT_NOTICE = "(No relevant information was found in the knowledge base.)"


def build_system_prompt(
    persona: PersonaConfig,
    display_name: Optional[str] = None,
    with_suggestions: bool = False
) -> str:
    """
    Compose the system instruction.

    Args:
        persona: Persona configuration
        display_name: Optional user name to personalise replies
        with_suggestions: Whether to ask for the suggestion trailer

    Returns:
        System prompt string
    """
    parts = [
        PERSONA_TEMPLATE.format(company_name=persona.company_name),
        GROUNDING_DIRECTIVE,
        REFUSAL_TEMPLATE.format(contact_link=persona.contact_link),
        TONE_DIRECTIVE,
        LANGUAGE_DIRECTIVE,
    ]

    if display_name and display_name.strip():
        parts.append(NAME_TEMPLATE.format(display_name=display_name.strip()))

    if with_suggestions:
        parts.append(SUGGESTION_DIRECTIVE)

    return "\n\n".join(parts)
