"""Pydantic request and response models for the HTTP API."""

from typing import List, Literal, Optional

from pydantic import BaseModel, Field

from ragquery.agents.assistant import QueryRequest
from ragquery.agents.dialogue import ConversationTurn
from ragquery.exceptions import ValidationError


class MessageModel(BaseModel):
    """One conversation turn as sent by the client."""

    role: Literal["system", "user", "assistant"] = "user"
    content: str = ""


class QueryRequestModel(BaseModel):
    """Body of POST /api/query.

    Either ``messages`` or the legacy single ``query`` field must be set.
    """

    messages: Optional[List[MessageModel]] = None
    query: Optional[str] = None
    industry: Optional[str] = Field(default=None, description="Category tag filter")
    userName: Optional[str] = Field(default=None, description="Display name for the persona")
    stream: bool = Field(default=True, description="Stream plain text instead of JSON")

    def to_request(self) -> QueryRequest:
        """Convert to the pipeline request, mapping the legacy ``query`` field."""
        if self.messages:
            conversation = [ConversationTurn(m.role, m.content) for m in self.messages]
        elif self.query and self.query.strip():
            conversation = [ConversationTurn("user", self.query)]
        else:
            raise ValidationError("Invalid request: missing messages")

        return QueryRequest(
            conversation=conversation,
            category_filter=self.industry or None,
            display_name=self.userName or None,
        )

    class Config:
        json_schema_extra = {
            "example": {
                "messages": [{"role": "user", "content": "What do you do for banks?"}],
                "industry": "banking",
                "userName": "Sam",
                "stream": False,
            }
        }


class QueryResponseModel(BaseModel):
    """Buffered reply with follow-up suggestions."""

    reply: str
    suggestions: List[str] = Field(default_factory=list)


class FeedbackRequestModel(BaseModel):
    """Body of POST /api/feedback."""

    query: str = ""
    response: str = ""
    vote: str = ""


class HealthResponse(BaseModel):
    """Service health summary."""

    status: str
    corpus_size: int
    dimension: Optional[int] = None
    selector_strategy: str
    embedding_provider: Optional[str] = None
    completion_provider: str
