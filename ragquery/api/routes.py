"""HTTP routes: query, feedback and health."""

from typing import AsyncIterator, Optional

import anyio
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse, Response, StreamingResponse

from ragquery.api.dependencies import ServiceState, get_service_state
from ragquery.api.feedback import VALID_VOTES
from ragquery.api.schemas import (
    FeedbackRequestModel,
    HealthResponse,
    QueryRequestModel,
    QueryResponseModel,
)
from ragquery.utils.logger import get_logger

logger = get_logger()

router = APIRouter()


async def _relay_body(first: Optional[str], fragments: AsyncIterator[str]) -> AsyncIterator[str]:
    """Re-attach the primed first fragment and close upstream on exit."""
    try:
        if first is not None:
            yield first
        async for fragment in fragments:
            yield fragment
    finally:
        # Runs on client disconnect too; shielded so the upstream
        # connection is released even while the task is being cancelled
        with anyio.CancelScope(shield=True):
            await fragments.aclose()


@router.post("/api/query")
async def query_endpoint(
    payload: QueryRequestModel,
    state: ServiceState = Depends(get_service_state),
):
    """
    Answer a conversation from the corpus.

    Streams ``text/plain`` fragments by default; with ``stream: false``
    returns JSON ``{reply, suggestions}``.
    """
    request = payload.to_request()

    if not payload.stream:
        result = await state.assistant.answer(request)
        return QueryResponseModel(reply=result.reply_text, suggestions=result.suggestions)

    fragments = await state.assistant.open_stream(request)

    # Prime the first fragment so an upstream failure can still be
    # reported with a proper status before headers are sent
    try:
        first = await fragments.__anext__()
    except StopAsyncIteration:
        first = None

    return StreamingResponse(
        _relay_body(first, fragments),
        media_type="text/plain; charset=utf-8",
    )


@router.post("/api/feedback")
async def feedback_endpoint(
    payload: FeedbackRequestModel,
    state: ServiceState = Depends(get_service_state),
):
    """Append a thumbs-up/down vote on a reply to the feedback log."""
    if not payload.query or not payload.response or payload.vote not in VALID_VOTES:
        return Response(content="Invalid feedback format", status_code=400, media_type="text/plain")

    try:
        await state.feedback_log.append(payload.query, payload.response, payload.vote)
    except OSError as e:
        logger.error(f"Failed to save feedback: {e}")
        return JSONResponse(status_code=500, content={"detail": "Failed to save feedback"})

    return {"status": "ok"}


@router.get("/health", response_model=HealthResponse)
async def health_endpoint(state: ServiceState = Depends(get_service_state)):
    """Report corpus and provider configuration."""
    return HealthResponse(
        status="healthy",
        corpus_size=len(state.store),
        dimension=state.store.dimension,
        selector_strategy=state.assistant.retriever.selector.name,
        embedding_provider=state.embedder.name if state.embedder else None,
        completion_provider=state.completion_provider.name,
    )
