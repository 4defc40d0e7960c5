"""
Chat Routes: Retrieval-Augmented Chat over the Caller's Notes

The endpoint grounds the question in the caller's notes and streams the answer
as server-sent events.

Event format
------------
- data: {"type": "sources", "sources": [{"documentId": ..., "title": ...}]}
- data: {"type": "content", "content": "fragment"}
- data: {"type": "error", "error": "message"}   (terminal)
- data: [DONE]                                   (terminal)

Failure Model
-------------
- Authentication and grounding failures are ordinary HTTP errors, raised
  before the stream starts.
- A model failure mid-stream becomes an inline `error` event.
- A client disconnect cancels the upstream model call.
"""

import logging
from contextlib import aclosing
from typing import Annotated

from fastapi import APIRouter, Depends, Request
from fastapi.responses import StreamingResponse

from .models import ChatRequest
from .dependencies import get_embedder, get_llm_client, get_vector_store
from ..auth.models import OwnerContext
from ..auth.security import verify_bearer_token
from ..core.cancellation import CancellationToken
from ..embeddings.embedder import Embedder
from ..embeddings.store import VectorStore
from ..llm.client import LLMClient
from ..retrieval.chat import prepare_chat, stream_chat

logger = logging.getLogger("notes_rag.chat_routes")

router = APIRouter(tags=["chat"])

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",  # Disable nginx buffering
}


@router.post(
    "/chat",
    summary="Chat with your notes (streamed)",
    response_class=StreamingResponse,
)
async def chat(
    req: ChatRequest,
    request: Request,
    owner: Annotated[OwnerContext, Depends(verify_bearer_token)],
    store: Annotated[VectorStore, Depends(get_vector_store)],
    embedder: Annotated[Embedder, Depends(get_embedder)],
    llm: Annotated[LLMClient, Depends(get_llm_client)],
) -> StreamingResponse:
    # -------------------------------------------------------------
    # 1. Grounding (errors here are plain HTTP errors)
    # -------------------------------------------------------------
    grounding = await prepare_chat(owner.owner_id, req, store, embedder)

    # -------------------------------------------------------------
    # 2. Stream
    # -------------------------------------------------------------
    cancel = CancellationToken()

    async def event_source():
        async with aclosing(stream_chat(grounding, req, llm, cancel=cancel)) as events:
            async for event in events:
                if await request.is_disconnected():
                    logger.info("Client disconnected; cancelling chat stream")
                    cancel.cancel()
                    break
                yield event.to_sse()

    return StreamingResponse(
        event_source(),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )
