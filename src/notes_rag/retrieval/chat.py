"""
RAG Chat

Answers a question from the caller's own notes and streams the answer.

The flow is split in two so that failures land on the right side of the
stream boundary:

1. ``prepare_chat`` retrieves grounding chunks. Any failure here (note not
   found, embedding provider down, similarity search unavailable) raises
   before a single byte is streamed.
2. ``stream_chat`` yields events: one ``sources`` event, ``content``
   fragments, then a terminal ``done``. A model failure mid-stream becomes a
   terminal ``error`` event; whatever was already streamed stays with the
   caller but the answer never gets its ``done`` marker, so it is not final.

Cancellation is cooperative: when the token is set, the upstream model
stream is closed and iteration ends with no ``done`` marker. Nothing is
persisted by this module.
"""

from __future__ import annotations

import json
import logging
from contextlib import aclosing
from typing import AsyncIterator, Dict, List, Literal, NamedTuple, Optional, Tuple

from pydantic import BaseModel, ConfigDict

from .search import UNTITLED
from ..api.models import ChatRequest, ChatSource
from ..config import settings
from ..core.cancellation import CancellationToken
from ..core.errors import LLMError, NoteNotFoundError
from ..embeddings.embedder import Embedder
from ..embeddings.models import ChunkMatch
from ..embeddings.store import VectorStore
from ..llm.client import LLMClient
from ..prompts import CHAT_SCOPED_SYSTEM_PROMPT, CHAT_SYSTEM_PROMPT, NO_CONTEXT_NOTICE

logger = logging.getLogger("notes_rag.chat")

# Cosine similarity never goes below -1; used to disable the threshold
NO_THRESHOLD = -1.0


# ---------------------------------------------------------------------
# Events
# ---------------------------------------------------------------------

class ChatEvent(BaseModel):
    """
    One event of a chat stream.
    """
    type: Literal["sources", "content", "error", "done"]
    sources: Optional[List[ChatSource]] = None
    content: Optional[str] = None
    error: Optional[str] = None

    model_config = ConfigDict(frozen=True)

    def to_sse(self) -> str:
        """Frame the event as a server-sent event."""
        if self.type == "done":
            return "data: [DONE]\n\n"

        payload: Dict[str, object] = {"type": self.type}
        if self.type == "sources":
            payload["sources"] = [
                s.model_dump(by_alias=True) for s in (self.sources or [])
            ]
        elif self.type == "content":
            payload["content"] = self.content
        else:
            payload["error"] = self.error
        return f"data: {json.dumps(payload)}\n\n"


class ChatGrounding(NamedTuple):
    """Retrieved context for one chat turn."""
    matches: List[ChunkMatch]
    sources: List[ChatSource]
    context: str
    scoped: bool


# ---------------------------------------------------------------------
# Helper functions
# ---------------------------------------------------------------------

def _dedupe_sources(matches: List[ChunkMatch]) -> List[ChatSource]:
    seen: Dict[str, ChatSource] = {}
    for match in matches:
        if match.note_id not in seen:
            seen[match.note_id] = ChatSource(
                note_id=match.note_id,
                title=match.title or UNTITLED,
            )
    return list(seen.values())


def _render_context(matches: List[ChunkMatch]) -> str:
    return "\n\n---\n\n".join(
        f"### {m.title or UNTITLED}\n{m.content}" for m in matches
    )


def build_messages(
    grounding: ChatGrounding,
    request: ChatRequest,
    history_limit: Optional[int] = None,
) -> Tuple[str, List[Dict[str, str]]]:
    """
    Assemble the system prompt and message list for the model.
    """
    base = CHAT_SCOPED_SYSTEM_PROMPT if grounding.scoped else CHAT_SYSTEM_PROMPT
    context = grounding.context or NO_CONTEXT_NOTICE
    system_prompt = f"{base}\n\n[NOTES]\n{context}\n[END NOTES]"

    limit = history_limit or settings.chat_history_limit
    history = request.conversation_history[-limit:]

    messages = [{"role": turn.role, "content": turn.content} for turn in history]
    messages.append({"role": "user", "content": request.query})
    return system_prompt, messages


# ---------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------

async def prepare_chat(
    owner_id: str,
    request: ChatRequest,
    store: VectorStore,
    embedder: Embedder,
    context_chunks: Optional[int] = None,
    threshold: Optional[float] = None,
) -> ChatGrounding:
    """
    Retrieve the chunks that ground an answer.

    Unscoped requests search all of the owner's notes above the search
    threshold. Requests scoped to one note consider only that note's chunks,
    with no threshold.

    Raises
    ------
    NoteNotFoundError
        If the scoped note does not exist for this owner.
    EmbeddingError
        If the query cannot be embedded.
    VectorSearchUnavailableError
        If the store cannot run similarity search.
    """
    limit = context_chunks or settings.chat_context_chunks
    scoped = request.note_id is not None

    if scoped:
        note = await store.get_note(owner_id, request.note_id)
        if note is None:
            raise NoteNotFoundError(f"Note {request.note_id} not found.")

    query_embedding = await embedder.embed_query(request.query.strip())

    if scoped:
        matches = await store.search_chunks(
            owner_id,
            query_embedding,
            threshold=NO_THRESHOLD,
            limit=limit,
            note_id=request.note_id,
        )
    else:
        matches = await store.search_chunks(
            owner_id,
            query_embedding,
            threshold=settings.search_threshold if threshold is None else threshold,
            limit=limit,
        )

    sources = _dedupe_sources(matches)
    logger.info(
        "Chat grounded on %d chunk(s) from %d note(s)", len(matches), len(sources)
    )
    return ChatGrounding(
        matches=matches,
        sources=sources,
        context=_render_context(matches),
        scoped=scoped,
    )


async def stream_chat(
    grounding: ChatGrounding,
    request: ChatRequest,
    llm: LLMClient,
    cancel: Optional[CancellationToken] = None,
) -> AsyncIterator[ChatEvent]:
    """
    Stream the answer for a prepared chat turn.

    Yields
    ------
    ChatEvent
        ``sources`` first, then ``content`` fragments, then exactly one
        terminal ``done`` or ``error``; nothing terminal after cancellation.
    """
    yield ChatEvent(type="sources", sources=grounding.sources)

    system_prompt, messages = build_messages(grounding, request)

    try:
        async with aclosing(
            llm.stream_chat(system_prompt, messages, cancel=cancel)
        ) as fragments:
            async for fragment in fragments:
                if cancel is not None and cancel.cancelled:
                    break
                yield ChatEvent(type="content", content=fragment)
    except LLMError as exc:
        logger.warning("Chat stream ended with model error: %s", exc.message)
        yield ChatEvent(type="error", error=exc.message)
        return

    if cancel is not None and cancel.cancelled:
        logger.info("Chat stream cancelled; answer discarded as non-final")
        return

    yield ChatEvent(type="done")
