"""
Index Routes

This module exposes endpoints for:
- Re-indexing a note now (errors surface to the caller)
- Scheduling a debounced, fire-and-forget re-index after a save
- Dropping a note's chunk set
- Querying chunk statistics

The owner is always taken from the bearer token, never from the body.
"""

from fastapi import APIRouter, Depends, Response, status
from typing import Annotated

from .models import IndexNoteRequest, IndexStatsResponse, OperationResult
from .dependencies import get_embedder, get_index_scheduler, get_vector_store
from ..auth.security import verify_bearer_token
from ..auth.models import OwnerContext
from ..core.errors import NoteNotFoundError
from ..embeddings.embedder import Embedder
from ..embeddings.indexer import NoteIndexer
from ..embeddings.scheduler import IndexScheduler
from ..embeddings.store import VectorStore

router = APIRouter(prefix="/index", tags=["index"])


@router.post(
    "/note",
    summary="Re-index a note now",
    response_model=OperationResult,
)
async def index_note(
    req: IndexNoteRequest,
    owner: Annotated[OwnerContext, Depends(verify_bearer_token)],
    store: Annotated[VectorStore, Depends(get_vector_store)],
    embedder: Annotated[Embedder, Depends(get_embedder)],
) -> OperationResult:
    """
    Replace a note's chunk set with one built from its current content.

    Workflow
    --------
    1. Read the note's title and plain text.
    2. Chunk and embed the content.
    3. Replace the note's chunks in one transaction.

    Not-found and provider failures are raised to the caller; the prior chunk
    set survives a provider failure.
    """
    indexer = NoteIndexer(store, embedder)
    result = await indexer.index_note(owner.owner_id, req.note_id)

    return OperationResult(
        status="updated",
        count=result.chunk_count,
        details={"model": result.model},
    )


@router.post(
    "/note/schedule",
    summary="Schedule a debounced re-index after a save",
    response_model=OperationResult,
    status_code=status.HTTP_202_ACCEPTED,
)
async def schedule_note_index(
    req: IndexNoteRequest,
    response: Response,
    owner: Annotated[OwnerContext, Depends(verify_bearer_token)],
    store: Annotated[VectorStore, Depends(get_vector_store)],
    scheduler: Annotated[IndexScheduler, Depends(get_index_scheduler)],
) -> OperationResult:
    """
    Record that a note was saved.

    Returns 202 immediately; the re-index runs after the debounce window and
    its failure is only logged. Unchanged content is not re-scheduled and
    answers 200.
    """
    note = await store.get_note(owner.owner_id, req.note_id)
    if note is None:
        raise NoteNotFoundError(f"Note {req.note_id} not found.")

    scheduled = scheduler.notify_changed(
        owner.owner_id,
        note.note_id,
        note.content_text,
        title=note.title,
    )

    if scheduled:
        return OperationResult(status="queued")
    response.status_code = status.HTTP_200_OK
    return OperationResult(status="ok", details={"reason": "unchanged"})


@router.delete(
    "/note",
    summary="Delete a note's chunks",
    response_model=OperationResult,
)
async def delete_note_index(
    req: IndexNoteRequest,
    owner: Annotated[OwnerContext, Depends(verify_bearer_token)],
    store: Annotated[VectorStore, Depends(get_vector_store)],
    embedder: Annotated[Embedder, Depends(get_embedder)],
    scheduler: Annotated[IndexScheduler, Depends(get_index_scheduler)],
) -> OperationResult:
    """
    Delete all chunks for a note and cancel any pending re-index.

    Both are scoped to the caller: another owner's note is never touched,
    and a note that is already gone can still have its chunks dropped.
    """
    scheduler.cancel(owner.owner_id, req.note_id)
    count = await NoteIndexer(store, embedder).remove_note(owner.owner_id, req.note_id)

    return OperationResult(
        status="deleted",
        count=count,
    )


@router.get(
    "/stats",
    response_model=IndexStatsResponse,
    summary="Get chunk statistics for the caller",
)
async def get_index_stats(
    owner: Annotated[OwnerContext, Depends(verify_bearer_token)],
    store: Annotated[VectorStore, Depends(get_vector_store)],
    embedder: Annotated[Embedder, Depends(get_embedder)],
) -> IndexStatsResponse:
    stats = await store.get_stats(owner.owner_id)
    return IndexStatsResponse(
        total_chunks=stats["total_chunks"],
        total_notes=stats["total_notes"],
        embedding_model=embedder.model,
    )
