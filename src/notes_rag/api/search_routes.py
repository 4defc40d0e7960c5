"""
Search Routes

This module defines the two ranked-note query endpoints:
- Semantic search over the caller's notes
- Related notes for one of the caller's notes
"""

from fastapi import APIRouter, Depends, status
from typing import Annotated

from .models import RelatedRequest, SearchRequest, SearchResponse
from .dependencies import get_embedder, get_vector_store
from ..auth.security import verify_bearer_token
from ..auth.models import OwnerContext
from ..core.errors import QueryTooShortError
from ..embeddings.embedder import Embedder
from ..embeddings.store import VectorStore
from ..retrieval.search import MIN_QUERY_LENGTH, is_query_too_short, semantic_search
from ..retrieval.related import find_related_notes

router = APIRouter(tags=["search"])


@router.post(
    "/search",
    response_model=SearchResponse,
    summary="Semantic search over the caller's notes",
    status_code=status.HTTP_200_OK,
)
async def search(
    req: SearchRequest,
    owner: Annotated[OwnerContext, Depends(verify_bearer_token)],
    store: Annotated[VectorStore, Depends(get_vector_store)],
    embedder: Annotated[Embedder, Depends(get_embedder)],
) -> SearchResponse:
    """
    Rank the caller's notes by semantic similarity to the query.

    Parameters
    ----------
    req : SearchRequest
        Contains:
        - query: at least 2 characters after trimming
        - limit: maximum number of notes

    owner : OwnerContext
        Authenticated owner derived from the bearer token.

    Returns
    -------
    SearchResponse
        One result per note, ranked by descending similarity.
    """
    if is_query_too_short(req.query):
        raise QueryTooShortError(
            f"Query must be at least {MIN_QUERY_LENGTH} characters."
        )

    results = await semantic_search(
        owner.owner_id,
        req.query,
        store,
        embedder,
        limit=req.limit,
    )
    return SearchResponse(results=results)


@router.post(
    "/related",
    response_model=SearchResponse,
    summary="Notes similar to a given note",
    status_code=status.HTTP_200_OK,
)
async def related(
    req: RelatedRequest,
    owner: Annotated[OwnerContext, Depends(verify_bearer_token)],
    store: Annotated[VectorStore, Depends(get_vector_store)],
) -> SearchResponse:
    """
    Return other notes by the same owner that resemble the given note.

    The list is empty when the note has not been indexed yet. If similarity
    search is unavailable the most recently updated notes are returned.
    """
    results = await find_related_notes(
        owner.owner_id,
        req.note_id,
        store,
        limit=req.limit,
    )
    return SearchResponse(results=results)
