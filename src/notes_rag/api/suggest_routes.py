from fastapi import APIRouter, Depends
from typing import Annotated

from .models import SuggestRequest, SuggestResponse
from .dependencies import get_llm_client, get_vector_store
from ..auth.models import OwnerContext
from ..auth.security import verify_bearer_token
from ..embeddings.store import VectorStore
from ..llm.client import LLMClient
from ..llm.suggest import suggest_for_note

router = APIRouter(tags=["suggest"])


@router.post(
    "/suggest",
    response_model=SuggestResponse,
    response_model_exclude_none=True,
    summary="Suggest a title and/or tags for a note",
)
async def suggest(
    req: SuggestRequest,
    owner: Annotated[OwnerContext, Depends(verify_bearer_token)],
    store: Annotated[VectorStore, Depends(get_vector_store)],
    llm: Annotated[LLMClient, Depends(get_llm_client)],
) -> SuggestResponse:
    return await suggest_for_note(owner.owner_id, req.note_id, req.mode, store, llm)
