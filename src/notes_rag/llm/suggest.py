"""
Note Suggestions

Asks the language model for a title and/or tags for one of the caller's notes.
"""

from __future__ import annotations

import json
import logging
import re
from typing import List, Literal

from .client import LLMClient
from ..api.models import SuggestResponse
from ..core.errors import NoteNotFoundError, UpstreamError, ValidationFailedError
from ..embeddings.store import VectorStore
from ..prompts import BOTH_SUGGEST_PROMPT, TAGS_SUGGEST_PROMPT, TITLE_SUGGEST_PROMPT

logger = logging.getLogger("notes_rag.suggest")

SuggestMode = Literal["title", "tags", "both"]

MIN_CONTENT_CHARS = 10
MAX_CONTENT_CHARS = 2000
MAX_EXISTING_TAGS = 20

_CODE_FENCE_START = re.compile(r"^```(?:json)?\s*", re.IGNORECASE)
_CODE_FENCE_END = re.compile(r"\s*```$")


def _existing_tags_hint(tags: List[str]) -> str:
    return ", ".join(tags[:MAX_EXISTING_TAGS]) or "none yet"


def parse_title(answer: str) -> str:
    return answer.strip().strip("\"'").strip()


def parse_tags(answer: str) -> List[str]:
    """
    Parse a JSON array of tags; fall back to a comma-separated list.
    """
    try:
        parsed = json.loads(answer)
    except json.JSONDecodeError:
        cleaned = re.sub(r"[\[\]\"]", "", answer)
        return [t.strip().lower() for t in cleaned.split(",") if t.strip()]

    if not isinstance(parsed, list):
        return []
    return [t for t in parsed if isinstance(t, str)]


def parse_title_and_tags(answer: str) -> SuggestResponse:
    cleaned = _CODE_FENCE_END.sub("", _CODE_FENCE_START.sub("", answer.strip()))
    try:
        parsed = json.loads(cleaned)
    except json.JSONDecodeError as exc:
        logger.error("Failed to parse suggestion response: %r", answer)
        raise UpstreamError("Failed to parse AI suggestions.") from exc

    if not isinstance(parsed, dict):
        raise UpstreamError("Failed to parse AI suggestions.")

    tags = parsed.get("tags")
    title = parsed.get("title")
    return SuggestResponse(
        title=title if isinstance(title, str) else None,
        tags=[t for t in tags if isinstance(t, str)] if isinstance(tags, list) else [],
    )


async def suggest_for_note(
    owner_id: str,
    note_id: str,
    mode: SuggestMode,
    store: VectorStore,
    llm: LLMClient,
) -> SuggestResponse:
    """
    Suggest a title, tags, or both for a note.

    Raises
    ------
    NoteNotFoundError
        If the note does not exist for this owner.
    ValidationFailedError
        If the note has too little text to work with.
    UpstreamError
        If the model fails or its answer cannot be parsed.
    """
    note = await store.get_note(owner_id, note_id)
    if note is None:
        raise NoteNotFoundError(f"Note {note_id} not found.")

    text = (note.content_text or "").strip()
    if len(text) < MIN_CONTENT_CHARS:
        raise ValidationFailedError(
            "Note content is too short to generate suggestions."
        )

    existing: List[str] = []
    if mode in ("tags", "both"):
        existing = await store.get_tag_names(owner_id)

    if mode == "title":
        system_prompt = TITLE_SUGGEST_PROMPT
    elif mode == "tags":
        system_prompt = TAGS_SUGGEST_PROMPT.format(existing_tags=_existing_tags_hint(existing))
    else:
        system_prompt = BOTH_SUGGEST_PROMPT.format(existing_tags=_existing_tags_hint(existing))

    answer = await llm.chat(
        system_prompt,
        [{"role": "user", "content": text[:MAX_CONTENT_CHARS]}],
        temperature=0.5,
        max_tokens=200,
    )

    if mode == "title":
        return SuggestResponse(title=parse_title(answer))
    if mode == "tags":
        return SuggestResponse(tags=parse_tags(answer))
    return parse_title_and_tags(answer)
