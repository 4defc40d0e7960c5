"""
Text Chunker

Splits a note's plain-text representation into overlapping segments sized for
embedding. The chunker is a pure function of its input and configuration: no
I/O, no global state, deterministic output.

Boundary Policy
---------------
For each window of ``max_chunk_size`` characters:

1. Look for sentence boundaries (``.``, ``!`` or ``?`` followed by whitespace
   and a capital letter) within the last 100 characters of the window and cut
   after the last one.
2. Otherwise cut at the last space before the window end, provided it lies
   more than ``min_chunk_size`` characters past the window start.
3. Otherwise hard-cut at ``max_chunk_size``.

The next window starts ``overlap`` characters before the previous cut, so
neighbouring chunks share context across the cut point.
"""

from __future__ import annotations

import math
import re
from typing import List, NamedTuple

# Sentence punctuation, whitespace, then an upper-case letter (not consumed)
SENTENCE_BOUNDARY = re.compile(r"[.!?]\s+(?=[A-Z])")

BOUNDARY_SEARCH_CHARS = 100

DEFAULT_MAX_CHUNK_SIZE = 500
DEFAULT_OVERLAP = 100
DEFAULT_MIN_CHUNK_SIZE = 50


class TextChunk(NamedTuple):
    """A single chunk of text with its ordinal position."""
    index: int
    content: str
    token_count: int


def estimate_tokens(text: str) -> int:
    """Cheap token estimate: ~4 characters per token, rounded up."""
    return math.ceil(len(text) / 4)


def _validate_config(max_chunk_size: int, overlap: int, min_chunk_size: int) -> None:
    if max_chunk_size <= 0:
        raise ValueError(f"max_chunk_size must be positive, got {max_chunk_size}")
    if overlap < 0:
        raise ValueError(f"overlap must be non-negative, got {overlap}")
    if overlap >= max_chunk_size:
        raise ValueError(
            f"overlap ({overlap}) must be less than max_chunk_size ({max_chunk_size})"
        )
    if min_chunk_size < 0:
        raise ValueError(f"min_chunk_size must be non-negative, got {min_chunk_size}")


def _find_cut(text: str, start: int, end: int, min_chunk_size: int) -> int:
    """
    Return the cut position for the window ``text[start:end]``.

    ``end`` is assumed to be strictly inside the text.
    """
    search_start = max(start, end - BOUNDARY_SEARCH_CHARS)
    window = text[search_start:end]

    last_sentence = None
    for match in SENTENCE_BOUNDARY.finditer(window):
        last_sentence = match

    if last_sentence is not None:
        return search_start + last_sentence.end()

    last_space = text.rfind(" ", 0, end + 1)
    if last_space > start + min_chunk_size:
        return last_space

    return end


def chunk_text(
    text: str,
    max_chunk_size: int = DEFAULT_MAX_CHUNK_SIZE,
    overlap: int = DEFAULT_OVERLAP,
    min_chunk_size: int = DEFAULT_MIN_CHUNK_SIZE,
) -> List[TextChunk]:
    """
    Split text into overlapping, boundary-aware chunks.

    Parameters
    ----------
    text : str
        Raw plain text. May be empty.
    max_chunk_size : int
        Maximum characters per chunk window.
    overlap : int
        Characters shared between consecutive windows.
    min_chunk_size : int
        Chunks shorter than this (after trimming) are discarded.

    Returns
    -------
    List[TextChunk]
        Chunks with dense, zero-based indices. Empty for blank input.

    Raises
    ------
    ValueError
        If the configuration cannot make forward progress.
    """
    _validate_config(max_chunk_size, overlap, min_chunk_size)

    if not text or not text.strip():
        return []

    chunks: List[TextChunk] = []
    text_length = len(text)
    start = 0

    while start < text_length:
        end = start + max_chunk_size

        if end < text_length:
            end = _find_cut(text, start, end, min_chunk_size)
        else:
            end = text_length

        content = text[start:end].strip()
        if content and len(content) >= min_chunk_size:
            chunks.append(
                TextChunk(
                    index=len(chunks),
                    content=content,
                    token_count=estimate_tokens(content),
                )
            )

        if end >= text_length:
            break

        next_start = end - overlap
        if next_start <= start:
            # Cut landed inside the overlap region; skip ahead without overlap
            next_start = end
        if next_start >= text_length - min_chunk_size:
            break
        start = next_start

    return chunks


def prepare_note_chunks(
    title: str | None,
    content_text: str | None,
    max_chunk_size: int = DEFAULT_MAX_CHUNK_SIZE,
    overlap: int = DEFAULT_OVERLAP,
    min_chunk_size: int = DEFAULT_MIN_CHUNK_SIZE,
) -> List[TextChunk]:
    """
    Chunk a note with its title prepended, so every chunk carries title context.
    """
    body = content_text or ""
    full_text = f"{title}\n\n{body}" if title else body

    return chunk_text(
        full_text,
        max_chunk_size=max_chunk_size,
        overlap=overlap,
        min_chunk_size=min_chunk_size,
    )
