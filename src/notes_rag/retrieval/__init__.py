"""
Retrieval Package

Query flows built on the vector store: semantic search, related notes and
retrieval-augmented chat.
"""

from .search import semantic_search, rank_by_note
from .related import find_related_notes
from .chat import ChatEvent, ChatGrounding, prepare_chat, stream_chat

__all__ = [
    "semantic_search",
    "rank_by_note",
    "find_related_notes",
    "ChatEvent",
    "ChatGrounding",
    "prepare_chat",
    "stream_chat",
]
