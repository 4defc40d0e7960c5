import os

# Settings are read at import time; these must exist before notes_rag loads
os.environ.setdefault("OPENAI_API_KEY", "sk-test-key")
os.environ.setdefault("JWT_SECRET", "test-jwt-secret-must-be-long-enough-32chars")
os.environ.setdefault("VECTOR_BACKEND", "memory")

import time
from datetime import datetime, timedelta, timezone
from typing import List
from unittest.mock import AsyncMock

import jwt
import pytest

from notes_rag.config import settings
from notes_rag.embeddings.embedder import Embedder
from notes_rag.embeddings.memory_store import InMemoryVectorStore

OWNER = "owner-1"
OTHER_OWNER = "owner-2"
DIMS = 4


def unit(*components: float) -> List[float]:
    """Build a DIMS-length vector from leading components."""
    vec = list(components) + [0.0] * (DIMS - len(components))
    return [float(x) for x in vec]


def create_valid_token(sub=OWNER, audience=None, expired=False, secret=None, **extra):
    now = int(time.time())
    iat = now - 3600 if expired else now
    exp = iat - 10 if expired else now + 600

    payload = {
        "sub": sub,
        "aud": audience or settings.jwt_audience,
        "iat": iat,
        "exp": exp,
        **extra,
    }
    return jwt.encode(
        payload,
        secret or settings.jwt_secret.get_secret_value(),
        algorithm="HS256",
    )


def ts(minutes_ago: int) -> datetime:
    return datetime.now(timezone.utc) - timedelta(minutes=minutes_ago)


@pytest.fixture
def store():
    return InMemoryVectorStore()


@pytest.fixture
def mock_embedder():
    """
    Embedder double: every text embeds to the same vector unless the test
    overrides ``embed``/``embed_query``.
    """
    mock = AsyncMock(spec=Embedder)
    mock.model = "test-embedding-model"
    mock.dimensions = DIMS
    mock.embed.side_effect = lambda texts, batch_size=20: [unit(1.0) for _ in texts]
    mock.embed_query.return_value = unit(1.0)
    return mock


class FakeLLM:
    """
    Stand-in for ``LLMClient``: streams canned fragments, optionally failing
    after them, and records what it was asked.
    """

    def __init__(self, fragments=("Hello", " world"), error=None, answer="ok"):
        self.fragments = list(fragments)
        self.error = error
        self.answer = answer
        self.calls = []

    async def stream_chat(self, system_prompt, messages, temperature=None, max_tokens=None, cancel=None):
        self.calls.append({"system_prompt": system_prompt, "messages": messages})
        for fragment in self.fragments:
            yield fragment
        if self.error is not None:
            raise self.error

    async def chat(self, system_prompt, messages, temperature=0.5, max_tokens=None):
        self.calls.append({"system_prompt": system_prompt, "messages": messages})
        if self.error is not None:
            raise self.error
        return self.answer
