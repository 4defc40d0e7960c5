"""
Embedding Client

This module implements the embedding client used for both indexing and query
embedding. It talks to the OpenAI embeddings API (or any compatible provider)
and is responsible for:

- Efficient batching of text inputs
- Network and transport error isolation
- Strict response validation, including vector dimensionality
- Deterministic output order (one vector per input, in input order)

The class is stateless and safe to reuse across requests. Indexing and
querying must use the same model: vectors from different models are not
comparable.
"""

from __future__ import annotations

from typing import List, Sequence, Optional
import logging
import httpx

from ..config import settings
from ..core.errors import EmbeddingError

logger = logging.getLogger("notes_rag.embedder")


class Embedder:
    """
    Asynchronous embedding generator for batches of text.

    This class performs no caching and no retries.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        dimensions: Optional[int] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        """
        Initialize an Embedder.

        Parameters
        ----------
        api_key : Optional[str]
            Optional override for the API key. Defaults to settings.openai_api_key.

        model : Optional[str]
            Optional override for embedding model. Defaults to settings.embedding_model.

        dimensions : Optional[int]
            Expected vector length. Defaults to settings.embedding_dimensions.

        base_url : Optional[str]
            Base URL of the OpenAI-compatible API.

        timeout : Optional[float]
            HTTP timeout for each request.

        transport : Optional[httpx.AsyncBaseTransport]
            Custom transport, mainly for tests.
        """
        self.api_key = api_key or settings.openai_api_key.get_secret_value()
        self.model = model or settings.embedding_model
        self.dimensions = dimensions or settings.embedding_dimensions
        self.base_url = (base_url or str(settings.openai_base_url)).rstrip("/")
        self.timeout = timeout or settings.http_timeout_seconds
        self._transport = transport

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def embed(
        self,
        texts: Sequence[str],
        batch_size: int = 20,
    ) -> List[List[float]]:
        """
        Generate embeddings for a sequence of input texts.

        Parameters
        ----------
        texts : Sequence[str]
            List or sequence of input text strings.

        batch_size : int
            Maximum batch size per request. Helps avoid API token/size limits.

        Returns
        -------
        List[List[float]]
            One embedding per input text, in input order.

        Raises
        ------
        EmbeddingError
            If any batch fails or the response is malformed. Nothing is
            returned for the batches that did succeed.
        """
        if not texts:
            return []

        vectors: List[List[float]] = []

        async with httpx.AsyncClient(
            timeout=self.timeout,
            transport=self._transport,
            headers={"Authorization": f"Bearer {self.api_key}"},
        ) as client:
            for start in range(0, len(texts), batch_size):
                batch = list(texts[start : start + batch_size])
                vectors.extend(await self._embed_batch(client, batch))

        logger.debug("Embedded %d text(s) with %s", len(vectors), self.model)
        return vectors

    async def embed_query(self, text: str) -> List[float]:
        """
        Embed a single query string.
        """
        embeddings = await self.embed([text])
        return embeddings[0]

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _embed_batch(
        self,
        client: httpx.AsyncClient,
        batch: List[str],
    ) -> List[List[float]]:
        try:
            response = await client.post(
                f"{self.base_url}/embeddings",
                json={"model": self.model, "input": batch},
            )
            response.raise_for_status()
        except httpx.HTTPError as exc:
            logger.error(
                "Embedding request failed (%s) for a batch of %d",
                type(exc).__name__,
                len(batch),
            )
            raise EmbeddingError(
                f"Embedding generation failed: {type(exc).__name__}"
            ) from exc

        embeddings = self._extract_embeddings(response.json())
        if len(embeddings) != len(batch):
            raise EmbeddingError(
                f"Expected {len(batch)} embeddings, got {len(embeddings)}."
            )
        return embeddings

    def _extract_embeddings(self, data: dict) -> List[List[float]]:
        """
        Parse and validate embedding output format.

        OpenAI returns:
            { "data": [ {"index": 0, "embedding": [...]}, ... ] }

        Records are re-ordered by ``index`` when present.

        Raises
        ------
        EmbeddingError
            If the API returns unexpected structure.
        """
        if "data" not in data:
            raise EmbeddingError("Embedding response missing 'data' field.")

        records = data["data"]
        if not isinstance(records, list):
            raise EmbeddingError("'data' field must be a list.")

        if all(isinstance(r, dict) and "index" in r for r in records):
            records = sorted(records, key=lambda r: r["index"])

        embeddings: List[List[float]] = []

        for index, record in enumerate(records):
            if not isinstance(record, dict) or "embedding" not in record:
                raise EmbeddingError(
                    f"Malformed embedding record at index {index}: {record!r}"
                )

            emb = record["embedding"]
            if not isinstance(emb, list) or not all(
                isinstance(x, (float, int)) for x in emb
            ):
                raise EmbeddingError(
                    f"Invalid embedding vector at index {index}: must be float list."
                )

            if len(emb) != self.dimensions:
                raise EmbeddingError(
                    f"Embedding at index {index} has {len(emb)} dimensions, "
                    f"expected {self.dimensions}."
                )

            embeddings.append([float(x) for x in emb])

        return embeddings
