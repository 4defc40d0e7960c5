"""
LLM Client

Thin async client for an OpenAI-compatible chat completions API, with a
single-shot call and a streamed (server-sent events) call.
"""

from __future__ import annotations

import json
import logging
from typing import Any, AsyncIterator, Dict, List, Optional

import httpx

from ..config import settings
from ..core.cancellation import CancellationToken
from ..core.errors import LLMError

logger = logging.getLogger("notes_rag.llm")

SSE_PREFIX = "data: "
SSE_DONE = "[DONE]"
_STREAM_DONE = object()


class LLMClient:
    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key or settings.openai_api_key.get_secret_value()
        self.model = model or settings.chat_model
        self.base_url = (base_url or str(settings.openai_base_url)).rstrip("/")
        self.timeout = timeout or settings.http_timeout_seconds
        self._transport = transport

    def _payload(
        self,
        system_prompt: str,
        messages: List[Dict[str, Any]],
        temperature: float,
        max_tokens: Optional[int],
        stream: bool,
    ) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "model": self.model,
            "messages": [{"role": "system", "content": system_prompt}] + messages,
            "temperature": temperature,
        }
        if max_tokens:
            payload["max_tokens"] = max_tokens
        if stream:
            payload["stream"] = True
        return payload

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=self.timeout,
            transport=self._transport,
            headers={"Authorization": f"Bearer {self.api_key}"},
        )

    async def chat(
        self,
        system_prompt: str,
        messages: List[Dict[str, Any]],
        temperature: float = 0.5,
        max_tokens: Optional[int] = None,
    ) -> str:
        """
        Return the assistant message content of a single completion.

        Raises
        ------
        LLMError
            On transport errors, non-2xx responses or an empty answer.
        """
        payload = self._payload(system_prompt, messages, temperature, max_tokens, False)

        try:
            async with self._client() as client:
                resp = await client.post(f"{self.base_url}/chat/completions", json=payload)
                resp.raise_for_status()
        except httpx.HTTPError as exc:
            logger.error("Chat completion failed: %s", type(exc).__name__)
            raise LLMError(f"Language model request failed: {type(exc).__name__}") from exc

        data = resp.json()
        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as exc:
            raise LLMError("Malformed chat completion response.") from exc

        if not content or not content.strip():
            raise LLMError("No response from language model.")
        return content.strip()

    async def stream_chat(
        self,
        system_prompt: str,
        messages: List[Dict[str, Any]],
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        cancel: Optional[CancellationToken] = None,
    ) -> AsyncIterator[str]:
        """
        Stream assistant content fragments as they arrive.

        Upstream format is OpenAI's SSE stream:
            data: {"choices": [{"delta": {"content": "..."}}]}
            data: [DONE]

        Iteration stops without error when ``cancel`` is set; the upstream
        response is closed as soon as the generator exits.

        Raises
        ------
        LLMError
            On transport errors, non-2xx responses or an upstream error event.
        """
        payload = self._payload(
            system_prompt,
            messages,
            settings.chat_temperature if temperature is None else temperature,
            max_tokens or settings.chat_max_tokens,
            True,
        )

        try:
            async with self._client() as client:
                async with client.stream(
                    "POST",
                    f"{self.base_url}/chat/completions",
                    json=payload,
                ) as resp:
                    if resp.status_code >= 400:
                        await resp.aread()
                        logger.error(
                            "Chat stream rejected upstream: HTTP %d", resp.status_code
                        )
                        raise LLMError(
                            f"Language model request failed: HTTP {resp.status_code}"
                        )

                    async for line in resp.aiter_lines():
                        if cancel is not None and cancel.cancelled:
                            logger.info("Chat stream cancelled by caller")
                            return

                        fragment = self._parse_stream_line(line)
                        if fragment is None:
                            continue
                        if fragment is _STREAM_DONE:
                            return
                        yield fragment
        except httpx.HTTPError as exc:
            logger.error("Chat stream failed: %s", type(exc).__name__)
            raise LLMError(f"Language model stream failed: {type(exc).__name__}") from exc

    @staticmethod
    def _parse_stream_line(line: str):
        """
        Return the content fragment of one SSE line, ``None`` for lines that
        carry nothing, or ``_STREAM_DONE`` for the done marker.
        """
        line = line.strip()
        if not line.startswith(SSE_PREFIX):
            return None

        data = line[len(SSE_PREFIX):]
        if data == SSE_DONE:
            return _STREAM_DONE

        try:
            event = json.loads(data)
        except json.JSONDecodeError:
            return None

        if "error" in event:
            message = event["error"]
            if isinstance(message, dict):
                message = message.get("message", "unknown error")
            raise LLMError(f"Language model error: {message}")

        choices = event.get("choices") or []
        if not choices:
            return None
        content = (choices[0].get("delta") or {}).get("content")
        return content or None
