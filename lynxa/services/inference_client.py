"""Inference Client - OpenAI-compatible chat completion provider"""

from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Dict, List, Optional

import httpx

from lynxa.core.config import settings
from lynxa.core.exceptions import InferenceProviderError
from lynxa.core.logging_config import get_logger

logger = get_logger(__name__)


SYSTEM_PROMPT = (
    "You are Lynxa Pro, an advanced AI assistant developed by Nexariq, a sub-brand of AJ STUDIOZ. "
    "Your identity: Name: Lynxa Pro, Developer: Nexariq (sub-brand of AJ STUDIOZ), "
    "Purpose: To provide intelligent, helpful, and professional assistance. "
    "Your personality: Professional yet friendly, knowledgeable, clear and concise. "
    "Mention you're Lynxa Pro, developed by Nexariq, a sub-brand of AJ STUDIOZ when asked who you are."
)


@dataclass
class ChatCompletion:
    """The parts of a provider response the API passes back"""
    content: str
    model: str
    input_tokens: int = 0
    output_tokens: int = 0
    usage: Dict[str, Any] = field(default_factory=dict)


class InferenceClient:
    """
    Thin wrapper over the provider's chat completion endpoint.

    Only request/response pass-through and the usage counters matter here;
    the counters feed usage recording.
    """

    def __init__(
        self,
        api_url: Optional[str] = None,
        api_key: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.api_url = api_url or settings.INFERENCE_API_URL
        self.api_key = api_key if api_key is not None else settings.INFERENCE_API_KEY
        self.timeout = timeout or settings.INFERENCE_TIMEOUT_SECONDS
        self.transport = transport

    @staticmethod
    def build_messages(
        message: str,
        conversation_history: Optional[List[Dict[str, str]]] = None
    ) -> List[Dict[str, str]]:
        """System prompt, then prior turns, then the new user message"""
        return [
            {"role": "system", "content": SYSTEM_PROMPT},
            *(conversation_history or []),
            {"role": "user", "content": message},
        ]

    def _payload(
        self,
        messages: List[Dict[str, str]],
        model: Optional[str],
        max_tokens: int,
        temperature: Optional[float],
        stream: bool
    ) -> Dict[str, Any]:
        return {
            "model": model or settings.INFERENCE_MODEL,
            "messages": messages,
            "max_tokens": max_tokens,
            "temperature": settings.INFERENCE_TEMPERATURE if temperature is None else temperature,
            "stream": stream,
        }

    def _headers(self) -> Dict[str, str]:
        if not self.api_key:
            raise InferenceProviderError("Inference provider is not configured")
        return {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.api_key}",
        }

    async def stream(
        self,
        messages: List[Dict[str, str]],
        model: Optional[str] = None,
        max_tokens: int = 1000,
        temperature: Optional[float] = None
    ) -> AsyncIterator[bytes]:
        """
        Open a streaming completion and return an iterator over the raw
        server-sent event bytes.

        The upstream status is checked before the iterator is returned, so
        provider failures still surface as ``InferenceProviderError``.
        """
        payload = self._payload(messages, model, max_tokens, temperature, stream=True)
        headers = self._headers()

        client = httpx.AsyncClient(timeout=self.timeout, transport=self.transport)
        try:
            request = client.build_request("POST", self.api_url, json=payload, headers=headers)
            response = await client.send(request, stream=True)
        except httpx.HTTPError as e:
            await client.aclose()
            logger.error("inference_request_failed", error_type=type(e).__name__, error_message=str(e))
            raise InferenceProviderError(details={"error_type": type(e).__name__})

        if response.status_code >= 400:
            await response.aread()
            logger.error(
                "inference_provider_error",
                upstream_status=response.status_code,
                body=response.text[:500],
            )
            await response.aclose()
            await client.aclose()
            raise InferenceProviderError(upstream_status=response.status_code)

        async def _relay() -> AsyncIterator[bytes]:
            try:
                async for chunk in response.aiter_raw():
                    yield chunk
            finally:
                await response.aclose()
                await client.aclose()

        return _relay()

    async def complete(
        self,
        messages: List[Dict[str, str]],
        model: Optional[str] = None,
        max_tokens: int = 1000,
        temperature: Optional[float] = None
    ) -> ChatCompletion:
        """
        Request a non-streaming chat completion.

        Raises:
            InferenceProviderError: On transport failure, a non-2xx status, or
                a response without a completion
        """
        payload = self._payload(messages, model, max_tokens, temperature, stream=False)
        headers = self._headers()

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.post(self.api_url, json=payload, headers=headers)
        except httpx.HTTPError as e:
            logger.error("inference_request_failed", error_type=type(e).__name__, error_message=str(e))
            raise InferenceProviderError(details={"error_type": type(e).__name__})

        if response.status_code >= 400:
            logger.error(
                "inference_provider_error",
                upstream_status=response.status_code,
                body=response.text[:500],
            )
            raise InferenceProviderError(upstream_status=response.status_code)

        try:
            data = response.json()
            content = data["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError):
            raise InferenceProviderError("Malformed response from AI provider")

        usage = data.get("usage") or {}
        return ChatCompletion(
            content=content,
            model=data.get("model", payload["model"]),
            input_tokens=int(usage.get("prompt_tokens", 0)),
            output_tokens=int(usage.get("completion_tokens", 0)),
            usage=usage,
        )
