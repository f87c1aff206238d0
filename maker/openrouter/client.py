"""OpenRouter HTTP client (transport only)."""

import asyncio
import logging
from typing import Any, Optional, Protocol

import httpx
from pydantic import BaseModel

from maker.cancellation import CancelToken
from maker.config import EngineConfig
from maker.errors import Cancelled, ServiceCallFailure
from maker.usage import ModelPrice, Usage

logger = logging.getLogger(__name__)

OPENROUTER_API_URL = "https://openrouter.ai/api/v1/chat/completions"
MAX_RETRIES = 3
BASE_DELAY = 1.0  # seconds
REQUEST_TIMEOUT = 60.0  # seconds


class OpenRouterError(ServiceCallFailure):
    """Error from OpenRouter API."""

    pass


class LLMResponse(BaseModel):
    """A single completion with the model that served it and what it cost."""

    content: str
    model_used: str
    usage: Usage


class ModelClient(Protocol):
    """What the pipeline needs from a model service."""

    async def complete(
        self,
        messages: list[dict],
        model: Optional[str] = None,
        sampling: Optional[dict[str, Any]] = None,
        response_schema: Optional[dict[str, Any]] = None,
        cancel_token: Optional[CancelToken] = None,
        tools_enabled: bool = False,
    ) -> LLMResponse:
        ...


class OpenRouterClient:
    """Async client for OpenRouter API.

    Responsibilities:
    - Model resolution (model ID -> OpenRouter endpoint)
    - Retry logic with exponential backoff
    - Error normalization
    - Structured-output requests and per-call usage reporting
    - Aborting an in-flight request when the cancel token fires

    Not responsible for:
    - Semantic model selection
    - Prompt construction
    - Parsing structured output
    """

    def __init__(
        self,
        config: EngineConfig,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._api_key = config.openrouter_api_key
        self._default_model = config.model_name
        self._pricing: dict[str, ModelPrice] = dict(config.pricing)
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=REQUEST_TIMEOUT, transport=self._transport
            )
        return self._client

    async def aclose(self) -> None:
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()

    async def complete(
        self,
        messages: list[dict],
        model: Optional[str] = None,
        sampling: Optional[dict[str, Any]] = None,
        response_schema: Optional[dict[str, Any]] = None,
        cancel_token: Optional[CancelToken] = None,
        tools_enabled: bool = False,
    ) -> LLMResponse:
        """Make a chat completion request to OpenRouter.

        Args:
            messages: List of message dicts with 'role' and 'content'
            model: Model ID to use, or None for default
            sampling: Sampling parameters (temperature, max_tokens, ...)
            response_schema: Optional ``{"name": ..., "schema": ...}`` JSON schema
                the output must conform to
            cancel_token: Token that aborts the request when signalled
            tools_enabled: Enable the web search plugin

        Returns:
            LLMResponse with content, serving model and usage

        Raises:
            Cancelled: If the token is signalled before or during the request
            OpenRouterError: On API errors after retries exhausted
        """
        resolved_model = model if model else self._default_model

        payload: dict[str, Any] = {
            "model": resolved_model,
            "messages": messages,
            "usage": {"include": True},
        }
        if sampling:
            payload.update(sampling)
        if response_schema is not None:
            payload["response_format"] = {
                "type": "json_schema",
                "json_schema": {
                    "name": response_schema["name"],
                    "strict": True,
                    "schema": response_schema["schema"],
                },
            }
        if tools_enabled:
            payload["plugins"] = [{"id": "web"}]

        if cancel_token is None:
            data = await self._post(payload)
        else:
            data = await self._post_cancellable(payload, cancel_token)

        return self._parse_response(data, resolved_model)

    async def call(
        self,
        messages: list[dict],
        model: Optional[str] = None,
    ) -> LLMResponse:
        """Plain completion with no sampling overrides or schema."""
        return await self.complete(messages, model=model)

    async def _post_cancellable(
        self, payload: dict[str, Any], cancel_token: CancelToken
    ) -> Any:
        cancel_token.raise_if_cancelled()

        request = asyncio.ensure_future(self._post(payload))
        waiter = asyncio.ensure_future(cancel_token.wait())
        try:
            await asyncio.wait({request, waiter}, return_when=asyncio.FIRST_COMPLETED)
        except BaseException:
            request.cancel()
            raise
        finally:
            waiter.cancel()

        if not request.done():
            request.cancel()
            logger.debug(f"Request to {payload['model']} aborted by cancellation")
            raise Cancelled(cancel_token.reason)
        return request.result()

    async def _post(self, payload: dict[str, Any]) -> Any:
        headers = {
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
        }

        last_error: Optional[Exception] = None
        client = self._get_client()

        for attempt in range(MAX_RETRIES):
            try:
                response = await client.post(
                    OPENROUTER_API_URL,
                    headers=headers,
                    json=payload,
                )

                if response.status_code == 200:
                    try:
                        return response.json()
                    except ValueError as e:
                        raise OpenRouterError(
                            f"Response body is not JSON: {response.text[:200]!r}"
                        ) from e

                # Rate limit or server error - retry
                if response.status_code in (429, 500, 502, 503, 504):
                    last_error = OpenRouterError(
                        f"HTTP {response.status_code}: {response.text}"
                    )
                    logger.warning(
                        f"OpenRouter returned {response.status_code} "
                        f"(attempt {attempt + 1}/{MAX_RETRIES})"
                    )
                    delay = BASE_DELAY * (2**attempt)
                    await asyncio.sleep(delay)
                    continue

                # Client error - don't retry
                raise OpenRouterError(
                    f"HTTP {response.status_code}: {response.text}"
                )

            except httpx.RequestError as e:
                last_error = OpenRouterError(f"Request failed: {e}")
                last_error.__cause__ = e  # Preserve exception chain
                logger.warning(
                    f"OpenRouter request failed (attempt {attempt + 1}/{MAX_RETRIES}): {e}"
                )
                delay = BASE_DELAY * (2**attempt)
                await asyncio.sleep(delay)
                continue

        raise last_error or OpenRouterError("Max retries exceeded")

    def _parse_response(self, data: Any, requested_model: str) -> LLMResponse:
        if not isinstance(data, dict):
            raise OpenRouterError(f"Expected a JSON object, got {type(data).__name__}")
        if "error" in data:
            raise OpenRouterError(f"API error: {data['error']}")

        try:
            content = data["choices"][0]["message"].get("content") or ""
        except (KeyError, IndexError, TypeError, AttributeError) as e:
            raise OpenRouterError(f"Malformed completion response: {e}") from e

        model_used = data.get("model") or requested_model
        usage = Usage.from_response(data.get("usage"), model_used, self._pricing)
        logger.debug(
            f"{model_used}: {usage.prompt_tokens} prompt + "
            f"{usage.output_tokens} output tokens, ${usage.cost:.6f}"
        )
        return LLMResponse(content=content, model_used=model_used, usage=usage)
