# core/llm_interface.py
"""
Handles all direct interactions with the text-completion backends used for
myth generation (OpenAI-compatible chat completions and Ollama). Includes
streaming transports, retry handling, error classification and response
cleaning.

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at

    http://www.apache.org/licenses/LICENSE-2.0

Unless required by applicable law or agreed to in writing, software
distributed under the License is distributed on an "AS IS" BASIS,
WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
See the License for the specific language governing permissions and
limitations under the License.
"""

# Standard library imports
import asyncio
import functools
import json
import random
import re
from collections.abc import Callable

# Type hints
from typing import Any

# Third-party imports
import httpx
import structlog
import tiktoken

# Local imports
from config import settings
from core.exceptions import ContextOverflowError, ProviderError

logger = structlog.get_logger(__name__)

StreamCallback = Callable[[str], None]

_OVERFLOW_PATTERN = re.compile(
    r"context[ _]length|maximum context|too many tokens"
    r"|(?:max_tokens|max_completion_tokens|num_predict)\b.*?"
    r"(?:exceed|too large|greater than|context)",
    re.IGNORECASE | re.DOTALL,
)


# Token parameter handling
def _completion_token_param(api_base: str) -> str:
    """Return the token count parameter expected by the provider."""
    if "api.openai.com" in api_base or "api.anthropic.com" in api_base:
        return "max_completion_tokens"
    return "max_tokens"


def is_context_overflow(message: str) -> bool:
    """Return ``True`` if a provider error message describes a context overflow."""
    return bool(message) and bool(_OVERFLOW_PATTERN.search(message))


@functools.lru_cache(maxsize=settings.TOKENIZER_CACHE_SIZE)
def _get_tokenizer(model_name: str) -> tiktoken.Encoding | None:
    """
    Gets a tiktoken encoder for the given model name, with caching.
    Tries model-specific encoding, then a default, then returns None.
    """
    try:
        try:
            encoder = tiktoken.encoding_for_model(model_name)
        except KeyError:
            logger.debug(
                f"No direct tiktoken encoding for '{model_name}'. Using default '{settings.TIKTOKEN_DEFAULT_ENCODING}'."
            )
            encoder = tiktoken.get_encoding(settings.TIKTOKEN_DEFAULT_ENCODING)
        return encoder
    except (KeyError, ValueError):
        logger.error(
            f"Default tiktoken encoding '{settings.TIKTOKEN_DEFAULT_ENCODING}' also not found. "
            f"Token counting will fall back to character-based heuristic for '{model_name}'."
        )
        return None
    except Exception as e:
        # tiktoken downloads encodings on first use; offline hosts end up here.
        logger.error(
            f"Unexpected error getting tokenizer for '{model_name}': {e}",
            exc_info=True,
        )
        return None


def count_tokens(text: str, model_name: str) -> int:
    """
    Counts the number of tokens in a string for a given model.
    Uses tiktoken with caching and a character-based fallback.
    """
    if not text:
        return 0

    encoder = _get_tokenizer(model_name)
    if encoder:
        return len(encoder.encode(text, allowed_special="all"))
    return int(len(text) / settings.FALLBACK_CHARS_PER_TOKEN)


class LLMService:
    """Client for the configured completion backend."""

    def __init__(
        self,
        timeout: float = settings.HTTPX_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
        provider: str | None = None,
    ):
        # Use a single async client for all requests to reuse connections
        self._client = httpx.AsyncClient(timeout=timeout, transport=transport)
        # Add a semaphore to limit concurrent requests
        self._semaphore = asyncio.Semaphore(settings.MAX_CONCURRENT_LLM_CALLS)
        self.provider = provider or settings.LLM_PROVIDER
        self.request_count = 0
        logger.info(
            f"LLMService initialized for provider '{self.provider}' with a concurrency limit of {settings.MAX_CONCURRENT_LLM_CALLS}."
        )

    async def _backoff_delay(self, attempt: int) -> None:
        """Sleep for an exponentially increasing delay with jitter."""
        delay = settings.LLM_RETRY_DELAY_SECONDS * (2**attempt)
        jitter = random.uniform(0, delay / 2)
        await asyncio.sleep(delay + jitter)

    async def aclose(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()

    def _log_llm_usage(
        self,
        model_name: str,
        usage_data: dict[str, int] | None,
        streamed: bool = False,
    ) -> None:
        """Helper to log LLM token usage if available in the response."""
        stream_prefix = "Streamed " if streamed else ""
        if usage_data and isinstance(usage_data, dict):
            logger.info(
                f"{stream_prefix}LLM ('{model_name}') Usage - Prompt: {usage_data.get('prompt_tokens', 'N/A')} tk, "
                f"Comp: {usage_data.get('completion_tokens', 'N/A')} tk, Total: {usage_data.get('total_tokens', 'N/A')} tk"
            )
        else:
            logger.debug(
                f"{stream_prefix}LLM ('{model_name}') response missing 'usage' information."
            )

    def _error_from_status(
        self, exc: httpx.HTTPStatusError, partial: str
    ) -> ProviderError:
        """Classify an HTTP error response into a provider error."""
        status = exc.response.status_code
        try:
            body = exc.response.text
        except httpx.ResponseNotRead:
            body = ""
        message = f"HTTP {status}: {body[: settings.RESPONSE_PREVIEW_CHARS] or exc}"
        error_cls = (
            ContextOverflowError
            if status in (400, 413, 422) and is_context_overflow(body)
            else ProviderError
        )
        return error_cls(
            message,
            provider=self.provider,
            status_code=status,
            details=body,
            response_text=partial,
        )

    async def _post_streaming(
        self,
        payload: dict[str, Any],
        headers: dict[str, str],
        sink: list[str],
        on_chunk: StreamCallback | None,
    ) -> dict[str, int] | None:
        """Send a streaming chat completion request."""
        payload["stream"] = True
        usage: dict[str, int] | None = None
        async with self._client.stream(
            "POST",
            f"{settings.OPENAI_API_BASE}/chat/completions",
            json=payload,
            headers=headers,
        ) as response_stream:
            if response_stream.status_code >= 400:
                await response_stream.aread()
            response_stream.raise_for_status()
            async for line in response_stream.aiter_lines():
                if not line.startswith("data: "):
                    continue
                data_json_str = line[len("data: ") :].strip()
                if data_json_str == "[DONE]":
                    break
                chunk_data = json.loads(data_json_str)
                if chunk_data.get("error"):
                    raise ProviderError(
                        str(chunk_data["error"]),
                        provider=self.provider,
                        details=chunk_data["error"],
                        response_text="".join(sink),
                    )
                if chunk_data.get("choices"):
                    delta = chunk_data["choices"][0].get("delta", {})
                    content_piece = delta.get("content")
                    if content_piece:
                        sink.append(content_piece)
                        if on_chunk:
                            on_chunk(content_piece)
                if chunk_data.get("usage"):
                    usage = chunk_data["usage"]
        return usage

    async def _post_non_streaming(
        self, payload: dict[str, Any], headers: dict[str, str], sink: list[str]
    ) -> dict[str, int] | None:
        """Send a regular chat completion request."""
        payload["stream"] = False
        response = await self._client.post(
            f"{settings.OPENAI_API_BASE}/chat/completions",
            json=payload,
            headers=headers,
        )
        response.raise_for_status()
        data = response.json()
        if data.get("choices"):
            message = data["choices"][0].get("message") or {}
            sink.append(message.get("content") or "")
        else:
            logger.error(
                f"LLM ('{payload['model']}') Invalid response structure - missing choices/content despite 200 OK: {data}"
            )
        return data.get("usage")

    async def _post_ollama(
        self,
        payload: dict[str, Any],
        sink: list[str],
        on_chunk: StreamCallback | None,
    ) -> dict[str, int] | None:
        """Send a generate request to Ollama and read its NDJSON stream."""
        usage: dict[str, int] | None = None
        async with self._client.stream(
            "POST", f"{settings.OLLAMA_API_BASE}/api/generate", json=payload
        ) as response_stream:
            if response_stream.status_code >= 400:
                await response_stream.aread()
            response_stream.raise_for_status()
            async for line in response_stream.aiter_lines():
                if not line.strip():
                    continue
                chunk_data = json.loads(line)
                if chunk_data.get("error"):
                    raise ProviderError(
                        str(chunk_data["error"]),
                        provider=self.provider,
                        details=chunk_data,
                        response_text="".join(sink),
                    )
                content_piece = chunk_data.get("response")
                if content_piece:
                    sink.append(content_piece)
                    if on_chunk:
                        on_chunk(content_piece)
                if chunk_data.get("done"):
                    prompt_tokens = chunk_data.get("prompt_eval_count", 0)
                    completion_tokens = chunk_data.get("eval_count", 0)
                    usage = {
                        "prompt_tokens": prompt_tokens,
                        "completion_tokens": completion_tokens,
                        "total_tokens": prompt_tokens + completion_tokens,
                    }
                    break
        return usage

    def _build_request(
        self, prompt: str, temperature: float, max_output_tokens: int, stream: bool
    ) -> tuple[dict[str, Any], dict[str, str]]:
        """Return the payload and headers for the configured backend."""
        model_name = settings.MAIN_GENERATION_MODEL
        if self.provider == "ollama":
            payload: dict[str, Any] = {
                "model": model_name,
                "prompt": prompt,
                "stream": True,
                "options": {
                    "temperature": temperature,
                    "top_p": settings.LLM_TOP_P,
                    "num_predict": max_output_tokens,
                },
            }
            if settings.LLM_JSON_MODE:
                payload["format"] = "json"
            return payload, {"Content-Type": "application/json"}

        headers = {
            "Authorization": f"Bearer {settings.OPENAI_API_KEY}",
            "Content-Type": "application/json",
        }
        token_param_name = _completion_token_param(settings.OPENAI_API_BASE)
        payload = {
            "model": model_name,
            "messages": [{"role": "user", "content": prompt}],
            "temperature": temperature,
            "top_p": settings.LLM_TOP_P,
            token_param_name: max_output_tokens,
        }
        if settings.LLM_JSON_MODE:
            payload["response_format"] = {"type": "json_object"}
        if stream:
            payload["stream_options"] = {"include_usage": True}
        return payload, headers

    async def _call_once(
        self,
        payload: dict[str, Any],
        headers: dict[str, str],
        sink: list[str],
        on_chunk: StreamCallback | None,
    ) -> dict[str, int] | None:
        if self.provider == "ollama":
            return await self._post_ollama(payload, sink, on_chunk)
        if on_chunk is not None:
            return await self._post_streaming(payload, headers, sink, on_chunk)
        return await self._post_non_streaming(payload, headers, sink)

    async def _call_model_with_retries(
        self,
        model_name: str,
        payload: dict[str, Any],
        headers: dict[str, str],
        on_chunk: StreamCallback | None,
    ) -> str:
        """Try calling the model with retry logic.

        Client errors other than 429 are raised immediately. Once any chunk
        has been handed to ``on_chunk`` the call is not retried, because the
        consumer already holds text from this attempt.
        """
        last_exc: ProviderError | None = None
        for retry_attempt in range(settings.LLM_RETRY_ATTEMPTS):
            sink: list[str] = []
            try:
                self.request_count += 1
                usage = await self._call_once(dict(payload), headers, sink, on_chunk)
                self._log_llm_usage(model_name, usage, streamed=on_chunk is not None)
                return "".join(sink)
            except httpx.HTTPStatusError as exc:
                last_exc = self._error_from_status(exc, "".join(sink))
                status = exc.response.status_code
                if isinstance(last_exc, ContextOverflowError) or (
                    400 <= status < 500 and status != 429
                ):
                    logger.error(
                        f"LLM ('{model_name}'): Client-side error {status}. Aborting retries.",
                        detail=last_exc.details,
                    )
                    raise last_exc from exc
            except ProviderError as exc:
                last_exc = exc
                if is_context_overflow(str(exc)):
                    raise ContextOverflowError(
                        str(exc),
                        provider=exc.provider,
                        details=exc.details,
                        response_text=exc.response_text,
                    ) from exc
            except (httpx.RequestError, json.JSONDecodeError) as exc:
                last_exc = ProviderError(
                    f"{type(exc).__name__}: {exc}",
                    provider=self.provider,
                    response_text="".join(sink),
                )
                last_exc.__cause__ = exc

            logger.warning(
                f"LLM ('{model_name}' Attempt {retry_attempt + 1}/{settings.LLM_RETRY_ATTEMPTS}): {last_exc}"
            )
            if sink and on_chunk is not None:
                raise last_exc
            if retry_attempt < settings.LLM_RETRY_ATTEMPTS - 1:
                await self._backoff_delay(retry_attempt)

        assert last_exc is not None
        logger.error(
            f"LLM ('{model_name}'): All {settings.LLM_RETRY_ATTEMPTS} retry attempts failed. Last error: {last_exc}"
        )
        raise last_exc

    async def generate(
        self,
        prompt: str,
        *,
        temperature: float | None = None,
        max_output_tokens: int | None = None,
        on_stream_chunk: StreamCallback | None = None,
    ) -> str:
        """Return the completion text for ``prompt``.

        Raises ``ProviderError`` (or ``ContextOverflowError``) when the
        backend fails; the exception carries any partially received text.
        """
        if not prompt or not prompt.strip():
            raise ValueError("generate: empty prompt")
        async with self._semaphore:
            model_name = settings.MAIN_GENERATION_MODEL
            effective_temperature = (
                temperature
                if temperature is not None
                else settings.GENERATION_TEMPERATURE
            )
            effective_max_output_tokens = (
                max_output_tokens
                if max_output_tokens is not None
                else settings.MAX_GENERATION_TOKENS
            )
            payload, headers = self._build_request(
                prompt,
                effective_temperature,
                effective_max_output_tokens,
                stream=on_stream_chunk is not None,
            )
            logger.debug(
                f"Calling LLM '{model_name}' via {self.provider}. "
                f"Streaming: {on_stream_chunk is not None}. Prompt tokens (est.): {count_tokens(prompt, model_name)}. "
                f"Max output tokens: {effective_max_output_tokens}. Temp: {effective_temperature}, TopP: {settings.LLM_TOP_P}"
            )
            try:
                raw_text = await self._call_model_with_retries(
                    model_name, payload, headers, on_stream_chunk
                )
            except ProviderError as exc:
                exc.response_text = self.clean_model_response(exc.response_text)
                raise
            return self.clean_model_response(raw_text)

    def clean_model_response(self, text: str) -> str:
        """Strips reasoning tags, code fences and chat preambles from a response."""
        if not text:
            return ""
        cleaned_text = text
        for tag_name in ("think", "thought", "thinking", "reasoning", "no_think"):
            cleaned_text = re.sub(
                rf"<\s*{tag_name}\s*>.*?<\s*/\s*{tag_name}\s*>",
                "",
                cleaned_text,
                flags=re.DOTALL | re.IGNORECASE,
            )
            # Stray tags from blocks the model never closed.
            cleaned_text = re.sub(
                rf"<\s*/?\s*{tag_name}\s*/?\s*>",
                "",
                cleaned_text,
                flags=re.IGNORECASE,
            )
        cleaned_text = re.sub(
            r"```(?:[a-zA-Z0-9_-]+)?\s*(.*?)\s*```",
            r"\1",
            cleaned_text,
            flags=re.DOTALL,
        )
        cleaned_text = re.sub(r"^\s*```(?:[a-zA-Z0-9_-]+)?\s*", "", cleaned_text)
        cleaned_text = re.sub(
            r"^\s*(Okay,\s*)?(Sure,\s*)?(Here's|Here is)\s+(the|your)\s+[\w\s]+?:\s*",
            "",
            cleaned_text,
            count=1,
            flags=re.IGNORECASE,
        )
        final_text = cleaned_text.strip()
        if len(final_text) < len(text):
            logger.debug(
                f"Cleaning reduced response length from {len(text)} to {len(final_text)}."
            )
        return final_text


llm_service = LLMService()
