"""Provider for OpenAI-compatible chat completion endpoints."""

from __future__ import annotations

import dataclasses
import json
import logging
from typing import Any, Iterator

import httpx

from cortex.provider import (
    DEFAULT_CAPABILITIES,
    ChatCompletionChunk,
    ChatCompletionRequest,
    ChatCompletionResponse,
    ChatMessage,
    EventType,
    InferenceProvider,
    ModelCapabilities,
    ModelInfo,
    ProviderError,
    StreamEvent,
    ToolCallEvent,
    error_event,
)
from cortex.tokencount import estimate_tokens

__all__ = ["OpenAIProvider"]

log = logging.getLogger(__name__)

_MAX_ERROR_BODY = 1 << 20


def _error_body(response: httpx.Response) -> str:
    response.read()
    return response.content[:_MAX_ERROR_BODY].decode("utf-8", "replace")


class OpenAIProvider(InferenceProvider):
    """Talks to any server exposing the OpenAI chat completions API."""

    def __init__(
        self,
        provider_name: str,
        base_url: str,
        api_key: str = "",
        client: httpx.Client | None = None,
    ) -> None:
        self._provider_name = provider_name
        self.base_url = base_url.removesuffix("/")
        self.api_key = api_key
        self._owns_client = client is None
        # No overall timeout: streamed responses can run for minutes.
        self._client = client or httpx.Client(
            timeout=httpx.Timeout(None, connect=10.0),
            limits=httpx.Limits(
                max_connections=100,
                max_keepalive_connections=10,
                keepalive_expiry=90.0,
            ),
        )

    def name(self) -> str:
        return self._provider_name

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def capabilities(self, model: str) -> ModelCapabilities:
        return DEFAULT_CAPABILITIES

    def count_tokens(self, messages: list[ChatMessage]) -> int:
        return estimate_tokens(messages)

    def _headers(self, with_body: bool) -> dict[str, str]:
        headers: dict[str, str] = {}
        if with_body:
            headers["Content-Type"] = "application/json"
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    def list_models(self) -> list[ModelInfo]:
        try:
            response = self._client.get(f"{self.base_url}/models", headers=self._headers(False))
        except httpx.HTTPError as exc:
            raise ProviderError(f"{self._provider_name}: list models: {exc}") from exc
        if response.status_code != 200:
            raise ProviderError(f"HTTP {response.status_code}: {_error_body(response)}")
        try:
            data = response.json()
            models = [ModelInfo.from_dict(item) for item in data.get("data") or []]
        except (ValueError, AttributeError, TypeError) as exc:
            raise ProviderError(f"{self._provider_name}: decode models: {exc}") from exc
        return [dataclasses.replace(m, provider=self._provider_name) for m in models]

    def complete(
        self, request: ChatCompletionRequest, timeout: float = 120.0
    ) -> ChatCompletionResponse:
        body = dataclasses.replace(request, stream=False).to_dict()
        try:
            response = self._client.post(
                f"{self.base_url}/chat/completions",
                content=json.dumps(body),
                headers=self._headers(True),
                timeout=timeout,
            )
        except httpx.HTTPError as exc:
            raise ProviderError(f"{self._provider_name}: complete: {exc}") from exc
        if response.status_code != 200:
            raise ProviderError(f"HTTP {response.status_code}: {_error_body(response)}")
        try:
            return ChatCompletionResponse.from_dict(response.json())
        except (ValueError, AttributeError, TypeError) as exc:
            raise ProviderError(f"{self._provider_name}: decode response: {exc}") from exc

    def stream_chat(self, request: ChatCompletionRequest) -> Iterator[StreamEvent]:
        """Yield events parsed from the server-sent event stream.

        On failure an error event is yielded and ProviderError is raised.
        """
        body = dataclasses.replace(request, stream=True).to_dict()
        try:
            with self._client.stream(
                "POST",
                f"{self.base_url}/chat/completions",
                content=json.dumps(body),
                headers=self._headers(True),
            ) as response:
                if response.status_code != 200:
                    err = ProviderError(
                        f"upstream HTTP {response.status_code}: {_error_body(response)}"
                    )
                    yield error_event(err)
                    raise err
                for line in response.iter_lines():
                    if not line.startswith("data: "):
                        continue
                    data = line[len("data: "):]
                    if data == "[DONE]":
                        break
                    try:
                        chunk = ChatCompletionChunk.from_dict(json.loads(data))
                    except (ValueError, AttributeError, TypeError) as exc:
                        log.warning(
                            "OpenAI SSE: skipping malformed chunk: %s (data: %.100s)", exc, data
                        )
                        continue
                    yield from self._chunk_events(chunk)
        except httpx.HTTPError as exc:
            err = ProviderError(f"{self._provider_name}: stream: {exc}")
            yield error_event(err)
            raise err from exc

    @staticmethod
    def _chunk_events(chunk: ChatCompletionChunk) -> Iterator[StreamEvent]:
        if not chunk.choices:
            return
        choice = chunk.choices[0]
        if choice.delta.content is not None:
            yield StreamEvent(type=EventType.CONTENT_DELTA, delta=choice.delta.content)
        for tc in choice.delta.tool_calls:
            if tc.function.name:
                yield StreamEvent(
                    type=EventType.TOOL_CALL_START,
                    tool_call=ToolCallEvent(id=tc.id, name=tc.function.name),
                )
            if tc.function.arguments:
                yield StreamEvent(
                    type=EventType.TOOL_CALL_DELTA,
                    tool_call=ToolCallEvent(id=tc.id, arguments=tc.function.arguments),
                )
        if choice.finish_reason:
            event_type = (
                EventType.TOOL_CALL_COMPLETE
                if choice.finish_reason == "tool_calls"
                else EventType.CONTENT_DONE
            )
            yield StreamEvent(type=event_type, finish_reason=choice.finish_reason)

    def __repr__(self) -> str:
        return f"OpenAIProvider(name={self._provider_name!r}, base_url={self.base_url!r})"

    def _unused(self) -> Any:  # pragma: no cover - keeps type checkers quiet on Any import
        return None