"""Provider for a local Ollama server speaking its native /api/chat protocol."""

from __future__ import annotations

import dataclasses
import json
import logging
from typing import Any, Iterator

import httpx

from cortex.provider import (
    ChatCompletionRequest,
    ChatCompletionResponse,
    ChatMessage,
    Choice,
    EventType,
    FunctionCall,
    InferenceProvider,
    ModelCapabilities,
    ModelInfo,
    ProviderError,
    StreamEvent,
    ToolCall,
    ToolCallEvent,
    Usage,
    error_event,
)
from cortex.tokencount import estimate_tokens

__all__ = [
    "OllamaProvider",
    "translate_request",
    "translate_finish_reason",
    "stringify_content",
    "marshal_arguments",
]

log = logging.getLogger(__name__)

DEFAULT_BASE_URL = "http://localhost:11434"
_MAX_ERROR_BODY = 1 << 20
_MAX_LINE = 1024 * 1024


def _json_default(value: Any) -> Any:
    if hasattr(value, "to_dict"):
        return value.to_dict()
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return dataclasses.asdict(value)
    raise TypeError(f"cannot serialise {type(value).__name__}")


def _dumps(value: Any) -> str:
    return json.dumps(
        value,
        separators=(",", ":"),
        sort_keys=True,
        ensure_ascii=False,
        default=_json_default,
    )


def stringify_content(content: Any) -> str:
    """Return message content as plain text, serialising structured content as JSON."""
    if content is None:
        return ""
    if isinstance(content, str):
        return content
    try:
        return _dumps(content)
    except (TypeError, ValueError):
        return str(content)


def marshal_arguments(args: Any) -> str:
    """Return tool-call arguments (a mapping or a string) as a JSON string."""
    if args is None:
        return "{}"
    if isinstance(args, str):
        return args
    try:
        return _dumps(args)
    except (TypeError, ValueError):
        return "{}"


def translate_finish_reason(reason: str | None) -> str:
    """Map Ollama's done_reason to an OpenAI finish_reason."""
    return reason or "stop"


def _raw_arguments(arguments: str) -> Any:
    if not arguments:
        return {}
    try:
        return json.loads(arguments)
    except ValueError:
        return arguments


def _translate_message(message: ChatMessage) -> dict[str, Any]:
    out: dict[str, Any] = {
        "role": message.role,
        "content": stringify_content(message.content),
    }
    if message.tool_calls:
        calls = []
        for tc in message.tool_calls:
            call: dict[str, Any] = {}
            if tc.id:
                call["id"] = tc.id
            if tc.type:
                call["type"] = tc.type
            call["function"] = {
                "name": tc.function.name,
                "arguments": _raw_arguments(tc.function.arguments),
            }
            calls.append(call)
        out["tool_calls"] = calls
    if message.tool_call_id:
        out["tool_call_id"] = message.tool_call_id
    return out


def translate_request(request: ChatCompletionRequest, stream: bool) -> dict[str, Any]:
    """Build an Ollama /api/chat request body from an OpenAI-style request."""
    body: dict[str, Any] = {
        "model": request.model,
        "messages": [_translate_message(m) for m in request.messages],
        "stream": stream,
    }

    option_values = {
        "temperature": request.temperature,
        "top_p": request.top_p,
        "num_predict": request.max_tokens,
        "stop": request.stop,
    }
    if any(v is not None for v in option_values.values()):
        body["options"] = {k: v for k, v in option_values.items() if v is not None}

    if request.tools:
        tools = []
        for tool in request.tools:
            fn: dict[str, Any] = {"name": tool.function.name}
            if tool.function.description:
                fn["description"] = tool.function.description
            if tool.function.parameters is not None:
                fn["parameters"] = tool.function.parameters
            tools.append({"type": tool.type, "function": fn})
        body["tools"] = tools

    return body


def _error_body(response: httpx.Response) -> str:
    response.read()
    return response.content[:_MAX_ERROR_BODY].decode("utf-8", "replace")


def _usage(chunk: dict[str, Any]) -> Usage:
    prompt = int(chunk.get("prompt_eval_count") or 0)
    completion = int(chunk.get("eval_count") or 0)
    return Usage(
        prompt_tokens=prompt,
        completion_tokens=completion,
        total_tokens=prompt + completion,
    )


class OllamaProvider(InferenceProvider):
    """Talks to an Ollama instance using NDJSON streaming."""

    def __init__(self, base_url: str = "") -> None:
        self.base_url = (base_url or DEFAULT_BASE_URL).removesuffix("/")
        limits = httpx.Limits(max_keepalive_connections=10, keepalive_expiry=90.0)
        self._client = httpx.Client(timeout=httpx.Timeout(30.0, connect=5.0), limits=limits)
        # Streamed replies may take arbitrarily long, so no read timeout.
        self._stream_client = httpx.Client(
            timeout=httpx.Timeout(None, connect=5.0), limits=limits
        )

    def name(self) -> str:
        return "ollama"

    def close(self) -> None:
        self._client.close()
        self._stream_client.close()

    def probe(self) -> bool:
        """Return True when GET /api/tags answers 200 within two seconds."""
        try:
            response = self._client.get(f"{self.base_url}/api/tags", timeout=2.0)
        except httpx.HTTPError:
            return False
        return response.status_code == 200

    def list_models(self) -> list[ModelInfo]:
        """Return the installed models; an unreachable server yields an empty list."""
        try:
            response = self._client.get(f"{self.base_url}/api/tags")
        except httpx.TransportError:
            return []
        except httpx.HTTPError as exc:
            raise ProviderError(f"ollama: list models: {exc}") from exc
        if response.status_code != 200:
            raise ProviderError(
                f"ollama: list models HTTP {response.status_code}: {_error_body(response)}"
            )
        try:
            entries = response.json().get("models") or []
            names = [entry.get("name") or "" for entry in entries]
        except (ValueError, AttributeError, TypeError) as exc:
            raise ProviderError(f"ollama: decode tags response: {exc}") from exc
        return [
            ModelInfo(id=name, object="model", owned_by="ollama", provider="ollama")
            for name in names
        ]

    def complete(self, request: ChatCompletionRequest) -> ChatCompletionResponse:
        body = translate_request(request, stream=False)
        try:
            response = self._client.post(
                f"{self.base_url}/api/chat",
                content=json.dumps(body),
                headers={"Content-Type": "application/json"},
            )
        except httpx.HTTPError as exc:
            raise ProviderError(f"ollama: complete: {exc}") from exc
        if response.status_code != 200:
            raise ProviderError(
                f"ollama: complete HTTP {response.status_code}: {_error_body(response)}"
            )
        try:
            data = response.json()
            message = data.get("message") or {}
            tool_calls = [
                ToolCall(
                    id=tc.get("id") or "",
                    type="function",
                    function=FunctionCall(
                        name=(tc.get("function") or {}).get("name") or "",
                        arguments=marshal_arguments((tc.get("function") or {}).get("arguments")),
                    ),
                )
                for tc in message.get("tool_calls") or []
            ]
            return ChatCompletionResponse(
                model=data.get("model") or "",
                choices=[
                    Choice(
                        index=0,
                        message=ChatMessage(
                            role=message.get("role") or "",
                            content=message.get("content") or "",
                            tool_calls=tool_calls,
                        ),
                        finish_reason=translate_finish_reason(data.get("done_reason")),
                    )
                ],
                usage=_usage(data),
            )
        except (ValueError, AttributeError, TypeError) as exc:
            raise ProviderError(f"ollama: decode response: {exc}") from exc

    def stream_chat(self, request: ChatCompletionRequest) -> Iterator[StreamEvent]:
        """Yield events from the NDJSON stream.

        On failure an error event is yielded and ProviderError is raised.
        """
        body = translate_request(request, stream=True)
        try:
            with self._stream_client.stream(
                "POST",
                f"{self.base_url}/api/chat",
                content=json.dumps(body),
                headers={"Content-Type": "application/json"},
            ) as response:
                if response.status_code != 200:
                    err = ProviderError(
                        f"ollama: stream HTTP {response.status_code}: {_error_body(response)}"
                    )
                    yield error_event(err)
                    raise err
                yield from self._stream_lines(response.iter_lines())
        except httpx.HTTPError as exc:
            err = ProviderError(f"ollama: stream request: {exc}")
            yield error_event(err)
            raise err from exc

    def _stream_lines(self, lines: Iterator[str]) -> Iterator[StreamEvent]:
        active: dict[int, ToolCallEvent] = {}
        for line in lines:
            if len(line) > _MAX_LINE:
                err = ProviderError("ollama: stream read: line too long")
                yield error_event(err)
                raise err
            if not line.strip():
                continue
            try:
                chunk = json.loads(line)
                if not isinstance(chunk, dict):
                    raise ValueError("chunk is not an object")
                message = chunk.get("message") or {}
                if not isinstance(message, dict):
                    raise ValueError("message is not an object")
            except ValueError as exc:
                log.warning("malformed NDJSON line: %s (error: %s)", line, exc)
                continue

            for index, tc in enumerate(message.get("tool_calls") or []):
                fn = tc.get("function") or {}
                args = marshal_arguments(fn.get("arguments"))
                existing = active.get(index)
                if existing is None:
                    event = ToolCallEvent(
                        id=tc.get("id") or "", name=fn.get("name") or "", arguments=args
                    )
                    active[index] = event
                    yield StreamEvent(
                        type=EventType.TOOL_CALL_START, tool_call=dataclasses.replace(event)
                    )
                else:
                    existing.arguments += args
                    yield StreamEvent(
                        type=EventType.TOOL_CALL_DELTA,
                        tool_call=ToolCallEvent(
                            id=tc.get("id") or "", name=fn.get("name") or "", arguments=args
                        ),
                    )

            content = message.get("content") or ""
            if content:
                yield StreamEvent(type=EventType.CONTENT_DELTA, delta=content)

            if chunk.get("done"):
                for event in active.values():
                    yield StreamEvent(type=EventType.TOOL_CALL_COMPLETE, tool_call=event)
                yield StreamEvent(
                    type=EventType.CONTENT_DONE,
                    finish_reason=translate_finish_reason(chunk.get("done_reason")),
                    usage=_usage(chunk),
                )
                return

    def count_tokens(self, messages: list[ChatMessage]) -> int:
        return estimate_tokens(messages)

    def capabilities(self, model: str) -> ModelCapabilities:
        """Conservative defaults; Ollama cannot report per-model limits."""
        return ModelCapabilities(
            max_context_tokens=4096,
            max_output_tokens=2048,
            default_output_tokens=1024,
            supports_tools=True,
            supports_vision=False,
            supports_json=False,
            supports_streaming=True,
            provider_id="ollama",
        )

    def __repr__(self) -> str:
        return f"OllamaProvider(base_url={self.base_url!r})"