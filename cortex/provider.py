"""Chat types, stream events and the inference provider interface."""

from __future__ import annotations

import abc
import enum
from dataclasses import dataclass, field
from typing import Any, Iterator

__all__ = [
    "EventType",
    "FunctionCall",
    "ToolCall",
    "ChatMessage",
    "ToolFunction",
    "Tool",
    "ChatCompletionRequest",
    "Usage",
    "Choice",
    "ChatCompletionResponse",
    "Delta",
    "ChunkChoice",
    "ChatCompletionChunk",
    "ModelInfo",
    "ToolCallEvent",
    "StreamEvent",
    "ModelCapabilities",
    "DEFAULT_CAPABILITIES",
    "InferenceProvider",
    "ProviderError",
    "error_event",
]


class ProviderError(RuntimeError):
    """Raised when an inference provider fails."""


class EventType(str, enum.Enum):
    CONTENT_DELTA = "content.delta"
    CONTENT_DONE = "content.done"
    TOOL_CALL_START = "tool.start"
    TOOL_CALL_DELTA = "tool.progress"
    TOOL_CALL_COMPLETE = "tool.complete"
    ERROR = "error"


@dataclass
class FunctionCall:
    name: str = ""
    arguments: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "arguments": self.arguments}

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> FunctionCall:
        data = data or {}
        return cls(name=data.get("name") or "", arguments=data.get("arguments") or "")


@dataclass
class ToolCall:
    id: str = ""
    type: str = "function"
    function: FunctionCall = field(default_factory=FunctionCall)

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {}
        if self.id:
            out["id"] = self.id
        if self.type:
            out["type"] = self.type
        out["function"] = self.function.to_dict()
        return out

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ToolCall:
        return cls(
            id=data.get("id") or "",
            type=data.get("type") or "",
            function=FunctionCall.from_dict(data.get("function")),
        )


@dataclass
class ChatMessage:
    role: str
    content: Any = None
    tool_calls: list[ToolCall] = field(default_factory=list)
    tool_call_id: str = ""
    name: str = ""

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"role": self.role, "content": self.content}
        if self.tool_calls:
            out["tool_calls"] = [tc.to_dict() for tc in self.tool_calls]
        if self.tool_call_id:
            out["tool_call_id"] = self.tool_call_id
        if self.name:
            out["name"] = self.name
        return out

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ChatMessage:
        return cls(
            role=data.get("role") or "",
            content=data.get("content"),
            tool_calls=[ToolCall.from_dict(tc) for tc in data.get("tool_calls") or []],
            tool_call_id=data.get("tool_call_id") or "",
            name=data.get("name") or "",
        )


@dataclass
class ToolFunction:
    name: str
    description: str = ""
    parameters: Any = None


@dataclass
class Tool:
    function: ToolFunction
    type: str = "function"

    def to_dict(self) -> dict[str, Any]:
        fn: dict[str, Any] = {"name": self.function.name}
        if self.function.description:
            fn["description"] = self.function.description
        if self.function.parameters is not None:
            fn["parameters"] = self.function.parameters
        return {"type": self.type, "function": fn}


@dataclass
class ChatCompletionRequest:
    model: str
    messages: list[ChatMessage] = field(default_factory=list)
    stream: bool = False
    temperature: float | None = None
    top_p: float | None = None
    max_tokens: int | None = None
    stop: Any = None
    tools: list[Tool] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "model": self.model,
            "messages": [m.to_dict() for m in self.messages],
            "stream": self.stream,
        }
        for key in ("temperature", "top_p", "max_tokens", "stop"):
            value = getattr(self, key)
            if value is not None:
                out[key] = value
        if self.tools:
            out["tools"] = [t.to_dict() for t in self.tools]
        return out


@dataclass
class Usage:
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Usage:
        return cls(
            prompt_tokens=int(data.get("prompt_tokens") or 0),
            completion_tokens=int(data.get("completion_tokens") or 0),
            total_tokens=int(data.get("total_tokens") or 0),
        )


@dataclass
class Choice:
    index: int
    message: ChatMessage
    finish_reason: str = ""


@dataclass
class ChatCompletionResponse:
    model: str = ""
    choices: list[Choice] = field(default_factory=list)
    usage: Usage | None = None
    id: str = ""
    object: str = ""
    created: int = 0

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ChatCompletionResponse:
        usage = data.get("usage")
        return cls(
            model=data.get("model") or "",
            choices=[
                Choice(
                    index=int(c.get("index") or 0),
                    message=ChatMessage.from_dict(c.get("message") or {}),
                    finish_reason=c.get("finish_reason") or "",
                )
                for c in data.get("choices") or []
            ],
            usage=Usage.from_dict(usage) if usage else None,
            id=data.get("id") or "",
            object=data.get("object") or "",
            created=int(data.get("created") or 0),
        )


@dataclass
class Delta:
    role: str = ""
    content: str | None = None
    tool_calls: list[ToolCall] = field(default_factory=list)


@dataclass
class ChunkChoice:
    index: int = 0
    delta: Delta = field(default_factory=Delta)
    finish_reason: str = ""


@dataclass
class ChatCompletionChunk:
    id: str = ""
    object: str = ""
    created: int = 0
    model: str = ""
    choices: list[ChunkChoice] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ChatCompletionChunk:
        choices = []
        for c in data.get("choices") or []:
            d = c.get("delta") or {}
            choices.append(
                ChunkChoice(
                    index=int(c.get("index") or 0),
                    delta=Delta(
                        role=d.get("role") or "",
                        content=d.get("content"),
                        tool_calls=[ToolCall.from_dict(tc) for tc in d.get("tool_calls") or []],
                    ),
                    finish_reason=c.get("finish_reason") or "",
                )
            )
        return cls(
            id=data.get("id") or "",
            object=data.get("object") or "",
            created=int(data.get("created") or 0),
            model=data.get("model") or "",
            choices=choices,
        )


@dataclass
class ModelInfo:
    id: str
    object: str = ""
    created: int = 0
    owned_by: str = ""
    provider: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ModelInfo:
        return cls(
            id=data.get("id") or "",
            object=data.get("object") or "",
            created=int(data.get("created") or 0),
            owned_by=data.get("owned_by") or "",
            provider=data.get("provider") or "",
        )


@dataclass
class ToolCallEvent:
    id: str = ""
    name: str = ""
    arguments: str = ""


@dataclass
class StreamEvent:
    type: EventType
    delta: str = ""
    tool_call: ToolCallEvent | None = None
    finish_reason: str = ""
    usage: Usage | None = None
    error: BaseException | None = None
    error_message: str = ""


@dataclass(frozen=True)
class ModelCapabilities:
    max_context_tokens: int
    max_output_tokens: int
    default_output_tokens: int
    supports_tools: bool = False
    supports_vision: bool = False
    supports_json: bool = False
    supports_streaming: bool = True
    tokenizer_id: str = ""
    provider_id: str = ""


DEFAULT_CAPABILITIES = ModelCapabilities(
    max_context_tokens=8192,
    max_output_tokens=2048,
    default_output_tokens=1024,
    supports_tools=False,
    supports_vision=False,
    supports_json=False,
    supports_streaming=True,
)


def error_event(error: BaseException) -> StreamEvent:
    """Wrap an exception as an error stream event."""
    return StreamEvent(type=EventType.ERROR, error=error, error_message=str(error))


class InferenceProvider(abc.ABC):
    """A backend that can answer chat completion requests."""

    @abc.abstractmethod
    def stream_chat(self, request: ChatCompletionRequest) -> Iterator[StreamEvent]:
        """Yield stream events for the request."""

    @abc.abstractmethod
    def complete(self, request: ChatCompletionRequest) -> ChatCompletionResponse:
        """Return a whole, non-streamed response."""

    @abc.abstractmethod
    def count_tokens(self, messages: list[ChatMessage]) -> int:
        """Return the token count for the messages."""

    @abc.abstractmethod
    def capabilities(self, model: str) -> ModelCapabilities:
        """Return what this provider supports for the model."""

    @abc.abstractmethod
    def list_models(self) -> list[ModelInfo]:
        """Return the models this provider offers."""

    @abc.abstractmethod
    def name(self) -> str:
        """Return the provider identifier."""

    @abc.abstractmethod
    def close(self) -> None:
        """Release resources held by the provider."""

    def __enter__(self) -> InferenceProvider:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()