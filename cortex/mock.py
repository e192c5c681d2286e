"""A scripted provider that streams a fixed list of tokens."""

from __future__ import annotations

import time
from typing import Iterator

from cortex.provider import (
    DEFAULT_CAPABILITIES,
    ChatCompletionRequest,
    ChatCompletionResponse,
    ChatMessage,
    Choice,
    EventType,
    InferenceProvider,
    ModelCapabilities,
    ModelInfo,
    ProviderError,
    StreamEvent,
    error_event,
)

__all__ = ["MockProvider"]


class MockProvider(InferenceProvider):
    """Streams preset tokens, optionally failing at a chosen index."""

    def __init__(self, provider_name: str, tokens: list[str] | None = None) -> None:
        self.provider_name = provider_name
        self.tokens = list(tokens) if tokens else ["Hello", " ", "from", " ", provider_name, "!"]
        self.delay = 0.01
        self.fail_at = -1

    def set_fail_at(self, index: int) -> None:
        """Fail when about to send the token at index; -1 never fails."""
        self.fail_at = index

    def stream_chat(self, request: ChatCompletionRequest) -> Iterator[StreamEvent]:
        for index, token in enumerate(self.tokens):
            if index == self.fail_at:
                err = ProviderError("mock provider failure")
                yield error_event(err)
                raise err
            time.sleep(self.delay)
            yield StreamEvent(type=EventType.CONTENT_DELTA, delta=token)
        yield StreamEvent(type=EventType.CONTENT_DONE, finish_reason="stop")

    def complete(self, request: ChatCompletionRequest) -> ChatCompletionResponse:
        if 0 <= self.fail_at < len(self.tokens):
            raise ProviderError("mock provider failure")
        return ChatCompletionResponse(
            model=request.model,
            choices=[
                Choice(
                    index=0,
                    message=ChatMessage(role="assistant", content="".join(self.tokens)),
                    finish_reason="stop",
                )
            ],
        )

    def count_tokens(self, messages: list[ChatMessage]) -> int:
        return 10

    def capabilities(self, model: str) -> ModelCapabilities:
        return DEFAULT_CAPABILITIES

    def list_models(self) -> list[ModelInfo]:
        return [ModelInfo(id="mock-model", provider=self.provider_name)]

    def name(self) -> str:
        return self.provider_name

    def close(self) -> None:
        return None