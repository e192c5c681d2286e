"""Provider that runs llama-server as a child process and proxies to it."""

from __future__ import annotations

import logging
import os
import shutil
import socket
import subprocess
import threading
import time
from typing import Iterator

from cortex.openai import OpenAIProvider
from cortex.provider import (
    DEFAULT_CAPABILITIES,
    ChatCompletionRequest,
    ChatCompletionResponse,
    ChatMessage,
    InferenceProvider,
    ModelCapabilities,
    ModelInfo,
    ProviderError,
    StreamEvent,
    error_event,
)
from cortex.tokencount import estimate_tokens

__all__ = ["LocalProvider"]

log = logging.getLogger(__name__)

DEFAULT_MODELS_DIR = "./models"
DEFAULT_CTX_SIZE = 4096
DEFAULT_BIN_PATH = "./bin/llama-server"
DEFAULT_PORT = 8081


class LocalProvider(InferenceProvider):
    """Serves .gguf models from a directory through a local llama-server."""

    def __init__(self, models_dir: str = "", ctx_size: int = 0) -> None:
        self.models_dir = models_dir or DEFAULT_MODELS_DIR
        self.ctx_size = ctx_size if ctx_size > 0 else DEFAULT_CTX_SIZE
        self.bin_path = DEFAULT_BIN_PATH
        self.port = DEFAULT_PORT
        self.process: subprocess.Popen[bytes] | None = None
        self.current = ""
        self._lock = threading.Lock()
        self._ready_attempts = 30
        self._ready_interval = 1.0

    def name(self) -> str:
        return "local"

    def ensure_binary(self) -> None:
        """Locate llama-server in the configured path or on PATH."""
        if os.path.exists(self.bin_path):
            return
        found = shutil.which("llama-server")
        if found:
            self.bin_path = found
            return
        raise ProviderError(
            "llama-server not found in ./bin or PATH. "
            "Please download a llama-server release and place it in ./bin"
        )

    def _port_open(self) -> bool:
        try:
            with socket.create_connection(("127.0.0.1", self.port), timeout=1.0):
                return True
        except OSError:
            return False

    def start_server(self, model_path: str) -> None:
        """Start llama-server for the model unless it is already serving it."""
        with self._lock:
            if self.process is not None:
                if self.current == model_path:
                    return
                self._stop_locked()

            self.ensure_binary()

            full_path = os.path.join(self.models_dir, model_path)
            args = [
                "-m", full_path,
                "--port", str(self.port),
                "--n-gpu-layers", "0",  # CPU by default for compatibility
                "--ctx-size", str(self.ctx_size),
                "--parallel", "1",
            ]
            log.info("Starting local inference: %s %s", self.bin_path, " ".join(args))
            try:
                process = subprocess.Popen([self.bin_path, *args])
            except OSError as exc:
                raise ProviderError(f"failed to start llama-server: {exc}") from exc

            self.process = process
            self.current = model_path

            for _ in range(self._ready_attempts):
                time.sleep(self._ready_interval)
                if self._port_open():
                    return

            self._stop_locked()
            limit = self._ready_attempts * self._ready_interval
            raise ProviderError(f"llama-server failed to start within {limit:g}s")

    def _stop_locked(self) -> None:
        if self.process is None:
            return
        try:
            self.process.kill()
        except OSError:
            pass
        self.process.wait()
        self.process = None
        self.current = ""

    def stop_server(self) -> None:
        """Stop the running llama-server, if any."""
        with self._lock:
            self._stop_locked()

    def close(self) -> None:
        self.stop_server()

    def _proxy(self) -> OpenAIProvider:
        return OpenAIProvider("local", f"http://127.0.0.1:{self.port}/v1", "not-needed")

    def stream_chat(self, request: ChatCompletionRequest) -> Iterator[StreamEvent]:
        """Start the server if needed and stream through its OpenAI-compatible API."""
        try:
            self.start_server(request.model)
        except ProviderError as exc:
            yield error_event(exc)
            raise
        proxy = self._proxy()
        try:
            yield from proxy.stream_chat(request)
        finally:
            proxy.close()

    def complete(self, request: ChatCompletionRequest) -> ChatCompletionResponse:
        """Start the server if needed and ask it for a whole response."""
        self.start_server(request.model)
        with self._proxy() as proxy:
            return proxy.complete(request)

    def count_tokens(self, messages: list[ChatMessage]) -> int:
        return estimate_tokens(messages)

    def capabilities(self, model: str) -> ModelCapabilities:
        return DEFAULT_CAPABILITIES

    def _walk(self, directory: str) -> Iterator[str]:
        for entry in sorted(os.scandir(directory), key=lambda e: e.name):
            if entry.is_dir():
                yield from self._walk(entry.path)
            elif entry.name.lower().endswith(".gguf"):
                yield entry.path

    def list_models(self) -> list[ModelInfo]:
        """Return every .gguf file under the models directory, by relative path."""
        if not os.path.exists(self.models_dir):
            return []
        try:
            paths = list(self._walk(self.models_dir))
        except OSError as exc:
            raise ProviderError(f"local: walk models dir: {exc}") from exc
        models = []
        for path in paths:
            try:
                rel = os.path.relpath(path, self.models_dir)
            except ValueError:
                rel = os.path.basename(path)
            models.append(ModelInfo(id=rel, object="model", owned_by="local", provider="local"))
        return models

    def __repr__(self) -> str:
        return f"LocalProvider(models_dir={self.models_dir!r}, port={self.port})"