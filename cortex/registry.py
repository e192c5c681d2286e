"""Registry that maps model names to inference providers."""

from __future__ import annotations

import logging
import threading

from cortex.provider import InferenceProvider, ModelInfo

__all__ = ["ProviderRegistry", "NoProviderError"]

log = logging.getLogger(__name__)


class NoProviderError(LookupError):
    """Raised when no provider can serve a model."""


class ProviderRegistry:
    """Holds providers and resolves model names to them; thread safe."""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._providers: dict[str, InferenceProvider] = {}
        self._model_map: dict[str, str] = {}
        self._default_provider = ""

    def register(self, provider: InferenceProvider) -> None:
        """Add a provider; the first one registered becomes the default."""
        with self._lock:
            name = provider.name()
            self._providers[name] = provider
            if not self._default_provider:
                self._default_provider = name

    def set_default(self, name: str) -> None:
        with self._lock:
            self._default_provider = name

    def _snapshot(self) -> dict[str, InferenceProvider]:
        with self._lock:
            return dict(self._providers)

    def refresh_model_map(self) -> None:
        """Rebuild the model-to-provider table; failing providers are skipped."""
        new_map: dict[str, str] = {}
        for name, provider in self._snapshot().items():
            try:
                models = provider.list_models()
            except Exception as exc:  # noqa: BLE001 - one bad provider must not stop the rest
                log.warning("failed to list models for provider %r: %s", name, exc)
                continue
            for model in models:
                new_map[model.id] = name
        with self._lock:
            self._model_map = new_map
        log.info("Model map refreshed: %d models across providers", len(new_map))

    def resolve(self, model: str) -> tuple[InferenceProvider, str]:
        """Return the provider for a model and the model name it should receive.

        Tries a "provider/model" prefix, then the model map, then the default.
        """
        with self._lock:
            idx = model.find("/")
            if idx > 0:
                provider = self._providers.get(model[:idx])
                if provider is not None:
                    return provider, model[idx + 1:]

            provider_name = self._model_map.get(model)
            if provider_name is not None and provider_name in self._providers:
                return self._providers[provider_name], model

            if self._default_provider and self._default_provider in self._providers:
                return self._providers[self._default_provider], model

        raise NoProviderError(f"no provider found for model {model!r}")

    def list_all_models(self) -> list[ModelInfo]:
        """Collect models from every provider, skipping ones that fail."""
        models: list[ModelInfo] = []
        for name, provider in self._snapshot().items():
            try:
                models.extend(provider.list_models())
            except Exception as exc:  # noqa: BLE001
                log.warning("failed to list models for provider %r: %s", name, exc)
        return models

    def providers(self) -> dict[str, InferenceProvider]:
        """Return a copy of the registered providers by name."""
        return self._snapshot()

    def close(self) -> None:
        """Close every registered provider, ignoring their errors."""
        with self._lock:
            for provider in self._providers.values():
                try:
                    provider.close()
                except Exception as exc:  # noqa: BLE001
                    log.warning("closing provider %r: %s", provider.name(), exc)