import threading

import pytest

from cortex.mock import MockProvider
from cortex.provider import ModelInfo, ProviderError
from cortex.registry import NoProviderError, ProviderRegistry


class ErrMockProvider(MockProvider):
    def list_models(self):
        raise ProviderError("simulated list-models failure")


class MultiModelMockProvider(MockProvider):
    def __init__(self, name, *model_ids):
        super().__init__(name)
        self.models = [ModelInfo(id=mid, provider=name) for mid in model_ids]

    def list_models(self):
        return list(self.models)


class ClosingMockProvider(MockProvider):
    def __init__(self, name):
        super().__init__(name)
        self.closed = False

    def close(self):
        self.closed = True


def test_register_and_resolve_by_prefix():
    reg = ProviderRegistry()
    reg.register(MockProvider("qwen"))
    provider, model = reg.resolve("qwen/model-name")
    assert provider.name() == "qwen"
    assert model == "model-name"


def test_resolve_by_model_map():
    reg = ProviderRegistry()
    reg.register(MultiModelMockProvider("openai", "gpt-4o", "gpt-3.5-turbo"))
    reg.refresh_model_map()
    provider, model = reg.resolve("gpt-4o")
    assert provider.name() == "openai"
    assert model == "gpt-4o"


def test_model_map_beats_default():
    reg = ProviderRegistry()
    reg.register(MockProvider("first"))
    reg.register(MultiModelMockProvider("second", "special"))
    reg.refresh_model_map()
    provider, _ = reg.resolve("special")
    assert provider.name() == "second"


def test_resolve_with_default():
    reg = ProviderRegistry()
    reg.register(MockProvider("default-prov"))
    provider, model = reg.resolve("unknown-model-xyz")
    assert provider.name() == "default-prov"
    assert model == "unknown-model-xyz"


def test_resolve_unknown_model_no_providers():
    reg = ProviderRegistry()
    with pytest.raises(NoProviderError):
        reg.resolve("anything")


def test_register_duplicate_overwrites():
    reg = ProviderRegistry()
    first = MockProvider("samename", ["first"])
    second = MockProvider("samename", ["second"])
    reg.register(first)
    reg.register(second)

    assert len(reg.providers()) == 1
    provider, _ = reg.resolve("samename/test")
    assert provider is second


def test_concurrent_register_and_resolve():
    reg = ProviderRegistry()
    reg.register(MockProvider("default"))

    def register(name):
        reg.register(MockProvider(name))

    def resolve(name):
        reg.resolve(name + "/some-model")

    threads = []
    for i in range(20):
        name = f"prov-{i}"
        threads.append(threading.Thread(target=register, args=(name,)))
        threads.append(threading.Thread(target=resolve, args=(name,)))
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    providers = reg.providers()
    assert "default" in providers
    assert len(providers) == 21


def test_providers_returns_registered_names():
    reg = ProviderRegistry()
    for name in ("alpha", "beta", "gamma"):
        reg.register(MockProvider(name))
    providers = reg.providers()
    assert set(providers) == {"alpha", "beta", "gamma"}


def test_providers_returns_a_copy():
    reg = ProviderRegistry()
    reg.register(MockProvider("alpha"))
    snapshot = reg.providers()
    snapshot.clear()
    assert set(reg.providers()) == {"alpha"}


def test_set_default_non_existent():
    reg = ProviderRegistry()
    reg.register(MockProvider("real"))
    reg.set_default("ghost")
    with pytest.raises(NoProviderError):
        reg.resolve("some-model")


def test_set_default_changes_fallback():
    reg = ProviderRegistry()
    reg.register(MockProvider("one"))
    reg.register(MockProvider("two"))
    reg.set_default("two")
    provider, _ = reg.resolve("bare-model")
    assert provider.name() == "two"


def test_list_all_models_multiple_providers():
    reg = ProviderRegistry()
    reg.register(MultiModelMockProvider("provA", "m1", "m2"))
    reg.register(MultiModelMockProvider("provB", "m3"))
    models = reg.list_all_models()
    assert len(models) == 3
    assert {m.id for m in models} == {"m1", "m2", "m3"}


def test_list_all_models_skips_failing_provider():
    reg = ProviderRegistry()
    reg.register(MultiModelMockProvider("good", "model-a"))
    reg.register(ErrMockProvider("bad"))
    assert [m.id for m in reg.list_all_models()] == ["model-a"]


def test_refresh_model_map_with_provider_error():
    reg = ProviderRegistry()
    reg.register(MultiModelMockProvider("good", "model-a"))
    reg.register(ErrMockProvider("bad"))
    reg.refresh_model_map()
    provider, _ = reg.resolve("model-a")
    assert provider.name() == "good"


def test_close_closes_every_provider():
    reg = ProviderRegistry()
    a = ClosingMockProvider("a")
    b = ClosingMockProvider("b")
    reg.register(a)
    reg.register(b)
    reg.close()
    assert a.closed and b.closed