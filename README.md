# cortex

The inference layer of a chat server, usable as a library. It gives you:

- **Configuration** from environment variables (`cortex.config.load`) and an
  optional JSON config file (`cortex.configfile.discover_config_file`,
  `cortex.configfile.load_config_file`).
- **A common provider interface** (`cortex.provider.InferenceProvider`) with
  OpenAI-style request, response and streaming-event types.
- **Providers**:
  - `cortex.openai.OpenAIProvider` for any OpenAI-compatible endpoint
    (server-sent events for streaming),
  - `cortex.ollama.OllamaProvider` for an Ollama server (NDJSON streaming),
  - `cortex.local.LocalProvider`, which runs `llama-server` as a child
    process over `.gguf` files in a models directory,
  - `cortex.mock.MockProvider`, which streams a fixed list of tokens, for tests.
- **A registry** (`cortex.registry.ProviderRegistry`) that resolves a model
  name to a provider.
- **A token estimator** (`cortex.tokencount.estimate_tokens`).

The only runtime dependency is `httpx`. Python 3.10 or later is required.

## Configuration

`cortex.config.load()` reads the process environment (or a mapping you pass
in) and returns a `Config` dataclass. Empty variables count as unset, so
defaults apply.

| Variable | Default |
|---|---|
| `CORTEX_ADDR` | `:8080` |
| `CORTEX_DEV` | `false` |
| `DATABASE_URL` | empty |
| `CORTEX_DB_PATH` | `cortex.db` |
| `CORTEX_API_KEY` | empty |
| `CORTEX_CONFIG` | empty |
| `CORTEX_PROVIDER` | `ollama` |
| `OLLAMA_URL` | `http://localhost:11434` |
| `CORTEX_MODELS_DIR` | `./models` |
| `CORTEX_LOCAL_CTX` | `4096` |
| `OPENAI_API_KEY`, `ANTHROPIC_API_KEY` | empty |
| `OPENAI_BASE_URL` | `https://api.openai.com/v1` |
| `CORTEX_MODEL` | `llama3.2:latest` |
| `QWEN_*`, `LLAMA_*`, `MINIMAX_*`, `OSS_*` (`_BASE_URL`, `_API_KEY`) | empty |
| `CORTEX_MAX_TOOL_TIMEOUT` | `60s` (stored as seconds) |
| `CORTEX_MAX_TOOL_OUTPUT` | `65536` |
| `CORTEX_MAX_MESSAGE_SIZE` | `102400` |
| `CORTEX_LOG_LEVEL` | `info` |
| `CORTEX_LOG_FORMAT` | `json` |
| `CORTEX_CORS_ORIGINS` | `*` (comma separated) |

Booleans accept `1`, `t`, `true` and the like; durations use forms such as
`30s`, `1h30m` or `250ms` (see `cortex.config.parse_duration`). Bad values
raise `ConfigError`.

```python
from cortex.config import load

cfg = load({"CORTEX_MODEL": "gpt-4", "CORTEX_MAX_TOOL_TIMEOUT": "30s"})
print(cfg.default_model, cfg.max_tool_timeout)  # gpt-4 30.0
```

### Config file

`discover_config_file(path)` returns the first file that exists, looking at
the path given (normally `$CORTEX_CONFIG`), then `~/.cortex/config.json`,
then `./cortex.config.json`, or `None` if there is none. A warning is
printed on stderr if the file is readable by group or others.

```json
{
  "default_provider": "ollama",
  "default_model": "llama3.2:latest",
  "providers": [
    {"name": "ollama", "base_url": "http://localhost:11434"},
    {"name": "openai", "base_url": "https://api.openai.com/v1", "api_key": "placeholder"}
  ]
}
```

```python
from cortex.configfile import discover_config_file, load_config_file

file_config = load_config_file(discover_config_file(""))
```

`load_config_file` returns a `FileConfig` holding `ProviderEntry` values,
or `None` for an empty path. Unknown keys, invalid JSON and unreadable files
raise `ConfigFileError`.

## Providers and the registry

```python
from cortex.ollama import OllamaProvider
from cortex.openai import OpenAIProvider
from cortex.provider import ChatCompletionRequest, ChatMessage
from cortex.registry import ProviderRegistry

registry = ProviderRegistry()
registry.register(OllamaProvider("http://localhost:11434"))
registry.register(OpenAIProvider("openai", "https://api.openai.com/v1", "placeholder"))
registry.refresh_model_map()

provider, model = registry.resolve("ollama/qwen2.5:0.5b")
request = ChatCompletionRequest(
    model=model,
    messages=[ChatMessage(role="user", content="Hello")],
)
for event in provider.stream_chat(request):
    print(event.type, event.delta)

registry.close()
```

`resolve` tries, in order: a `provider/model` prefix naming a registered
provider (the prefix is stripped), the model map built by
`refresh_model_map`, and the default provider (the first one registered, or
the one set with `set_default`). If none applies it raises
`NoProviderError`. `list_all_models` gathers models from every provider,
skipping any that fail.

Every provider implements `stream_chat`, `complete`, `count_tokens`,
`capabilities`, `list_models`, `name` and `close`, and can be used as a
context manager. Streaming yields `StreamEvent` values whose `type` is an
`EventType`: content deltas, content done (with the finish reason and, for
Ollama, token usage), tool-call start / delta / complete, and errors. When
an upstream call fails, an error event is yielded and `ProviderError` is
raised.

`OllamaProvider.probe()` tells whether the server answers within two
seconds; its `list_models()` returns an empty list when the server cannot be
reached.

### Local models

`LocalProvider` lists `.gguf` files under its models directory. On the
first request for a model it starts `llama-server` (from `./bin/llama-server`
or the `PATH`) on port 8081 with the configured context size, waiting up to
30 seconds for it to accept connections, and then sends requests to it as to
any OpenAI-compatible server. Asking for a different model restarts the
child process; `close()` stops it.

## Token estimates

`estimate_tokens(messages)` gives a heuristic count: 3 tokens of
conversation overhead, 4 per message, plus an estimate of content and tool
calls. Mostly-ASCII text is counted by words and punctuation (never less
than a quarter of its characters); multi-byte-heavy text such as CJK is
counted at about 1.5 characters per token. Structured content is estimated
from its JSON form.

## What this package does not do

It is a library only. It has no HTTP server or web interface of its own,
no command-line entry point, and no storage for sessions or messages. HTTP
calls to providers are made once and are not retried.