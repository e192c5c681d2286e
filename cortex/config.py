"""Server configuration loaded from environment variables."""

from __future__ import annotations

import os
import re
from dataclasses import dataclass, field
from typing import Callable, Mapping

__all__ = ["Config", "ConfigError", "parse_duration", "load"]


class ConfigError(ValueError):
    """Raised when an environment variable cannot be parsed."""


_UNITS = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "μs": 1e-6,
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}
_DURATION_PART = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|μs|ms|s|m|h)")


def parse_duration(text: str) -> float:
    """Parse a duration such as ``"1h30m"`` or ``"250ms"`` into seconds."""
    original = text
    sign = 1.0
    if text[:1] in "+-" and text:
        if text[0] == "-":
            sign = -1.0
        text = text[1:]
    if text == "0":
        return 0.0
    if not text:
        raise ConfigError(f"invalid duration {original!r}")
    total = 0.0
    pos = 0
    while pos < len(text):
        match = _DURATION_PART.match(text, pos)
        if match is None:
            raise ConfigError(f"invalid duration {original!r}")
        total += float(match.group(1)) * _UNITS[match.group(2)]
        pos = match.end()
    return sign * total


_TRUE = {"1", "t", "T", "TRUE", "true", "True"}
_FALSE = {"0", "f", "F", "FALSE", "false", "False"}


def _parse_bool(text: str) -> bool:
    if text in _TRUE:
        return True
    if text in _FALSE:
        return False
    raise ConfigError(f"invalid boolean {text!r}")


def _parse_int(text: str) -> int:
    try:
        return int(text, 10)
    except ValueError:
        raise ConfigError(f"invalid integer {text!r}") from None


def _parse_list(text: str) -> list[str]:
    return text.split(",")


@dataclass
class Config:
    """Runtime settings for the server and its inference providers."""

    addr: str = ":8080"
    dev_mode: bool = False
    version: str = ""

    database_url: str = ""
    sqlite_path: str = "cortex.db"

    api_key: str = ""

    config_file_path: str = ""

    default_provider: str = "ollama"
    ollama_url: str = "http://localhost:11434"
    models_dir: str = "./models"
    local_context_size: int = 4096
    openai_key: str = ""
    openai_base_url: str = "https://api.openai.com/v1"
    anthropic_key: str = ""
    default_model: str = "llama3.2:latest"

    qwen_base_url: str = ""
    qwen_key: str = ""
    llama_base_url: str = ""
    llama_key: str = ""
    minimax_base_url: str = ""
    minimax_key: str = ""
    oss_base_url: str = ""
    oss_key: str = ""

    max_tool_timeout: float = 60.0
    max_output_bytes: int = 65536
    max_message_size: int = 102400

    log_level: str = "info"
    log_format: str = "json"

    cors_origins: list[str] = field(default_factory=lambda: ["*"])


_ENV_FIELDS: list[tuple[str, str, Callable[[str], object]]] = [
    ("CORTEX_ADDR", "addr", str),
    ("CORTEX_DEV", "dev_mode", _parse_bool),
    ("DATABASE_URL", "database_url", str),
    ("CORTEX_DB_PATH", "sqlite_path", str),
    ("CORTEX_API_KEY", "api_key", str),
    ("CORTEX_CONFIG", "config_file_path", str),
    ("CORTEX_PROVIDER", "default_provider", str),
    ("OLLAMA_URL", "ollama_url", str),
    ("CORTEX_MODELS_DIR", "models_dir", str),
    ("CORTEX_LOCAL_CTX", "local_context_size", _parse_int),
    ("OPENAI_API_KEY", "openai_key", str),
    ("OPENAI_BASE_URL", "openai_base_url", str),
    ("ANTHROPIC_API_KEY", "anthropic_key", str),
    ("CORTEX_MODEL", "default_model", str),
    ("QWEN_BASE_URL", "qwen_base_url", str),
    ("QWEN_API_KEY", "qwen_key", str),
    ("LLAMA_BASE_URL", "llama_base_url", str),
    ("LLAMA_API_KEY", "llama_key", str),
    ("MINIMAX_BASE_URL", "minimax_base_url", str),
    ("MINIMAX_API_KEY", "minimax_key", str),
    ("OSS_BASE_URL", "oss_base_url", str),
    ("OSS_API_KEY", "oss_key", str),
    ("CORTEX_MAX_TOOL_TIMEOUT", "max_tool_timeout", parse_duration),
    ("CORTEX_MAX_TOOL_OUTPUT", "max_output_bytes", _parse_int),
    ("CORTEX_MAX_MESSAGE_SIZE", "max_message_size", _parse_int),
    ("CORTEX_LOG_LEVEL", "log_level", str),
    ("CORTEX_LOG_FORMAT", "log_format", str),
    ("CORTEX_CORS_ORIGINS", "cors_origins", _parse_list),
]


def load(environ: Mapping[str, str] | None = None) -> Config:
    """Build a Config from the environment; empty variables keep their defaults."""
    env = os.environ if environ is None else environ
    values: dict[str, object] = {}
    for key, attr, parse in _ENV_FIELDS:
        raw = env.get(key, "")
        if raw == "":
            continue
        try:
            values[attr] = parse(raw)
        except ConfigError as exc:
            raise ConfigError(f"parsing config: {key}: {exc}") from exc
    return Config(**values)