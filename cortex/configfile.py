"""Discovery and parsing of the JSON configuration file."""

from __future__ import annotations

import json
import os
import stat
import sys
from dataclasses import dataclass, field
from typing import Any

__all__ = [
    "FileConfig",
    "ProviderEntry",
    "ConfigFileError",
    "discover_config_file",
    "load_config_file",
]

_TOP_LEVEL_FIELDS = ("default_provider", "default_model", "providers")
_PROVIDER_FIELDS = ("name", "base_url", "api_key")


class ConfigFileError(ValueError):
    """Raised when a config file cannot be read or parsed."""


@dataclass
class ProviderEntry:
    """A single provider listed in the config file."""

    name: str
    base_url: str
    api_key: str = ""


@dataclass
class FileConfig:
    """Contents of the JSON configuration file."""

    default_provider: str = ""
    default_model: str = ""
    providers: list[ProviderEntry] = field(default_factory=list)


def discover_config_file(env_path: str | None = None) -> str | None:
    """Return the first existing config file, or None.

    Order: env_path, ~/.cortex/config.json, ./cortex.config.json.
    Warns on stderr when the file is readable by group or others.
    """
    candidates: list[str] = []
    if env_path:
        candidates.append(env_path)
    home = os.path.expanduser("~")
    if home != "~":
        candidates.append(os.path.join(home, ".cortex", "config.json"))
    candidates.append("cortex.config.json")

    for path in candidates:
        try:
            info = os.stat(path)
        except OSError:
            continue
        perm = stat.S_IMODE(info.st_mode)
        if perm & 0o077:
            print(
                f"WARNING: {path} has permissions {perm:o}, "
                "should be 0600 to protect API keys",
                file=sys.stderr,
            )
        return path
    return None


def _expect_str(data: dict[str, Any], key: str, where: str) -> str:
    value = data.get(key)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ConfigFileError(f"{where}: field {key!r} must be a string")
    return value


def _check_keys(data: dict[str, Any], allowed: tuple[str, ...], where: str) -> None:
    unknown = sorted(set(data) - set(allowed))
    if unknown:
        raise ConfigFileError(f"{where}: unknown field {unknown[0]!r}")


def _parse_provider(item: Any, where: str) -> ProviderEntry:
    if not isinstance(item, dict):
        raise ConfigFileError(f"{where}: provider entry must be an object")
    _check_keys(item, _PROVIDER_FIELDS, where)
    values = {key: _expect_str(item, key, where) for key in _PROVIDER_FIELDS}
    return ProviderEntry(**values)


def load_config_file(path: str | None) -> FileConfig | None:
    """Read and parse a config file; return None when no path is given."""
    if not path:
        return None
    try:
        with open(path, encoding="utf-8") as handle:
            text = handle.read()
    except OSError as exc:
        raise ConfigFileError(f"reading config file {path}: {exc}") from exc

    where = f"parsing config file {path}"
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise ConfigFileError(f"{where}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigFileError(f"{where}: top level must be an object")
    _check_keys(data, _TOP_LEVEL_FIELDS, where)

    raw_providers = data.get("providers") or []
    if not isinstance(raw_providers, list):
        raise ConfigFileError(f"{where}: field 'providers' must be an array")

    return FileConfig(
        default_provider=_expect_str(data, "default_provider", where),
        default_model=_expect_str(data, "default_model", where),
        providers=[_parse_provider(item, where) for item in raw_providers],
    )