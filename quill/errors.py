"""Shared exceptions for Quill."""

from __future__ import annotations

from collections.abc import Mapping
from pathlib import Path
from typing import Any


class ConfigError(ValueError):
    """Invalid configuration, content type or pipeline declaration.

    Attributes:
        source_path: File the declaration came from, when known.
        message: Human-readable error message.
    """

    def __init__(self, message: str, source_path: Path | None = None):
        self.source_path = source_path
        self.message = message
        super().__init__(f"{source_path}: {message}" if source_path else message)


def require_mapping(value: Any, what: str) -> Mapping[str, Any]:
    """Return `value` when it is a mapping.

    Raises:
        ConfigError: If it is anything else.
    """
    if not isinstance(value, Mapping):
        raise ConfigError(f"{what} must be a mapping, got {value!r}.")
    return value


def mapping_section(data: Mapping[str, Any], key: str) -> Mapping[str, Mapping[str, Any]]:
    """Return `data[key]` as a mapping of named mappings; missing means empty."""
    section = require_mapping(data.get(key) or {}, f"`{key}`")
    for name, entry in section.items():
        require_mapping(entry, f"`{key}.{name}`")
    return section
