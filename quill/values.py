"""Dynamic values for Quill.

Front matter, schema defaults and query literals are decoded from YAML into
heterogeneous Python objects. This module wraps them in a closed tagged union
so every consumer has to look at the tag before using the payload.

Key classes:
- Kind: The tag of a value (null, bool, int, double, string, array, map).
- Value: Immutable tagged value with typed accessors that never raise.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from types import MappingProxyType
from typing import Any, Union

Payload = Union[None, bool, int, float, str, tuple["Value", ...], Mapping[str, "Value"]]


class Kind(Enum):
    """Tag of a dynamic value."""

    NULL = "null"
    BOOL = "bool"
    INT = "int"
    DOUBLE = "double"
    STRING = "string"
    ARRAY = "array"
    MAP = "map"


@dataclass(frozen=True)
class Value:
    """Immutable tagged value.

    Use `Value.of()` to wrap decoded data. The typed accessors return `None`
    when the tag does not fit instead of raising.

    Attributes:
        kind: The tag.
        payload: Python payload matching the tag. Arrays hold a tuple of
            Values, maps a read-only mapping of str to Value.
    """

    kind: Kind
    payload: Payload = None

    @classmethod
    def null(cls) -> Value:
        return NULL

    @classmethod
    def of(cls, raw: Any) -> Value:
        """Wrap a decoded Python object.

        Args:
            raw: None, bool, int, float, str, date, list/tuple, dict or Value.

        Returns:
            The wrapped Value.

        Raises:
            TypeError: If the object has no place in the union.
        """
        if isinstance(raw, Value):
            return raw
        if raw is None:
            return NULL
        # bool first, it is an int subclass
        if isinstance(raw, bool):
            return cls(Kind.BOOL, raw)
        if isinstance(raw, int):
            return cls(Kind.INT, raw)
        if isinstance(raw, float):
            return cls(Kind.DOUBLE, raw)
        if isinstance(raw, str):
            return cls(Kind.STRING, raw)
        if isinstance(raw, (datetime, date)):
            return cls(Kind.STRING, raw.isoformat())
        if isinstance(raw, (list, tuple)):
            return cls(Kind.ARRAY, tuple(cls.of(item) for item in raw))
        if isinstance(raw, Mapping):
            return cls(
                Kind.MAP,
                MappingProxyType({str(k): cls.of(v) for k, v in raw.items()}),
            )
        raise TypeError(f"Unsupported value type: {type(raw).__name__}")

    @property
    def is_null(self) -> bool:
        return self.kind is Kind.NULL

    def as_bool(self) -> bool | None:
        if self.kind is Kind.BOOL:
            return self.payload  # type: ignore[return-value]
        return None

    def as_int(self) -> int | None:
        if self.kind is Kind.INT:
            return self.payload  # type: ignore[return-value]
        return None

    def as_float(self) -> float | None:
        """Return the payload as a float; ints are widened."""
        if self.kind is Kind.DOUBLE:
            return self.payload  # type: ignore[return-value]
        if self.kind is Kind.INT:
            return float(self.payload)  # type: ignore[arg-type]
        return None

    def as_str(self) -> str | None:
        if self.kind is Kind.STRING:
            return self.payload  # type: ignore[return-value]
        return None

    def as_list(self) -> tuple[Value, ...] | None:
        if self.kind is Kind.ARRAY:
            return self.payload  # type: ignore[return-value]
        return None

    def as_dict(self) -> Mapping[str, Value] | None:
        if self.kind is Kind.MAP:
            return self.payload  # type: ignore[return-value]
        return None

    def as_str_list(self) -> list[str] | None:
        return self._homogeneous(Value.as_str)

    def as_int_list(self) -> list[int] | None:
        return self._homogeneous(Value.as_int)

    def as_float_list(self) -> list[float] | None:
        return self._homogeneous(Value.as_float)

    def _homogeneous(self, accessor) -> list | None:
        items = self.as_list()
        if items is None:
            return None
        result = []
        for item in items:
            converted = accessor(item)
            if converted is None:
                return None
            result.append(converted)
        return result

    def to_python(self) -> Any:
        """Unwrap into plain Python data for templates and JSON output."""
        if self.kind is Kind.ARRAY:
            return [item.to_python() for item in self.payload]  # type: ignore[union-attr]
        if self.kind is Kind.MAP:
            return {k: v.to_python() for k, v in self.payload.items()}  # type: ignore[union-attr]
        return self.payload

    def __repr__(self) -> str:  # pragma: no cover - for debugging
        return f"Value({self.kind.value}, {self.to_python()!r})"


NULL = Value(Kind.NULL, None)


def wrap_mapping(raw: Mapping[str, Any] | None) -> dict[str, Value]:
    """Wrap every value of a decoded mapping.

    Args:
        raw: Decoded mapping, usually YAML front matter.

    Returns:
        New dictionary of str to Value.
    """
    if not raw:
        return {}
    return {str(k): Value.of(v) for k, v in raw.items()}


def unwrap_mapping(values: Mapping[str, Value]) -> dict[str, Any]:
    return {k: v.to_python() for k, v in values.items()}
