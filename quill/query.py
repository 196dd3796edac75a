"""Query engine for Quill.

Queries select contents of one type, filter them with a condition tree, order
them by one or more keys and slice the result. Pipelines use queries for
their filter rules, iterators and template contexts; content types use them
for per-content sub-queries.

Key classes:
- Condition: Tagged condition tree (field, and, or).
- Order: A sort key and direction.
- Query: Content type, filter, ordering and pagination.

Key functions:
- evaluate: Recursively evaluate a condition against query fields.
- run_query: Run a query over a content collection.
- apply_filter_rules: Apply per-type pipeline filter rules.
"""

from __future__ import annotations

import functools
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, replace
from enum import Enum
from typing import TYPE_CHECKING, Any

import structlog

from .errors import ConfigError
from .values import NULL, Value

if TYPE_CHECKING:
    from .models import Content

logger = structlog.get_logger(__name__)

NOW_PARAMETER = "date.now"


class Operator(Enum):
    """Field comparison operators, named as they appear in YAML."""

    EQUALS = "equals"
    NOT_EQUALS = "notEquals"
    LESS_THAN = "lessThan"
    GREATER_THAN = "greaterThan"
    LESS_THAN_OR_EQUALS = "lessThanOrEquals"
    GREATER_THAN_OR_EQUALS = "greaterThanOrEquals"
    LIKE = "like"
    CASE_INSENSITIVE_LIKE = "caseInsensitiveLike"
    IN = "in"
    CONTAINS = "contains"
    MATCHING = "matching"


class Direction(Enum):
    ASC = "asc"
    DESC = "desc"


@dataclass(frozen=True)
class Order:
    """A single sort key.

    Attributes:
        key: Query field to sort on.
        direction: Ascending or descending.
    """

    key: str
    direction: Direction = Direction.ASC

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Order:
        if not isinstance(data, Mapping) or "key" not in data:
            raise ConfigError("Order is missing its `key`.")
        try:
            direction = Direction(data.get("direction", "asc"))
        except ValueError as exc:
            raise ConfigError(f"Unknown order direction: {data.get('direction')!r}") from exc
        return cls(key=str(data["key"]), direction=direction)


class ConditionKind(Enum):
    FIELD = "field"
    AND = "and"
    OR = "or"


@dataclass(frozen=True)
class Condition:
    """A node of a filter tree.

    Field nodes carry `key`, `operator` and `value`; `and`/`or` nodes carry
    their children in `conditions`. Build nodes with `field()`, `all_of()` and
    `any_of()`.
    """

    kind: ConditionKind
    key: str = ""
    operator: Operator | None = None
    value: Value = NULL
    conditions: tuple[Condition, ...] = ()

    @classmethod
    def field(cls, key: str, operator: Operator, value: Any) -> Condition:
        return cls(ConditionKind.FIELD, key=key, operator=operator, value=Value.of(value))

    @classmethod
    def all_of(cls, conditions: Iterable[Condition]) -> Condition:
        return cls(ConditionKind.AND, conditions=tuple(conditions))

    @classmethod
    def any_of(cls, conditions: Iterable[Condition]) -> Condition:
        return cls(ConditionKind.OR, conditions=tuple(conditions))

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Condition:
        """Decode a condition from its YAML form.

        Args:
            data: `{key, operator, value}`, `{and: [...]}` or `{or: [...]}`.

        Raises:
            ConfigError: If the structure or the operator is invalid.
        """
        if not isinstance(data, Mapping):
            raise ConfigError(f"Invalid condition: {data!r}")
        if "key" in data and "operator" in data:
            try:
                operator = Operator(data["operator"])
            except ValueError as exc:
                raise ConfigError(f"Unknown operator: {data['operator']!r}") from exc
            return cls.field(str(data["key"]), operator, data.get("value"))
        for name, build in (("and", cls.all_of), ("or", cls.any_of)):
            if name in data:
                children = data[name] or []
                if not isinstance(children, list):
                    raise ConfigError(f"`{name}` expects a list of conditions.")
                return build(cls.from_dict(child) for child in children)
        raise ConfigError(f"Invalid condition: {dict(data)!r}")

    def resolve(self, parameters: Mapping[str, Value]) -> Condition:
        """Substitute `{{name}}` literals with runtime parameters.

        Only string values of exactly that form are replaced; unknown names
        leave the node untouched.
        """
        if self.kind is ConditionKind.FIELD:
            text = self.value.as_str()
            if text is None or len(text) <= 4:
                return self
            if not (text.startswith("{{") and text.endswith("}}")):
                return self
            resolved = parameters.get(text[2:-2])
            if resolved is None:
                return self
            return replace(self, value=Value.of(resolved))
        return replace(
            self, conditions=tuple(c.resolve(parameters) for c in self.conditions)
        )


@dataclass(frozen=True)
class Query:
    """A query over one content type.

    Attributes:
        content_type: Content type id to select.
        scope: Scope name used when the results are rendered.
        limit: Maximum number of results.
        offset: Number of leading results to skip.
        filter: Optional condition tree.
        order_by: Sort keys, the first one being the primary key.
    """

    content_type: str
    scope: str | None = None
    limit: int | None = None
    offset: int | None = None
    filter: Condition | None = None
    order_by: tuple[Order, ...] = ()

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Query:
        if not isinstance(data, Mapping) or "contentType" not in data:
            raise ConfigError(f"Query is missing its `contentType`: {data!r}")
        raw_filter = data.get("filter")
        return cls(
            content_type=str(data["contentType"]),
            scope=data.get("scope"),
            limit=_optional_int(data, "limit"),
            offset=_optional_int(data, "offset"),
            filter=Condition.from_dict(raw_filter) if raw_filter is not None else None,
            order_by=tuple(Order.from_dict(o) for o in data.get("orderBy") or []),
        )

    def resolve_filter_parameters(self, parameters: Mapping[str, Value]) -> Query:
        if self.filter is None:
            return self
        return replace(self, filter=self.filter.resolve(parameters))


def _optional_int(data: Mapping[str, Any], key: str) -> int | None:
    raw = data.get(key)
    if raw is None:
        return None
    if isinstance(raw, bool) or not isinstance(raw, int):
        raise ConfigError(f"Query `{key}` must be an integer, got {raw!r}.")
    return raw


# -- evaluation --------------------------------------------------------------


def evaluate(condition: Condition | None, fields: Mapping[str, Value]) -> bool:
    """Evaluate a condition tree against a content's query fields.

    Args:
        condition: Root of the tree; None always matches.
        fields: Flattened query fields of one content.

    Returns:
        True when the content satisfies the condition.
    """
    if condition is None:
        return True
    if condition.kind is ConditionKind.AND:
        return all(evaluate(c, fields) for c in condition.conditions)
    if condition.kind is ConditionKind.OR:
        return any(evaluate(c, fields) for c in condition.conditions)
    field_value = fields.get(condition.key)
    if field_value is None:
        return False
    return evaluate_field(field_value, condition.operator, condition.value)


def equals(a: Value, b: Value) -> bool:
    """Compare two values, trying bool, int, double and string in turn."""
    for accessor in (Value.as_bool, Value.as_int, Value.as_float, Value.as_str):
        left, right = accessor(a), accessor(b)
        if left is not None and right is not None:
            return left == right
    return False


def compare(a: Value, b: Value, ascending: bool, inclusive: bool = False) -> bool:
    """Order two values as ints, doubles or strings.

    Returns False when no common type fits both values.
    """
    for accessor in (Value.as_int, Value.as_float, Value.as_str):
        left, right = accessor(a), accessor(b)
        if left is not None and right is not None:
            if inclusive:
                return left <= right if ascending else left >= right
            return left < right if ascending else left > right
    return False


_LIST_ACCESSORS = (
    (Value.as_int, Value.as_int_list),
    (Value.as_float, Value.as_float_list),
    (Value.as_str, Value.as_str_list),
)


def evaluate_field(field_value: Value, operator: Operator, value: Value) -> bool:
    if operator is Operator.EQUALS:
        return equals(field_value, value)
    if operator is Operator.NOT_EQUALS:
        return not equals(field_value, value)
    if operator is Operator.LESS_THAN:
        return compare(field_value, value, ascending=True)
    if operator is Operator.GREATER_THAN:
        return compare(field_value, value, ascending=False)
    if operator is Operator.LESS_THAN_OR_EQUALS:
        return compare(field_value, value, ascending=True, inclusive=True)
    if operator is Operator.GREATER_THAN_OR_EQUALS:
        return compare(field_value, value, ascending=False, inclusive=True)
    if operator is Operator.LIKE:
        text = field_value.as_str()
        return text is not None and (value.as_str() or "") in text
    if operator is Operator.CASE_INSENSITIVE_LIKE:
        text = field_value.as_str()
        return text is not None and (value.as_str() or "").lower() in text.lower()
    if operator is Operator.IN:
        for scalar, array in _LIST_ACCESSORS:
            item, items = scalar(field_value), array(value)
            if item is not None and items is not None:
                return item in items
        return False
    if operator is Operator.CONTAINS:
        for scalar, array in _LIST_ACCESSORS:
            items, item = array(field_value), scalar(value)
            if items is not None and item is not None:
                return item in items
        return False
    if operator is Operator.MATCHING:
        for _, array in _LIST_ACCESSORS:
            left, right = array(field_value), array(value)
            if left is not None and right is not None:
                return bool(set(left) & set(right))
        return False
    raise ValueError(f"Unsupported operator: {operator}")


# -- running -----------------------------------------------------------------


def run_query(
    contents: Iterable[Content],
    query: Query,
    now: float,
    parameters: Mapping[str, Value] | None = None,
) -> list[Content]:
    """Run a query over a content collection.

    Args:
        contents: Contents to query.
        query: The query to run.
        now: Build timestamp, bound to the `{{date.now}}` placeholder.
        parameters: Extra placeholder values.

    Returns:
        Filtered, ordered and sliced contents.
    """
    bound = {NOW_PARAMETER: Value.of(now)}
    if parameters:
        bound.update(parameters)
    condition = query.filter.resolve(bound) if query.filter is not None else None

    matched: list[tuple[Content, Mapping[str, Value]]] = []
    for content in contents:
        if content.type.id != query.content_type:
            continue
        fields = content.query_fields()
        if evaluate(condition, fields):
            matched.append((content, fields))

    for order in reversed(query.order_by):
        matched = _sort(matched, order, query.content_type)

    result = [content for content, _ in matched]
    if query.offset is not None:
        result = result[query.offset :]
    if query.limit is not None:
        result = result[: query.limit]
    return result


def _sort(
    items: Sequence[tuple[Content, Mapping[str, Value]]],
    order: Order,
    content_type: str,
) -> list[tuple[Content, Mapping[str, Value]]]:
    ascending = order.direction is Direction.ASC
    keyed: list[tuple[Content, Mapping[str, Value], Value | None]] = []
    for content, fields in items:
        value = fields.get(order.key)
        if value is None:
            logger.warning(
                "Missing order property key.",
                key=order.key,
                slug=content.slug,
                content_type=content_type,
            )
        keyed.append((content, fields, value))

    def cmp(left, right) -> int:
        a, b = left[2], right[2]
        if a is None or b is None:
            return 0
        if compare(a, b, ascending):
            return -1
        if compare(b, a, ascending):
            return 1
        return 0

    keyed.sort(key=functools.cmp_to_key(cmp))
    return [(content, fields) for content, fields, _ in keyed]


def apply_filter_rules(
    contents: Sequence[Content],
    rules: Mapping[str, Condition],
    now: float,
) -> list[Content]:
    """Apply pipeline filter rules per content type.

    The rule for a type id wins over the `*` rule; types without a rule are
    kept as they are. The input order is preserved.

    Args:
        contents: All converted contents.
        rules: Content type id (or `*`) to condition.
        now: Build timestamp.

    Returns:
        Contents that pass their type's rule.
    """
    if not rules:
        return list(contents)
    kept: set[int] = set()
    for type_id in dict.fromkeys(content.type.id for content in contents):
        condition = rules.get(type_id, rules.get("*"))
        if condition is None:
            kept.update(id(c) for c in contents if c.type.id == type_id)
            continue
        matched = run_query(contents, Query(content_type=type_id, filter=condition), now)
        kept.update(id(c) for c in matched)
    return [content for content in contents if id(content) in kept]
