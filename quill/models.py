"""Content models for Quill.

This module defines the schema types (content definitions with their
properties and relations) and the content records built from them.

Key classes:
- Origin: Where a raw content item was discovered.
- RawContent: Front matter, Markdown body and file metadata of one item.
- ContentDefinition: A content type schema.
- Content: A typed content record.
- IteratorInfo: Pagination metadata attached to expanded iterator pages.

All records are frozen; use `dataclasses.replace()` to derive new ones.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from .dates import DateFormat
from .errors import ConfigError, mapping_section, require_mapping
from .query import Order, Query
from .values import Value

SYSTEM_KEYS = ("id", "type", "slug")


@dataclass(frozen=True)
class Origin:
    """Source path and slug of a raw content item.

    Attributes:
        path: Path of the source file relative to the contents directory.
        slug: Slug derived from the path.
    """

    path: str
    slug: str


@dataclass(frozen=True)
class RawContent:
    """A parsed source item before schema resolution.

    Attributes:
        origin: Where the item was found.
        front_matter: Decoded front matter.
        markdown: Markdown body without front matter.
        last_modification: Modification time in epoch seconds.
        assets_path: Name of the item's asset directory.
        assets: Asset file names relative to the asset directory.
    """

    origin: Origin
    front_matter: Mapping[str, Value] = field(default_factory=dict)
    markdown: str = ""
    last_modification: float = 0.0
    assets_path: str = "assets"
    assets: tuple[str, ...] = ()


class TypeKind(Enum):
    BOOL = "bool"
    INT = "int"
    DOUBLE = "double"
    STRING = "string"
    DATE = "date"
    ARRAY = "array"


@dataclass(frozen=True)
class PropertyType:
    """Declared type of a property.

    Attributes:
        kind: Type tag.
        date_format: Format for date properties; the site default when None.
        item_type: Element type for arrays.
    """

    kind: TypeKind
    date_format: DateFormat | None = None
    item_type: PropertyType | None = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> PropertyType:
        data = require_mapping(data, "Property")
        try:
            kind = TypeKind(data.get("type"))
        except ValueError as exc:
            raise ConfigError(f"Unknown property type: {data.get('type')!r}") from exc
        if kind is TypeKind.DATE:
            raw_format = data.get("dateFormat")
            return cls(kind, date_format=DateFormat.from_dict(raw_format) if raw_format else None)
        if kind is TypeKind.ARRAY:
            of = data.get("of")
            if not isinstance(of, Mapping):
                raise ConfigError("Array properties need an `of` item type.")
            return cls(kind, item_type=cls.from_dict(of))
        return cls(kind)


@dataclass(frozen=True)
class Property:
    """A schema property.

    Attributes:
        type: Declared type.
        required: Whether a value is expected in the front matter.
        default: Value used when the front matter has none.
    """

    type: PropertyType
    required: bool = True
    default: Value | None = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Property:
        return cls(
            type=PropertyType.from_dict(data),
            required=bool(data.get("required", True)),
            default=Value.of(data["default"]) if "default" in data else None,
        )


class RelationType(Enum):
    ONE = "one"
    MANY = "many"


@dataclass(frozen=True)
class Relation:
    """A schema relation to another content type.

    Attributes:
        references: Target content type id.
        type: Cardinality.
        order: Order applied when the related contents are listed.
    """

    references: str
    type: RelationType
    order: Order | None = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Relation:
        if "references" not in data:
            raise ConfigError("Relation is missing its `references` type.")
        try:
            relation_type = RelationType(data.get("type"))
        except ValueError as exc:
            raise ConfigError(f"Unknown relation type: {data.get('type')!r}") from exc
        order = data.get("order")
        return cls(
            references=str(data["references"]),
            type=relation_type,
            order=Order.from_dict(order) if order else None,
        )


@dataclass(frozen=True)
class RelationValue:
    """A resolved relation of one content.

    Attributes:
        content_type: Target content type id.
        type: Cardinality.
        identifiers: Target ids; at most one for `one` relations.
    """

    content_type: str
    type: RelationType
    identifiers: tuple[str, ...] = ()


@dataclass(frozen=True)
class ContentDefinition:
    """A content type schema.

    Attributes:
        id: Unique type id.
        paths: Origin path prefixes that imply this type.
        properties: Property name to declaration.
        relations: Relation name to declaration.
        queries: Named sub-queries evaluated per content.
        default: Whether this is the fallback type.
    """

    id: str
    paths: tuple[str, ...] = ()
    properties: Mapping[str, Property] = field(default_factory=dict)
    relations: Mapping[str, Relation] = field(default_factory=dict)
    queries: Mapping[str, Query] = field(default_factory=dict)
    default: bool = False

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> ContentDefinition:
        if not isinstance(data, Mapping) or not data.get("id"):
            raise ConfigError("Content type is missing its `id`.")
        properties = mapping_section(data, "properties")
        relations = mapping_section(data, "relations")
        queries = mapping_section(data, "queries")
        return cls(
            id=str(data["id"]),
            paths=tuple(str(p) for p in data.get("paths") or []),
            properties={str(k): Property.from_dict(v) for k, v in properties.items()},
            relations={str(k): Relation.from_dict(v) for k, v in relations.items()},
            queries={str(k): Query.from_dict(v) for k, v in queries.items()},
            default=bool(data.get("default", False)),
        )


@dataclass(frozen=True)
class IteratorLink:
    number: int
    permalink: str
    is_current: bool


@dataclass(frozen=True)
class IteratorInfo:
    """Pagination metadata of an expanded iterator page.

    Attributes:
        current: 1-based page number.
        total: Number of pages.
        limit: Page size.
        items: Contents listed on this page.
        links: Links to every page.
        scope: Scope used to render the items.
    """

    current: int
    total: int
    limit: int
    items: tuple[Content, ...] = ()
    links: tuple[IteratorLink, ...] = ()
    scope: str | None = None


@dataclass(frozen=True)
class Content:
    """A typed content record.

    Attributes:
        type: Content type schema, shared between contents.
        id: Stable identifier.
        slug: URL path key.
        raw_value: Source item.
        properties: Declared property name to converted value.
        relations: Declared relation name to resolved relation.
        user_defined: Front matter fields not claimed by the schema.
        iterator_info: Pagination metadata of iterator pages.
    """

    type: ContentDefinition
    id: str
    slug: str
    raw_value: RawContent
    properties: Mapping[str, Value] = field(default_factory=dict)
    relations: Mapping[str, RelationValue] = field(default_factory=dict)
    user_defined: Mapping[str, Value] = field(default_factory=dict)
    iterator_info: IteratorInfo | None = None

    @property
    def is_iterator(self) -> bool:
        return self.iterator_info is not None

    def query_fields(self) -> dict[str, Value]:
        """Flatten the content into the fields queries filter and sort on.

        Properties are copied as they are. `one` relations become a single id
        (or an empty array when unset), `many` relations an id array. The
        synthesized `id`, `slug`, `lastUpdate` and `iterator` fields win over
        properties of the same name.
        """
        fields = dict(self.properties)
        for key, relation in self.relations.items():
            if relation.type is RelationType.ONE:
                fields[key] = (
                    Value.of(relation.identifiers[0]) if relation.identifiers else Value.of([])
                )
            else:
                fields[key] = Value.of(list(relation.identifiers))
        fields["id"] = Value.of(self.id)
        fields["slug"] = Value.of(self.slug)
        fields["lastUpdate"] = Value.of(self.raw_value.last_modification)
        fields["iterator"] = Value.of(self.is_iterator)
        return fields
