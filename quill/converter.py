"""Content conversion for Quill.

The converter turns raw content items (front matter plus Markdown body) into
typed Content records using the registry's content type schemas.

Key classes:
- ContentConverter: Converts raw contents one by one.
- ContentResolverError: Conversion failure with the offending origin.

Malformed per-item data (unparsable dates, relation values of the wrong
shape, missing required properties) is logged and skipped. Only a missing
content type or an unexpected error aborts the conversion.
"""

from __future__ import annotations

from collections.abc import Iterable

import structlog

from .content_types import ContentTypeError, ContentTypeRegistry
from .dates import DateFormatter
from .models import (
    SYSTEM_KEYS,
    Content,
    Origin,
    Property,
    RawContent,
    Relation,
    RelationType,
    RelationValue,
    TypeKind,
)
from .utils import parent_directory_name
from .values import NULL, Value

logger = structlog.get_logger(__name__)


class ContentResolverError(Exception):
    """Error while converting a raw content item.

    Attributes:
        origin: Origin of the item that failed.
        message: Human-readable error message.
        original_error: The wrapped exception.
    """

    def __init__(
        self,
        origin: Origin,
        message: str,
        original_error: Exception | None = None,
    ):
        self.origin = origin
        self.message = message
        self.original_error = original_error
        super().__init__(f"{origin.path}: {message}")


class ContentConverter:
    """Converts raw contents into typed contents.

    Attributes:
        registry: Content type registry.
        date_formatter: Parser for date properties.
    """

    def __init__(
        self,
        registry: ContentTypeRegistry,
        date_formatter: DateFormatter | None = None,
    ):
        self.registry = registry
        self.date_formatter = date_formatter or DateFormatter()

    def convert_all(self, raw_contents: Iterable[RawContent]) -> list[Content]:
        return [self.convert(raw) for raw in raw_contents]

    def convert(self, raw: RawContent) -> Content:
        """Convert one raw content item.

        Args:
            raw: The parsed source item.

        Returns:
            The typed content.

        Raises:
            ContentResolverError: If the content type cannot be resolved or
                anything unexpected fails.
        """
        try:
            return self._convert(raw)
        except ContentResolverError:
            raise
        except ContentTypeError as exc:
            raise ContentResolverError(raw.origin, str(exc), exc) from exc
        except Exception as exc:
            raise ContentResolverError(
                raw.origin, f"{type(exc).__name__}: {exc}", exc
            ) from exc

    def _convert(self, raw: RawContent) -> Content:
        front_matter = raw.front_matter
        type_value = front_matter.get("type")
        type_id = type_value.as_str() if type_value is not None else None
        definition = self.registry.resolve(raw.origin, type_id)

        relations = {
            key: self.convert_relation(relation, front_matter.get(key), key, raw.origin.slug)
            for key, relation in sorted(definition.relations.items())
        }

        claimed = {*SYSTEM_KEYS, *definition.properties, *definition.relations}
        user_defined = {k: v for k, v in front_matter.items() if k not in claimed}

        content_id = parent_directory_name(raw.origin.path)
        explicit_id = front_matter.get("id")
        if explicit_id is not None and explicit_id.as_str():
            content_id = explicit_id.as_str()

        slug = raw.origin.slug
        explicit_slug = front_matter.get("slug")
        if explicit_slug is not None and explicit_slug.as_str() is not None:
            slug = explicit_slug.as_str()

        # schema properties named after system fields take the resolved values
        resolved = {
            "id": Value.of(content_id),
            "slug": Value.of(slug),
            "lastUpdate": Value.of(raw.last_modification),
            "type": Value.of(definition.id),
        }
        properties: dict[str, Value] = {}
        for key, prop in sorted(definition.properties.items()):
            if key in resolved:
                properties[key] = resolved[key]
                continue
            value = self.convert_property(prop, front_matter.get(key), key, raw.origin.slug)
            if value is not None:
                properties[key] = value

        logger.debug(
            "Converting content.",
            content_type=definition.id,
            id=content_id,
            slug=slug,
            origin=raw.origin.path,
        )
        return Content(
            type=definition,
            id=content_id,
            slug=slug,
            raw_value=raw,
            properties=properties,
            relations=relations,
            user_defined=user_defined,
            iterator_info=None,
        )

    def convert_property(
        self,
        prop: Property,
        raw_value: Value | None,
        key: str,
        slug: str,
    ) -> Value | None:
        """Convert a front matter value for a declared property.

        Returns:
            The converted value, or None when the key must be omitted.
        """
        value = raw_value if raw_value is not None else prop.default
        if value is None or value.is_null:
            if prop.required:
                logger.warning("Missing required property.", key=key, slug=slug)
            if prop.type.kind is TypeKind.DATE:
                return None
            return NULL

        if prop.type.kind is not TypeKind.DATE:
            return value

        text = value.as_str()
        if text is None:
            logger.warning(
                "Date property is not a string.",
                key=key,
                slug=slug,
                value=value.to_python(),
            )
            return None
        timestamp = self.date_formatter.parse_timestamp(text, prop.type.date_format)
        if timestamp is None:
            logger.warning("Date property is not a valid date.", key=key, slug=slug, value=text)
            return None
        return Value.of(timestamp)

    def convert_relation(
        self,
        relation: Relation,
        raw_value: Value | None,
        key: str,
        slug: str,
    ) -> RelationValue:
        identifiers: list[str] = []
        if raw_value is not None and not raw_value.is_null:
            if relation.type is RelationType.ONE:
                single = raw_value.as_str()
                if single is not None:
                    identifiers.append(single)
                else:
                    logger.warning(
                        "Relation expects a single identifier.", key=key, slug=slug
                    )
            else:
                many = raw_value.as_str_list()
                if many is not None:
                    identifiers.extend(many)
                else:
                    logger.warning(
                        "Relation expects a list of identifiers.", key=key, slug=slug
                    )
        return RelationValue(
            content_type=relation.references,
            type=relation.type,
            identifiers=tuple(identifiers),
        )
