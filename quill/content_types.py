"""Content type resolution for Quill.

Every raw content item belongs to exactly one content type. The registry picks
it from an explicit `type` front matter field, from the path prefixes the
types declare, or from the single default type.

Key classes:
- ContentTypeRegistry: Immutable lookup over real and pipeline-virtual types.
- ContentTypeError / MissingContentType: Registry errors.
"""

from __future__ import annotations

from collections.abc import Iterable

from .models import ContentDefinition, Origin
from .pipelines import Pipeline


class ContentTypeError(Exception):
    """Invalid content type setup (for example several default types)."""


class MissingContentType(ContentTypeError):
    """An explicit content type id has no definition.

    Attributes:
        type_id: The requested id.
    """

    def __init__(self, type_id: str):
        self.type_id = type_id
        super().__init__(f"Missing content type: {type_id}")


class ContentTypeRegistry:
    """Resolves the content type of raw contents.

    Virtual types declared by pipelines are merged with the real definitions
    and the result is ordered by id, which is the order path prefixes are
    tried in.

    Attributes:
        definitions: All definitions sorted by id.
    """

    def __init__(
        self,
        definitions: Iterable[ContentDefinition],
        pipelines: Iterable[Pipeline] = (),
    ):
        virtual = [ContentDefinition(id=p.id) for p in pipelines if p.defines_type]
        self.definitions: tuple[ContentDefinition, ...] = tuple(
            sorted([*definitions, *virtual], key=lambda d: d.id)
        )
        defaults = [d.id for d in self.definitions if d.default]
        if len(defaults) > 1:
            raise ContentTypeError(
                f"Only one default content type is allowed, found: {', '.join(defaults)}"
            )

    def __len__(self) -> int:
        return len(self.definitions)

    def get(self, type_id: str) -> ContentDefinition | None:
        for definition in self.definitions:
            if definition.id == type_id:
                return definition
        return None

    @property
    def default(self) -> ContentDefinition | None:
        for definition in self.definitions:
            if definition.default:
                return definition
        return None

    def validate(self) -> None:
        """Check that a default type exists.

        Raises:
            ContentTypeError: When no definition is flagged default.
        """
        if self.default is None:
            raise ContentTypeError("No default content type is defined.")

    def resolve(self, origin: Origin, type_id: str | None = None) -> ContentDefinition:
        """Resolve the content type for a raw content item.

        Args:
            origin: Origin of the item.
            type_id: Explicit type id from the front matter.

        Returns:
            The matching definition.

        Raises:
            MissingContentType: If the explicit id is unknown.
        """
        if type_id is not None:
            definition = self.get(type_id)
            if definition is None:
                raise MissingContentType(type_id)
            return definition

        for definition in self.definitions:
            if any(origin.path.startswith(prefix) for prefix in definition.paths):
                return definition

        default = self.default
        assert default is not None, "Validate the content types before resolving."
        return default
