"""Pipeline declarations for Quill.

A pipeline turns the resolved contents into output files: it filters them,
expands iterators, builds template contexts per scope and hands them to an
output engine.

Key classes:
- ScopeContext: Flags selecting which parts of a content a scope exposes.
- Scope: A named view of a content (context flags and optional field list).
- Pipeline: A complete pipeline declaration.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Flag
from typing import Any

from .errors import ConfigError, mapping_section, require_mapping
from .query import Condition, Query


class ScopeContext(Flag):
    USER_DEFINED = 1
    PROPERTIES = 2
    CONTENTS = 4
    RELATIONS = 8
    QUERIES = 16

    @classmethod
    def everything(cls) -> ScopeContext:
        return cls.USER_DEFINED | cls.PROPERTIES | cls.CONTENTS | cls.RELATIONS | cls.QUERIES

    @classmethod
    def parse(cls, names: str | list[str]) -> ScopeContext:
        """Decode context names such as `properties` or `detail`.

        Args:
            names: A single name or a list of names.

        Raises:
            ConfigError: On unknown names.
        """
        if isinstance(names, str):
            names = [names]
        result = cls(0)
        for name in names:
            lowered = str(name).lower()
            if lowered in _PRESETS:
                result |= cls.everything()
            elif lowered in _CONTEXT_NAMES:
                result |= _CONTEXT_NAMES[lowered]
            else:
                raise ConfigError(f"Unknown scope context: {name!r}")
        return result


_CONTEXT_NAMES = {
    "userdefined": ScopeContext.USER_DEFINED,
    "properties": ScopeContext.PROPERTIES,
    "contents": ScopeContext.CONTENTS,
    "relations": ScopeContext.RELATIONS,
    "queries": ScopeContext.QUERIES,
}
_PRESETS = ("reference", "list", "detail")


@dataclass(frozen=True)
class Scope:
    """A view of a content used in one rendering situation.

    Attributes:
        context: Parts of the content to expose.
        fields: When not empty, only these keys are kept.
    """

    context: ScopeContext = field(default_factory=ScopeContext.everything)
    fields: tuple[str, ...] = ()

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Scope:
        raw_context = data.get("context")
        return cls(
            context=ScopeContext.parse(raw_context) if raw_context else ScopeContext.everything(),
            fields=tuple(str(f) for f in data.get("fields") or []),
        )


def standard_scopes() -> dict[str, Scope]:
    return {name: Scope() for name in _PRESETS}


@dataclass(frozen=True)
class ContentTypeFilter:
    """Content type selection and filter rules of a pipeline.

    Attributes:
        include: Type ids to render; all when empty.
        exclude: Type ids never rendered.
        last_update: Type ids considered for the site's last update time.
        filter_rules: Type id (or `*`) to condition.
    """

    include: tuple[str, ...] = ()
    exclude: tuple[str, ...] = ()
    last_update: tuple[str, ...] = ()
    filter_rules: Mapping[str, Condition] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> ContentTypeFilter:
        data = require_mapping(data or {}, "`contentTypes`")
        rules = require_mapping(data.get("filterRules") or {}, "`contentTypes.filterRules`")
        return cls(
            include=tuple(data.get("include") or []),
            exclude=tuple(data.get("exclude") or []),
            last_update=tuple(data.get("lastUpdate") or []),
            filter_rules={str(k): Condition.from_dict(v) for k, v in rules.items()},
        )

    def is_allowed(self, content_type: str) -> bool:
        if content_type in self.exclude:
            return False
        if not self.include:
            return True
        return content_type in self.include


@dataclass(frozen=True)
class Engine:
    id: str
    options: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class Output:
    """Output destination template; `{{slug}}` and friends are replaced."""

    path: str = "{{slug}}"
    file: str = "index"
    ext: str = "html"


@dataclass(frozen=True)
class Pipeline:
    """A rendering pipeline.

    Attributes:
        id: Pipeline id.
        defines_type: Whether the pipeline also declares a virtual content type.
        scopes: Content type id (or `*`) to scope name to scope.
        queries: Queries exposed to every rendered content.
        iterators: Iterator id to the query it paginates.
        content_types: Type selection and filter rules.
        engine: Output engine id and options.
        output: Output destination template.
    """

    id: str
    engine: Engine
    defines_type: bool = False
    scopes: Mapping[str, Mapping[str, Scope]] = field(default_factory=dict)
    queries: Mapping[str, Query] = field(default_factory=dict)
    iterators: Mapping[str, Query] = field(default_factory=dict)
    content_types: ContentTypeFilter = field(default_factory=ContentTypeFilter)
    output: Output = field(default_factory=Output)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Pipeline:
        if not isinstance(data, Mapping) or not data.get("id"):
            raise ConfigError("Pipeline is missing its `id`.")
        engine = data.get("engine")
        if not isinstance(engine, Mapping) or not engine.get("id"):
            raise ConfigError(f"Pipeline `{data['id']}` is missing its engine id.")
        output = require_mapping(data.get("output") or {}, "`output`")
        options = require_mapping(engine.get("options") or {}, "`engine.options`")
        scopes = {
            str(type_id): {
                str(name): Scope.from_dict(require_mapping(s or {}, f"`scopes.{type_id}.{name}`"))
                for name, s in named.items()
            }
            for type_id, named in mapping_section(data, "scopes").items()
        }
        queries = mapping_section(data, "queries")
        iterators = mapping_section(data, "iterators")
        return cls(
            id=str(data["id"]),
            engine=Engine(id=str(engine["id"]), options=dict(options)),
            defines_type=bool(data.get("definesType", False)),
            scopes=scopes or {"*": standard_scopes()},
            queries={str(k): Query.from_dict(v) for k, v in queries.items()},
            iterators={str(k): Query.from_dict(v) for k, v in iterators.items()},
            content_types=ContentTypeFilter.from_dict(data.get("contentTypes")),
            output=Output(
                path=str(output.get("path", "{{slug}}")),
                file=str(output.get("file", "index")),
                ext=str(output.get("ext", "html")),
            ),
        )

    def get_scope(self, key: str, content_type: str) -> Scope:
        """Look up a scope for a content type.

        Type-specific scopes win over `*`; unknown keys fall back to the
        detail scope.
        """
        scopes = self.scopes.get(content_type)
        if scopes is None:
            scopes = self.scopes.get("*", {})
        return scopes.get(key, Scope())
