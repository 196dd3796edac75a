"""Template contexts for Quill.

A pipeline renders every content it allows into one output file. This module
builds the data handed to the output engine for each of them: the page
itself seen through a scope, iterator pagination, the pipeline's own queries
and site-wide values.

Key classes:
- ContextBuilder: Builds and caches content contexts for one pipeline.
- ContextBundle: Everything needed to render one output file.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

import structlog

from .dates import DateFormatter
from .markdown import render_markdown
from .models import Content, TypeKind
from .pipelines import Pipeline, ScopeContext
from .query import Condition, Direction, Operator, Order, Query, run_query
from .utils import permalink, replace_tokens
from .values import unwrap_mapping

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class Destination:
    """Output location relative to the output directory."""

    path: str
    file: str
    ext: str

    @property
    def relative_path(self) -> str:
        name = f"{self.file}.{self.ext}" if self.ext else self.file
        return "/".join(p for p in (*self.path.split("/"), name) if p)


@dataclass(frozen=True)
class ContextBundle:
    """A content with its render context and destination.

    Attributes:
        content: The rendered content.
        context: Template context with `page`, `context`, `site` and, for
            iterator pages, `iterator`.
        destination: Where the output goes.
    """

    content: Content
    context: Mapping[str, Any] = field(default_factory=dict)
    destination: Destination = field(default_factory=lambda: Destination("", "index", "html"))


class ContextBuilder:
    """Builds template contexts for the contents of one pipeline.

    Content contexts are cached per pipeline, slug, scope and sub-query flag,
    so a content listed on many pages is only rendered once.

    Attributes:
        contents: Contents of the pipeline, after filtering and iterator
            expansion. Relations and queries are resolved against them.
        pipeline: The pipeline being rendered.
        now: Build timestamp.
        date_formatter: Formatter for date fields.
        base_url: Site base URL used for permalinks.
        site: Free-form site values from the config.
    """

    def __init__(
        self,
        contents: Sequence[Content],
        pipeline: Pipeline,
        now: float,
        date_formatter: DateFormatter | None = None,
        base_url: str | None = None,
        site: Mapping[str, Any] | None = None,
    ):
        self.contents = list(contents)
        self.pipeline = pipeline
        self.now = now
        self.date_formatter = date_formatter or DateFormatter()
        self.base_url = base_url or ""
        self.site = dict(site or {})
        self._cache: dict[tuple[str, str, str, bool], dict[str, Any]] = {}

    def content_context(
        self,
        content: Content,
        scope_key: str,
        allow_sub_queries: bool = True,
    ) -> dict[str, Any]:
        """Build the context of one content in a scope.

        Args:
            content: Content to render.
            scope_key: Scope name such as `detail`, `list` or `reference`.
            allow_sub_queries: Whether relations and definition queries are
                expanded into nested contexts. Nested contexts are always
                built without them.

        Returns:
            Dictionary of template values.
        """
        cache_key = (self.pipeline.id, content.slug, scope_key, allow_sub_queries)
        cached = self._cache.get(cache_key)
        if cached is not None:
            return cached

        scope = self.pipeline.get_scope(scope_key, content.type.id)
        result: dict[str, Any] = {}

        if ScopeContext.USER_DEFINED in scope.context:
            result.update(unwrap_mapping(content.user_defined))

        if ScopeContext.PROPERTIES in scope.context:
            for key, value in content.properties.items():
                prop = content.type.properties.get(key)
                timestamp = value.as_float()
                if prop is not None and prop.type.kind is TypeKind.DATE and timestamp is not None:
                    result[key] = self.date_formatter.context(timestamp)
                else:
                    result[key] = value.to_python()
            result["id"] = content.id
            result["slug"] = content.slug
            result["permalink"] = permalink(content.slug, self.base_url)
            result["lastUpdate"] = self.date_formatter.context(
                content.raw_value.last_modification
            )

        if ScopeContext.CONTENTS in scope.context:
            rendered = render_markdown(content.raw_value.markdown)
            result["contents"] = {
                "html": rendered.html,
                "readingTime": rendered.reading_time,
                "outline": [h.to_dict() for h in rendered.outline],
            }

        if ScopeContext.RELATIONS in scope.context:
            for key, relation in content.type.relations.items():
                value = content.relations.get(key)
                identifiers = list(value.identifiers) if value is not None else []
                if not allow_sub_queries:
                    result[key] = identifiers
                    continue
                related = run_query(
                    self.contents,
                    Query(
                        content_type=relation.references,
                        filter=Condition.field("id", Operator.IN, identifiers),
                        order_by=(relation.order,) if relation.order else (),
                    ),
                    self.now,
                )
                result[key] = [
                    self.content_context(item, "reference", allow_sub_queries=False)
                    for item in related
                ]

        if allow_sub_queries and ScopeContext.QUERIES in scope.context:
            fields = content.query_fields()
            for key, query in content.type.queries.items():
                items = run_query(
                    self.contents,
                    query.resolve_filter_parameters(fields),
                    self.now,
                )
                result[key] = [
                    self.content_context(item, query.scope or "list", allow_sub_queries=False)
                    for item in items
                ]

        if scope.fields:
            result = {k: v for k, v in result.items() if k in scope.fields}
        self._cache[cache_key] = result
        return result

    def iterator_context(self, content: Content) -> dict[str, Any] | None:
        info = content.iterator_info
        if info is None:
            return None
        scope_key = info.scope or "list"
        return {
            "current": info.current,
            "total": info.total,
            "limit": info.limit,
            "items": [
                self.content_context(item, scope_key, allow_sub_queries=False)
                for item in info.items
            ],
            "links": [
                {
                    "number": link.number,
                    "permalink": link.permalink,
                    "isCurrent": link.is_current,
                }
                for link in info.links
            ],
        }

    def pipeline_context(self) -> dict[str, Any]:
        """Run the pipeline's own queries."""
        context: dict[str, Any] = {}
        for key, query in self.pipeline.queries.items():
            items = run_query(self.contents, query, self.now)
            context[key] = [
                self.content_context(item, query.scope or "list") for item in items
            ]
        return context

    def last_update(self) -> float:
        """Return the newest modification time of the tracked content types.

        Types listed in the pipeline's `lastUpdate` setting are tracked, or
        every type when the list is empty. Falls back to the build time.
        """
        tracked = self.pipeline.content_types.last_update
        type_ids = dict.fromkeys(c.type.id for c in self.contents)
        if tracked:
            type_ids = {t: None for t in type_ids if t in tracked}
        latest: list[float] = []
        for type_id in type_ids:
            newest = run_query(
                self.contents,
                Query(content_type=type_id, limit=1, order_by=(Order("lastUpdate", Direction.DESC),)),
                self.now,
            )
            latest.extend(c.raw_value.last_modification for c in newest)
        return max(latest) if latest else self.now

    def site_context(self) -> dict[str, Any]:
        return {
            **self.site,
            "baseUrl": self.base_url,
            "generatedAt": self.date_formatter.context(self.now),
            "lastUpdate": self.date_formatter.context(self.last_update()),
        }

    def destination(self, content: Content) -> Destination:
        """Resolve the pipeline output template for a content."""
        tokens = {"{{id}}": content.id, "{{slug}}": content.slug}
        info = content.iterator_info
        if info is not None:
            tokens["{{iterator.current}}"] = str(info.current)
            tokens["{{iterator.total}}"] = str(info.total)
            tokens["{{iterator.limit}}"] = str(info.limit)
        output = self.pipeline.output
        return Destination(
            path=replace_tokens(output.path, tokens),
            file=replace_tokens(output.file, tokens),
            ext=replace_tokens(output.ext, tokens),
        )

    def bundles(self) -> list[ContextBundle]:
        """Build a bundle for every content the pipeline allows.

        Returns:
            Bundles in content order.
        """
        allowed = [
            c for c in self.contents if self.pipeline.content_types.is_allowed(c.type.id)
        ]
        if not allowed:
            return []
        shared = {
            "context": self.pipeline_context(),
            "site": self.site_context(),
        }
        bundles = []
        for content in allowed:
            context: dict[str, Any] = {
                "page": self.content_context(content, "detail"),
                **shared,
            }
            iterator = self.iterator_context(content)
            if iterator is not None:
                context["iterator"] = iterator
            bundles.append(
                ContextBundle(
                    content=content,
                    context=context,
                    destination=self.destination(content),
                )
            )
        logger.debug("Built context bundles.", pipeline=self.pipeline.id, count=len(bundles))
        return bundles

