"""Iterator expansion for Quill.

An iterator is a content whose slug contains a `{{name}}` placeholder bound to
a pipeline iterator query, for example `blog/page/{{post.pagination}}`. It is
expanded into one content per result page.

Key classes:
- IteratorExpander: Replaces iterator templates with their pages.
"""

from __future__ import annotations

import math
from collections.abc import Mapping, Sequence
from dataclasses import replace

import structlog

from .models import Content, IteratorInfo, IteratorLink
from .query import Query, run_query
from .utils import extract_iterator_id, permalink, replace_tokens
from .values import Value

logger = structlog.get_logger(__name__)

DEFAULT_PAGE_SIZE = 10


class IteratorExpander:
    """Expands iterator contents into paginated copies.

    Attributes:
        iterators: Iterator id to the query it paginates.
        base_url: When set, every page gets links to all pages.
    """

    def __init__(self, iterators: Mapping[str, Query], base_url: str | None = None):
        self.iterators = iterators
        self.base_url = base_url

    def expand(self, contents: Sequence[Content], now: float) -> list[Content]:
        """Expand every iterator in a content list.

        Contents without a slug placeholder pass through unchanged. Iterators
        whose placeholder names no known query are dropped. A query without
        results produces no pages at all.

        Args:
            contents: Contents of one pipeline, also the population queried.
            now: Build timestamp.

        Returns:
            The contents with iterators replaced by their pages.
        """
        result: list[Content] = []
        for content in contents:
            iterator_id = extract_iterator_id(content.slug)
            if iterator_id is None:
                result.append(content)
                continue
            query = self.iterators.get(iterator_id)
            if query is None:
                logger.debug(
                    "Dropping iterator without query.",
                    iterator=iterator_id,
                    slug=content.slug,
                )
                continue
            result.extend(self.pages(content, iterator_id, query, contents, now))
        return result

    def pages(
        self,
        content: Content,
        iterator_id: str,
        query: Query,
        contents: Sequence[Content],
        now: float,
    ) -> list[Content]:
        total = len(run_query(contents, replace(query, limit=None, offset=None), now))
        limit = max(1, query.limit if query.limit is not None else DEFAULT_PAGE_SIZE)
        number_of_pages = math.ceil(total / limit)

        pages = []
        for number in range(1, number_of_pages + 1):
            items = run_query(
                contents,
                Query(
                    content_type=query.content_type,
                    limit=limit,
                    offset=(number - 1) * limit,
                    filter=query.filter,
                    order_by=query.order_by,
                ),
                now,
            )
            info = IteratorInfo(
                current=number,
                total=number_of_pages,
                limit=limit,
                items=tuple(items),
                links=self._links(content.slug, iterator_id, number, number_of_pages),
                scope=query.scope,
            )
            pages.append(self._page(content, iterator_id, number, number_of_pages, info))
        return pages

    def _page(
        self,
        content: Content,
        iterator_id: str,
        number: int,
        total: int,
        info: IteratorInfo,
    ) -> Content:
        page_token = {f"{{{{{iterator_id}}}}}": str(number)}
        counters = {"{{number}}": str(number), "{{total}}": str(total)}

        markdown = content.raw_value.markdown
        if markdown:
            markdown = replace_tokens(markdown, counters)
        return replace(
            content,
            id=replace_tokens(content.id, page_token),
            slug=replace_tokens(content.slug, page_token),
            properties=_rewrite_strings(content.properties, counters),
            user_defined=_rewrite_strings(content.user_defined, counters),
            raw_value=replace(content.raw_value, markdown=markdown),
            iterator_info=info,
        )

    def _links(
        self, slug: str, iterator_id: str, current: int, total: int
    ) -> tuple[IteratorLink, ...]:
        if self.base_url is None:
            return ()
        template = permalink(slug, self.base_url)
        return tuple(
            IteratorLink(
                number=number,
                permalink=template.replace(f"{{{{{iterator_id}}}}}", str(number)),
                is_current=number == current,
            )
            for number in range(1, total + 1)
        )


def _rewrite_strings(values: Mapping[str, Value], counters: Mapping[str, str]) -> dict[str, Value]:
    rewritten = {}
    for key, value in values.items():
        text = value.as_str()
        rewritten[key] = Value.of(replace_tokens(text, counters)) if text is not None else value
    return rewritten


def expand(
    contents: Sequence[Content],
    iterators: Mapping[str, Query],
    now: float,
    base_url: str | None = None,
) -> list[Content]:
    """Shortcut for `IteratorExpander(iterators, base_url).expand(contents, now)`."""
    return IteratorExpander(iterators, base_url).expand(contents, now)
