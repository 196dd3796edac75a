"""Markdown rendering for Quill.

Content bodies are Markdown. Rendering produces HTML with heading anchors,
Pygments-highlighted code blocks, a heading outline and an estimated reading
time.

Key classes:
- Heading: A heading found while rendering.
- RenderedMarkdown: HTML plus the extracted metadata.

Key functions:
- render_markdown: Render a Markdown body.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field

import mistune

WORDS_PER_MINUTE = 238


@dataclass(frozen=True)
class Heading:
    """A heading in a rendered body.

    Attributes:
        id: Anchor id.
        text: Heading text.
        level: Heading level (1-6).
    """

    id: str
    text: str
    level: int

    def to_dict(self) -> dict:
        return {"id": self.id, "text": self.text, "level": self.level}


@dataclass(frozen=True)
class RenderedMarkdown:
    html: str
    outline: list[Heading] = field(default_factory=list)
    reading_time: int = 0


def _generate_heading_id(text: str) -> str:
    """Generate a URL-friendly ID from heading text.

    Args:
        text: The heading text.

    Returns:
        URL-friendly slug suitable for anchor links.
    """
    slug = text.lower().strip()
    slug = re.sub(r"<[^>]+>", "", slug)
    slug = re.sub(r"[^\w\s-]", "", slug)
    slug = re.sub(r"[-\s]+", "-", slug)
    return slug.strip("-")


class _HighlightRenderer(mistune.HTMLRenderer):
    """Markdown renderer with heading anchors and syntax highlighting.

    Attributes:
        headings: Headings extracted during rendering.
    """

    def __init__(self):
        super().__init__(escape=False)
        self.headings: list[Heading] = []
        self._heading_id_counts: dict[str, int] = {}

    def heading(self, text: str, level: int, **attrs) -> str:
        base_id = _generate_heading_id(text)
        if base_id in self._heading_id_counts:
            self._heading_id_counts[base_id] += 1
            heading_id = f"{base_id}-{self._heading_id_counts[base_id]}"
        else:
            self._heading_id_counts[base_id] = 0
            heading_id = base_id

        self.headings.append(Heading(id=heading_id, text=text, level=level))
        return f'<h{level} id="{heading_id}">{text}</h{level}>\n'

    def block_code(self, code: str, info: str | None = None) -> str:
        """Render a code block with Pygments syntax highlighting.

        Args:
            code: The code content.
            info: Language identifier (e.g., 'python', 'yaml').

        Returns:
            HTML string with highlighted code.
        """
        if info:
            from pygments import highlight
            from pygments.formatters import HtmlFormatter
            from pygments.lexers import get_lexer_by_name
            from pygments.util import ClassNotFound

            try:
                lexer = get_lexer_by_name(info.split()[0], stripall=True)
            except ClassNotFound:
                lexer = None
            if lexer is not None:
                return highlight(code, lexer, HtmlFormatter(cssclass="highlight"))
        escaped = code.replace("&", "&amp;").replace("<", "&lt;").replace(">", "&gt;")
        lang_class = f' class="language-{info}"' if info else ""
        return f"<pre><code{lang_class}>{escaped}</code></pre>\n"


def reading_time(text: str) -> int:
    """Estimate reading time in minutes, rounded up."""
    words = len(re.findall(r"\w+", text))
    return -(-words // WORDS_PER_MINUTE)


def render_markdown(text: str) -> RenderedMarkdown:
    """Render Markdown to HTML.

    Args:
        text: Markdown source without front matter.

    Returns:
        RenderedMarkdown with the HTML, heading outline and reading time.
    """
    renderer = _HighlightRenderer()
    markdown = mistune.create_markdown(
        renderer=renderer, plugins=["strikethrough", "footnotes", "table", "url"]
    )
    html = markdown(text)
    return RenderedMarkdown(
        html=html,
        outline=list(renderer.headings),
        reading_time=reading_time(text),
    )
