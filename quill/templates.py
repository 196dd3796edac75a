"""Output engines for Quill.

Pipelines pick an engine by id. The Jinja engine renders HTML templates from
the project's templates directory, the JSON engine dumps the render context.

Key classes:
- JinjaEngine: Renders bundles with Jinja2 templates.
- JsonEngine: Serializes bundles as JSON.
- EngineRegistry: Maps engine ids to engines.
"""

from __future__ import annotations

import json
from collections.abc import Iterable, Mapping
from pathlib import Path
from typing import Any

from jinja2 import Environment, FileSystemLoader, TemplateNotFound, select_autoescape
from markupsafe import Markup

from .context import ContextBundle
from .pipelines import Pipeline
from .protocols import OutputEngine

DEFAULT_TEMPLATE = "default.html"


class TemplateError(Exception):
    """A template could not be found or rendered."""


class ContextEnvironment(Environment):
    """Jinja2 environment that looks up mapping keys before attributes.

    Render contexts are plain dicts, so `page.items` or `iterator.values`
    must reach the context keys instead of the dict methods.
    """

    def getattr(self, obj: Any, attribute: str) -> Any:
        if isinstance(obj, Mapping) and attribute in obj:
            return obj[attribute]
        return super().getattr(obj, attribute)


def _pygments_css() -> Markup:
    """Return Pygments CSS styles for syntax highlighting."""
    from pygments.formatters import HtmlFormatter

    return Markup(HtmlFormatter().get_style_defs(".highlight"))


class JinjaEngine:
    """Renders context bundles with Jinja2.

    The template is the first of: the page's `template` front matter value,
    `options.contentTypes.<type>.template`, `options.template` and
    `default.html`.

    Attributes:
        templates_dir: Directory containing templates.
        env: Jinja2 environment preferring context keys.
    """

    engine_id = "jinja"

    def __init__(self, templates_dir: Path):
        self.templates_dir = templates_dir
        self.env = ContextEnvironment(
            loader=FileSystemLoader([templates_dir]),
            autoescape=select_autoescape(["html", "xml"]),
            enable_async=False,
        )
        self.env.globals["pygments_css"] = _pygments_css

    def template_name(self, bundle: ContextBundle, pipeline: Pipeline) -> str:
        """Select the template for a bundle.

        Args:
            bundle: The bundle to render.
            pipeline: Its pipeline.

        Returns:
            Template file name relative to the templates directory.
        """
        explicit = bundle.content.user_defined.get("template")
        if explicit is not None and explicit.as_str():
            return explicit.as_str()
        options = pipeline.engine.options
        per_type = (options.get("contentTypes") or {}).get(bundle.content.type.id) or {}
        return per_type.get("template") or options.get("template") or DEFAULT_TEMPLATE

    def render(self, bundle: ContextBundle, pipeline: Pipeline) -> str:
        name = self.template_name(bundle, pipeline)
        try:
            template = self.env.get_template(name)
        except TemplateNotFound as exc:
            raise TemplateError(f"Template not found: {name}") from exc
        return template.render(**bundle.context)


class JsonEngine:
    """Serializes the render context of a bundle as indented JSON."""

    engine_id = "json"

    def __init__(self, indent: int = 2):
        self.indent = indent

    def render(self, bundle: ContextBundle, pipeline: Pipeline) -> str:
        return json.dumps(bundle.context, indent=self.indent, sort_keys=True, default=str)


class EngineRegistry:
    """Registry of output engines.

    Attributes:
        engines: Engine id to engine.
    """

    def __init__(self, engines: Iterable[OutputEngine] = ()):
        self.engines: dict[str, OutputEngine] = {}
        for engine in engines:
            self.register(engine)

    def register(self, engine: OutputEngine, *aliases: str) -> None:
        """Register an engine under its id and optional aliases."""
        for key in (engine.engine_id, *aliases):
            self.engines[key] = engine

    def get(self, engine_id: str) -> OutputEngine | None:
        return self.engines.get(engine_id)

    @classmethod
    def default(cls, templates_dir: Path) -> EngineRegistry:
        """Create a registry with the built-in engines.

        The JSON engine also answers to `context`; Jinja also answers to
        `html`.
        """
        registry = cls()
        registry.register(JinjaEngine(templates_dir), "html")
        registry.register(JsonEngine(), "context")
        return registry


def render_bundles(
    bundles: Iterable[ContextBundle],
    pipeline: Pipeline,
    engine: OutputEngine,
) -> dict[str, str]:
    """Render bundles into a relative path to contents mapping."""
    outputs: dict[str, str] = {}
    for bundle in bundles:
        outputs[bundle.destination.relative_path] = engine.render(bundle, pipeline)
    return outputs
