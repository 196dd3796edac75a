"""Site building functionality for Quill.

This module wires the pieces together: it loads the configuration, content
types, pipelines and raw contents of a project, converts the contents once,
then runs every pipeline and writes its output files.

Key functions:
- build_site: Build the entire site.
- load_config: Load site configuration from quill.yaml.
"""

from __future__ import annotations

import time
from copy import deepcopy
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import structlog
import yaml
from jinja2 import TemplateSyntaxError

from .content_types import ContentTypeError, ContentTypeRegistry
from .context import ContextBuilder
from .converter import ContentConverter, ContentResolverError
from .dates import DateConfig, DateFormatter
from .errors import ConfigError
from .iterators import IteratorExpander
from .loaders import RawContentLoader, load_definitions, load_pipelines
from .models import Content
from .protocols import RawContentSource
from .query import apply_filter_rules
from .templates import EngineRegistry, TemplateError, render_bundles
from .utils import ensure_clean_dir

logger = structlog.get_logger(__name__)

CONFIG_FILE = "quill.yaml"


class BuildError(Exception):
    """Error during site build with file context.

    Attributes:
        source_path: Path to the source file that caused the error.
        message: Human-readable error message.
        original_error: The original exception that was caught.
    """

    def __init__(
        self,
        source_path: Path,
        message: str,
        original_error: Exception | None = None,
    ):
        self.source_path = source_path
        self.message = message
        self.original_error = original_error
        super().__init__(f"{source_path}: {message}")


DEFAULT_CONFIG: dict[str, Any] = {
    "base_url": "",
    "contents_dir": "contents",
    "types_dir": "types",
    "pipelines_dir": "pipelines",
    "templates_dir": "templates",
    "output_dir": "dist",
    "assets_path": "assets",
    "date_formats": {},
    "site": {},
}


@dataclass
class BuildResult:
    """Result of a site build operation.

    Attributes:
        contents: Converted contents, before any pipeline ran.
        output_dir: Directory where the site was built.
        files: Written files relative to the output directory.
    """

    contents: list[Content]
    output_dir: Path
    files: list[str] = field(default_factory=list)


def load_config(project_root: Path) -> dict[str, Any]:
    """Load site configuration from quill.yaml.

    Args:
        project_root: Root directory of the project.

    Returns:
        Dictionary containing configuration values, with defaults applied.

    Raises:
        ConfigError: If the file is not a YAML mapping.
    """
    config_path = project_root / CONFIG_FILE
    config = deepcopy(DEFAULT_CONFIG)
    if config_path.exists():
        with open(config_path, encoding="utf-8") as f:
            try:
                loaded = yaml.safe_load(f) or {}
            except yaml.YAMLError as exc:
                raise ConfigError(f"Invalid YAML: {exc}", config_path) from exc
        if not isinstance(loaded, dict):
            raise ConfigError("Expected a mapping at the top level.", config_path)
        config.update(loaded)
    return config


def build_site(
    project_root: Path,
    base_url: str | None = None,
    output_dir_override: Path | None = None,
    now: float | None = None,
    source: RawContentSource | None = None,
) -> BuildResult:
    """Build the entire static site.

    Args:
        project_root: Root directory of the project.
        base_url: Base URL overriding the config value.
        output_dir_override: Output directory overriding the config value.
        now: Build timestamp; the current time when omitted.
        source: Raw content source; the contents directory by default.

    Returns:
        BuildResult with the converted contents and written files.

    Raises:
        ConfigError: On malformed config, content type or pipeline files.
        BuildError: When a content or an output fails.
    """
    config = load_config(project_root)
    if base_url is not None:
        config["base_url"] = base_url
    now = time.time() if now is None else now
    output_dir = output_dir_override or (project_root / config["output_dir"])

    definitions = load_definitions(project_root / config["types_dir"])
    pipelines = load_pipelines(project_root / config["pipelines_dir"])
    try:
        registry = ContentTypeRegistry(definitions, pipelines)
        registry.validate()
    except ContentTypeError as exc:
        raise BuildError(project_root / config["types_dir"], str(exc), exc) from exc

    source = source or RawContentLoader(
        project_root / config["contents_dir"], config["assets_path"]
    )
    date_formatter = DateFormatter(DateConfig.from_dict(config.get("date_formats")))
    converter = ContentConverter(registry, date_formatter)
    contents_dir = project_root / config["contents_dir"]
    try:
        contents = converter.convert_all(source.load())
    except ContentResolverError as exc:
        raise BuildError(contents_dir / exc.origin.path, exc.message, exc) from exc
    logger.info("Converted contents.", count=len(contents))

    ensure_clean_dir(output_dir)
    engines = EngineRegistry.default(project_root / config["templates_dir"])
    resolved_base = str(config.get("base_url") or "") or None
    files: list[str] = []

    for pipeline in pipelines:
        engine = engines.get(pipeline.engine.id)
        if engine is None:
            logger.error("Unknown renderer engine.", pipeline=pipeline.id, engine=pipeline.engine.id)
            continue
        filtered = apply_filter_rules(contents, pipeline.content_types.filter_rules, now)
        expanded = IteratorExpander(pipeline.iterators, resolved_base).expand(filtered, now)
        builder = ContextBuilder(
            expanded,
            pipeline,
            now,
            date_formatter=date_formatter,
            base_url=resolved_base,
            site=config.get("site") or {},
        )
        bundles = builder.bundles()
        try:
            outputs = render_bundles(bundles, pipeline, engine)
        except TemplateSyntaxError as exc:
            raise BuildError(
                Path(exc.filename or pipeline.id),
                f"Template syntax error on line {exc.lineno}: {exc.message}",
                exc,
            ) from exc
        except TemplateError as exc:
            raise BuildError(project_root / config["templates_dir"], str(exc), exc) from exc
        except Exception as exc:
            raise BuildError(Path(pipeline.id), _format_error_message(exc), exc) from exc

        for relative_path, rendered in outputs.items():
            _write_output(output_dir, relative_path, rendered)
            files.append(relative_path)
        logger.info("Rendered pipeline.", pipeline=pipeline.id, files=len(outputs))

    return BuildResult(contents=contents, output_dir=output_dir, files=files)


def _format_error_message(exc: Exception) -> str:
    """Format an exception into a user-friendly error message.

    Args:
        exc: The exception to format.

    Returns:
        A human-readable error message.
    """
    error_type = type(exc).__name__
    error_msg = str(exc)

    if error_type == "UndefinedError":
        return f"Undefined variable: {error_msg}"
    if error_type == "TypeError":
        return f"Type error: {error_msg}"
    if error_type == "AttributeError":
        return f"Attribute error: {error_msg}"

    return f"{error_type}: {error_msg}"


def _write_output(output_dir: Path, relative_path: str, rendered: str) -> None:
    target = output_dir / relative_path
    target.parent.mkdir(parents=True, exist_ok=True)
    with open(target, "w", encoding="utf-8") as f:
        f.write(rendered)
