"""Source loading for Quill.

This module reads the project sources from disk: raw content items with their
front matter, content type definitions and pipeline declarations.

Key functions:
- extract_frontmatter: Split YAML front matter from a Markdown body.
- load_yaml: Decode YAML keeping timestamps as plain strings.
- load_definitions: Load content type definitions from a directory.
- load_pipelines: Load pipelines from a directory.

Key classes:
- RawContentLoader: Discovers content items under the contents directory.
"""

from __future__ import annotations

import re
from collections.abc import Callable
from pathlib import Path
from typing import Any, TypeVar

import structlog
import yaml

from .errors import ConfigError
from .models import ContentDefinition, Origin, RawContent
from .pipelines import Pipeline
from .utils import slug_from_path
from .values import Value, wrap_mapping

logger = structlog.get_logger(__name__)

FRONTMATTER_RE = re.compile(r"^---\s*\n(.*?)\n---\s*(?:\n|$)", re.DOTALL)
MARKDOWN_INDEX = "index.md"
YAML_INDEXES = ("index.yml", "index.yaml")

T = TypeVar("T")


class _SourceLoader(yaml.SafeLoader):
    """Safe YAML loader that leaves timestamps as strings.

    Date properties are parsed later with the content type's own format.
    """


_SourceLoader.yaml_implicit_resolvers = {
    first: [
        (tag, regexp)
        for tag, regexp in resolvers
        if tag != "tag:yaml.org,2002:timestamp"
    ]
    for first, resolvers in yaml.SafeLoader.yaml_implicit_resolvers.items()
}


def load_yaml(text: str, source: Path | None = None) -> Any:
    """Decode a YAML document.

    Args:
        text: YAML source.
        source: File the text came from, for error messages.

    Raises:
        ConfigError: If the YAML is malformed.
    """
    try:
        return yaml.load(text, Loader=_SourceLoader)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Invalid YAML: {exc}", source) from exc


def extract_frontmatter(text: str) -> tuple[dict[str, Any], str]:
    """Extract YAML front matter from content.

    Args:
        text: Raw file content.

    Returns:
        Tuple of (front matter dict, remaining content).
    """
    match = FRONTMATTER_RE.match(text)
    if not match:
        return {}, text
    try:
        data = yaml.load(match.group(1), Loader=_SourceLoader) or {}
    except yaml.YAMLError as exc:
        logger.warning("Ignoring malformed front matter.", error=str(exc))
        return {}, text
    if not isinstance(data, dict):
        return {}, text
    return data, text[match.end() :]


class RawContentLoader:
    """Discovers raw content items.

    A content item is a directory holding an `index.md` and/or an
    `index.yml`/`index.yaml` file. Front matter from the Markdown file wins
    over keys of the YAML file.

    Attributes:
        contents_dir: Root directory of the contents.
        assets_path: Name of the per-item asset directory.
    """

    def __init__(self, contents_dir: Path, assets_path: str = "assets"):
        self.contents_dir = contents_dir
        self.assets_path = assets_path

    def iter_directories(self) -> list[Path]:
        """Return every content item directory, sorted by path."""
        if not self.contents_dir.exists():
            return []
        directories: set[Path] = set()
        names = (MARKDOWN_INDEX, *YAML_INDEXES)
        for path in self.contents_dir.rglob("index.*"):
            if path.name not in names or not path.is_file():
                continue
            rel = path.parent.relative_to(self.contents_dir)
            if any(part.startswith(".") or part == self.assets_path for part in rel.parts):
                continue
            directories.add(path.parent)
        return sorted(directories)

    def load(self) -> list[RawContent]:
        return [self.load_item(directory) for directory in self.iter_directories()]

    def load_item(self, directory: Path) -> RawContent:
        """Load one content item directory.

        Args:
            directory: Directory holding the index files.

        Returns:
            The raw content.

        Raises:
            ConfigError: If a file holds YAML values Quill cannot represent.
        """
        front_matter: dict[str, Value] = {}
        markdown = ""
        sources: list[Path] = []

        for name in YAML_INDEXES:
            yaml_path = directory / name
            if yaml_path.is_file():
                data = load_yaml(yaml_path.read_text(encoding="utf-8"), yaml_path) or {}
                if isinstance(data, dict):
                    front_matter.update(_wrap(data, yaml_path))
                sources.append(yaml_path)
                break

        markdown_path = directory / MARKDOWN_INDEX
        if markdown_path.is_file():
            data, markdown = extract_frontmatter(markdown_path.read_text(encoding="utf-8"))
            front_matter.update(_wrap(data, markdown_path))
            sources.append(markdown_path)

        rel_dir = directory.relative_to(self.contents_dir).as_posix()
        origin_path = sources[-1].relative_to(self.contents_dir).as_posix()
        return RawContent(
            origin=Origin(path=origin_path, slug=slug_from_path(rel_dir)),
            front_matter=front_matter,
            markdown=markdown,
            last_modification=max(p.stat().st_mtime for p in sources),
            assets_path=self.assets_path,
            assets=self._assets(directory),
        )

    def _assets(self, directory: Path) -> tuple[str, ...]:
        assets_dir = directory / self.assets_path
        if not assets_dir.is_dir():
            return ()
        return tuple(
            sorted(
                p.relative_to(assets_dir).as_posix()
                for p in assets_dir.rglob("*")
                if p.is_file()
            )
        )


def _wrap(data: dict[str, Any], source: Path) -> dict[str, Value]:
    try:
        return wrap_mapping(data)
    except TypeError as exc:
        raise ConfigError(f"Unsupported front matter value: {exc}", source) from exc


def _load_directory(directory: Path, build: Callable[[dict], T]) -> list[T]:
    if not directory.exists():
        return []
    items: list[T] = []
    paths = sorted([*directory.glob("*.yml"), *directory.glob("*.yaml")])
    for path in paths:
        data = load_yaml(path.read_text(encoding="utf-8"), path)
        if not isinstance(data, dict):
            raise ConfigError("Expected a mapping at the top level.", path)
        try:
            items.append(build(data))
        except ConfigError as exc:
            raise ConfigError(exc.message, path) from exc
    return items


def load_definitions(types_dir: Path) -> list[ContentDefinition]:
    """Load content type definitions from `*.yml`/`*.yaml` files."""
    return _load_directory(types_dir, ContentDefinition.from_dict)


def load_pipelines(pipelines_dir: Path) -> list[Pipeline]:
    """Load pipeline declarations from `*.yml`/`*.yaml` files."""
    return _load_directory(pipelines_dir, Pipeline.from_dict)
