"""Utility functions for Quill.

This module contains string and path helpers used throughout the Quill
codebase.

Key functions:
    strip_brackets: Remove `[...]` segments from a path component.
    slug_from_path: Derive a content slug from a relative directory path.
    extract_iterator_id: Find the `{{id}}` placeholder of an iterator slug.
    replace_tokens: Replace several literal tokens in a string.
    permalink: Build the public URL of a slug.
    ensure_clean_dir: Ensure a directory exists and is empty.
"""

from __future__ import annotations

import shutil
from collections.abc import Mapping
from pathlib import Path, PurePosixPath
from urllib.parse import unquote


def strip_brackets(name: str) -> str:
    """Remove bracket-delimited substrings after percent-decoding.

    Args:
        name: A single path component.

    Returns:
        The component without `[...]` parts.

    Examples:
        >>> strip_brackets("[01]hello-world")
        'hello-world'
    """
    result = []
    inside = False
    for char in unquote(name):
        if char == "[":
            inside = True
        elif char == "]":
            inside = False
        elif not inside:
            result.append(char)
    return "".join(result)


def parent_directory_name(path: str) -> str:
    """Return the cleaned name of a file path's parent directory.

    Examples:
        >>> parent_directory_name("blog/[01]first-post/index.md")
        'first-post'
    """
    parts = [p for p in path.split("/") if p]
    if len(parts) < 2:
        return ""
    return strip_brackets(parts[-2])


def slug_from_path(directory: str) -> str:
    """Derive a slug from a directory path relative to the contents root.

    Bracketed parts are dropped, components that become empty are skipped.

    Examples:
        >>> slug_from_path("blog/[2024]/[01]first-post")
        'blog/first-post'
    """
    parts = (strip_brackets(p) for p in PurePosixPath(directory).parts if p != ".")
    return "/".join(p for p in parts if p)


def extract_iterator_id(slug: str) -> str | None:
    """Return the text between the first `{{` and the following `}}`.

    Examples:
        >>> extract_iterator_id("blog/page/{{post.pagination}}")
        'post.pagination'
    """
    start = slug.find("{{")
    if start == -1:
        return None
    end = slug.find("}}", start + 2)
    if end == -1:
        return None
    return slug[start + 2 : end]


def replace_tokens(text: str, replacements: Mapping[str, str]) -> str:
    for token, value in replacements.items():
        text = text.replace(token, value)
    return text


def permalink(slug: str, base_url: str) -> str:
    """Build the public URL of a slug.

    Slugs whose last component has an extension are treated as files, every
    other slug gets a trailing slash.

    Examples:
        >>> permalink("blog/first-post", "https://example.com")
        'https://example.com/blog/first-post/'
        >>> permalink("rss.xml", "https://example.com")
        'https://example.com/rss.xml'
    """
    base = base_url.rstrip("/")
    components = [c for c in slug.split("/") if c]
    if not components:
        return f"{base}/"
    joined = "/".join([base, *components])
    if "." in components[-1]:
        return joined
    return f"{joined}/"


def ensure_clean_dir(path: Path) -> None:
    """Ensure a directory exists and is empty.

    Args:
        path: Directory path to clean or create.
    """
    if path.exists():
        shutil.rmtree(str(path))
    path.mkdir(parents=True, exist_ok=True)
