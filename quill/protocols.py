"""Protocol definitions for Quill.

This module defines the interfaces the build depends on, so engines and
content sources can be swapped or mocked in tests.
"""

from __future__ import annotations

from abc import abstractmethod
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from .context import ContextBundle
    from .models import RawContent
    from .pipelines import Pipeline


@runtime_checkable
class OutputEngine(Protocol):
    """Protocol for turning context bundles into file contents.

    Implementations handle one output format (HTML templates, JSON).
    """

    @property
    @abstractmethod
    def engine_id(self) -> str:
        """Return the id pipelines use to select this engine."""
        ...

    @abstractmethod
    def render(self, bundle: ContextBundle, pipeline: Pipeline) -> str:
        """Render one bundle.

        Args:
            bundle: Content, context and destination.
            pipeline: Pipeline the bundle belongs to; engine options live here.

        Returns:
            The file contents.
        """
        ...


@runtime_checkable
class RawContentSource(Protocol):
    """Protocol for anything that yields raw content items."""

    @abstractmethod
    def load(self) -> list[RawContent]:
        """Return every raw content item."""
        ...
