"""Quill static site generator.

Quill turns a directory of Markdown and YAML content into a static site. Each
content item gets a content type that declares its typed properties, its
relations to other contents and named queries. Pipelines then filter, query
and paginate the typed contents and hand template contexts to an output
engine (Jinja2 templates or JSON).

The main entry point is the CLI module, which provides the `build` command.
"""

__all__ = ["__version__"]
__version__ = "0.1.0"
