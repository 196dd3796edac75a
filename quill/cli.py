"""Command-line interface for Quill.

This module defines the CLI commands using the Click framework.

Commands:
- build: Build the site into the output directory.
"""

from __future__ import annotations

from pathlib import Path

import click

from . import __version__
from .errors import ConfigError
from .logs import configure_logging


@click.group()
@click.version_option(version=__version__, prog_name="quill")
def cli():
    """Quill static site generator."""


@cli.command()
@click.option("--base-url", default=None, help="Base URL overriding quill.yaml")
@click.option(
    "--output",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Output directory overriding quill.yaml",
)
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.option("--log-json", is_flag=True, help="Log JSON lines to stderr")
def build(base_url: str | None, output: Path | None, verbose: bool, log_json: bool):
    """Build the site into the output directory."""
    configure_logging(verbose=verbose, log_json=log_json)
    project_root = Path.cwd()
    from .build import BuildError, build_site

    try:
        result = build_site(
            project_root,
            base_url=base_url,
            output_dir_override=output.resolve() if output else None,
        )
    except (BuildError, ConfigError) as exc:
        click.echo(click.style("Build failed:", fg="red", bold=True), err=True)
        if exc.source_path is not None:
            rel_path = _display_path(exc.source_path, project_root)
            click.echo(click.style(f"  File: {rel_path}", fg="yellow"), err=True)
        click.echo(click.style(f"  Error: {exc.message}", fg="white"), err=True)
        raise SystemExit(1) from None
    click.echo(
        f"Built {len(result.files)} files from {len(result.contents)} contents "
        f"into {result.output_dir}"
    )


def _display_path(path: Path, project_root: Path) -> Path:
    try:
        return Path(path).relative_to(project_root)
    except ValueError:
        return Path(path)


def main():
    cli()
