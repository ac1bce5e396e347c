#!/usr/bin/env python3
"""
kiln CLI - build and watch asset bundles from the command line.
"""

import asyncio
import sys
from pathlib import Path
from typing import Any, Dict, Optional

import click

from kiln import Coordinator
from kiln.core.workspace import Workspace
from kiln.messages import get_logger, set_verbose
from kiln.utility.exceptions import ConfigError, KilnError

WORKSPACE_TEMPLATE = """name: "{name}"

settings:
  minify: false
  watch: false
  encoding: utf-8

store:
  type: local
  path: public/assets

options:
  concurrency: 8
  continue_on_error: false

flows:
  - route: /assets/app.css
    type: css
    paths: assets/styles
  - route: /assets/app.js
    type: js
    paths: assets/scripts
"""


def _overrides(minify: Optional[bool], watch: Optional[bool] = None) -> Dict[str, Any]:
    overrides = {}
    if minify is not None:
        overrides["minify"] = minify
    if watch is not None:
        overrides["watch"] = watch
    return overrides


@click.group()
@click.version_option()
def kiln():
    """
    kiln - collect, compile, bundle and watch your assets.
    """
    pass


@kiln.command()
@click.argument("project_name")
@click.option(
    "--force",
    "-f",
    is_flag=True,
    help="Overwrite existing project directory if it exists",
)
def init(project_name: str, force: bool):
    """Initialize a new kiln project in a new directory.

    PROJECT_NAME: Name of the project and directory to create
    """
    project_dir = Path.cwd() / project_name

    if project_dir.exists() and not force:
        click.echo(f"Project directory '{project_name}' already exists")
        click.echo("Use --force to overwrite it")
        sys.exit(1)

    project_dir.mkdir(exist_ok=True)
    (project_dir / "kiln.yml").write_text(WORKSPACE_TEMPLATE.format(name=project_name))
    click.echo(f"Created kiln.yml for project '{project_name}'")

    styles = project_dir / "assets" / "styles"
    scripts = project_dir / "assets" / "scripts"
    styles.mkdir(parents=True, exist_ok=True)
    scripts.mkdir(parents=True, exist_ok=True)
    (styles / "app.scss").write_text("$accent: #c0392b;\n\na {\n  color: $accent;\n}\n")
    (scripts / "app.js").write_text("console.log('kiln is ready');\n")
    click.echo(f"Created example assets in {project_dir / 'assets'}")

    click.echo("\nkiln project initialized successfully!")
    click.echo("\nNext steps:")
    click.echo(f"  1. cd {project_name}")
    click.echo("  2. Edit kiln.yml to point flows at your assets")
    click.echo("  3. Run: kiln build")


@kiln.command()
@click.option(
    "--flow",
    "-f",
    multiple=True,
    help="Build specific flow(s) by name or route. Can be given multiple times.",
)
@click.option(
    "--minify/--no-minify",
    default=None,
    help="Force minification on or off for every flow",
)
@click.option("--verbose", is_flag=True, help="Enable verbose logging")
def build(flow: tuple, minify: Optional[bool], verbose: bool):
    """Build every flow in the current kiln project once."""
    logger = get_logger("kiln.cli.build")
    set_verbose(verbose)

    try:
        coordinator = Coordinator(
            flow_filter=list(flow) or None,
            settings_overrides=_overrides(minify, watch=False),
        )
        asyncio.run(_build(coordinator))
        click.echo("All flows built successfully!")
    except ConfigError as e:
        click.echo(f"Configuration error: {e}")
        sys.exit(1)
    except KilnError as e:
        click.echo(f"Error: {e}")
        logger.error(f"Error building flows: {e}")
        sys.exit(1)


async def _build(coordinator: Coordinator) -> None:
    try:
        await coordinator.run()
    finally:
        await coordinator.close()


async def _watch(coordinator: Coordinator) -> None:
    try:
        await coordinator.watch()
    finally:
        await coordinator.close()


@kiln.command()
@click.option(
    "--flow",
    "-f",
    multiple=True,
    help="Watch specific flow(s) by name or route. Can be given multiple times.",
)
@click.option(
    "--minify/--no-minify",
    default=None,
    help="Force minification on or off for every flow",
)
@click.option("--verbose", is_flag=True, help="Enable verbose logging")
def watch(flow: tuple, minify: Optional[bool], verbose: bool):
    """Build every flow, then rebuild flows whenever their sources change."""
    set_verbose(verbose)

    try:
        coordinator = Coordinator(
            flow_filter=list(flow) or None,
            settings_overrides=_overrides(minify, watch=True),
        )
        asyncio.run(_watch(coordinator))
    except KeyboardInterrupt:
        click.echo("Stopped watching")
    except ConfigError as e:
        click.echo(f"Configuration error: {e}")
        sys.exit(1)
    except KilnError as e:
        click.echo(f"Error: {e}")
        sys.exit(1)


@kiln.command()
def debug():
    """Validate the kiln project and list its flows."""
    try:
        workspace = Workspace.find()
        coordinator = Coordinator(config=workspace.prepare())
        coordinator.load()

        click.echo("Project configuration is valid")
        click.echo(f"Project: {coordinator.config.name}")
        click.echo(f"Root: {coordinator.config.settings.root}")
        click.echo(f"Number of flows: {len(coordinator.flows)}")

        for flow in coordinator.flows:
            route = flow.route if isinstance(flow.route, str) else flow.route.pattern
            click.echo(f"   [{flow.id}] {flow.name} ({flow.config.type})")
            click.echo(f"      Route: {route}")
            click.echo(f"      Extensions: {', '.join(flow.config.extensions)}")
            for path in flow.config.paths:
                full_path = flow.home.base / path
                state = "ok" if full_path.exists() else "missing"
                click.echo(f"      Path: {full_path} ({state})")

    except ConfigError as e:
        click.echo(f"Configuration error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    kiln()
