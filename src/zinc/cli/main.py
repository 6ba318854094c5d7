"""Main CLI entry point."""

import importlib
import logging
import multiprocessing
import os
import sys
from pathlib import Path
from typing import Any, Optional

import rich_click as click
from rich.console import Console
from rich.logging import RichHandler

from zinc import __version__
from zinc.compiler.exceptions import ZincError

console = Console()

click.rich_click.USE_RICH_MARKUP = True
click.rich_click.STYLE_HELPTEXT_FIRST = True
click.rich_click.STYLE_COMMANDS_TABLE_SHOW_LINES = False
click.rich_click.STYLE_COMMANDS_TABLE_HEADER = "bold magenta"
click.rich_click.SHOW_ARGUMENTS = True
click.rich_click.GROUP_ARGUMENTS_OPTIONS = True
click.rich_click.STYLE_ERRORS_SUGGESTION = "magenta italic"
click.rich_click.ERRORS_SUGGESTION = "Try running 'zinc --help' for more information."

# Cyan theme
click.rich_click.STYLE_HEADER_TEXT = "bold cyan"
click.rich_click.STYLE_OPTION = "cyan"
click.rich_click.STYLE_SWITCH = "cyan"
click.rich_click.STYLE_METAVAR = "dim white"
click.rich_click.STYLE_USAGE_COMMAND = "cyan"
click.rich_click.STYLE_USAGE = "dim"

click.rich_click.COMMAND_GROUPS = {
    "zinc": [
        {
            "name": "Commands",
            "commands": ["dev", "run", "render"],
        }
    ]
}

LOG_LEVELS = click.Choice(["critical", "error", "warning", "info", "debug"])


def configure_logging(level: str = "info") -> None:
    """Send all log records through rich."""
    logging.basicConfig(
        level=level.upper(),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )


def import_app(app_str: str) -> Any:
    """Import application from string (e.g. 'main:app')."""
    if ":" not in app_str:
        raise click.BadParameter("App must be in format 'module:app'", param_hint="APP")

    module_name, app_name = app_str.split(":", 1)

    # Add current directory to path so we can import local modules
    sys.path.insert(0, os.getcwd())

    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        raise click.BadParameter(
            f"Could not import module '{module_name}': {e}", param_hint="APP"
        )

    try:
        return getattr(module, app_name)
    except AttributeError:
        raise click.BadParameter(
            f"Attribute '{app_name}' not found in module '{module_name}'",
            param_hint="APP",
        )


def _discover_app_str() -> str:
    """Try to discover the app string automatically."""
    cwd = Path(os.getcwd())
    sys.path.insert(0, str(cwd))

    # Priority: main.py, app.py; also check the src/ directory
    for path in (cwd, cwd / "src"):
        if not path.exists():
            continue

        for filename in ("main.py", "app.py"):
            if not (path / filename).exists():
                continue
            module_name = filename[:-3]
            module_path = f"src.{module_name}" if path.name == "src" else module_name

            try:
                module = importlib.import_module(module_path)
            except ImportError:
                continue
            if hasattr(module, "app"):
                return f"{module_path}:app"

    raise click.UsageError(
        "Could not auto-discover app. Please provide 'APP' argument (e.g. 'main:app')."
    )


def _serve(app: str, host: str, port: int, log_level: str) -> None:
    import uvicorn

    configure_logging(log_level)
    uvicorn.run(app, host=host, port=port, log_level=log_level, log_config=None)


@click.group(
    help=f"""
[bold white on cyan] zinc [/] [bold cyan]v{__version__}[/] Server-rendered components that stay live in the browser.

Run [bold cyan]zinc dev APP[/] to start the development server.
Run [bold cyan]zinc run APP[/] to start the production server.
Run [bold cyan]zinc render APP PATH[/] to print the HTML of one page.

[dim]APP should be a string in format 'module:instance', e.g. 'src.main:app' or 'main:app'
If not provided, zinc tries to discover it in main.py or app.py.[/dim]
"""
)
@click.version_option(__version__)
def cli() -> None:
    pass


@cli.command()
@click.argument("app", required=False)
@click.option("--host", default="127.0.0.1", help="Host to bind to")
@click.option("--port", default=3000, type=int, help="Port to bind to")
@click.option("--log-level", default="debug", type=LOG_LEVELS, help="Log level")
def dev(app: Optional[str], host: str, port: int, log_level: str) -> None:
    """Start development server, restarting it when files change."""
    from watchfiles import run_process

    if not app:
        app = _discover_app_str()
        console.print(f"🔍 Auto-discovered app: [cyan]{app}[/]")

    # Debug pages for the app and every restarted server process
    os.environ["ZINC_DEBUG"] = "1"
    import_app(app)

    console.print(
        f"🚀 Starting zinc dev server on [link=http://{host}:{port}]http://{host}:{port}[/link]"
    )
    run_process(
        os.getcwd(),
        target=_serve,
        args=(app, host, port, log_level),
    )


@cli.command()
@click.argument("app", required=False)
@click.option("--host", default="0.0.0.0", help="Host to bind to")
@click.option("--port", default=8000, type=int, help="Port to bind to")
@click.option("--workers", default=None, type=int, help="Number of worker processes")
@click.option("--no-access-log", is_flag=True, help="Disable access logging")
@click.option("--log-level", default="info", type=LOG_LEVELS, help="Log level")
def run(
    app: Optional[str],
    host: str,
    port: int,
    workers: Optional[int],
    no_access_log: bool,
    log_level: str,
) -> None:
    """Run production server using Uvicorn."""
    import uvicorn

    if not app:
        app = _discover_app_str()
        click.echo(f"🔍 Auto-discovered app: {app}")

    if workers is None:
        workers = (multiprocessing.cpu_count() * 2) + 1

    console.print(f"🚀 Starting [bold]production[/] server for [cyan]{app}[/]")
    console.print(
        f"🌍 Listening on [link=http://{host}:{port}]http://{host}:{port}[/link]"
    )
    console.print(f"👷 Workers: {workers}")

    # Locate the app object to verify, but pass string to uvicorn
    import_app(app)
    configure_logging(log_level)

    uvicorn.run(
        app,
        host=host,
        port=port,
        workers=workers,
        access_log=not no_access_log,
        log_level=log_level,
        log_config=None,
    )


@cli.command()
@click.argument("app")
@click.argument("path", default="/")
def render(app: str, path: str) -> None:
    """Print the HTML of the page registered for PATH."""
    zinc_app = import_app(app)
    try:
        markup = zinc_app.render_path(path)
    except ZincError as e:
        raise click.ClickException(str(e))
    click.echo(str(markup))


if __name__ == "__main__":
    cli()
