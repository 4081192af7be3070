"""
CLI entry point for casguard.

This module provides the Typer-based command-line interface for casguard.

Commands:
    guards      List the guards defined in a configuration file
    check       Build a guard and evaluate one request against it

Architecture Note:
    The CLI is intentionally thin - it loads the configuration file into a
    private store and delegates to a GuardRegistry built on it. Nothing here
    touches the process-wide default_store.
"""

import json
import logging
import traceback
from pathlib import Path
from typing import Annotated, Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

from casguard import __version__
from casguard.config import ConfigStore
from casguard.errors import CasguardError
from casguard.registry import GuardRegistry
from casguard.resolver import DEFAULT_NAMESPACE, ConfigResolver

# Initialize Typer app with metadata
app = typer.Typer(
    name="casguard",
    help="Inspect and exercise Casbin guards defined in configuration.",
    add_completion=False,
    no_args_is_help=True,
)

# Rich console for formatted output
console = Console()

EXIT_ALLOWED = 0
EXIT_DENIED = 1
EXIT_CONFIG_ERROR = 2

ConfigPath = Annotated[
    Path,
    typer.Argument(
        help="Path to the YAML configuration file.",
        exists=True,
        readable=True,
        resolve_path=True,
    ),
]
Namespace = Annotated[
    str,
    typer.Option(
        "--namespace",
        help="Top-level key holding the guard sections.",
    ),
]
JsonOutput = Annotated[
    bool,
    typer.Option(
        "--json",
        help="Output results in JSON format.",
    ),
]


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"[bold]casguard[/bold] version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Annotated[
        Optional[bool],
        typer.Option(
            "--version",
            "-v",
            help="Show version and exit.",
            callback=version_callback,
            is_eager=True,
        ),
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option(
            "--verbose",
            help="Log guard builds and Casbin activity.",
        ),
    ] = False,
) -> None:
    """
    casguard - Named Casbin enforcers from configuration.
    """
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(message)s",
            handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        )


def _load_registry(config_path: Path, namespace: str) -> GuardRegistry:
    store = ConfigStore()
    store.load_file(config_path)
    return GuardRegistry(resolver=ConfigResolver(store, namespace=namespace))


def _output_json_error(error: Exception, include_traceback: bool = False) -> None:
    """Output an error in JSON format."""
    if isinstance(error, CasguardError):
        output = {"error": True, **error.to_dict()}
    else:
        output = {
            "error": True,
            "error_type": type(error).__name__,
            "message": str(error),
        }
    if include_traceback:
        output["traceback"] = traceback.format_exc()
    print(json.dumps(output, indent=2, default=str))


@app.command()
def guards(
    config_path: ConfigPath,
    namespace: Namespace = DEFAULT_NAMESPACE,
    json_output: JsonOutput = False,
) -> None:
    """
    List the guards defined in a configuration file.

    Example:
        $ casguard guards casguard.yaml
    """
    try:
        registry = _load_registry(config_path, namespace)
        resolver = registry.resolver
        default_name = resolver.default_guard_name()
        rows = []
        for name in resolver.guard_names():
            config = resolver.resolve(name)
            source = config.model_source
            logger_name = config.log.logger
            if isinstance(logger_name, logging.Logger):
                logger_name = logger_name.name
            rows.append({
                "name": name,
                "default": name == default_name,
                "model": source.kind.value,
                "model_detail": source.path if source.path else ("inline" if source.content else ""),
                "adapter": config.adapter,
                "logger": logger_name,
                "log_enabled": config.log_enabled,
            })
    except CasguardError as e:
        if json_output:
            _output_json_error(e)
        else:
            console.print(f"[red]Error: {escape(str(e))}[/red]")
        raise typer.Exit(code=EXIT_CONFIG_ERROR)

    if json_output:
        print(json.dumps({"default": default_name, "guards": rows, "count": len(rows)}, indent=2))
        return

    if not rows:
        console.print(f"[dim]No guards defined under '{namespace}'.[/dim]")
        return

    table = Table(show_header=True, header_style="bold", title="Guards")
    table.add_column("Name", style="cyan")
    table.add_column("Default", width=7)
    table.add_column("Model")
    table.add_column("Adapter")
    table.add_column("Logger")
    table.add_column("Log", width=5)

    for row in rows:
        model = row["model"]
        if row["model_detail"]:
            model = f"{model} ({row['model_detail']})"
        table.add_row(
            row["name"],
            "[green]yes[/green]" if row["default"] else "",
            model,
            row["adapter"] or "[dim]-[/dim]",
            row["logger"] or "[dim]-[/dim]",
            "on" if row["log_enabled"] else "off",
        )

    console.print(table)


@app.command()
def check(
    config_path: ConfigPath,
    request: Annotated[
        list[str],
        typer.Argument(help="Request values, e.g. SUBJECT OBJECT ACTION."),
    ],
    guard_name: Annotated[
        Optional[str],
        typer.Option(
            "--guard",
            "-g",
            help="Guard to evaluate against. Defaults to the configured default guard.",
        ),
    ] = None,
    namespace: Namespace = DEFAULT_NAMESPACE,
    json_output: JsonOutput = False,
    debug: Annotated[
        bool,
        typer.Option(
            "--debug",
            help="Enable debug mode with full error tracebacks.",
        ),
    ] = False,
) -> None:
    """
    Evaluate one request against a guard.

    Exits 0 when allowed, 1 when denied, 2 on a configuration error.

    Example:
        $ casguard check casguard.yaml alice data1 read --guard api
    """
    try:
        registry = _load_registry(config_path, namespace)
        enforcer = registry.guard(guard_name)
        allowed = bool(enforcer.enforce(*request))
    except CasguardError as e:
        if json_output:
            _output_json_error(e, debug)
        else:
            console.print(f"[red]Error: {escape(str(e))}[/red]")
            if debug:
                console.print(f"[dim]{escape(traceback.format_exc())}[/dim]")
        raise typer.Exit(code=EXIT_CONFIG_ERROR)

    name = guard_name or registry.get_default_guard()
    if json_output:
        print(json.dumps({"guard": name, "request": request, "allowed": allowed}, indent=2))
    elif allowed:
        console.print(f"[green]ALLOW[/green] {escape(' '.join(request))} [dim](guard: {escape(name)})[/dim]")
    else:
        console.print(f"[red]DENY[/red] {escape(' '.join(request))} [dim](guard: {escape(name)})[/dim]")

    raise typer.Exit(code=EXIT_ALLOWED if allowed else EXIT_DENIED)


if __name__ == "__main__":
    app()
