"""Epesi CLI.

Entry point for running the dashboards API and inspecting data files.

Usage:
    epesi serve                 Start the API server
    epesi init-db               Create database tables
    epesi inspect sales.csv     Preview how a file will be normalized
    epesi config show           Show resolved configuration
"""

import logging
import os
from pathlib import Path
from typing import Optional

import typer
from pydantic import ValidationError as PydanticValidationError
from rich.console import Console

from src.cli.config import EpesiConfig, load_config
from src.cli.output import format_relation_table
from src.errors import DomainError, EpesiError, format_error

_log = logging.getLogger(__name__)

app = typer.Typer(
    name="epesi",
    help="AI-assisted analytics dashboards",
    no_args_is_help=True,
)
config_app = typer.Typer(help="Configuration management")
app.add_typer(config_app, name="config")

console = Console()

# --- Global state ---
_config_path: str | None = None

_FORMAT_BY_SUFFIX = {".csv": "csv", ".json": "json"}


@app.callback()
def main(
    config: Optional[str] = typer.Option(
        None, "--config", help="Path to epesi.yaml config file"
    ),
):
    """Epesi CLI: dashboards API server and data tools."""
    global _config_path
    _config_path = config


def _load_or_exit(config_path: str | None) -> EpesiConfig | None:
    try:
        return load_config(config_path=config_path)
    except FileNotFoundError as e:
        console.print(f"[red]Config file not found:[/red] {e}")
        raise typer.Exit(1)
    except (PydanticValidationError, ValueError, TypeError) as e:
        console.print(f"[red]Config validation failed:[/red] {e}")
        raise typer.Exit(1)


def _apply_config_env(cfg: EpesiConfig | None) -> None:
    """Export config values for the API process. Explicit env vars win."""
    if cfg is None:
        return
    for key, value in cfg.to_environ().items():
        os.environ.setdefault(key, value)


# --- Version ---


@app.command()
def version():
    """Show Epesi version."""
    from importlib.metadata import PackageNotFoundError
    from importlib.metadata import version as pkg_version

    try:
        v = pkg_version("epesi")
    except PackageNotFoundError:
        v = "unknown"
    console.print(f"[bold]Epesi[/bold] v{v}")


# --- Server commands ---


@app.command()
def serve(
    host: Optional[str] = typer.Option(None, "--host", help="Bind address"),
    port: Optional[int] = typer.Option(None, "--port", help="Bind port"),
    reload: bool = typer.Option(False, "--reload", help="Reload on code changes"),
):
    """Start the Epesi API server."""
    import uvicorn

    cfg = _load_or_exit(_config_path)
    _apply_config_env(cfg)

    final_host = host or (cfg.server.host if cfg else "127.0.0.1")
    final_port = port or (cfg.server.port if cfg else 8000)
    log_level = cfg.server.log_level if cfg else "info"

    console.print(f"[bold]Starting Epesi API on {final_host}:{final_port}[/bold]")
    uvicorn.run(
        "src.api.main:app",
        host=final_host,
        port=final_port,
        log_level=log_level,
        reload=reload,
    )


@app.command("init-db")
def init_db_cmd():
    """Create database tables if they do not exist."""
    cfg = _load_or_exit(_config_path)
    _apply_config_env(cfg)

    # Imported late so DATABASE_URL from the config is seen by the engine
    from src.db.connection import engine, init_db

    init_db()
    console.print(
        f"[green]Database ready:[/green] {engine.url.render_as_string(hide_password=True)}"
    )


# --- Data commands ---


@app.command()
def inspect(
    file: Path = typer.Argument(..., exists=True, dir_okay=False, help="CSV or JSON file"),
    rows: int = typer.Option(10, "--rows", "-n", min=0, help="Sample rows to show"),
    as_json: bool = typer.Option(False, "--json", help="Output as JSON"),
):
    """Normalize a CSV/JSON file and show its fields and sample rows."""
    from src.services.data_normalizer import normalize

    declared_format = _FORMAT_BY_SUFFIX.get(file.suffix.lower())
    text = file.read_text(encoding="utf-8-sig")
    try:
        relation = normalize(text, declared_format=declared_format)
    except DomainError as e:
        console.print(f"[red]{format_error(EpesiError.from_domain_error(e))}[/red]")
        raise typer.Exit(1)

    _log.debug("Inspected %s: %d fields, %d rows", file, len(relation.fields), relation.row_count)
    output = format_relation_table(relation, title=file.name, rows=rows, as_json=as_json)
    if as_json:
        typer.echo(output)
    else:
        console.print(output, end="")


# --- Config commands ---


@config_app.command("show")
def config_show():
    """Display resolved configuration."""
    cfg = _load_or_exit(_config_path)
    if cfg is None:
        console.print("[yellow]No config file found.[/yellow]")
        console.print("Searched: ./epesi.yaml, ~/.epesi/config.yaml")
        raise typer.Exit(1)

    console.print("[bold]Server:[/bold]")
    console.print(f"  host: {cfg.server.host}")
    console.print(f"  port: {cfg.server.port}")
    console.print(f"  log_level: {cfg.server.log_level}")
    if cfg.server.allowed_origins:
        console.print(f"  allowed_origins: {', '.join(cfg.server.allowed_origins)}")

    console.print("\n[bold]Database:[/bold]")
    console.print(f"  url: {cfg.database.url or '(default data directory)'}")

    console.print("\n[bold]Generation:[/bold]")
    console.print(f"  model: {cfg.generation.model or '(default)'}")
    timeout = cfg.generation.timeout
    console.print(f"  timeout: {timeout if timeout is not None else '(default)'}")


@config_app.command("validate")
def config_validate(
    config: Optional[str] = typer.Option(None, "--config", help="Config file path"),
):
    """Validate a config file without starting the server."""
    cfg = _load_or_exit(config or _config_path)
    if cfg is None:
        console.print("[red]No config file found.[/red]")
        raise typer.Exit(1)
    console.print("[green]Config is valid.[/green]")
    console.print(f"  Server: {cfg.server.host}:{cfg.server.port}")


if __name__ == "__main__":
    app()
