# src/errorrelay/cli.py
"""errorrelay Command Line Interface.

Entry point for the errorrelay CLI tool.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import typer
from dynaconf.vendor.ruamel.yaml.parser import ParserError as YamlParserError
from dynaconf.vendor.ruamel.yaml.scanner import ScannerError as YamlScannerError
from pydantic import ValidationError

from errorrelay import __version__
from errorrelay.contracts import ConfigurationMisuseError, Severity
from errorrelay.core.config import RelaySettings, SessionConfig, load_settings

__all__ = [
    "app",
    "load_settings",  # Re-exported from config for convenience
]

app = typer.Typer(
    name="errorrelay",
    help="errorrelay: Deduplicating error relay to a remote ingestion endpoint.",
    no_args_is_help=True,
)


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        typer.echo(f"errorrelay version {__version__}")
        raise typer.Exit()


def _load_dotenv(env_file: Path | None = None) -> bool:
    """Load environment variables from .env file.

    Args:
        env_file: Explicit path to .env file. If None, searches for .env
                 in current directory and parent directories.

    Returns:
        True if .env was found and loaded, False otherwise.

    Raises:
        typer.Exit: If explicit env_file path doesn't exist.
    """
    from dotenv import load_dotenv

    if env_file is not None:
        if not env_file.exists():
            typer.secho(
                f"Error: .env file not found: {env_file}",
                fg=typer.colors.RED,
                err=True,
            )
            raise typer.Exit(1)
        return load_dotenv(env_file, override=False)

    return load_dotenv(override=False)  # Don't override existing env vars


@app.callback()
def main(
    version: bool | None = typer.Option(
        None,
        "--version",
        "-V",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
    no_dotenv: bool = typer.Option(
        False,
        "--no-dotenv",
        help="Skip loading .env file.",
    ),
    env_file: Path | None = typer.Option(
        None,
        "--env-file",
        help="Path to .env file (skips automatic search).",
        exists=False,  # Existence is checked in _load_dotenv for a clearer message
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable verbose/debug logging.",
    ),
    json_logs: bool = typer.Option(
        False,
        "--json-logs",
        help="Output structured JSON logs (for machine processing).",
    ),
) -> None:
    """errorrelay: Deduplicating error relay to a remote ingestion endpoint."""
    from errorrelay.core.logging import configure_logging

    log_level = "DEBUG" if verbose else "INFO"
    configure_logging(json_output=json_logs, level=log_level)

    if not no_dotenv:
        _load_dotenv(env_file=env_file)
    elif env_file is not None:
        typer.secho(
            "Warning: --env-file ignored because --no-dotenv is set.",
            fg=typer.colors.YELLOW,
            err=True,
        )


def _format_validation_error(
    title: str,
    message: str,
    hint: str | None = None,
    details: list[str] | None = None,
) -> None:
    """Display a formatted validation error with optional hint and details."""
    from rich.console import Console
    from rich.panel import Panel
    from rich.text import Text

    console = Console(stderr=True)

    content = Text()
    content.append(message, style="white")

    if details:
        content.append("\n\n")
        for detail in details:
            content.append(f"  • {detail}\n", style="dim")

    if hint:
        content.append("\n")
        content.append("Hint: ", style="yellow bold")
        content.append(hint, style="yellow")

    panel = Panel(
        content,
        title=f"[red bold]{title}[/]",
        border_style="red",
        padding=(0, 1),
    )
    console.print(panel)


def _load_settings_or_exit(settings: str) -> RelaySettings:
    """Load settings, rendering any failure and exiting with status 1."""
    settings_path = Path(settings).expanduser()

    try:
        return load_settings(settings_path)
    except (YamlParserError, YamlScannerError) as e:
        _format_validation_error(
            title="YAML Syntax Error",
            message=f"Failed to parse {settings_path.name}",
            details=[str(e.problem)] if hasattr(e, "problem") else None,
            hint="Check for unclosed brackets, incorrect indentation, or invalid characters.",
        )
        raise typer.Exit(1) from None
    except FileNotFoundError:
        _format_validation_error(
            title="File Not Found",
            message=f"Settings file does not exist: {settings}",
            hint="Check the path and ensure the file exists.",
        )
        raise typer.Exit(1) from None
    except ValidationError as e:
        # Must precede ValueError - ValidationError inherits from it
        details = []
        for error in e.errors():
            loc = ".".join(str(x) for x in error["loc"])
            details.append(f"{loc}: {error['msg']}")
        _format_validation_error(
            title="Configuration Validation Failed",
            message=f"Invalid settings in {settings_path.name}",
            details=details,
            hint="Check field names, types, and required values.",
        )
        raise typer.Exit(1) from None


@app.command()
def validate(
    settings: str = typer.Option(
        ...,
        "--settings",
        "-s",
        help="Path to settings YAML file.",
    ),
) -> None:
    """Validate relay configuration without sending anything."""
    config = _load_settings_or_exit(settings)
    session = SessionConfig.from_settings(config)

    typer.echo("Relay configuration valid!")
    typer.echo(f"  Role: {config.role}")
    typer.echo(f"  Environment: {config.environment}")
    typer.echo(f"  Sink: {config.sink.url}{' (dry run)' if config.sink.dry_run else ''}")
    typer.echo(f"  Token: {'set' if config.auth.server_token else 'missing'}")
    typer.echo(
        f"  Flags: ignore_duplicates={config.flags.ignore_duplicates}, "
        f"generalize_client_errors={config.flags.generalize_client_errors}, "
        f"manual_mode={config.flags.manual_mode}"
    )
    if session.disabled:
        typer.secho(
            "  Relay is DISABLED: diagnostic host with ignore_in_diagnostic_host set.",
            fg=typer.colors.YELLOW,
        )


def _parse_metadata(pairs: list[str]) -> dict[str, Any]:
    """Parse repeated --metadata key=value options."""
    metadata: dict[str, Any] = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep or not key:
            raise typer.BadParameter(f"expected key=value, got {pair!r}", param_hint="--metadata")
        metadata[key] = value
    return metadata


@app.command()
def send(
    message: str = typer.Argument(..., help="Message to relay."),
    settings: str = typer.Option(
        ...,
        "--settings",
        "-s",
        help="Path to settings YAML file.",
    ),
    level: str = typer.Option(
        "error",
        "--level",
        "-l",
        help="Severity: debug, info, warning, error or critical.",
    ),
    metadata: list[str] | None = typer.Option(
        None,
        "--metadata",
        "-m",
        help="Metadata key=value for this event (repeatable).",
    ),
    dry_run: bool = typer.Option(
        False,
        "--dry-run",
        "-n",
        help="Process the event but do not contact the sink.",
    ),
) -> None:
    """Send one manual event through a standalone authority."""
    from errorrelay.relay import AuthorityRouter, RelayContext

    try:
        severity = Severity.parse(level)
    except ConfigurationMisuseError as e:
        raise typer.BadParameter(e.message, param_hint="--level") from None
    event_metadata = _parse_metadata(metadata or [])

    config = _load_settings_or_exit(settings)
    session = SessionConfig.from_settings(config)
    if dry_run:
        session.dry_run = True
    # A standalone send never listens to the log stream
    session.manual_mode = True

    router = AuthorityRouter(RelayContext.from_config(session))
    try:
        router.setup()
        if router.disabled:
            typer.secho("Relay is disabled in this host; nothing sent.", fg=typer.colors.YELLOW, err=True)
            raise typer.Exit(1)
        if event_metadata:
            router.configure(event_metadata)
        router.log(severity, message)
        router.flush()
        metrics = router.dispatcher.health_metrics
        result = router.get_total(severity)
    finally:
        router.close()

    if metrics["delivered"] == 0:
        typer.secho(
            f"Event was not delivered (rejected={metrics['rejected']}, "
            f"transport_failed={metrics['transport_failed']}, dropped={metrics['dropped']}).",
            fg=typer.colors.RED,
            err=True,
        )
        raise typer.Exit(1)

    typer.echo(f"Sent {severity.wire_name} event ({result.total} {severity.wire_name} total this session)")
