"""Config command: show or change persisted settings."""

import typer

from ... import config as settings
from ...core.errors import ConfigurationError
from ..app import app


def _print_section(title: str, values: dict) -> None:
    typer.echo(f"{title}:")
    for key, value in values.items():
        typer.echo(f"  {key} = {value}")


@app.command("config")
def config_command(
    action: str = typer.Argument(..., help="show | set"),
    key: str | None = typer.Argument(None, help="Dotted key, e.g. pipeline.provider"),
    value: str | None = typer.Argument(None, help="New value"),
) -> None:
    """Show or change configuration.

    Examples:
        entityforge config show
        entityforge config set pipeline.provider openai
        entityforge config set pipeline.stage_timeout_seconds 30
    """
    try:
        current = settings.load_config()
    except ConfigurationError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)

    if action == "show":
        typer.echo(f"Config file: {settings.CONFIG_PATH}")
        _print_section("Pipeline", current.pipeline.model_dump())
        _print_section("Logging", current.logging.model_dump())
        keys = {
            name: "set" if settings.get_api_key(name) else "missing"
            for name in settings.PROVIDER_NAMES
        }
        _print_section("Credentials", keys)
        return

    if action == "set":
        if key is None or value is None:
            typer.echo("Usage: entityforge config set KEY VALUE")
            raise typer.Exit(1)
        try:
            updated = settings.set_value(current, key, value)
        except KeyError:
            typer.echo(f"Unknown key: {key}")
            raise typer.Exit(1)
        except ValueError as e:
            typer.echo(str(e))
            raise typer.Exit(1)
        path = settings.save_config(updated)
        typer.echo(f"Set {key} = {value} ({path})")
        return

    typer.echo(f"Unknown action: {action}. Use 'show' or 'set'.")
    raise typer.Exit(1)
