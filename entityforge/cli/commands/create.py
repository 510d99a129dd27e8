"""Create command: run the pipeline for one prompt and print the result."""

import asyncio
import json
import logging
from pathlib import Path

import typer
from pydantic import ValidationError

from ...config import EntityForgeConfig, load_config
from ...core.errors import ConfigurationError, GenerationError
from ...core.models import ENTITY_KINDS, CreationResult, GameRules, Placement
from ...core.providers import get_provider
from ...generation import PipelineOrchestrator
from ..app import app


async def _run(
    config: EntityForgeConfig,
    kind: str,
    prompt: str,
    context: dict | None,
    rules: GameRules,
    placement: Placement,
) -> CreationResult:
    provider = get_provider(config.pipeline.provider, config)
    image_provider = provider
    if config.pipeline.resolved_image_provider != config.pipeline.provider:
        image_provider = get_provider(config.pipeline.resolved_image_provider, config)

    orchestrator = PipelineOrchestrator(provider, image_provider, config=config.pipeline)
    try:
        return await orchestrator.create_entity(kind, prompt, context, rules, placement)
    finally:
        await orchestrator.aclose()


@app.command("create")
def create_command(
    kind: str = typer.Argument(..., help="Entity kind: item, npc or location"),
    prompt: str = typer.Argument(..., help="Free-text description of the entity"),
    rules_file: Path = typer.Option(
        ..., "--rules", "-r", exists=True, dir_okay=False, help="Game rules JSON file"
    ),
    context_file: Path | None = typer.Option(
        None, "--context", "-c", exists=True, dir_okay=False, help="World context JSON file"
    ),
    region: str | None = typer.Option(None, "--region", help="Region id for placement"),
    x: int | None = typer.Option(None, "--x", help="X coordinate"),
    y: int | None = typer.Option(None, "--y", help="Y coordinate"),
    out: Path | None = typer.Option(None, "--out", "-o", help="Write result JSON here"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log stage progress"),
) -> None:
    """Generate one entity from a prompt.

    Example:
        entityforge create item "a rusty sword" --rules rules.json -o sword.json
    """
    logging.basicConfig(
        level=logging.INFO if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if kind not in ENTITY_KINDS:
        typer.echo(f"Unknown kind: {kind}. Choose one of: {', '.join(ENTITY_KINDS)}", err=True)
        raise typer.Exit(1)

    try:
        config = load_config()
        rules = GameRules.from_file(rules_file)
        context = None
        if context_file is not None:
            with open(context_file) as f:
                context = json.load(f)
    except ConfigurationError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)
    except (json.JSONDecodeError, ValidationError) as e:
        typer.echo(f"Error reading input: {e}", err=True)
        raise typer.Exit(1)

    placement = Placement(region=region, x=x, y=y)

    try:
        result = asyncio.run(_run(config, kind, prompt, context, rules, placement))
    except GenerationError as e:
        typer.echo(f"Generation failed at {e.stage} stage: {e.cause}", err=True)
        raise typer.Exit(1)
    except ConfigurationError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)

    payload = json.dumps(result.to_dict(), indent=2)
    if out is not None:
        out.write_text(payload)
        typer.echo(f"Saved {result.entity.id} to {out}")
    else:
        typer.echo(payload)

    if result.degraded_stages:
        typer.echo(f"Degraded stages: {', '.join(result.degraded_stages)}", err=True)
