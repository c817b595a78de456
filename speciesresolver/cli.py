from __future__ import annotations

import json
import os
import sys
from pathlib import Path
from typing import Any

import click

from .catalog.base import CLASSIFICATION_LEVELS
from .config import load_config
from .factory import Services, build_services
from .identify import IdentifyRequest, UploadedImage
from .logging import setup_logging
from .models import IdentificationResult

FIND_LIMIT_MAX = 50
SEARCH_LIMIT_MAX = 100
BROWSE_LIMIT_MAX = 100
POPULAR_LIMIT_MAX = 200


def _echo_json(payload: Any) -> None:
    click.echo(json.dumps(payload, ensure_ascii=False, indent=2))


def _run(ctx: click.Context, command: str, action) -> Any:
    """Load config, build services and run ``action`` against them."""
    config_path: Path = ctx.obj["config_path"]
    logger = ctx.obj["logger"]
    try:
        config = load_config(config_path)
        with build_services(config) as services:
            return action(services)
    except click.ClickException:
        raise
    except Exception as exc:  # noqa: BLE001
        logger.error("cli_command_failed", command=command, error=str(exc))
        raise click.ClickException(str(exc)) from exc


def _emit_identification(
    services: Services, result: IdentificationResult, import_top: bool
) -> IdentificationResult:
    if import_top and result.success:
        result = services.species.import_top_candidate(result)
    _echo_json(result.to_dict())
    return result


def _exit_on_failure(result: IdentificationResult) -> None:
    if not result.success:
        sys.exit(1)


@click.group()
@click.option(
    "--config",
    "config_path",
    default="speciesresolver.config.json",
    show_default=True,
    type=click.Path(dir_okay=False, path_type=Path),
    help="Path to configuration JSON file.",
)
@click.option(
    "--json-logs",
    is_flag=True,
    default=False,
    help="Emit logs in JSON (overrides LOG_FORMAT env).",
)
@click.pass_context
def main(ctx: click.Context, config_path: Path, json_logs: bool) -> None:
    """Resolve photographs and names to catalogued species."""
    json_mode = json_logs or os.getenv("LOG_FORMAT") == "json"
    logger = setup_logging(json_mode=json_mode, level=os.getenv("LOG_LEVEL", "INFO"))
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path
    ctx.obj["logger"] = logger


@main.command(name="identify")
@click.argument("image_path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--lat", "latitude", type=float, help="Latitude hint.")
@click.option("--lng", "longitude", type=float, help="Longitude hint.")
@click.option("--import-top", is_flag=True, help="Import the best candidate into the catalog.")
@click.pass_context
def identify_cmd(
    ctx: click.Context,
    image_path: Path,
    latitude: float | None,
    longitude: float | None,
    import_top: bool,
) -> None:
    """Identify the organism in an image file."""

    def action(services: Services) -> IdentificationResult:
        with image_path.open("rb") as stream:
            upload = UploadedImage(
                filename=image_path.name, size=image_path.stat().st_size, stream=stream
            )
            result = services.identification.identify(
                IdentifyRequest(file=upload, latitude=latitude, longitude=longitude)
            )
        return _emit_identification(services, result, import_top)

    _exit_on_failure(_run(ctx, "identify", action))


@main.command(name="identify-base64")
@click.argument("source", type=click.File("r"))
@click.option("--lat", "latitude", type=float, help="Latitude hint.")
@click.option("--lng", "longitude", type=float, help="Longitude hint.")
@click.option("--import-top", is_flag=True, help="Import the best candidate into the catalog.")
@click.pass_context
def identify_base64_cmd(
    ctx: click.Context,
    source,
    latitude: float | None,
    longitude: float | None,
    import_top: bool,
) -> None:
    """Identify a base64 (or data URL) encoded image read from SOURCE ('-' for stdin)."""
    encoded = source.read().strip()

    def action(services: Services) -> IdentificationResult:
        result = services.identification.identify(
            IdentifyRequest(encoded_image=encoded, latitude=latitude, longitude=longitude)
        )
        return _emit_identification(services, result, import_top)

    _exit_on_failure(_run(ctx, "identify-base64", action))


@main.command(name="find")
@click.argument("query")
@click.option("--limit", default=10, show_default=True, type=click.IntRange(min=1))
@click.pass_context
def find_cmd(ctx: click.Context, query: str, limit: int) -> None:
    """Search the catalog, topping up from iNaturalist when needed."""
    if not query.strip():
        raise click.ClickException("Search query cannot be empty")
    limit = min(limit, FIND_LIMIT_MAX)

    def action(services: Services) -> None:
        entries = services.species.find(query, limit)
        if not entries:
            raise click.ClickException(
                f"No species found for '{query}' in local catalog or iNaturalist"
            )
        _echo_json([entry.to_dict() for entry in entries])

    _run(ctx, "find", action)


@main.command(name="search")
@click.argument("query")
@click.option("--limit", default=20, show_default=True, type=click.IntRange(min=1))
@click.pass_context
def search_cmd(ctx: click.Context, query: str, limit: int) -> None:
    """Search catalogued species only."""
    if not query.strip():
        raise click.ClickException("Search query cannot be empty")
    limit = min(limit, SEARCH_LIMIT_MAX)

    def action(services: Services) -> None:
        _echo_json([species.to_dict() for species in services.species.search(query, limit)])

    _run(ctx, "search", action)


@main.command(name="import")
@click.argument("taxon_id", type=int)
@click.pass_context
def import_cmd(ctx: click.Context, taxon_id: int) -> None:
    """Import a taxon from iNaturalist by its id (no-op if already catalogued)."""

    def action(services: Services) -> None:
        species = services.species.import_by_taxon_id(taxon_id)
        if species is None:
            raise click.ClickException(f"Species with taxon ID {taxon_id} not found on iNaturalist")
        _echo_json(species.to_dict())

    _run(ctx, "import", action)


@main.command(name="show")
@click.argument("species_id", type=int)
@click.pass_context
def show_cmd(ctx: click.Context, species_id: int) -> None:
    """Show one catalogued species."""

    def action(services: Services) -> None:
        species = services.species.get_by_id(species_id)
        if species is None:
            raise click.ClickException(f"Species with ID {species_id} not found")
        _echo_json(species.to_dict())

    _run(ctx, "show", action)


@main.command(name="browse")
@click.argument("level", type=click.Choice(CLASSIFICATION_LEVELS, case_sensitive=False))
@click.argument("value")
@click.option("--limit", default=20, show_default=True, type=click.IntRange(min=1))
@click.pass_context
def browse_cmd(ctx: click.Context, level: str, value: str, limit: int) -> None:
    """List catalogued species in a class, order, family or genus."""
    if not value.strip():
        raise click.ClickException(f"{level.capitalize()} name cannot be empty")
    limit = min(limit, BROWSE_LIMIT_MAX)

    def action(services: Services) -> None:
        rows = services.species.get_by_classification(level, value, limit)
        _echo_json([species.to_dict() for species in rows])

    _run(ctx, "browse", action)


@main.command(name="popular")
@click.option("--limit", default=50, show_default=True, type=click.IntRange(min=1))
@click.pass_context
def popular_cmd(ctx: click.Context, limit: int) -> None:
    """List the default browsing set."""
    limit = min(limit, POPULAR_LIMIT_MAX)

    def action(services: Services) -> None:
        _echo_json([species.to_dict() for species in services.species.list_preloaded(limit)])

    _run(ctx, "popular", action)


if __name__ == "__main__":
    main()
