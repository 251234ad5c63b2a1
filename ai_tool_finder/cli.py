"""Command line entry points: serve the API, seed the catalog, run a search."""

import dataclasses
import json
import logging
from typing import Optional

import click

from .config import load_settings
from .logging_config import setup_logging
from .seed import load_seed_document
from .seed import seed_catalog
from .storage import build_store
from .web import build_orchestrator

logger = logging.getLogger(__name__)


@click.group()
def main():
    """AI tool finder."""


@main.command()
@click.option("--host", default="0.0.0.0", show_default=True, help="Interface to bind")
@click.option("--port", type=int, default=None, help="Port to listen on (defaults to WEB_PORT)")
@click.option("--reload", is_flag=True, help="Reload on code changes")
def serve(host: str, port: Optional[int], reload: bool):
    """Run the HTTP API with uvicorn."""
    import uvicorn

    settings = load_settings()
    setup_logging(settings.log_level)
    port = port or settings.web_port
    logger.info(f"Starting server on port {port}")
    uvicorn.run("ai_tool_finder.web:create_app", factory=True, host=host, port=port, reload=reload)


@main.command()
@click.option("--source", default=None, help="'sample', 'minio', or a JSON file path (defaults to CATALOG_SEED)")
def seed(source: Optional[str]):
    """Seed the configured catalog store if it is empty."""
    settings = load_settings()
    if source:
        settings = dataclasses.replace(settings, catalog_seed=source)
    setup_logging(settings.log_level)

    if settings.catalog_backend == "memory":
        logger.warning("CATALOG_BACKEND is 'memory'; the seeded catalog will not outlive this command")

    document = load_seed_document(settings)
    if document is None:
        click.echo("Seeding disabled (CATALOG_SEED=none)")
        return
    created = seed_catalog(build_store(settings), document)
    click.echo(f"Created {created} tools")


@main.command()
@click.argument("query")
def search(query: str):
    """Run one search and print the result as JSON."""
    settings = load_settings()
    setup_logging(settings.log_level)

    store = build_store(settings)
    document = load_seed_document(settings)
    if document is not None:
        seed_catalog(store, document)

    result = build_orchestrator(store, settings).search(query)
    click.echo(json.dumps(result.to_wire(), indent=2))


if __name__ == "__main__":
    main()
