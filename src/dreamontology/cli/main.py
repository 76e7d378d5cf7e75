import typer

from dreamontology.config import get_settings
from dreamontology.core.logging import setup_logging, get_logger

logger = get_logger(__name__)

app = typer.Typer(help="Dream Ontology symbol catalog")


@app.callback()
def main():
    """Dream Ontology symbol catalog."""
    # Runs before every command; settings are read here, not at import
    setup_logging(get_settings())


@app.command()
def serve(
    host: str = typer.Option(None, help="Bind address (default: API_HOST)"),
    port: int = typer.Option(None, help="Port (default: API_PORT)"),
    reload: bool = typer.Option(False, help="Auto-reload on code changes"),
):
    """Start the REST API server."""
    import uvicorn
    settings = get_settings()
    host = host or settings.api_host
    port = port or settings.api_port
    logger.info("starting_api_server", host=host, port=port)
    uvicorn.run(
        "dreamontology.api.app:create_default_app",
        factory=True,
        host=host,
        port=port,
        reload=reload,
    )


@app.command()
def mcp(
    transport: str = typer.Option(None, help="stdio, sse or streamable-http (default: MCP_TRANSPORT)"),
):
    """Start the MCP tool server."""
    from dreamontology.mcp_tools.server import create_mcp_server
    from dreamontology.repository import build_repository_factory

    settings = get_settings()
    transport = transport or settings.mcp_transport
    factory = build_repository_factory(settings)
    server = create_mcp_server(factory, settings)

    logger.info("starting_mcp_server", transport=transport)
    try:
        server.run(transport=transport)
    finally:
        factory.close()


@app.command()
def seed():
    """Load the built-in sample catalog into the configured backend."""
    from dreamontology.repository import build_repository_factory
    from dreamontology.repository.seed import seed_test_data

    factory = build_repository_factory(get_settings())
    try:
        created = seed_test_data(factory)
    finally:
        factory.close()
    print(f"Seeded {created} records ({factory.backend_name})")


@app.command("import-json")
def import_json(
    path: str = typer.Argument(..., help="JSON file holding an array of symbols"),
):
    """Import symbols from a JSON catalog file."""
    from pathlib import Path
    from dreamontology.repository import build_repository_factory
    from dreamontology.repository.seed import import_symbols_json

    if not Path(path).exists():
        logger.error("import_file_not_found", path=path)
        raise typer.Exit(code=1)

    factory = build_repository_factory(get_settings())
    try:
        report = import_symbols_json(path, factory.create_symbol_repository())
    finally:
        factory.close()

    print(f"Created: {report.created}  Skipped: {report.skipped}  Failed: {report.failed}")
    for error in report.errors[:10]:
        print(f"  {error}")


@app.command()
def version():
    """Show version."""
    from dreamontology import __version__
    print(f"Dream Ontology v{__version__}")


if __name__ == "__main__":
    app()
