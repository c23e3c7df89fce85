import click


@click.group()
def main() -> None:
    """Contextcore - session memory and context engine for agent execution."""


@main.command()
@click.option("--host", default=None, help="Bind host (default: from CTX_HOST or 0.0.0.0).")
@click.option("--port", default=None, type=int, help="Bind port (default: from CTX_PORT or 8000).")
@click.option("--reload", is_flag=True, default=False, help="Enable auto-reload for development.")
def serve(host: str | None, port: int | None, reload: bool) -> None:
    """Start the context engine HTTP server."""
    import uvicorn

    from contextcore.engine.settings import ContextSettings

    settings = ContextSettings()

    uvicorn.run(
        "contextcore.engine.app:app",
        host=host or settings.host,
        port=port or settings.port,
        reload=reload,
        log_level="warning",  # uvicorn's own logging is intercepted by loguru
    )


@main.command()
def config() -> None:
    """Print the effective configuration as JSON."""
    from contextcore.engine.settings import ContextSettings

    click.echo(ContextSettings().model_dump_json(indent=2))


if __name__ == "__main__":
    main()
