"""HTTP server command."""

import click


@click.command("serve")
@click.option("--host", default="127.0.0.1", help="Bind address")
@click.option("--port", default=8000, type=int, help="Port")
@click.option("--reload", is_flag=True, help="Reload on code changes")
def serve(host: str, port: int, reload: bool):
    """Run the generation API."""
    import uvicorn

    uvicorn.run("web.app:app", host=host, port=port, reload=reload, log_config=None)
