# cli.py
import logging

import click

from scorm_api.config.settings import get_settings

# Configure logging
logger = logging.getLogger(__name__)


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


@click.group()
def cli():
    """CLI commands for the SCORM upload API"""
    pass


@cli.command()
def show_config():
    """Show current configuration"""
    settings = get_settings()

    click.echo("Current Configuration:")
    for key, value in settings.get_environment_dict().items():
        click.echo(f"  {key}: {value}")


@cli.command()
@click.option("--host", default=None, help="Interface to bind (defaults to HOST setting)")
@click.option("--port", default=None, type=int, help="Port to listen on (defaults to PORT setting)")
@click.option("--reload", is_flag=True, default=False, help="Reload on code changes")
def serve(host, port, reload):
    """Run the API with uvicorn"""
    import uvicorn

    settings = get_settings()
    configure_logging(settings.log_level)

    host = host or settings.host
    port = port or settings.port
    logger.info(f"Server is running on port {port} with {settings.storage_backend} storage")

    if reload:
        uvicorn.run("scorm_api.main:create_app", factory=True, host=host, port=port, reload=True)
    else:
        from scorm_api.main import create_app

        uvicorn.run(create_app(settings), host=host, port=port)


if __name__ == "__main__":
    cli()
