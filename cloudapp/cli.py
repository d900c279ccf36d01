"""
Command line entry point of cloudapp.

Loads the configuration, sets up logging and runs the HTTP server until the
process receives SIGINT or SIGTERM.
"""

import importlib.metadata
import sys
import threading
from typing import Optional

import click
import yaml
from click_default_group import DefaultGroup
from loguru import logger

from cloudapp.core.logger import setup_logging
from cloudapp.core.models.config import AppConfig
from cloudapp.core.settings import get_config
from cloudapp.routes import default_routers
from cloudapp.server.server import Server
from cloudapp.server.supervisor import install_signal_handlers, serve_until_stopped

__version__ = importlib.metadata.version("cloudapp")


@click.group(
    cls=DefaultGroup,
    default="webserver",
    default_if_no_args=True,
    invoke_without_command=True,
    context_settings={"help_option_names": ["-h", "--help"]},
    help="Main entry point for cloudapp service management CLI.",
)
@click.option(
    "--config",
    default=None,
    help="Path to configuration file. Defaults to $CLOUDAPP_CONFIG or './config.yaml'.",
)
@click.version_option(__version__, prog_name="cloudapp")
@click.pass_context
def cli(ctx: click.Context, config: Optional[str]) -> None:
    ctx.ensure_object(dict)

    if not ctx.obj.get("_initialized", False):
        try:
            cfg = get_config(config)
            ctx.obj["config"] = cfg

            setup_logging(cfg.logger)
            ctx.obj["_initialized"] = True
            logger.debug("CLI initialized successfully.")

        except Exception as e:
            logger.critical(f"Failed to initialize configuration or logging: {e}")
            sys.exit(1)

    # options alone, such as `cloudapp --config PATH`, still run the default command
    if ctx.invoked_subcommand is None:
        ctx.invoke(webserver)


@cli.command(name="webserver")
@click.option("--host", default=None, help="Host to bind (overrides config)")
@click.option("--port", type=int, default=None, help="Port to bind (overrides config)")
@click.pass_obj
def webserver(obj: dict, host: Optional[str], port: Optional[int]) -> None:
    """
    Start the HTTP server and stop it gracefully on SIGINT/SIGTERM.

    Usage:
    $ cloudapp webserver --port 8080
    """
    config: AppConfig = obj["config"]
    overrides = {"host": host, "port": port}
    server_config = config.server.model_copy(
        update={k: v for k, v in overrides.items() if v is not None}
    )

    try:
        server = Server(
            server_config.to_options(),
            routers=default_routers(),
            info=config.info,
        )
    except Exception as e:
        logger.opt(exception=e).critical(f"Webserver setup failed: {e}")
        sys.exit(1)

    stop_event = threading.Event()
    install_signal_handlers(stop_event)
    sys.exit(serve_until_stopped(server, stop_event))


@cli.command(name="config")
@click.pass_obj
def show_config(obj: dict) -> None:
    """Print the resolved configuration as YAML."""
    config: AppConfig = obj["config"]
    click.echo(yaml.safe_dump(config.model_dump(mode="json"), sort_keys=False))


def main() -> None:
    cli(prog_name="cloudapp")


if __name__ == "__main__":
    main()
