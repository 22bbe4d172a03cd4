"""CLI main entry point"""

import logging

import click

from plugctl import __version__
from plugctl.core.config import get_config
from plugctl.core.extensions.lifecycle import ClientLifecycle


@click.group()
@click.version_option(version=__version__, prog_name="plugctl")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.pass_context
def cli(ctx, verbose):
    """plugctl - manage extensions for your command-line tools"""
    config = get_config(force_reload=True)

    logging.basicConfig(
        level=logging.DEBUG if verbose else getattr(logging, config.log_level),
        format='%(levelname)s: %(message)s'
    )

    # Extension clients started by any command are torn down when the CLI exits
    lifecycle = ClientLifecycle()
    lifecycle.install_exit_hook()
    ctx.call_on_close(lifecycle.cleanup_all)

    ctx.ensure_object(dict)
    ctx.obj["config"] = config
    ctx.obj["lifecycle"] = lifecycle


# Import subcommands
from plugctl.cli.extensions import extensions_group

cli.add_command(extensions_group)


if __name__ == "__main__":
    cli()
