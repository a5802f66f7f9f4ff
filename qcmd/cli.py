"""Command line interface for qcmd.

This module defines the ``q`` command using the ``click`` library::

    q find files larger than 100MB
    q "find files larger than 100MB"     # same query
    q -y restart the docker daemon       # skip confirmation
    q --config-path                      # print the config file path
    q config                             # set provider, model and API key

The words after ``q`` are joined into the query.  A query consisting of
the single word ``config`` runs the configuration prompt instead.

Exit status is 0 after a successful run or a declined confirmation,
the command's own status when it fails, and :data:`EXIT_INTERNAL_ERROR`
when qcmd itself could not do its job.
"""

from __future__ import annotations

import logging
import sys
from typing import Tuple

import click

from . import __version__
from .config import ConfigError, config_path, configure_interactive, get_provider_settings, load_config, resolve_credential
from .logging_utils import configure_logging
from .pipeline import Pipeline, PipelineError, Stage
from .providers import ProviderError, get_provider

logger = logging.getLogger(__name__)

# Distinct from any status the suggested command is likely to return.
EXIT_INTERNAL_ERROR = 125


def _fail(message: str, details: Tuple[str, ...] = ()) -> None:
    click.secho(message, fg="red", err=True)
    for line in details:
        click.echo(f"  {line}", err=True)
    sys.exit(EXIT_INTERNAL_ERROR)


def _run_configure() -> None:
    try:
        path = configure_interactive()
    except ConfigError as exc:
        _fail(str(exc))
    click.secho(f"Configuration saved to {path}", fg="green")


@click.command(context_settings={"help_option_names": ["-h", "--help"], "ignore_unknown_options": True})
@click.argument("query", nargs=-1, type=str)
@click.option("--config-path", "show_config_path", is_flag=True, help="Show the config file path and exit.")
@click.option("-y", "--yes", "auto_yes", is_flag=True, help="Skip confirmation and execute immediately (use with caution!).")
@click.option("-v", "--verbose", is_flag=True, help="Log diagnostics to stderr.")
@click.version_option(__version__, prog_name="q")
@click.pass_context
def cli(ctx: click.Context, query: Tuple[str, ...], show_config_path: bool, auto_yes: bool, verbose: bool) -> None:
    """AI-powered terminal command assistant.

    Describe what you want to do and q suggests a shell command, tells
    you how risky it is and runs it once you confirm.
    """
    configure_logging(verbose)

    if show_config_path:
        click.echo(str(config_path()))
        return

    if query == ("config",):
        _run_configure()
        return

    query_text = " ".join(query).strip()
    if not query_text:
        click.echo(ctx.get_help())
        return

    try:
        config = load_config()
    except ConfigError as exc:
        click.secho(f"Configuration error: {exc}", fg="red", err=True)
        _fail("To edit your config, run: q --config-path")

    settings = get_provider_settings(config)
    try:
        credential = resolve_credential(settings)
        provider = get_provider(settings, credential)
    except ProviderError as exc:
        click.secho(f"Configuration error: {exc}", fg="red", err=True)
        _fail("To edit your config, run: q --config-path")

    pipeline = Pipeline.from_config(config, provider)
    skip_confirmation = auto_yes or config.execution.auto_confirm

    click.secho("Thinking...", fg="cyan", err=True)
    try:
        result = pipeline.run(query_text, skip_confirmation=skip_confirmation)
    except PipelineError as exc:
        logger.debug("Failed at stage %s", exc.stage.value, exc_info=exc.cause)
        _fail(exc.message, tuple(exc.details))

    if result.declined:
        sys.exit(0)
    if result.exit_code != 0:
        click.secho(f"\nCommand failed with exit code: {result.exit_code}", fg="red", err=True)
    elif result.stage is Stage.DONE:
        click.secho("\nCommand completed successfully", fg="green", err=True)
    sys.exit(result.exit_code)


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
