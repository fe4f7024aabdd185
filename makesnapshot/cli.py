"""makeSnapshot command line.

Creates a snapshot of a virtual machine on a vRA platform. Only one snapshot
per VM is allowed; the default is to overwrite the existing one. After the
snapshot request is sent its status is checked every 10 seconds.

Exit status is 0 when the snapshot is created (or a dry run completes) and 1
on any error.
"""

import logging
from typing import Optional

import typer
from pydantic import ValidationError

from makesnapshot import __version__
from makesnapshot.config import DEFAULT_CONFIG_FILE, RunOptions, load_config, write_sample_config
from makesnapshot.exceptions import VRAError
from makesnapshot.pipeline import make_snapshot

logger = logging.getLogger(__name__)

LOG_FORMAT = '%(asctime)s - %(levelname)s - %(message)s'

app = typer.Typer(add_completion=False, help=__doc__)


def configure_logging(trace=False):
    """Step messages are INFO and only shown with tracing; errors always are."""
    logging.basicConfig(level=logging.INFO if trace else logging.WARNING, format=LOG_FORMAT, force=True)


def _version_callback(value: bool):
    if value:
        typer.echo(f"makeSnapshot version {__version__}")
        raise typer.Exit()


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    machine_name: Optional[str] = typer.Option(
        None, '--machineName', '-m', help="Name of the virtual machine to snapshot, case sensitive and required."),
    config_file: Optional[str] = typer.Option(
        None, '--config', '-c', help=f"Config file (default {DEFAULT_CONFIG_FILE})."),
    domain: Optional[str] = typer.Option(
        None, '--domain', '-d', help="Login domain, overrides the domain value in the config file."),
    dry_run: bool = typer.Option(
        False, '--dry-run', '-r', help="Run the initialization and pre-snapshot calls only."),
    keep_existing: bool = typer.Option(
        False, '--keepExisting', '-k', help="Do not overwrite a possible existing snapshot."),
    ignore_case: bool = typer.Option(
        False, '--ignoreCase', '-i', help="Match the virtual machine name case-insensitively."),
    trace: bool = typer.Option(False, '--trace', '-t', help="Show tracing information."),
    max_wait: Optional[int] = typer.Option(
        None, '--max-wait', help="Give up polling the request status after this many seconds."),
    version: bool = typer.Option(
        False, '--version', callback=_version_callback, is_eager=True, help="Show the version and exit."),
):
    if ctx.invoked_subcommand is not None:
        return
    if not machine_name:
        raise typer.BadParameter("the virtual machine name is required", param_hint="'--machineName' / '-m'")

    configure_logging(trace)
    try:
        options = RunOptions(machine_name=machine_name, dry_run=dry_run, keep_existing=keep_existing,
                             ignore_case=ignore_case, trace=trace, max_wait=max_wait)
    except ValidationError as e:
        raise typer.BadParameter(str(e))

    try:
        config = load_config(config_file, domain=domain)
        make_snapshot(config, options)
    except VRAError as e:
        logger.error(f"Error: {e}")
        raise typer.Exit(code=1)


@app.command('generateConfig')
def generate_config(
    sample_config: str = typer.Option(DEFAULT_CONFIG_FILE, '--sampleConfig', '-s', help="Config file to create."),
):
    """Generate a sample configuration file for makeSnapshot."""
    configure_logging()
    try:
        path = write_sample_config(sample_config)
    except VRAError as e:
        logger.error(f"Error: {e}")
        raise typer.Exit(code=1)
    typer.echo(f'Created config file "{path}"')


def run():
    app(prog_name='makeSnapshot')
