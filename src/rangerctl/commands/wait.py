import click

from . import get_client, get_settings
from ..readiness import RANGER_ADMIN_PORT, RANGER_ADMIN_PROCESS, await_ready, wait_for_api


@click.command("wait-for-api")
@click.option("--attempts", type=click.IntRange(min=1), help="Number of probes (default from settings).")
@click.option("--interval", type=click.FloatRange(min=0), help="Seconds between probes (default from settings).")
@click.pass_context
def wait_for_api_command(ctx, attempts, interval):
    """Wait until the Ranger Admin REST API answers."""
    settings = get_settings(ctx)
    attempts = attempts or settings.api_wait_attempts
    interval = settings.api_wait_interval if interval is None else interval

    click.echo(f"Waiting for Ranger Admin API at {settings.ranger_url}...")
    if not wait_for_api(get_client(ctx), attempts, interval):
        raise click.ClickException(f"Ranger Admin API is not ready after {attempts} attempts")
    click.echo("Ranger Admin API is ready")


@click.command("wait-ready")
@click.option("--process-pattern", default=RANGER_ADMIN_PROCESS, show_default=True,
              help="Substring of the Ranger Admin process command line.")
@click.option("--host", default="localhost", show_default=True, help="Host to probe.")
@click.option("--port", default=RANGER_ADMIN_PORT, show_default=True, type=int, help="Port to probe.")
@click.option("--attempts", default=60, show_default=True, type=click.IntRange(min=1),
              help="Number of probes.")
@click.option("--interval", default=5.0, show_default=True, type=click.FloatRange(min=0),
              help="Seconds between probes.")
def wait_ready(process_pattern, host, port, attempts, interval):
    """Wait until the Ranger Admin process runs and its port accepts connections."""
    click.echo(f"Waiting for Ranger Admin process and port {host}:{port}...")
    if not await_ready(process_pattern=process_pattern, port=port, max_attempts=attempts,
                       interval=interval, host=host):
        raise click.ClickException(f"Ranger Admin is not ready after {attempts} attempts")
    click.echo("Ranger Admin is ready")
