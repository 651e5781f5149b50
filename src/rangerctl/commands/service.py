import click

from . import banner, get_client, get_markers, get_settings, require_api
from ..exceptions import ConfigurationError
from ..services import bootstrap as run_bootstrap


@click.command("bootstrap")
@click.option("--force", is_flag=True, help="Run again even if bootstrap already completed.")
@click.option("--wait/--no-wait", default=True, show_default=True,
              help="Wait for the Ranger Admin API before starting.")
@click.pass_context
def bootstrap(ctx, force, wait):
    """Create the Doris service instance and the all-privileges policy, once."""
    settings = get_settings(ctx)
    banner("Bootstrapping Ranger for Doris")
    if wait:
        require_api(ctx)

    try:
        ran = run_bootstrap(get_client(ctx), settings, get_markers(ctx), force=force)
    except ConfigurationError as e:
        raise click.ClickException(str(e))

    if ran:
        click.echo(f"Bootstrap for service '{settings.service_name}' completed")
    else:
        click.echo(f"Bootstrap for service '{settings.service_name}' already done "
                   f"(marker in {settings.state_path}); use --force to run it again")
