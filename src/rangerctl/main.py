import logging

import click

from .config import load_settings
from .exceptions import ConfigurationError
from .commands.groups import create_groups, list_groups
from .commands.policies import apply_policy, list_policies, setup_policies
from .commands.service import bootstrap
from .commands.wait import wait_for_api_command, wait_ready

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(level: str):
    logging.basicConfig(level=level, format=LOG_FORMAT)
    logging.getLogger().setLevel(level)
    # urllib3 logs every retry at WARNING; those are reported by the client already
    logging.getLogger("urllib3").setLevel(logging.ERROR)


# --- CLI Commands ---
@click.group()
@click.option("--ranger-url", help="Ranger Admin URL [env: RANGER_URL]")
@click.option("--ranger-user", help="Ranger admin user [env: RANGER_USER]")
@click.option("--ranger-pass", "ranger_password", help="Ranger admin password [env: RANGER_PASSWORD]")
@click.option("--service-name", help="Doris service name in Ranger [env: SERVICE_NAME]")
@click.option("--log-level", type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
              help="Log level [env: LOG_LEVEL]")
@click.option("--state-file", type=click.Path(dir_okay=False),
              help="File recording completed one-time steps [env: RANGERCTL_STATE_FILE]")
@click.pass_context
def cli(ctx, ranger_url, ranger_user, ranger_password, service_name, log_level, state_file):
    """A CLI tool for setting up Apache Ranger for the Doris demo stack."""
    try:
        settings = load_settings(
            ranger_url=ranger_url,
            ranger_user=ranger_user,
            ranger_password=ranger_password,
            service_name=service_name,
            log_level=log_level,
            state_file=state_file,
        )
    except ConfigurationError as e:
        raise click.ClickException(str(e))

    configure_logging(settings.log_level)
    ctx.ensure_object(dict)
    ctx.obj["settings"] = settings


@cli.command("show-config")
@click.pass_context
def show_config(ctx):
    """Print the effective settings, passwords masked."""
    for key, value in ctx.obj["settings"].describe().items():
        click.echo(f"{key}: {value}")


cli.add_command(setup_policies)
cli.add_command(apply_policy)
cli.add_command(list_policies)
cli.add_command(create_groups)
cli.add_command(list_groups)
cli.add_command(bootstrap)
cli.add_command(wait_for_api_command)
cli.add_command(wait_ready)


if __name__ == "__main__":
    cli()
