import click

from . import banner, get_client, require_api
from ..groups import LDAP_GROUPS, GroupProvisioner
from ..ranger_client import RangerError


@click.command("create-groups")
@click.option("--group", "groups", multiple=True,
              help="Group to ensure (repeatable). Defaults to the demo LDAP groups.")
@click.option("--wait/--no-wait", default=True, show_default=True,
              help="Wait for the Ranger Admin API before starting.")
@click.pass_context
def create_groups(ctx, groups, wait):
    """Create the LDAP groups in Ranger so group policies can reference them."""
    banner("Creating LDAP groups in Ranger")
    if wait:
        require_api(ctx)

    summary = GroupProvisioner(get_client(ctx)).ensure_groups(groups or LDAP_GROUPS)
    for name in summary.ensured:
        click.echo(f"  [ok] {name}")
    for name in summary.failed:
        click.echo(f"  [FAILED] {name}")

    if not summary.ok:
        raise click.ClickException(f"{len(summary.failed)} group(s) could not be created")
    click.echo(f"\nCreated/verified {len(summary.ensured)} groups")


@click.command("list-groups")
@click.option("--all", "include_public", is_flag=True, help="Include the built-in 'public' group.")
@click.pass_context
def list_groups(ctx, include_public):
    """List the groups known to Ranger."""
    try:
        names = GroupProvisioner(get_client(ctx)).list_group_names(include_public=include_public)
    except RangerError as e:
        raise click.ClickException(f"Could not list groups: {e}")

    if not names:
        click.echo("No groups found")
        return
    for name in sorted(names):
        click.echo(name)
