import logging

import click

from . import banner, get_client, get_settings, require_api
from ..catalog import build_policy, default_policies, find_overlaps, load_policy_file
from ..exceptions import ConfigurationError
from ..models import AccessType
from ..ranger_client import RangerError
from ..reconciler import PolicyReconciler
from ..services import resolve_service_id

logger = logging.getLogger(__name__)

ACCESS_CHOICES = [a.value for a in AccessType]


def _service_id(ctx) -> int:
    try:
        return resolve_service_id(get_client(ctx), get_settings(ctx).service_name)
    except ConfigurationError as e:
        raise click.ClickException(str(e))


def _reconciler(ctx, skip_existing: bool) -> PolicyReconciler:
    settings = get_settings(ctx)
    return PolicyReconciler(
        get_client(ctx),
        settings.service_name,
        skip_existing=skip_existing,
        conflict_retry_delay=settings.conflict_retry_delay,
    )


@click.command("setup-policies")
@click.option("--skip-existing", is_flag=True, help="Skip creating policies that already exist.")
@click.option("--include-overlapping", is_flag=True,
              help="Also apply demo policies whose scope matches another policy's.")
@click.option("--policies-file", type=click.Path(exists=True, dir_okay=False),
              help="YAML file with the desired policies instead of the built-in demo set.")
@click.option("--wait/--no-wait", default=True, show_default=True,
              help="Wait for the Ranger Admin API before starting.")
@click.option("--fail-on-error", is_flag=True, help="Exit with status 1 if any policy failed.")
@click.pass_context
def setup_policies(ctx, skip_existing, include_overlapping, policies_file, wait, fail_on_error):
    """Create or update the Doris access policies in Ranger.

    Unlike the legacy setup script, the default set leaves out
    group_admins_all_databases and user_admin_all_databases_full, which
    overlap root_all_privileges; pass --include-overlapping to apply them.
    """
    settings = get_settings(ctx)
    banner("Setting up Ranger Policies")
    click.echo(f"Ranger URL:   {settings.ranger_url}")
    click.echo(f"Ranger User:  {settings.ranger_user}")
    click.echo(f"Service Name: {settings.service_name}")

    if wait:
        require_api(ctx)
    service_id = _service_id(ctx)

    if policies_file:
        try:
            policies = load_policy_file(policies_file, settings.service_name, service_id)
        except ConfigurationError as e:
            raise click.ClickException(str(e))
    else:
        policies = default_policies(settings.service_name, service_id, include_overlapping=include_overlapping)

    for first, second in find_overlaps(policies):
        logger.warning(f"Policies '{first}' and '{second}' cover the same resources; "
                       f"the later one will replace the earlier one")

    summary = _reconciler(ctx, skip_existing).reconcile_all(service_id, policies)

    click.echo("")
    for result in summary.results:
        mark = "ok" if result.ok else "FAILED"
        suffix = f" ({result.message})" if result.message else ""
        click.echo(f"  [{mark}] {result.policy_name}: {result.outcome.value}{suffix}")
    click.echo("")
    click.echo(f"{summary.succeeded} policies reconciled, {summary.failed} failed")

    if summary.failed and fail_on_error:
        ctx.exit(1)


@click.command("apply-policy")
@click.option("--name", required=True, help="Policy name, unique within the service.")
@click.option("--user", "users", multiple=True, help="User to grant access to (repeatable).")
@click.option("--group", "groups", multiple=True, help="Group to grant access to (repeatable).")
@click.option("--role", "roles", multiple=True, help="Role to grant access to (repeatable).")
@click.option("--catalog", "catalogs", multiple=True, help="Catalog(s); defaults to '*'.")
@click.option("--database", "databases", multiple=True, help="Database(s); defaults to '*'.")
@click.option("--table", "tables", multiple=True, help="Table(s); defaults to '*'.")
@click.option("--column", "columns", multiple=True, help="Column(s); defaults to '*'.")
@click.option("--access", "accesses", multiple=True, required=True,
              type=click.Choice(ACCESS_CHOICES, case_sensitive=False), help="Access type (repeatable).")
@click.option("--description", default="", help="Policy description.")
@click.option("--delegate-admin", is_flag=True, help="Allow grantees to administer the policy.")
@click.option("--skip-existing", is_flag=True, help="Leave the policy alone if it already exists.")
@click.option("--wait/--no-wait", default=True, show_default=True,
              help="Wait for the Ranger Admin API before starting.")
@click.pass_context
def apply_policy(ctx, name, users, groups, roles, catalogs, databases, tables, columns,
                 accesses, description, delegate_admin, skip_existing, wait):
    """
    Create or update a single policy.

    Example: rangerctl apply-policy --name analyst1-test-table1-access --user analyst1
    --catalog internal --database test --table table1 --access SELECT --access SHOW
    """
    settings = get_settings(ctx)
    if wait:
        require_api(ctx)
    service_id = _service_id(ctx)

    try:
        policy = build_policy(
            name, settings.service_name, [a.upper() for a in accesses],
            users=users, groups=groups, roles=roles,
            catalog=list(catalogs) or "*", database=list(databases) or "*",
            table=list(tables) or "*", column=list(columns) or "*",
            description=description, delegate_admin=delegate_admin, service_id=service_id,
        )
    except ValueError as e:
        raise click.BadParameter(str(e))

    result = _reconciler(ctx, skip_existing).reconcile(service_id, policy.name, policy)
    if not result.ok:
        raise click.ClickException(f"Policy '{name}' was not applied: {result.message}")
    click.echo(f"Policy '{name}' {result.outcome.value} (ID: {result.policy_id})")


@click.command("list-policies")
@click.pass_context
def list_policies(ctx):
    """List the policies of the Doris service."""
    settings = get_settings(ctx)
    try:
        policies = get_client(ctx).list_service_policies(settings.service_name)
    except RangerError as e:
        raise click.ClickException(f"Could not list policies for '{settings.service_name}': {e}")

    if not policies:
        click.echo(f"No policies found for service '{settings.service_name}'")
        return
    click.echo(f"{'ID':>6}  {'VERSION':>7}  NAME")
    for policy in sorted(policies, key=lambda p: p.get("id") or 0):
        click.echo(f"{policy.get('id', ''):>6}  {policy.get('version', ''):>7}  {policy.get('name', '')}")
