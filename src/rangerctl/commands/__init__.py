import click

from ..config import RangerSettings
from ..ranger_client import RangerClient
from ..readiness import wait_for_api
from ..state import JsonMarkerStore, MarkerStore


def get_settings(ctx: click.Context) -> RangerSettings:
    return ctx.obj["settings"]


def get_client(ctx: click.Context) -> RangerClient:
    """Client shared by every command of one invocation"""
    if ctx.obj.get("client") is None:
        ctx.obj["client"] = RangerClient.from_settings(get_settings(ctx))
    return ctx.obj["client"]


def get_markers(ctx: click.Context) -> MarkerStore:
    if ctx.obj.get("markers") is None:
        ctx.obj["markers"] = JsonMarkerStore(get_settings(ctx).state_path)
    return ctx.obj["markers"]


def require_api(ctx: click.Context):
    """Block until Ranger Admin answers, or stop the command with exit code 1"""
    settings = get_settings(ctx)
    if not wait_for_api(get_client(ctx), settings.api_wait_attempts, settings.api_wait_interval):
        raise click.ClickException(
            f"Ranger Admin API at {settings.ranger_url} is not ready after "
            f"{settings.api_wait_attempts} attempts"
        )


def banner(title: str):
    click.echo("")
    click.echo("=" * 63)
    click.echo(f"  {title}")
    click.echo("=" * 63)
    click.echo("")
