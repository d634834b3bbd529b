"""
Click CLI for connecting the task tracker to Google Calendar.

Commands:
    calendar-auth connect      Run the browser authorization flow
    calendar-auth status       Show the connected account and token expiry
    calendar-auth token        Print a valid access token (refreshing if needed)
    calendar-auth disconnect   Forget the stored credential
"""

import logging
from pathlib import Path
from typing import Optional

import click

from .config import GoogleOAuthConfig
from .coordinator import OAuthCoordinator
from .exceptions import (
    CalendarOAuthError,
    ConfigurationError,
    NotConnectedError,
    SecurityViolationError,
    TokenRefreshError,
)
from .models import utc_now

logger = logging.getLogger(__name__)

EXIT_FAILURE = 1
EXIT_CONFIG_ERROR = 2
EXIT_SECURITY_VIOLATION = 3


def print_error(message: str) -> None:
    """Print error message to stderr."""
    click.secho(f"Error: {message}", fg="red", err=True)


def print_success(message: str) -> None:
    """Print success message."""
    click.secho(message, fg="green")


def print_warning(message: str) -> None:
    """Print warning message."""
    click.secho(f"Warning: {message}", fg="yellow")


def format_time_remaining(seconds: float) -> str:
    """
    Format seconds into human-readable time remaining.

    Args:
        seconds: Number of seconds

    Returns:
        Formatted string (e.g., "2h 15m", "45m", "expired")
    """
    if seconds <= 0:
        return "expired"

    hours = int(seconds // 3600)
    minutes = int((seconds % 3600) // 60)

    if hours > 0:
        return f"{hours}h {minutes}m"
    elif minutes > 0:
        return f"{minutes}m"
    else:
        return f"{int(seconds)}s"


def get_coordinator(ctx: click.Context) -> OAuthCoordinator:
    """Build the coordinator lazily so config errors surface per command."""
    if "coordinator" not in ctx.obj:
        config_file: Optional[str] = ctx.obj.get("config_file")
        try:
            config = GoogleOAuthConfig.load(Path(config_file) if config_file else None)
        except ConfigurationError as e:
            print_error(str(e))
            ctx.exit(EXIT_CONFIG_ERROR)
        ctx.obj["coordinator"] = OAuthCoordinator(config)
    return ctx.obj["coordinator"]


@click.group()
@click.option(
    "--config-file",
    type=click.Path(exists=True, dir_okay=False),
    help="Path to YAML configuration file",
    envvar="CALENDAR_OAUTH_CONFIG",
)
@click.option("--verbose", "-v", is_flag=True, help="Verbose output")
@click.pass_context
def cli(ctx: click.Context, config_file: Optional[str], verbose: bool) -> None:
    """Connect the task tracker to Google Calendar."""
    ctx.ensure_object(dict)
    ctx.obj["config_file"] = config_file

    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s - %(levelname)s - %(message)s",
    )


@cli.command()
@click.option("--no-browser", is_flag=True, help="Print the URL instead of opening a browser")
@click.pass_context
def connect(ctx: click.Context, no_browser: bool) -> None:
    """Authorize calendar access in the browser."""
    coordinator = get_coordinator(ctx)
    if no_browser:
        coordinator.open_browser = lambda url: click.echo(
            f"\nPlease authorize the application by visiting:\n\n  {url}\n"
        )

    click.echo("Waiting for authorization in the browser...")
    try:
        record = coordinator.start_authorization()
    except SecurityViolationError as e:
        click.secho(
            "SECURITY WARNING: the authorization response did not match this request "
            "and was rejected. No access was granted.",
            fg="red",
            bold=True,
            err=True,
        )
        logger.debug(f"Security violation: {e}")
        ctx.exit(EXIT_SECURITY_VIOLATION)
    except CalendarOAuthError as e:
        print_error(f"Authorization failed: {e}")
        ctx.exit(EXIT_FAILURE)

    print_success(f"Connected to Google Calendar as {record.account_email}")


@cli.command()
@click.pass_context
def status(ctx: click.Context) -> None:
    """Show the calendar connection status."""
    coordinator = get_coordinator(ctx)
    record = coordinator.get_status()

    if record is None:
        click.echo("Not connected")
        click.echo("Run 'calendar-auth connect' to connect your calendar.")
        ctx.exit(EXIT_FAILURE)

    click.secho("Connected", fg="green", bold=True)
    click.echo(f"Account:     {record.account_email}")
    remaining = (record.token_expiry - utc_now()).total_seconds()
    click.echo(f"Expires in:  {format_time_remaining(remaining)}")
    click.echo(f"Expires at:  {record.token_expiry.isoformat()}")
    if not record.refresh_token:
        print_warning("no refresh token stored; reconnect when the access token expires")


@cli.command()
@click.pass_context
def token(ctx: click.Context) -> None:
    """Print a valid access token."""
    coordinator = get_coordinator(ctx)
    try:
        click.echo(coordinator.get_valid_access_token())
    except NotConnectedError as e:
        print_error(str(e))
        ctx.exit(EXIT_FAILURE)
    except TokenRefreshError as e:
        print_error(f"Calendar temporarily unavailable: {e}")
        ctx.exit(EXIT_FAILURE)
    except CalendarOAuthError as e:
        print_error(str(e))
        ctx.exit(EXIT_FAILURE)


@cli.command()
@click.pass_context
def disconnect(ctx: click.Context) -> None:
    """Forget the stored calendar credential."""
    coordinator = get_coordinator(ctx)
    try:
        coordinator.disconnect()
    except CalendarOAuthError as e:
        print_error(str(e))
        ctx.exit(EXIT_FAILURE)
    print_success("Calendar disconnected")


if __name__ == "__main__":
    cli()
