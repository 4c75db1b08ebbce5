"""
CLI Commands for the offer lifecycle sweeps.

These commands can be run manually or from cron when the in-process
scheduler is disabled:

# Every 15 minutes
*/15 * * * * cd /app && flask lifecycle activate
*/15 * * * * cd /app && flask lifecycle expire
*/15 * * * * cd /app && flask lifecycle extend
"""
import click
from flask.cli import with_appcontext

from ..services.lifecycle_service import lifecycle_service


@click.group('lifecycle')
def lifecycle_cli():
    """Offer lifecycle sweep commands."""
    pass


def _echo_errors(errors):
    if errors:
        click.echo(f"  Errors: {len(errors)}")
        for error in errors[:5]:
            click.echo(f"    - {error.get('offer_id', 'sweep')}: {error['error']}")


@lifecycle_cli.command('activate')
@with_appcontext
def activate():
    """Activate offers whose start date arrived since the last successful run."""
    result = lifecycle_service.run_activate_sweep()

    click.echo(f"Lookback: {result['lookback_minutes']} minutes")
    click.echo(f"  Processed: {result['processed']} offers")
    click.echo(f"  Activated: {result['activated']} offers")
    _echo_errors(result['errors'])


@lifecycle_cli.command('expire')
@with_appcontext
def expire():
    """Expire active offers past their end date."""
    result = lifecycle_service.run_expire_sweep()

    click.echo(f"  Processed: {result['processed']} offers")
    click.echo(f"  Expired: {result['expired']} offers")
    _echo_errors(result['errors'])


@lifecycle_cli.command('extend')
@with_appcontext
def extend():
    """Extend or warn on active offers ending within the hour."""
    result = lifecycle_service.run_extend_sweep()

    click.echo(f"  Processed: {result['processed']} offers")
    click.echo(f"  Extended: {result['extended']}")
    click.echo(f"  Shortfall warnings: {result['shortfall_warnings']}")
    click.echo(f"  Target met: {result['target_met']}")
    click.echo(f"  Skipped: {result['skipped']}")
    _echo_errors(result['errors'])


@lifecycle_cli.command('status')
@with_appcontext
def status():
    """Show each sweep's last successful run."""
    for name, state in lifecycle_service.get_status().items():
        last = state.get('last_successful_run_at') or 'never'
        click.echo(f"{name}: last success {last}")
        if state.get('last_error'):
            click.echo(f"  Last error: {state['last_error']}")


def init_app(app):
    """Register lifecycle commands with Flask app."""
    app.cli.add_command(lifecycle_cli)
