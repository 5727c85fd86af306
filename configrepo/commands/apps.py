"""
App commands: list apps, show one app's configuration, check health.
"""

import click

from ..cli_utils import standard_command, pretty_option, get_store
from ..domain import AppsQuery
from ..output import emit


@click.command('apps')
@click.option('--name', default=None, help='Only list the app with this exact name')
@pretty_option
@click.pass_context
@standard_command
def apps_handler(ctx, name, pretty):
    """List applications stored under the base path."""
    store = get_store(ctx)
    emit(store.apps(AppsQuery(name=name)), pretty=pretty, columns=['name'])


@click.command('info')
@click.argument('name')
@pretty_option
@click.pass_context
@standard_command
def info_handler(ctx, name, pretty):
    """Show the current configuration of app NAME."""
    store = get_store(ctx)
    app = store.apps_find(AppsQuery(name=name))
    emit([app], pretty=pretty)


@click.command('health')
@click.pass_context
@standard_command
def health_handler(ctx):
    """Check that the configured repository and ref are reachable."""
    store = get_store(ctx)
    store.is_healthy()
    s = store.settings
    emit([{'healthy': True, 'repo': f"{s.owner}/{s.repo}", 'ref': s.ref}])
