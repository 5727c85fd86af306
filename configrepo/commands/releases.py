"""
Release commands: history, publish, rollback.
"""

import click
import yaml

from ..cli_utils import standard_command, pretty_option, get_store, parse_assignments
from ..domain import App, AppsQuery, Image, ReleasesQuery
from ..exit_codes import NotFoundError
from ..output import emit


def _load_or_new(store, name: str) -> App:
    """Current configuration of ``name``, or a fresh app at version 0."""
    try:
        return store.apps_find(AppsQuery(name=name))
    except NotFoundError:
        return App(name=name)


@click.command('releases')
@click.argument('name')
@click.option('--limit', type=click.IntRange(min=1), default=None,
              help='Only show the most recent N releases')
@pretty_option
@click.pass_context
@standard_command
def releases_handler(ctx, name, limit, pretty):
    """List releases of app NAME, most recent first."""
    store = get_store(ctx)
    releases = store.releases(ReleasesQuery(app=App(name=name), limit=limit))
    emit(releases, pretty=pretty,
         columns=['version', 'description', 'created_at', 'slug'])


@click.command('release')
@click.argument('name')
@click.option('-m', '--message', required=True, help='Release description')
@click.option('--env', 'env', multiple=True, metavar='KEY=VALUE',
              help='Set an environment variable (repeatable)')
@click.option('--unset', multiple=True, metavar='KEY',
              help='Remove an environment variable (repeatable)')
@click.option('--image', default=None, help='Container image reference')
@click.option('--formation', 'formation_file', type=click.File('r'), default=None,
              help='JSON or YAML file with the process formation')
@pretty_option
@click.pass_context
@standard_command
def release_handler(ctx, name, message, env, unset, image, formation_file, pretty):
    """Publish a new release of app NAME.

    The app is created on its first release.
    """
    store = get_store(ctx)
    updates = parse_assignments(env)

    if image is not None:
        try:
            parsed_image = Image.parse(image)
        except ValueError as e:
            raise click.BadParameter(str(e), param_hint='--image')

    formation = None
    if formation_file is not None:
        try:
            formation = yaml.safe_load(formation_file)
        except yaml.YAMLError as e:
            raise click.BadParameter(str(e), param_hint='--formation')
        if not isinstance(formation, dict):
            raise click.BadParameter("formation must be a mapping", param_hint='--formation')

    app = _load_or_new(store, name)

    if updates or unset:
        environment = dict(app.environment or {})
        environment.update(updates)
        for key in unset:
            environment.pop(key, None)
        app.environment = environment
    if image is not None:
        app.image = parsed_image
    if formation is not None:
        app.formation = formation

    release = store.releases_create(app, message)
    emit([release], pretty=pretty)


@click.command('rollback')
@click.argument('name')
@click.argument('version', type=click.IntRange(min=0))
@click.option('-m', '--message', default=None, help='Release description')
@pretty_option
@click.pass_context
@standard_command
def rollback_handler(ctx, name, version, message, pretty):
    """Publish a new release of NAME with the configuration of VERSION."""
    store = get_store(ctx)
    app = store.apps_find(AppsQuery(name=name))
    release = store.releases_rollback(app, version, message)
    emit([release], pretty=pretty)
