#!/usr/bin/env python3

from pathlib import Path

import click

from configrepo.commands.apps import apps_handler, info_handler, health_handler
from configrepo.commands.releases import releases_handler, release_handler, rollback_handler


@click.group()
@click.version_option(package_name='configrepo')
@click.option('--config', 'config_path', type=click.Path(dir_okay=False), default=None,
              envvar='CONFIGREPO_CONFIG', help='Config file (default: ~/.configrepo/config.json)')
@click.option('--log-level', default=None,
              type=click.Choice(['DEBUG', 'INFO', 'WARNING', 'ERROR'], case_sensitive=False),
              help='Override the configured log level')
@click.pass_context
def cli(ctx, config_path, log_level):
    """configrepo - Versioned application configuration stored in a GitHub repository.

    Every release of an app is a commit merged into the configured branch;
    the commit history of the app's VERSION file is its release history.
    """
    ctx.ensure_object(dict)
    ctx.obj['config_path'] = Path(config_path).expanduser() if config_path else None
    ctx.obj['log_level'] = log_level


cli.add_command(apps_handler)
cli.add_command(info_handler)
cli.add_command(health_handler)
cli.add_command(releases_handler)
cli.add_command(release_handler)
cli.add_command(rollback_handler)


def main():
    cli()


if __name__ == "__main__":
    main()
