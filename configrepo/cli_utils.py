"""
Common CLI utilities and decorators for consistent command behavior.
"""

import sys
from functools import wraps

import click

from .api import ConfigStore, create
from .config import load_config, configure_logging
from .exit_codes import (
    SUCCESS, INTERRUPTED,
    get_exit_code_for_exception, CommandError
)
from .output import emit_error


def standard_command(func):
    """
    Decorator that provides standard CLI behavior:
    - Clean JSONL output on stdout (the command emits it)
    - Errors as a JSON object on stderr
    - Exit code taken from the error type
    """
    @wraps(func)
    def wrapper(*args, **kwargs):
        try:
            func(*args, **kwargs)
        except KeyboardInterrupt:
            emit_error("Interrupted by user", type="KeyboardInterrupt", exit_code=INTERRUPTED)
            sys.exit(INTERRUPTED)
        except click.ClickException:
            # Click exceptions already have their exit code
            raise
        except CommandError as e:
            emit_error(str(e), type=type(e).__name__, exit_code=e.exit_code)
            sys.exit(e.exit_code)
        except Exception as e:
            code = get_exit_code_for_exception(e)
            emit_error(f"Command failed: {e}", type=type(e).__name__, exit_code=code)
            sys.exit(code)
        sys.exit(SUCCESS)

    return wrapper


def pretty_option(func):
    """Add the --pretty flag."""
    return click.option(
        '--pretty', is_flag=True, default=False,
        help='Render a table instead of JSONL'
    )(func)


def get_store(ctx: click.Context) -> ConfigStore:
    """Build (once per invocation) the ConfigStore for the current command."""
    obj = ctx.ensure_object(dict)
    if 'store' not in obj:
        config = load_config(obj.get('config_path'))
        logging_config = config.get('logging', {})
        configure_logging(
            obj.get('log_level') or logging_config.get('level', 'INFO'),
            logging_config.get('format') or '%(levelname)s: %(message)s',
        )
        obj['store'] = create(config)
    return obj['store']


def parse_assignments(values, option: str = '--env') -> dict:
    """Parse repeated KEY=VALUE options into a dict."""
    result = {}
    for value in values:
        key, sep, val = value.partition('=')
        if not sep or not key:
            raise click.BadParameter(f"expected KEY=VALUE, got {value!r}", param_hint=option)
        result[key] = val
    return result

