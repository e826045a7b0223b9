"""Console output and logging setup for the pkm CLI."""

import logging

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.theme import Theme

STATUS_SYMBOLS = {
    'success': '✨',
    'info': '💡',
    'warning': '⚠️',
    'error': '❌',
    'package': '📦',
    'tree': '🌳',
}

PKM_THEME = Theme({
    'info': 'cyan',
    'warning': 'yellow',
    'error': 'bold red',
    'success': 'bold green',
    'muted': 'dim white',
})

_console = None


def _get_console() -> Console:
    """Shared console; stderr is kept free for log records."""
    global _console
    if _console is None:
        _console = Console(theme=PKM_THEME, highlight=False)
    return _console


def _rich_echo(message: str, style: str = None, symbol: str = None):
    text = f"{STATUS_SYMBOLS[symbol]} {message}" if symbol in STATUS_SYMBOLS else message
    try:
        _get_console().print(text, style=style, markup=False)
    except UnicodeEncodeError:
        click.echo(message)


def _rich_success(message: str, symbol: str = 'success'):
    _rich_echo(message, style='success', symbol=symbol)


def _rich_info(message: str, symbol: str = 'info'):
    _rich_echo(message, style='info', symbol=symbol)


def _rich_warning(message: str, symbol: str = 'warning'):
    _rich_echo(message, style='warning', symbol=symbol)


def _rich_error(message: str, symbol: str = 'error'):
    _rich_echo(message, style='error', symbol=symbol)


def configure_logging(verbose: bool = False):
    """Route library log records through rich.

    Args:
        verbose: Show DEBUG records; otherwise only warnings and errors.
    """
    level = logging.DEBUG if verbose else logging.WARNING
    handler = RichHandler(
        console=Console(stderr=True, theme=PKM_THEME),
        show_path=verbose,
        rich_tracebacks=verbose,
    )
    logger = logging.getLogger('pkm_cli')
    logger.handlers = [handler]
    logger.setLevel(level)
    logger.propagate = False
