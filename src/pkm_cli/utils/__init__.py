"""Utility helpers for the pkm CLI."""

from .console import _rich_success, _rich_error, _rich_info, _rich_warning, configure_logging

__all__ = [
    '_rich_success',
    '_rich_error',
    '_rich_info',
    '_rich_warning',
    'configure_logging',
]
