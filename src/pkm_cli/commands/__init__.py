"""Command groups for the pkm CLI."""

from .config import config
from .deps import deps

__all__ = ['config', 'deps']
