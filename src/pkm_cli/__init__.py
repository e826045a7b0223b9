"""pkm - package lifecycle manager with dependency-aware install and uninstall."""

__version__ = "0.1.0"
