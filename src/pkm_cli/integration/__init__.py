"""Plugins that integrate installed packages with the outside world."""

from .executable_package import ExecutablePackagePlugin, ExecutableInstallResult

__all__ = ['ExecutablePackagePlugin', 'ExecutableInstallResult']
