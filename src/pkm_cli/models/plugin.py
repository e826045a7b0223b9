"""Package manager plugin hooks."""

from pathlib import Path

from .identity import PackageIdentity


class PackageManagerPlugin:
    """Extension point invoked around package extraction and deletion.

    Subclasses override any of the four hooks; the defaults accept and do
    nothing. Hooks receive the package identity, a package reader (``None``
    once the package files are gone) and the install path.

    Returning False from ``on_package_installing`` vetoes extraction of that
    package. Returning False from ``on_package_uninstalling`` only skips the
    plugin's own work; the package is removed regardless.
    """

    def on_package_installing(self, identity: PackageIdentity, reader, install_path: Path) -> bool:
        return True

    def on_package_installed(self, identity: PackageIdentity, reader, install_path: Path) -> bool:
        return True

    def on_package_uninstalling(self, identity: PackageIdentity, reader, install_path: Path) -> bool:
        return True

    def on_package_uninstalled(self, identity: PackageIdentity, reader, install_path: Path) -> bool:
        return True
