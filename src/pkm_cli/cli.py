"""Command-line interface for pkm."""

import sys
from typing import Optional, Tuple

import click

from . import __version__
from .commands import config, deps
from .commands._helpers import create_package_manager
from .deps.errors import InstallFailedError, PackageManagerError
from .integration.executable_package import ExecutablePackagePlugin
from .models.identity import PackageIdentity
from .models.version_range import VersionRange
from .utils.console import _rich_error, _rich_info, _rich_success, _rich_warning, configure_logging


@click.group(help="pkm - install, update and uninstall packages with their dependencies")
@click.version_option(version=__version__, prog_name="pkm")
@click.option("--packages-path", type=click.Path(file_okay=False), default=None,
              help="Packages root (overrides configuration)")
@click.option("--verbose", "-v", is_flag=True, help="Show debug logging")
@click.pass_context
def cli(ctx, packages_path, verbose):
    """Main entry point for the pkm CLI."""
    configure_logging(verbose)
    ctx.ensure_object(dict)
    ctx.obj["packages_path"] = packages_path


def _parse_package_argument(package: str, version: Optional[str]) -> Tuple[str, VersionRange]:
    """Split ``Id``/``Id@1.0.0`` plus ``--version`` into an id and a range."""
    if "@" in package:
        identity = PackageIdentity.parse(package)
        if version:
            raise click.BadParameter("give the version either as Id@version or with --version, not both")
        return identity.id, VersionRange.exact(identity.version)
    return package, VersionRange.parse(version)


@cli.command(help="📦 Install a package and its dependencies")
@click.argument("package")
@click.option("--version", "version", default=None, help="Version or range, e.g. 1.2.0 or [1.0,2.0)")
@click.option("--ignore-dependencies", is_flag=True, help="Install only the package itself")
@click.option("--source", "-s", "sources", multiple=True, help="Package source to use (repeatable)")
@click.option("--accept-licenses", is_flag=True, help="Accept license agreements without prompting")
@click.option("--framework", default=None, help="Target framework for dependency groups")
@click.option("--to", "destination", type=click.Path(file_okay=False), default=None,
              help="Copy the package content into this folder instead of the packages root")
@click.pass_context
def install(ctx, package, version, ignore_dependencies, sources, accept_licenses, framework, destination):
    try:
        package_id, version_range = _parse_package_argument(package, version)
    except ValueError as e:
        _rich_error(f"Invalid version: {e}")
        sys.exit(1)

    plugin = ExecutablePackagePlugin(package_id, destination) if destination else None
    manager = create_package_manager(
        ctx, sources=sources, framework=framework, accept_licenses=accept_licenses,
        plugins=[plugin] if plugin else None,
    )
    try:
        installed = manager.install_package(package_id, version_range, ignore_dependencies=ignore_dependencies)
    except InstallFailedError as e:
        _rich_error(str(e))
        for identity, error in e.failures.items():
            _rich_warning(f"{identity}: {error}")
        sys.exit(1)
    except PackageManagerError as e:
        _rich_error(str(e))
        if not manager.repositories:
            _rich_info("No package sources configured. Run 'pkm config add-source <url-or-folder>' or pass --source")
        sys.exit(1)

    if plugin is not None and plugin.result is not None:
        _rich_success(f"Copied {installed.identity} to {plugin.result.destination}")
    else:
        _rich_success(f"Installed {installed.identity} to {installed.install_path}")


@cli.command(help="🗑️ Uninstall packages")
@click.argument("packages", nargs=-1, required=True)
@click.option("--remove-dependencies", is_flag=True, help="Also remove dependencies nothing else needs")
@click.option("--dry-run", is_flag=True, help="Show what would be removed without removing it")
@click.pass_context
def uninstall(ctx, packages, remove_dependencies, dry_run):
    manager = create_package_manager(ctx)
    try:
        if dry_run:
            plan = manager.plan_uninstall(list(packages), remove_dependencies)
            _rich_info(f"Would remove {len(plan)} package(s):")
            for identity in plan:
                click.echo(f"  - {identity}")
            return
        removed = manager.uninstall_package(list(packages), remove_dependencies)
    except PackageManagerError as e:
        _rich_error(str(e))
        sys.exit(1)

    for identity in sorted(removed):
        click.echo(f"  - {identity}")
    _rich_success(f"Removed {len(removed)} package(s)")


@cli.command(help="⬆️ Update a package to the highest available version")
@click.argument("package")
@click.option("--source", "-s", "sources", multiple=True, help="Package source to use (repeatable)")
@click.option("--accept-licenses", is_flag=True, help="Accept license agreements without prompting")
@click.pass_context
def update(ctx, package, sources, accept_licenses):
    manager = create_package_manager(ctx, sources=sources, accept_licenses=accept_licenses)
    try:
        installed = manager.update_package(package)
    except PackageManagerError as e:
        _rich_error(str(e))
        sys.exit(1)
    _rich_success(f"{installed.identity} is installed")


@cli.command(help="♻️ Reinstall packages recorded in the lock file")
@click.option("--source", "-s", "sources", multiple=True, help="Package source to use (repeatable)")
@click.option("--accept-licenses", is_flag=True, help="Accept license agreements without prompting")
@click.pass_context
def restore(ctx, sources, accept_licenses):
    manager = create_package_manager(ctx, sources=sources, accept_licenses=accept_licenses)
    try:
        restored = manager.restore_packages()
    except PackageManagerError as e:
        _rich_error(str(e))
        sys.exit(1)

    if not restored:
        _rich_info("Nothing to restore")
        return
    for installed in restored:
        click.echo(f"  - {installed.identity}")
    _rich_success(f"Restored {len(restored)} package(s)")


cli.add_command(deps)
cli.add_command(config)


def main():
    """Main entry point for the CLI."""
    try:
        cli(obj={})
    except Exception as e:
        _rich_error(f"Error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
