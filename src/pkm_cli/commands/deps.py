"""pkm commands for inspecting installed packages."""

import sys
from typing import Dict, Optional, Set

import click
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.tree import Tree

from ..deps.errors import PackageManagerError
from ..deps.lockfile import LockFile
from ..models.identity import PackageIdentity
from ..models.package import PackageManifest
from ..utils.console import _rich_error, _rich_info
from ._helpers import create_package_manager


@click.group(help="Inspect installed packages")
def deps():
    """pkm package inspection commands."""
    pass


@deps.command(name="list", help="📋 List installed packages")
@click.pass_context
def list_packages(ctx):
    """Show every installed package with its dependency counts and source."""
    try:
        manager = create_package_manager(ctx)
        graph = manager.get_dependency_graph()
        if not graph.installed:
            _rich_info("No packages installed yet")
            _rich_info("Run 'pkm install <id>' to install a package")
            return

        lockfile = LockFile.read(manager.lockfile_path) or LockFile()
        table = Table(title="📋 Installed Packages", show_header=True, header_style="bold cyan")
        table.add_column("Package", style="bold white")
        table.add_column("Version", style="yellow")
        table.add_column("Requested", justify="center")
        table.add_column("Dependencies", style="magenta", justify="center")
        table.add_column("Dependents", style="green", justify="center")
        table.add_column("Source", style="blue")

        for identity in sorted(graph.installed):
            locked = lockfile.get_package(identity)
            dependency_count = len(graph.get_dependencies(identity))
            dependent_count = len(graph.get_dependents(identity))
            table.add_row(
                identity.id,
                str(identity.version),
                "✓" if locked and locked.requested else "-",
                str(dependency_count) if dependency_count else "-",
                str(dependent_count) if dependent_count else "-",
                (locked.source if locked and locked.source else "-"),
            )

        Console().print(table)
    except PackageManagerError as e:
        _rich_error(f"Error listing packages: {e}")
        sys.exit(1)


@deps.command(help="🌳 Show dependency tree structure")
@click.pass_context
def tree(ctx):
    """Display installed packages as a tree rooted at packages nothing depends on."""
    try:
        manager = create_package_manager(ctx)
        graph = manager.get_dependency_graph()
        root_tree = Tree(f"[bold cyan]{manager.local_path}[/bold cyan]")
        if not graph.installed:
            root_tree.add("[dim]No packages installed[/dim]")
            Console().print(root_tree)
            return

        roots = sorted(p for p in graph.installed if not graph.get_dependents(p))
        if not roots:
            # Every package is part of a cycle
            roots = sorted(graph.installed)

        for root in roots:
            branch = root_tree.add(f"[green]{root}[/green]")
            pending = [(branch, root, {root})]
            while pending:
                parent_branch, package, ancestors = pending.pop()
                for dependency in sorted(graph.get_dependencies(package), reverse=True):
                    if dependency in ancestors:
                        parent_branch.add(f"[dim]{dependency} (cycle)[/dim]")
                        continue
                    child = parent_branch.add(f"[dim]{dependency}[/dim]")
                    pending.append((child, dependency, ancestors | {dependency}))

        Console().print(root_tree)
    except PackageManagerError as e:
        _rich_error(f"Error showing dependency tree: {e}")
        sys.exit(1)


@deps.command(help="ℹ️ Show detailed package information")
@click.argument("package", required=True)
@click.pass_context
def info(ctx, package: str):
    """Show manifest, dependencies and dependents of an installed package."""
    manager = create_package_manager(ctx)
    graph = manager.get_dependency_graph()

    matches = _find_installed(graph.installed, package)
    if not matches:
        _rich_error(f"Package '{package}' is not installed")
        if graph.installed:
            _rich_info("Installed packages:")
            for identity in sorted(graph.installed):
                click.echo(f"  - {identity}")
        sys.exit(1)

    console = Console()
    for identity in matches:
        installed = manager.path_resolver.get_installed_package(identity)
        try:
            manifest = PackageManifest.read(installed.manifest_path)
        except (OSError, ValueError) as e:
            _rich_error(f"Error reading package information: {e}")
            sys.exit(1)

        content_lines = [
            f"[bold]Id:[/bold] {identity.id}",
            f"[bold]Version:[/bold] {identity.version}",
            f"[bold]Title:[/bold] {manifest.title or '-'}",
            f"[bold]Description:[/bold] {manifest.description or '-'}",
            f"[bold]Authors:[/bold] {', '.join(manifest.authors) or '-'}",
            f"[bold]License:[/bold] {manifest.license or manifest.license_url or '-'}",
            f"[bold]Install Path:[/bold] {installed.install_path}",
            "",
            "[bold]Dependencies:[/bold]",
        ]
        for dependency in manifest.get_dependencies(manager.framework):
            content_lines.append(f"  • {dependency}")
        if not manifest.get_dependencies(manager.framework):
            content_lines.append("  • None")

        content_lines.append("")
        content_lines.append("[bold]Required by:[/bold]")
        dependents = sorted(graph.get_dependents(identity))
        for dependent in dependents:
            content_lines.append(f"  • {dependent}")
        if not dependents:
            content_lines.append("  • Nothing")

        console.print(Panel("\n".join(content_lines), title=f"ℹ️ Package Info: {identity}", border_style="cyan"))


@deps.command(help="🔎 List packages offered by the configured sources")
@click.option("--source", "-s", "sources", multiple=True, help="Package source to list (repeatable)")
@click.pass_context
def available(ctx, sources):
    """Show every identity offered by the package sources, newest first per id."""
    try:
        manager = create_package_manager(ctx, sources=sources)
        if not manager.repositories:
            _rich_info("No package sources configured")
            _rich_info("Run 'pkm config add-source <url-or-folder>' to add one")
            return

        versions: Dict[str, list] = {}
        names: Dict[str, str] = {}
        for repository in manager.repositories:
            for identity in repository.list_packages():
                key = identity.id.lower()
                names.setdefault(key, identity.id)
                if identity.version not in versions.setdefault(key, []):
                    versions[key].append(identity.version)

        if not versions:
            _rich_info("The package sources are empty")
            return

        table = Table(title="📦 Available Packages", show_header=True, header_style="bold cyan")
        table.add_column("Package", style="bold white")
        table.add_column("Versions", style="yellow")
        for key in sorted(versions):
            table.add_row(names[key], ", ".join(str(v) for v in sorted(versions[key], reverse=True)))
        Console().print(table)
    except PackageManagerError as e:
        _rich_error(f"Error listing available packages: {e}")
        sys.exit(1)


# Helper functions

def _find_installed(installed: Set[PackageIdentity], package: str) -> list:
    """Installed identities named by ``package`` (an id or ``Id@version``)."""
    try:
        identity: Optional[PackageIdentity] = PackageIdentity.parse(package)
    except ValueError:
        identity = None
    if identity is not None:
        return [identity] if identity in installed else []
    return sorted(p for p in installed if p.matches_id(package))
