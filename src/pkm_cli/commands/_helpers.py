"""Shared helpers for pkm commands."""

from pathlib import Path
from typing import List, Optional, Sequence

import click

from ..config import get_dependency_behavior, get_framework, get_packages_path, get_sources
from ..deps.package_manager import PackageManager
from ..deps.resolver import DependencyBehavior
from ..models.package import PackageMetadata
from ..utils.console import _rich_warning


def get_packages_root(ctx: click.Context) -> Path:
    """Packages root from ``--packages-path`` or configuration."""
    override = (ctx.obj or {}).get("packages_path")
    return Path(override or get_packages_path())


def confirm_licenses(packages: List[PackageMetadata]) -> bool:
    """Interactive license gate."""
    _rich_warning("The following packages require license acceptance:")
    for metadata in packages:
        terms = metadata.license_url or metadata.license or "see package"
        click.echo(f"  • {metadata.identity} ({terms})")
    return click.confirm("Do you accept the license terms?", default=False)


def create_package_manager(
    ctx: click.Context,
    sources: Optional[Sequence[str]] = None,
    framework: Optional[str] = None,
    accept_licenses: bool = False,
    plugins=None,
) -> PackageManager:
    """Build a PackageManager from configuration and command-line overrides."""
    return PackageManager(
        get_packages_root(ctx),
        sources=list(sources) if sources else get_sources(),
        framework=framework or get_framework(),
        dependency_behavior=DependencyBehavior.parse(get_dependency_behavior()),
        license_gate=(lambda packages: True) if accept_licenses else confirm_licenses,
        plugins=plugins,
    )
