"""Package manifests, dependency records and installed-package records."""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import yaml

from .identity import PackageIdentity
from .version_range import VersionRange

MANIFEST_FILE_NAME = "pkm.yml"
DEFAULT_FRAMEWORK = "any"


@dataclass(frozen=True)
class PackageDependency:
    """A declared dependency: package id plus the range its version must satisfy."""

    id: str
    version_range: VersionRange = field(default_factory=VersionRange)

    def matches(self, identity: PackageIdentity) -> bool:
        """Return True if ``identity`` has this id and a satisfying version."""
        return identity.matches_id(self.id) and self.version_range.satisfies(identity.version)

    def __str__(self) -> str:
        return f"{self.id} {self.version_range}"

    @classmethod
    def from_dict(cls, data: Any) -> "PackageDependency":
        """Build from ``{"id": ..., "version": ...}`` or a bare ``"Id range"`` string."""
        if isinstance(data, str):
            parts = data.strip().split(None, 1)
            return cls(parts[0], VersionRange.parse(parts[1] if len(parts) > 1 else None))
        if not isinstance(data, dict) or not data.get("id"):
            raise ValueError(f"Invalid dependency entry: {data!r}")
        return cls(str(data["id"]), VersionRange.parse(data.get("version")))

    def to_dict(self) -> Dict[str, str]:
        return {"id": self.id, "version": str(self.version_range)}


@dataclass(frozen=True)
class DependencyInfo:
    """Dependencies declared by one package identity for a target framework.

    ``source`` is the repository the record was resolved from; it does not
    take part in equality.
    """

    identity: PackageIdentity
    dependencies: Tuple[PackageDependency, ...] = ()
    source: Optional[Any] = field(default=None, compare=False, repr=False)

    @property
    def id(self) -> str:
        return self.identity.id

    @property
    def version(self):
        return self.identity.version


@dataclass
class PackageMetadata:
    """Descriptive metadata used for license gating and package info."""

    identity: PackageIdentity
    title: Optional[str] = None
    description: Optional[str] = None
    authors: List[str] = field(default_factory=list)
    license: Optional[str] = None
    license_url: Optional[str] = None
    require_license_acceptance: bool = False


@dataclass
class PackageManifest:
    """Contents of the ``pkm.yml`` file at the root of a package archive."""

    identity: PackageIdentity
    dependencies: List[PackageDependency] = field(default_factory=list)
    frameworks: Dict[str, List[PackageDependency]] = field(default_factory=dict)
    title: Optional[str] = None
    description: Optional[str] = None
    authors: List[str] = field(default_factory=list)
    license: Optional[str] = None
    license_url: Optional[str] = None
    require_license_acceptance: bool = False

    def get_dependencies(self, framework: str = DEFAULT_FRAMEWORK) -> Tuple[PackageDependency, ...]:
        """Return the dependency group that applies to ``framework``.

        The framework-specific group wins, then the ``any`` group, then the
        top-level ``dependencies`` list.
        """
        if framework in self.frameworks:
            return tuple(self.frameworks[framework])
        if DEFAULT_FRAMEWORK in self.frameworks:
            return tuple(self.frameworks[DEFAULT_FRAMEWORK])
        return tuple(self.dependencies)

    def to_dependency_info(self, framework: str = DEFAULT_FRAMEWORK, source: Any = None) -> DependencyInfo:
        return DependencyInfo(self.identity, self.get_dependencies(framework), source)

    def to_metadata(self) -> PackageMetadata:
        return PackageMetadata(
            identity=self.identity,
            title=self.title,
            description=self.description,
            authors=list(self.authors),
            license=self.license,
            license_url=self.license_url,
            require_license_acceptance=self.require_license_acceptance,
        )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PackageManifest":
        """Create a manifest from parsed YAML/JSON data.

        Raises:
            ValueError: If id or version is missing or malformed.
        """
        if not isinstance(data, dict):
            raise ValueError("Package manifest must be a mapping")
        missing = [f for f in ("id", "version") if not data.get(f)]
        if missing:
            raise ValueError(f"Package manifest missing required fields: {', '.join(missing)}")

        authors = data.get("authors") or []
        if isinstance(authors, str):
            authors = [a.strip() for a in authors.split(",") if a.strip()]

        frameworks = {
            str(name): [PackageDependency.from_dict(d) for d in (deps or [])]
            for name, deps in (data.get("frameworks") or {}).items()
        }
        return cls(
            identity=PackageIdentity(str(data["id"]), str(data["version"])),
            dependencies=[PackageDependency.from_dict(d) for d in (data.get("dependencies") or [])],
            frameworks=frameworks,
            title=data.get("title"),
            description=data.get("description"),
            authors=list(authors),
            license=data.get("license"),
            license_url=data.get("license_url"),
            require_license_acceptance=bool(data.get("require_license_acceptance", False)),
        )

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {
            "id": self.identity.id,
            "version": str(self.identity.version),
        }
        for key in ("title", "description", "license", "license_url"):
            value = getattr(self, key)
            if value:
                result[key] = value
        if self.authors:
            result["authors"] = list(self.authors)
        if self.require_license_acceptance:
            result["require_license_acceptance"] = True
        if self.dependencies:
            result["dependencies"] = [d.to_dict() for d in self.dependencies]
        if self.frameworks:
            result["frameworks"] = {
                name: [d.to_dict() for d in deps] for name, deps in self.frameworks.items()
            }
        return result

    @classmethod
    def from_yaml(cls, yaml_str: str) -> "PackageManifest":
        try:
            data = yaml.safe_load(yaml_str)
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid YAML in {MANIFEST_FILE_NAME}: {e}")
        return cls.from_dict(data)

    def to_yaml(self) -> str:
        return yaml.safe_dump(self.to_dict(), default_flow_style=False, sort_keys=False)

    @classmethod
    def read(cls, path: Path) -> "PackageManifest":
        return cls.from_yaml(Path(path).read_text(encoding="utf-8"))


@dataclass(frozen=True)
class InstalledPackage:
    """A package extracted under the packages root."""

    identity: PackageIdentity
    install_path: Path
    package_file_path: Path

    @property
    def manifest_path(self) -> Path:
        return self.install_path / MANIFEST_FILE_NAME
