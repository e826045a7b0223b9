"""Package identity: a case-insensitive package id paired with a semantic version."""

import functools
import re
from dataclasses import dataclass
from typing import Tuple, Union

import semantic_version

_IDENTITY_SEPARATORS = re.compile(r"\s*@\s*|\s+")


def parse_version(value: Union[str, semantic_version.Version]) -> semantic_version.Version:
    """Parse a version string, accepting NuGet-style short forms.

    ``1.0`` normalizes to ``1.0.0`` and a fourth numeric component
    (``1.0.0.1``) is carried as build metadata.

    Raises:
        ValueError: If the string is not a recognizable version.
    """
    if isinstance(value, semantic_version.Version):
        return value
    text = str(value).strip()
    if not text:
        raise ValueError("Empty version string")
    return semantic_version.Version.coerce(text)


@functools.total_ordering
@dataclass(frozen=True, eq=False)
class PackageIdentity:
    """Unique (id, version) pair naming one package.

    Equality and hashing ignore the casing of ``id``, so identities can be
    used directly as dictionary keys and set members.
    """

    id: str
    version: semantic_version.Version

    def __post_init__(self):
        if not self.id or not self.id.strip():
            raise ValueError("Package id cannot be empty")
        object.__setattr__(self, "id", self.id.strip())
        object.__setattr__(self, "version", parse_version(self.version))

    @property
    def key(self) -> Tuple[str, semantic_version.Version]:
        return self.id.lower(), self.version

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, PackageIdentity):
            return NotImplemented
        return self.key == other.key

    def __lt__(self, other: "PackageIdentity") -> bool:
        if not isinstance(other, PackageIdentity):
            return NotImplemented
        return self.key < other.key

    def __hash__(self) -> int:
        return hash(self.key)

    def __str__(self) -> str:
        return f"{self.id} {self.version}"

    def matches_id(self, package_id: str) -> bool:
        """Return True if this identity names the given package id."""
        return self.id.lower() == package_id.strip().lower()

    @property
    def directory_name(self) -> str:
        """Folder name used for this package under the packages root."""
        return f"{self.id}.{self.version}"

    @classmethod
    def parse(cls, text: str) -> "PackageIdentity":
        """Parse ``"Id 1.0.0"`` or ``"Id@1.0.0"`` into an identity.

        Raises:
            ValueError: If no version part is present.
        """
        parts = _IDENTITY_SEPARATORS.split(text.strip(), maxsplit=1)
        if len(parts) != 2 or not parts[1]:
            raise ValueError(f"Invalid package identity: '{text}'")
        return cls(parts[0], parts[1])
