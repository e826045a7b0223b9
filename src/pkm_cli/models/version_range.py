"""Version ranges in NuGet interval notation.

Supported forms:
    1.0            -> version >= 1.0.0
    [1.0]          -> exactly 1.0.0
    [1.0, 2.0)     -> 1.0.0 <= version < 2.0.0
    (1.0,)         -> version > 1.0.0
    (,2.0]         -> version <= 2.0.0
    1.*  / 1.2.*   -> floating ranges (min 1.0.0 / 1.2.0)
    *              -> any version
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union

import semantic_version

from .identity import parse_version


class FloatBehavior(Enum):
    """Which part of the version a floating range allows to move."""
    NONE = "none"
    PRERELEASE = "prerelease"
    PATCH = "patch"
    MINOR = "minor"
    MAJOR = "major"
    ABSOLUTE_LATEST = "absolute_latest"


@dataclass(frozen=True)
class VersionRange:
    """Constraint a dependency version must satisfy."""

    min_version: Optional[semantic_version.Version] = None
    max_version: Optional[semantic_version.Version] = None
    is_min_inclusive: bool = True
    is_max_inclusive: bool = False
    float_behavior: FloatBehavior = FloatBehavior.NONE

    def __post_init__(self):
        if self.min_version is not None and self.max_version is not None:
            if self.min_version > self.max_version:
                raise ValueError(f"Invalid version range: {self.min_version} > {self.max_version}")
            if self.min_version == self.max_version and not (self.is_min_inclusive and self.is_max_inclusive):
                raise ValueError(f"Invalid version range: empty interval at {self.min_version}")

    def satisfies(self, version: Union[str, semantic_version.Version]) -> bool:
        """Return True if ``version`` falls inside this range.

        Floating behavior only affects which version is preferred, never
        whether a version satisfies the range.
        """
        version = parse_version(version)
        if self.min_version is not None:
            if self.is_min_inclusive:
                if version < self.min_version:
                    return False
            elif version <= self.min_version:
                return False
        if self.max_version is not None:
            if self.is_max_inclusive:
                if version > self.max_version:
                    return False
            elif version >= self.max_version:
                return False
        return True

    def __contains__(self, version) -> bool:
        return self.satisfies(version)

    @property
    def is_exact(self) -> bool:
        return (
            self.min_version is not None
            and self.min_version == self.max_version
            and self.float_behavior == FloatBehavior.NONE
        )

    @property
    def is_unbounded(self) -> bool:
        """True when no version is excluded, as for a missing range."""
        return self.min_version is None and self.max_version is None

    @classmethod
    def exact(cls, version: Union[str, semantic_version.Version]) -> "VersionRange":
        """Range matching a single version, i.e. ``[version]``."""
        version = parse_version(version)
        return cls(version, version, True, True)

    @classmethod
    def at_least(cls, version: Union[str, semantic_version.Version]) -> "VersionRange":
        return cls(parse_version(version), None, True, False)

    @classmethod
    def parse(cls, text: Optional[str]) -> "VersionRange":
        """Parse NuGet range notation.

        Raises:
            ValueError: If the text is not a valid range.
        """
        if text is None:
            return ALL_VERSIONS
        s = str(text).strip()
        if s in ("", "*"):
            return cls(float_behavior=FloatBehavior.ABSOLUTE_LATEST if s == "*" else FloatBehavior.NONE)

        if s[0] in "[(":
            return cls._parse_interval(s)

        if s.endswith("*"):
            return cls._parse_floating(s)

        return cls.at_least(s)

    @classmethod
    def _parse_interval(cls, s: str) -> "VersionRange":
        if s[-1] not in "])":
            raise ValueError(f"Invalid version range: '{s}'")
        min_inclusive = s[0] == "["
        max_inclusive = s[-1] == "]"
        inner = s[1:-1].strip()

        if "," not in inner:
            if not (min_inclusive and max_inclusive) or not inner:
                raise ValueError(f"Invalid version range: '{s}'")
            return cls.exact(inner)

        left, right = (part.strip() for part in inner.split(",", 1))
        if "," in right:
            raise ValueError(f"Invalid version range: '{s}'")
        if not left and not right:
            return ALL_VERSIONS
        min_version = parse_version(left) if left else None
        max_version = parse_version(right) if right else None
        return cls(
            min_version,
            max_version,
            min_inclusive if min_version is not None else False,
            max_inclusive if max_version is not None else False,
        )

    @classmethod
    def _parse_floating(cls, s: str) -> "VersionRange":
        if s.endswith("-*"):
            return cls(parse_version(s[:-2]), None, True, False, FloatBehavior.PRERELEASE)
        head = s[:-1].rstrip(".")
        if not head.replace(".", "").isdigit():
            raise ValueError(f"Invalid floating version range: '{s}'")
        parts = head.split(".")
        if len(parts) == 1:
            behavior = FloatBehavior.MINOR
        elif len(parts) == 2:
            behavior = FloatBehavior.PATCH
        else:
            raise ValueError(f"Invalid floating version range: '{s}'")
        return cls(parse_version(head), None, True, False, behavior)

    def __str__(self) -> str:
        if self.min_version is None and self.max_version is None:
            return "*"
        if self.is_exact:
            return f"[{self.min_version}]"
        if self.float_behavior == FloatBehavior.MINOR:
            return f"{self.min_version.major}.*"
        if self.float_behavior == FloatBehavior.PATCH:
            return f"{self.min_version.major}.{self.min_version.minor}.*"
        if self.float_behavior == FloatBehavior.PRERELEASE:
            return f"{self.min_version}-*"
        left = "[" if self.is_min_inclusive else "("
        right = "]" if self.is_max_inclusive else ")"
        low = str(self.min_version) if self.min_version is not None else ""
        high = str(self.max_version) if self.max_version is not None else ""
        return f"{left}{low}, {high}{right}"


ALL_VERSIONS = VersionRange()
VersionRange.ALL = ALL_VERSIONS
