"""Errors raised by dependency discovery, resolution, install and uninstall."""

from typing import Dict, Iterable, Optional


def _join(items: Iterable) -> str:
    return ", ".join(str(item) for item in items)


class PackageManagerError(Exception):
    """Base class for all package manager failures."""


class PackageNotFoundError(PackageManagerError):
    """A requested package (or version range) is not available or not installed."""

    def __init__(self, package_id: str, version_range=None):
        self.package_id = package_id
        self.version_range = version_range
        if version_range is None:
            message = f"The package '{package_id}' could not be found."
        else:
            message = f"The package '{package_id} {version_range}' could not be found."
        super().__init__(message)


class UnsatisfiableConstraintsError(PackageManagerError):
    """The resolver could not select one consistent version per package id."""

    def __init__(self, package_ids: Iterable[str], detail: Optional[str] = None):
        self.package_ids = sorted(set(package_ids), key=str.lower)
        message = f"Unable to resolve a consistent set of versions for '{_join(self.package_ids)}'."
        if detail:
            message = f"{message} {detail}"
        super().__init__(message)


class LicenseDeclinedError(PackageManagerError):
    """License acceptance was declined for one or more packages in the batch."""

    def __init__(self, target, packages: Iterable):
        self.target = target
        self.packages = list(packages)
        suffix = "s" if len(self.packages) == 1 else ""
        super().__init__(
            f"Unable to install package '{target}' because "
            f"'{_join(self.packages)}' require{suffix} license acceptance."
        )


class PackageInUseError(PackageManagerError):
    """An uninstall target is still depended on by packages outside the removal set."""

    def __init__(self, package, dependents: Iterable):
        self.package = package
        self.dependents = sorted(dependents)
        suffix = "s" if len(self.dependents) == 1 else ""
        super().__init__(
            f"Unable to uninstall '{package}' because "
            f"'{_join(self.dependents)}' depend{suffix} on it."
        )


class RepositoryError(PackageManagerError):
    """A package source could not be queried."""

    def __init__(self, source: str, reason: str):
        self.source = source
        self.reason = reason
        super().__init__(f"Package source '{source}' failed: {reason}")


class DownloadFailedError(PackageManagerError):
    def __init__(self, identity, reason: str):
        self.identity = identity
        self.reason = reason
        super().__init__(f"Failed to download package '{identity}': {reason}")


class ExtractionFailedError(PackageManagerError):
    def __init__(self, identity, reason: str):
        self.identity = identity
        self.reason = reason
        super().__init__(f"Failed to extract package '{identity}': {reason}")


class InstallFailedError(PackageManagerError):
    """One or more packages of an install batch failed to download or extract."""

    def __init__(self, target, failures: Dict):
        self.target = target
        self.failures = dict(failures)
        details = "; ".join(str(error) for error in self.failures.values())
        super().__init__(f"Installation of '{target}' did not complete: {details}")


class ResolutionInconsistentError(PackageManagerError):
    """The resolver returned a set that does not contain the install target."""

    def __init__(self, package_id: str):
        self.package_id = package_id
        super().__init__(f"The resolved package set does not contain the target package '{package_id}'.")


class DirectoryCleanupError(PackageManagerError):
    def __init__(self, path, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Unable to remove directory '{path}': {reason}")


class OperationCancelledError(PackageManagerError):
    """The caller cancelled the operation at a suspension point."""

    def __init__(self, operation: str = "Package operation"):
        self.operation = operation
        super().__init__(f"{operation} was cancelled.")


def raise_if_cancelled(cancel_event, operation: str = "Package operation") -> None:
    """Raise OperationCancelledError if ``cancel_event`` (a threading.Event) is set."""
    if cancel_event is not None and cancel_event.is_set():
        raise OperationCancelledError(operation)
