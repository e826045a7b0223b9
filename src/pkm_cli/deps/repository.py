"""Package sources: where dependency information and package archives come from.

Repositories are queried in a fixed priority order by dependency discovery.
Each repository answers three questions for a package id: which versions
exist (with their dependencies for a framework), what metadata a version
carries, and what its archive bytes are.
"""

import io
import logging
import zipfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import BinaryIO, Dict, List, Optional, Tuple

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from ..models.identity import PackageIdentity
from ..models.package import (
    DEFAULT_FRAMEWORK,
    MANIFEST_FILE_NAME,
    DependencyInfo,
    PackageManifest,
    PackageMetadata,
)
from ..models.version_range import VersionRange
from .errors import DownloadFailedError, RepositoryError
from .path_resolver import PACKAGE_FILE_EXTENSION

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT = 30  # seconds
HTTP_RETRY_MAX = 3
HTTP_RETRY_BACKOFF = 0.3


class PackageRepository(ABC):
    """Capability interface for querying and downloading packages."""

    name: str = "repository"

    @abstractmethod
    def get_manifests(self, package_id: str) -> List[PackageManifest]:
        """Return the manifests of every available version of ``package_id``."""

    @abstractmethod
    def download(self, identity: PackageIdentity) -> BinaryIO:
        """Return a readable stream with the archive bytes of ``identity``.

        Raises:
            DownloadFailedError: If the archive cannot be fetched.
        """

    def resolve_packages(self, package_id: str, framework: str = DEFAULT_FRAMEWORK) -> List[DependencyInfo]:
        """Dependency information for every available version of ``package_id``."""
        return [m.to_dependency_info(framework, source=self) for m in self.get_manifests(package_id)]

    def resolve_package(
        self, identity: PackageIdentity, framework: str = DEFAULT_FRAMEWORK
    ) -> Optional[DependencyInfo]:
        for info in self.resolve_packages(identity.id, framework):
            if info.identity == identity:
                return info
        return None

    def resolve_dependency_info(
        self, package_id: str, version_range: VersionRange, framework: str = DEFAULT_FRAMEWORK
    ) -> Optional[DependencyInfo]:
        """Lowest version of ``package_id`` satisfying ``version_range``, if any."""
        best = None
        for info in self.resolve_packages(package_id, framework):
            if not version_range.satisfies(info.version):
                continue
            if best is None or info.version < best.version:
                best = info
        return best

    def get_metadata(self, identity: PackageIdentity) -> Optional[PackageMetadata]:
        for manifest in self.get_manifests(identity.id):
            if manifest.identity == identity:
                return manifest.to_metadata()
        return None

    @abstractmethod
    def list_packages(self) -> List[PackageIdentity]:
        """Every identity this repository offers, sorted."""

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.name!r})"


class FolderRepository(PackageRepository):
    """A directory tree of ``.pkm`` archives."""

    def __init__(self, path: Path, name: Optional[str] = None):
        self.path = Path(path)
        self.name = name or str(self.path)
        self._index: Optional[Dict[str, Dict[PackageIdentity, Tuple[Path, PackageManifest]]]] = None

    def refresh(self) -> None:
        """Forget cached manifests so the next query rescans the folder."""
        self._index = None

    def _build_index(self) -> Dict[str, Dict[PackageIdentity, Tuple[Path, PackageManifest]]]:
        index: Dict[str, Dict[PackageIdentity, Tuple[Path, PackageManifest]]] = {}
        if not self.path.is_dir():
            logger.debug("Package folder '%s' does not exist", self.path)
            return index
        for archive_path in sorted(self.path.rglob(f"*{PACKAGE_FILE_EXTENSION}")):
            try:
                with zipfile.ZipFile(archive_path) as archive:
                    manifest = PackageManifest.from_yaml(archive.read(MANIFEST_FILE_NAME).decode("utf-8"))
            except (zipfile.BadZipFile, KeyError, ValueError, OSError) as e:
                logger.warning("Skipping invalid package archive '%s': %s", archive_path, e)
                continue
            versions = index.setdefault(manifest.identity.id.lower(), {})
            versions.setdefault(manifest.identity, (archive_path, manifest))
        return index

    def _versions(self, package_id: str) -> Dict[PackageIdentity, Tuple[Path, PackageManifest]]:
        if self._index is None:
            self._index = self._build_index()
        return self._index.get(package_id.lower(), {})

    def get_manifests(self, package_id: str) -> List[PackageManifest]:
        return [manifest for _, manifest in self._versions(package_id).values()]

    def list_packages(self) -> List[PackageIdentity]:
        if self._index is None:
            self._index = self._build_index()
        return sorted(identity for versions in self._index.values() for identity in versions)

    def download(self, identity: PackageIdentity) -> BinaryIO:
        entry = self._versions(identity.id).get(identity)
        if entry is None:
            raise DownloadFailedError(identity, f"not found in '{self.name}'")
        try:
            return io.BytesIO(entry[0].read_bytes())
        except OSError as e:
            raise DownloadFailedError(identity, str(e))


class HttpRepository(PackageRepository):
    """A package feed served over HTTP.

    Feed layout:
        GET {base}/index.json                         -> {"packages": [id, ...]}
        GET {base}/{id}/index.json                    -> {"versions": [manifest, ...]}
        GET {base}/{id}/{version}/{id}.{version}.pkm  -> archive bytes

    Ids are lower-cased in URLs. Transient server errors are retried by the
    session adapter.
    """

    def __init__(self, base_url: str, name: Optional[str] = None, session: Optional[requests.Session] = None):
        self.base_url = base_url.rstrip("/")
        self.name = name or self.base_url
        self.session = session or self._create_session()
        self._cache: Dict[str, List[PackageManifest]] = {}

    @staticmethod
    def _create_session() -> requests.Session:
        session = requests.Session()
        retry = Retry(
            total=HTTP_RETRY_MAX,
            backoff_factor=HTTP_RETRY_BACKOFF,
            status_forcelist=(500, 502, 503, 504),
            allowed_methods=frozenset(["GET"]),
        )
        adapter = HTTPAdapter(max_retries=retry)
        session.mount("http://", adapter)
        session.mount("https://", adapter)
        session.headers.update({"Accept": "application/json"})
        return session

    def _index_url(self, package_id: str) -> str:
        return f"{self.base_url}/{package_id.lower()}/index.json"

    def _download_url(self, identity: PackageIdentity) -> str:
        package_id = identity.id.lower()
        return f"{self.base_url}/{package_id}/{identity.version}/{package_id}.{identity.version}{PACKAGE_FILE_EXTENSION}"

    def _get_json(self, url: str) -> Optional[dict]:
        """GET a JSON document; None when the feed answers 404."""
        logger.debug("GET %s", url)
        try:
            response = self.session.get(url, timeout=REQUEST_TIMEOUT)
        except requests.RequestException as e:
            raise RepositoryError(self.name, str(e))

        if response.status_code == 404:
            return None
        if response.status_code != 200:
            raise RepositoryError(self.name, f"HTTP {response.status_code} for {url}")
        try:
            data = response.json()
        except ValueError as e:
            raise RepositoryError(self.name, f"invalid JSON from {url}: {e}")
        return data if isinstance(data, dict) else {}

    def get_manifests(self, package_id: str) -> List[PackageManifest]:
        key = package_id.lower()
        if key in self._cache:
            return self._cache[key]

        data = self._get_json(self._index_url(package_id))
        manifests: List[PackageManifest] = []
        if data is not None:
            for entry in data.get("versions", []):
                try:
                    manifests.append(PackageManifest.from_dict(entry))
                except ValueError as e:
                    logger.warning("Skipping invalid entry for '%s' in '%s': %s", package_id, self.name, e)

        self._cache[key] = manifests
        return manifests

    def list_packages(self) -> List[PackageIdentity]:
        data = self._get_json(f"{self.base_url}/index.json")
        if data is None:
            return []
        identities = []
        for package_id in data.get("packages", []):
            identities.extend(m.identity for m in self.get_manifests(str(package_id)))
        return sorted(set(identities))

    def download(self, identity: PackageIdentity) -> BinaryIO:
        url = self._download_url(identity)
        logger.debug("GET %s", url)
        try:
            response = self.session.get(url, timeout=REQUEST_TIMEOUT, headers={"Accept": "application/octet-stream"})
        except requests.RequestException as e:
            raise DownloadFailedError(identity, str(e))
        if response.status_code != 200:
            raise DownloadFailedError(identity, f"HTTP {response.status_code} for {url}")
        return io.BytesIO(response.content)


class AggregateRepository(PackageRepository):
    """Several repositories presented as one, in priority order.

    The first repository that offers an identity owns it.
    """

    def __init__(self, repositories: List[PackageRepository], name: str = "all"):
        self.repositories = list(repositories)
        self.name = name

    def _owners(self, package_id: str) -> Dict[PackageIdentity, Tuple[PackageRepository, PackageManifest]]:
        owners: Dict[PackageIdentity, Tuple[PackageRepository, PackageManifest]] = {}
        for repository in self.repositories:
            for manifest in repository.get_manifests(package_id):
                owners.setdefault(manifest.identity, (repository, manifest))
        return owners

    def get_manifests(self, package_id: str) -> List[PackageManifest]:
        return [manifest for _, manifest in self._owners(package_id).values()]

    def resolve_packages(self, package_id: str, framework: str = DEFAULT_FRAMEWORK) -> List[DependencyInfo]:
        return [
            manifest.to_dependency_info(framework, source=repository)
            for repository, manifest in self._owners(package_id).values()
        ]

    def list_packages(self) -> List[PackageIdentity]:
        return sorted({identity for repository in self.repositories for identity in repository.list_packages()})

    def download(self, identity: PackageIdentity) -> BinaryIO:
        owner = self._owners(identity.id).get(identity)
        if owner is None:
            raise DownloadFailedError(identity, "not found in any package source")
        return owner[0].download(identity)


def create_repository(source: str) -> PackageRepository:
    """Create a repository for a configured source string (URL or folder path)."""
    source = source.strip()
    if source.startswith(("http://", "https://")):
        return HttpRepository(source)
    if source.startswith("file://"):
        source = source[len("file://"):]
    return FolderRepository(Path(source).expanduser())
