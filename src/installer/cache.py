"""Local install cache: on-disk version folders plus a process-wide latest-version memo."""

from __future__ import annotations

import logging
import os
import threading
from typing import Dict, Optional, Tuple

from constants import Constants
from common.logging_utils import extra_context, is_debug_enabled
from versioning.models import InstallResult, VersionRequest

logger = logging.getLogger(__name__)


def package_file_path(package_name: str, version: str, versions_root: str) -> str:
    """Path of the archive: ``<root>/<name>.<version>.nupkg``."""
    return os.path.join(versions_root, f"{package_name}.{version}{Constants.PACKAGE_EXTENSION}")


def remove_extension(file_path: str) -> str:
    """Return ``file_path`` without its final extension."""
    return os.path.splitext(file_path)[0]


class LatestVersionMemo:
    """Last resolved concrete version per (package name, pre-release flag).

    A performance cache only: losing an entry costs one extra resolution.
    Entries are never invalidated within the process.
    """

    def __init__(self) -> None:
        self._versions: Dict[Tuple[str, bool], str] = {}
        self._lock = threading.Lock()

    def get(self, package_name: str, include_prerelease: bool) -> Optional[str]:
        with self._lock:
            return self._versions.get((package_name, include_prerelease))

    def remember(self, package_name: str, include_prerelease: bool, version: str) -> None:
        with self._lock:
            self._versions[(package_name, include_prerelease)] = version

    def clear(self) -> None:
        with self._lock:
            self._versions.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._versions)


# Empty at process start, shared by every installer that is not given its own memo
LATEST_VERSIONS = LatestVersionMemo()


class CacheProbe:
    """Answer "is this version already installed under the versions root?".

    The extracted folder is the sole source of truth; a leftover archive
    without its folder does not count as installed.
    """

    def __init__(self, versions_root: str, memo: Optional[LatestVersionMemo] = None):
        self.versions_root = versions_root
        self.memo = LATEST_VERSIONS if memo is None else memo

    def probe_version(self, package_name: str, version: str, requested_version: Optional[str] = None) -> InstallResult:
        """Check the disk for an exact, already resolved version."""
        package_path = package_file_path(package_name, version, self.versions_root)
        package_folder = remove_extension(package_path)
        result = InstallResult(
            success=False,
            in_cache=False,
            package_name=package_name,
            requested_version=requested_version or version,
        )
        if os.path.isdir(package_folder):
            result.success = True
            result.in_cache = True
            result.resolved_version = version
            result.package_folder = package_folder
            result.package_path = package_path
        if is_debug_enabled(logger):
            logger.debug(
                "Probed install cache",
                extra=extra_context(
                    event="cache_probe",
                    component="cache",
                    action="probe_version",
                    outcome="hit" if result.in_cache else "miss",
                    package=package_name,
                    version=version,
                ),
            )
        return result

    def probe(self, package_name: str, request: VersionRequest) -> InstallResult:
        """Check the cache without any network call.

        Exact requests are looked up directly. Latest requests are looked up
        only when the memo remembers a resolution from earlier in this process.
        """
        version = request.value
        if request.is_latest:
            version = self.memo.get(package_name, request.include_prerelease)
            if not version:
                return InstallResult(
                    success=False,
                    in_cache=False,
                    package_name=package_name,
                    requested_version=str(request),
                )
        return self.probe_version(package_name, str(version), str(request))
