"""Idempotent package installation: cache probe, resolve, download, extract.

Safe to call repeatedly and from several processes sharing a versions root:
there is no lock file. A process that loses a race re-downloads, and
extraction overwrites the destination folder.
"""

from __future__ import annotations

import logging
import os
from typing import Optional, Union

from constants import Constants
from common.errors import ArchiveCorrupt, EntryPointNotFound, InstallFailed, RegistryError
from common.http_client import RequestOptions
from common.logging_utils import extra_context, is_debug_enabled, Timer
from registry.nuget.client import resolve_version
from registry.nuget.download import download_package
from registry.nuget.service_index import fetch_service_index
from versioning.models import InstallResult, PackageSpecifier, VersionRequest
from versioning.parser import classify

from .archive import extract_package
from .cache import CacheProbe, LatestVersionMemo

logger = logging.getLogger(__name__)

# Errors worth repeating the whole fetch/resolve/download/extract sequence for
RETRYABLE_ERRORS = (RegistryError, ArchiveCorrupt)


class PackageInstaller:
    """Installs packages from one registry into one versions root."""

    def __init__(
        self,
        versions_root: str,
        service_index_url: Optional[str] = None,
        access_token: Optional[str] = None,
        max_attempts: Optional[int] = None,
        memo: Optional[LatestVersionMemo] = None,
        request_timeout: Optional[float] = None,
    ):
        """Initialize the installer.

        Args:
            versions_root: Directory holding ``<name>.<version>/`` folders
            service_index_url: Registry service index (default Constants.SERVICE_INDEX_URL)
            access_token: Optional credential sent to the registry, never to redirect targets
            max_attempts: Whole-sequence attempt cap (default Constants.INSTALL_MAX_ATTEMPTS)
            memo: Latest-version memo (default: the process-wide one)
            request_timeout: Idle timeout for JSON calls (default Constants.REQUEST_TIMEOUT)
        """
        self.versions_root = versions_root
        self.service_index_url = service_index_url or Constants.SERVICE_INDEX_URL
        self.max_attempts = max(1, Constants.INSTALL_MAX_ATTEMPTS if max_attempts is None else max_attempts)
        self.cache = CacheProbe(versions_root, memo)
        self._options = RequestOptions.for_token(access_token, request_timeout)

    @property
    def memo(self) -> LatestVersionMemo:
        return self.cache.memo

    def install(self, spec: PackageSpecifier) -> InstallResult:
        """Install ``spec`` unless it is already present.

        Returns:
            A fully populated successful InstallResult

        Raises:
            InstallFailed: wrapping the last cause once every attempt failed
        """
        name = spec.name
        request = spec.version_request

        result = self.cache.probe(name, request)
        if result.in_cache:
            logger.info(
                "%s version %s already installed",
                name,
                result.resolved_version,
                extra=extra_context(event="install", component="orchestrator", outcome="cached", package=name),
            )
            self._verify_entry_point(spec, result)
            return result

        os.makedirs(self.versions_root, exist_ok=True)

        last_error: Optional[BaseException] = None
        for attempt in range(1, self.max_attempts + 1):
            try:
                with Timer() as t:
                    result = self._install_once(name, request)
                if is_debug_enabled(logger):
                    logger.debug(
                        "Install sequence finished",
                        extra=extra_context(
                            event="function_exit",
                            component="orchestrator",
                            action="install",
                            outcome="success",
                            attempt=attempt,
                            duration_ms=t.duration_ms(),
                            package=name,
                        ),
                    )
                break
            except RETRYABLE_ERRORS as exc:
                last_error = exc
                logger.warning(
                    "Install attempt %d of %d failed: %s",
                    attempt,
                    self.max_attempts,
                    exc,
                    extra=extra_context(
                        event="retry", component="orchestrator", outcome="failed", attempt=attempt, package=name
                    ),
                )
            except Exception as exc:  # pylint: disable=broad-exception-caught
                # DownloadVerificationFailed, OSError and the like are not worth another attempt
                raise InstallFailed(name, str(request), exc) from exc
        else:
            raise InstallFailed(name, str(request), last_error) from last_error

        self._verify_entry_point(spec, result)

        if request.is_latest:
            self.memo.remember(name, request.include_prerelease, str(result.resolved_version))

        if result.in_cache:
            logger.info("%s version %s already installed", name, result.resolved_version)
        else:
            logger.info("Installed %s version %s", name, result.resolved_version)
        return result

    def _verify_entry_point(self, spec: PackageSpecifier, result: InstallResult) -> None:
        """Raise InstallFailed when the requested tool file is not in the package folder."""
        if not spec.entry_point:
            return
        entry_path = os.path.join(str(result.package_folder), spec.entry_point)
        if not os.path.isfile(entry_path):
            cause = EntryPointNotFound(spec.name, str(result.resolved_version), entry_path)
            raise InstallFailed(spec.name, str(spec.version_request), cause) from cause

    def _install_once(self, name: str, request: VersionRequest) -> InstallResult:
        """One pass from the service index fetch through extraction."""
        index = fetch_service_index(self.service_index_url, self._options)

        resolved_version = resolve_version(index, self._options, name, request)

        # Another process may have installed it since the first probe
        result = self.cache.probe_version(name, resolved_version, str(request))
        if result.in_cache:
            return result

        logger.debug("Downloading package to: %s", self.versions_root)
        package_path = download_package(index, self._options, name, resolved_version, self.versions_root)

        logger.debug("Extracting package: %s", package_path)
        package_folder = extract_package(package_path)

        return InstallResult(
            success=True,
            in_cache=False,
            package_name=name,
            requested_version=str(request),
            resolved_version=resolved_version,
            package_folder=package_folder,
            package_path=package_path,
        )


def install(
    package_name: str,
    version: Union[str, VersionRequest, None],
    versions_root: str,
    access_token: Optional[str] = None,
    service_index_url: Optional[str] = None,
    entry_point: Optional[str] = None,
) -> InstallResult:
    """Install one package; ``version`` is an exact version, "Latest" or "LatestPreRelease".

    Raises:
        InstallFailed: if every attempt failed, or ``entry_point`` is missing afterwards
    """
    request = version if isinstance(version, VersionRequest) else classify(version)
    installer = PackageInstaller(
        versions_root,
        service_index_url=service_index_url,
        access_token=access_token,
    )
    return installer.install(PackageSpecifier(package_name, request, entry_point))
