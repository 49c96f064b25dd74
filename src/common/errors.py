"""Error taxonomy for package resolution and installation.

``RegistryError`` and its subclasses describe transport and service-shape
failures; they are the errors retried across service endpoints and across
whole install attempts. The remaining ``ToolFetchError`` subclasses are
raised outside that family and carry their own retry policy.
"""
from __future__ import annotations

from typing import List, Optional


class ToolFetchError(Exception):
    """Base class for all errors raised by the installer."""


class RegistryError(ToolFetchError):
    """A registry call failed in a way another endpoint or attempt may not."""


class ServiceUnreachable(RegistryError):
    """The transport failed before an HTTP status was received."""

    def __init__(self, url: str, cause: Optional[BaseException] = None):
        self.url = url
        self.cause = cause
        detail = f": {cause}" if cause is not None else ""
        super().__init__(f"Error calling url: {url}{detail}")


class UnexpectedStatus(RegistryError):
    """A JSON call answered with a status other than 200."""

    def __init__(self, url: str, status_code: int):
        self.url = url
        self.status_code = status_code
        super().__init__(f"Failed to call: {url}. Status code: {status_code}")


class MalformedResponse(RegistryError):
    """A response body did not match the expected JSON shape."""

    def __init__(self, url: str, detail: str):
        self.url = url
        self.detail = detail
        super().__init__(f"Malformed response from {url}: {detail}")


class ServiceNotFound(RegistryError):
    """The service index lists no endpoint of the requested family."""

    def __init__(self, service_name: str):
        self.service_name = service_name
        super().__init__(f"Could not find service: {service_name}")


class PackageNotFound(RegistryError):
    """No listed version satisfied the version request."""

    def __init__(self, package_name: str, include_prerelease: bool = False):
        self.package_name = package_name
        self.include_prerelease = include_prerelease
        kind = "pre-release or stable" if include_prerelease else "stable"
        super().__init__(f"Package not found: {package_name} (no listed {kind} version)")


class DownloadFailed(RegistryError):
    """An archive download ended without a usable 200 response."""

    def __init__(
        self,
        url: str,
        status_code: Optional[int] = None,
        detail: Optional[str] = None,
        errors: Optional[List[BaseException]] = None,
    ):
        self.url = url
        self.status_code = status_code
        self.errors = list(errors or [])
        if detail is None:
            detail = f"Status code: {status_code}" if status_code is not None else "download failed"
        self.detail = detail
        super().__init__(f"Failed to download file: {url}. {detail}")


class DownloadVerificationFailed(ToolFetchError):
    """The stream completed but the archive is not on disk."""

    def __init__(self, path: str):
        self.path = path
        super().__init__(f"The package could not be found after download: {path}")


class ArchiveCorrupt(ToolFetchError):
    """The downloaded archive cannot be extracted safely."""

    def __init__(self, path: str, detail: str):
        self.path = path
        self.detail = detail
        super().__init__(f"Cannot extract {path}: {detail}")


class EntryPointNotFound(ToolFetchError):
    """The package installed but the expected tool file is missing from it."""

    def __init__(self, package_name: str, version: str, path: str):
        self.package_name = package_name
        self.version = version
        self.path = path
        super().__init__(
            f"{package_name} version {version} was not found after installation. Expected location: {path}"
        )


class InstallFailed(ToolFetchError):
    """Every install attempt failed; wraps the last underlying cause."""

    def __init__(self, package_name: str, requested_version: str, cause: BaseException):
        self.package_name = package_name
        self.requested_version = requested_version
        self.cause = cause
        super().__init__(
            f"Failed to install {package_name} version {requested_version}: {cause}"
        )
