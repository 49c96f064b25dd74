"""NuGet registry package.

This package provides the NuGet V3 protocol pieces used by the installer:
- service_index.py: fetch and parse the service index
- discovery.py: known/unknown endpoint partitioning and resilient calls
- client.py: registration lookups resolving "latest" version requests
- download.py: package base address downloads with redirect and retry handling
"""

# Public API re-exports
from .service_index import (  # noqa: F401
    ServiceEndpoint,
    ServiceIndexDocument,
    ServiceResource,
    fetch_service_index,
)
from .discovery import ServiceSet, call_resilient, find_services  # noqa: F401
from .client import resolve_version  # noqa: F401
from .download import download_file, download_package, package_file_name, package_url  # noqa: F401

__all__ = [
    # Service index
    "ServiceEndpoint",
    "ServiceIndexDocument",
    "ServiceResource",
    "fetch_service_index",
    # Discovery
    "ServiceSet",
    "call_resilient",
    "find_services",
    # Resolution/download
    "resolve_version",
    "download_file",
    "download_package",
    "package_file_name",
    "package_url",
]
