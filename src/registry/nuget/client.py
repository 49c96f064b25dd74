"""NuGet registration client: resolve "latest" version requests to a concrete version."""
from __future__ import annotations

import logging
import urllib.parse
from dataclasses import dataclass
from typing import Any, Iterator, List, Mapping, Optional

from constants import Constants, ServiceTypes
from common import http_client
from common.errors import MalformedResponse, PackageNotFound
from common.http_client import RequestOptions
from common.logging_utils import extra_context, is_debug_enabled, Timer
from versioning.models import VersionRequest
from versioning.parser import is_prerelease

from .discovery import call_resilient, find_services
from .service_index import ServiceEndpoint, ServiceIndexDocument

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CatalogEntry:
    """A single version record of a registration document."""

    version: str
    listed: bool


@dataclass(frozen=True)
class RegistrationPage:
    """A group of catalog entries.

    ``entries`` is None when the server did not inline the page items; the
    page must then be fetched from ``url``.
    """

    url: Optional[str]
    entries: Optional[List[CatalogEntry]]


def _parse_entries(url: str, raw_items: Any) -> List[CatalogEntry]:
    if not isinstance(raw_items, list):
        raise MalformedResponse(url, "registration page 'items' is not a list")
    entries: List[CatalogEntry] = []
    for leaf in raw_items:
        if not isinstance(leaf, dict):
            raise MalformedResponse(url, "registration leaf is not an object")
        catalog_entry = leaf.get("catalogEntry")
        if not isinstance(catalog_entry, dict):
            raise MalformedResponse(url, "registration leaf has no 'catalogEntry' object")
        version = catalog_entry.get("version")
        if not isinstance(version, str) or not version:
            raise MalformedResponse(url, "catalog entry has no version string")
        # Anything but a literal true counts as delisted
        entries.append(CatalogEntry(version=version, listed=catalog_entry.get("listed") is True))
    return entries


def parse_registration_index(url: str, data: Any) -> List[RegistrationPage]:
    """Parse a registration index into its pages, keeping server order.

    Raises:
        MalformedResponse: on any deviation from the expected shape.
    """
    if not isinstance(data, dict):
        raise MalformedResponse(url, "registration index is not a JSON object")
    groups = data.get("items")
    if not isinstance(groups, list):
        raise MalformedResponse(url, "registration index has no 'items' list")

    pages: List[RegistrationPage] = []
    for group in groups:
        if not isinstance(group, dict):
            raise MalformedResponse(url, "registration page is not an object")
        page_url = group.get("@id") if isinstance(group.get("@id"), str) else None
        if "items" in group:
            pages.append(RegistrationPage(url=page_url, entries=_parse_entries(url, group["items"])))
        elif page_url:
            pages.append(RegistrationPage(url=page_url, entries=None))
        else:
            raise MalformedResponse(url, "registration page has neither 'items' nor '@id'")
    return pages


def registration_url(endpoint: ServiceEndpoint, package_name: str) -> str:
    """Build ``{base}/{name-lowercased}/index.json`` for a registration endpoint."""
    base = endpoint.id if endpoint.id.endswith("/") else f"{endpoint.id}/"
    encoded_id = urllib.parse.quote(package_name.lower(), safe="")
    return f"{base}{encoded_id}/index.json"


def _iter_entries(pages: List[RegistrationPage], options: RequestOptions) -> Iterator[CatalogEntry]:
    for page in pages:
        entries = page.entries
        if entries is None:
            data = http_client.get_json(page.url, options, context="registration_page")
            if not isinstance(data, dict):
                raise MalformedResponse(page.url, "registration page is not a JSON object")
            entries = _parse_entries(page.url, data.get("items"))
        yield from entries


def select_version(entries: Iterator[CatalogEntry], include_prerelease: bool) -> Optional[str]:
    """Return the first listed entry's version, skipping pre-releases unless asked for."""
    for entry in entries:
        if not entry.listed:
            continue
        if not include_prerelease and is_prerelease(entry.version):
            continue
        return entry.version
    return None


def _resolve_version(endpoint: ServiceEndpoint, options: RequestOptions, call_args: Mapping[str, Any]) -> str:
    """Resolve against a single registration endpoint."""
    package_name: str = call_args["package_name"]
    request: VersionRequest = call_args["version_request"]

    url = registration_url(endpoint, package_name)
    data = http_client.get_json(url, options, context="registration")
    pages = parse_registration_index(url, data)

    resolved = select_version(_iter_entries(pages, options), request.include_prerelease)
    if resolved is None:
        raise PackageNotFound(package_name, request.include_prerelease)
    return resolved


def resolve_version(
    index: ServiceIndexDocument,
    options: RequestOptions,
    package_name: str,
    request: VersionRequest,
) -> str:
    """Resolve ``request`` for ``package_name`` to a concrete version.

    Exact requests are returned unchanged without any network call.

    Raises:
        ServiceNotFound: if the index lists no registration service
        PackageNotFound: if no eligible version exists
        RegistryError: transport/shape errors once every endpoint failed
    """
    if not request.is_latest:
        return str(request.value)

    with Timer() as t:
        services = find_services(
            index,
            ServiceTypes.REGISTRATIONS.value,
            Constants.KNOWN_REGISTRATION_VERSIONS,
        )
        resolved = call_resilient(
            services,
            options,
            {"package_name": package_name, "version_request": request},
            _resolve_version,
        )

    if is_debug_enabled(logger):
        logger.debug(
            "Resolved package version",
            extra=extra_context(
                event="function_exit",
                component="client",
                action="resolve_version",
                outcome="success",
                package=package_name,
                version=resolved,
                duration_ms=t.duration_ms(),
            ),
        )
    return resolved
