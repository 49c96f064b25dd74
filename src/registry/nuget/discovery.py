"""NuGet service discovery: select endpoints from the service index and call them resiliently.

Endpoints whose schema version the client was built against ("known") are
tried first, in index order. If all of them fail, endpoints with schema
versions the client has not seen ("unknown") are tried with the same call
logic, so a server can introduce a new schema version without breaking
clients as long as the new endpoint speaks a compatible protocol.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, TypeVar

from common.errors import RegistryError, ServiceNotFound
from common.http_client import RequestOptions
from common.logging_utils import extra_context, is_debug_enabled, safe_url

from .service_index import ServiceEndpoint, ServiceIndexDocument

logger = logging.getLogger(__name__)

T = TypeVar("T")

# call(endpoint, options, call_args) -> result
ServiceCall = Callable[[ServiceEndpoint, RequestOptions, Mapping[str, Any]], T]


@dataclass
class ServiceSet:
    """Endpoints of one service family, partitioned by schema-version familiarity."""

    name: str
    known: List[ServiceEndpoint] = field(default_factory=list)
    unknown: List[ServiceEndpoint] = field(default_factory=list)

    def __bool__(self) -> bool:
        return bool(self.known or self.unknown)


def find_services(
    index: ServiceIndexDocument,
    service_name: str,
    known_schema_versions: Iterable[str],
) -> ServiceSet:
    """Collect every endpoint named ``service_name`` from the index.

    Args:
        index: Parsed service index
        service_name: Service family, e.g. "RegistrationsBaseUrl"
        known_schema_versions: Schema versions this client understands

    Returns:
        ServiceSet with known and unknown endpoints in index order

    Raises:
        ServiceNotFound: if no endpoint of that family is listed
    """
    known_versions = set(known_schema_versions)
    services = ServiceSet(name=service_name)

    for endpoint in index.endpoints():
        if endpoint.name != service_name:
            continue
        if endpoint.schema_version in known_versions:
            services.known.append(endpoint)
        else:
            services.unknown.append(endpoint)

    if not services:
        raise ServiceNotFound(service_name)

    if is_debug_enabled(logger):
        logger.debug(
            "Discovered service endpoints",
            extra=extra_context(
                event="decision",
                component="discovery",
                action="find_services",
                target=service_name,
                known=len(services.known),
                unknown=len(services.unknown),
            ),
        )
    return services


def call_resilient(
    services: ServiceSet,
    options: RequestOptions,
    call_args: Mapping[str, Any],
    call: ServiceCall,
    overrides: Optional[Dict[str, ServiceCall]] = None,
) -> T:
    """Invoke ``call`` against each endpoint until one succeeds.

    Known endpoints are tried first, then unknown ones. Only RegistryError
    moves on to the next endpoint; any other exception propagates at once.
    When every endpoint fails, the first error seen is re-raised, so a
    failure of a known endpoint takes precedence over an unknown one.

    Args:
        services: Result of find_services
        options: Request options (authentication, timeout)
        call_args: Keyword-style arguments handed to every call unchanged
        call: Default call logic
        overrides: Alternate call logic keyed by schema version

    Returns:
        Whatever the first successful call returns
    """
    first_error: Optional[RegistryError] = None

    for partition, endpoints in (("known", services.known), ("unknown", services.unknown)):
        if partition == "unknown" and endpoints and first_error is not None:
            logger.debug("Attempting to call unknown service type versions...")
        for endpoint in endpoints:
            service_call = call
            if overrides and endpoint.schema_version in overrides:
                service_call = overrides[endpoint.schema_version]
            try:
                return service_call(endpoint, options, call_args)
            except RegistryError as exc:
                logger.debug(
                    "Failed to call service: %s",
                    exc,
                    extra=extra_context(
                        event="service_call",
                        component="discovery",
                        action="call_resilient",
                        outcome="failed",
                        target=safe_url(endpoint.id),
                        partition=partition,
                        schema_version=endpoint.schema_version,
                    ),
                )
                if first_error is None:
                    first_error = exc

    if first_error is None:
        # find_services never yields an empty set; guard direct callers
        raise ServiceNotFound(services.name)
    raise first_error
