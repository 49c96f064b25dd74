"""NuGet V3 service index: fetch the root discovery document and parse its resources."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Iterator, List, Optional

from common import http_client
from common.errors import MalformedResponse
from common.http_client import RequestOptions
from common.logging_utils import extra_context, is_debug_enabled, safe_url

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ServiceEndpoint:
    """One typed, versioned sub-service listed in the service index.

    ``name`` and ``schema_version`` are the two halves of ``@type``,
    e.g. ``RegistrationsBaseUrl/3.6.0``.
    """

    id: str
    name: str
    schema_version: str

    @property
    def type(self) -> str:
        return f"{self.name}/{self.schema_version}"


@dataclass(frozen=True)
class ServiceResource:
    """A raw ``resources`` entry as listed by the server."""

    id: Optional[str]
    type: Optional[str]

    def to_endpoint(self) -> Optional[ServiceEndpoint]:
        """Split ``@type`` into name and schema version.

        Returns None for entries that are not shaped ``<Name>/<Version>``;
        the index may list resource shapes this client does not use.
        """
        if not self.id or not self.type:
            return None
        parts = self.type.split("/")
        if len(parts) != 2:
            return None
        return ServiceEndpoint(id=self.id, name=parts[0], schema_version=parts[1])


@dataclass(frozen=True)
class ServiceIndexDocument:
    """Parsed service index. Fetched once per install call, never persisted."""

    url: str
    version: Optional[str]
    resources: List[ServiceResource]

    @classmethod
    def from_json(cls, url: str, data: Any) -> "ServiceIndexDocument":
        """Validate the decoded JSON and build the document.

        Raises:
            MalformedResponse: if the body is not an object with a ``resources`` list.
        """
        if not isinstance(data, dict):
            raise MalformedResponse(url, "service index is not a JSON object")
        raw_resources = data.get("resources")
        if not isinstance(raw_resources, list):
            raise MalformedResponse(url, "service index has no 'resources' list")

        resources: List[ServiceResource] = []
        for entry in raw_resources:
            if not isinstance(entry, dict):
                continue
            res_id = entry.get("@id")
            res_type = entry.get("@type")
            resources.append(
                ServiceResource(
                    id=res_id if isinstance(res_id, str) else None,
                    type=res_type if isinstance(res_type, str) else None,
                )
            )

        version = data.get("version")
        return cls(url=url, version=version if isinstance(version, str) else None, resources=resources)

    def endpoints(self) -> Iterator[ServiceEndpoint]:
        """Yield every well-formed endpoint in server order."""
        for resource in self.resources:
            endpoint = resource.to_endpoint()
            if endpoint is not None:
                yield endpoint


def fetch_service_index(service_index_url: str, options: RequestOptions) -> ServiceIndexDocument:
    """Fetch and parse the service index at ``service_index_url``.

    Performs exactly one GET; retrying is left to the caller.

    Raises:
        ServiceUnreachable, UnexpectedStatus, MalformedResponse
    """
    logger.debug(
        "Fetching service index",
        extra=extra_context(
            event="function_entry",
            component="service_index",
            action="fetch",
            target=safe_url(service_index_url),
        ),
    )
    data = http_client.get_json(service_index_url, options, context="service_index")
    document = ServiceIndexDocument.from_json(service_index_url, data)
    if is_debug_enabled(logger):
        logger.debug(
            "Service index parsed",
            extra=extra_context(
                event="function_exit",
                component="service_index",
                action="fetch",
                outcome="success",
                count=len(document.resources),
            ),
        )
    return document
