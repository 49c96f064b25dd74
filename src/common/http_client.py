"""Shared HTTP helpers used by the registry clients.

Encapsulates request options, timeout handling and error mapping so the
registry modules deal only in typed errors from ``common.errors``. This
module performs no retries; callers decide what is worth repeating.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import Any, Dict, Optional, Tuple

import requests

from constants import Constants
from common.errors import MalformedResponse, ServiceUnreachable, UnexpectedStatus
from common.logging_utils import extra_context, is_debug_enabled, safe_url, Timer

logger = logging.getLogger(__name__)

HEADERS_JSON = {"Accept": "application/json", "Content-Type": "application/json"}


@dataclass(frozen=True)
class RequestOptions:
    """Options applied to every request against one registry.

    ``auth`` is a requests basic-auth tuple; registries accepting a personal
    access token take it as the password with an empty user name.
    """

    headers: Dict[str, str] = field(default_factory=dict)
    auth: Optional[Tuple[str, str]] = None
    timeout: float = Constants.REQUEST_TIMEOUT

    @classmethod
    def for_token(cls, access_token: Optional[str] = None, timeout: Optional[float] = None) -> "RequestOptions":
        """Build options for an optional access token."""
        headers = dict(HEADERS_JSON)
        headers["User-Agent"] = Constants.USER_AGENT
        auth = None
        if access_token and access_token.strip():
            auth = ("", access_token.strip())
        return cls(
            headers=headers,
            auth=auth,
            timeout=Constants.REQUEST_TIMEOUT if timeout is None else timeout,
        )

    def without_auth(self) -> "RequestOptions":
        """Copy of these options with the credential removed."""
        return replace(self, auth=None)


def get_json(url: str, options: RequestOptions, *, context: str = "registry") -> Any:
    """GET ``url`` and return the decoded JSON body.

    Raises:
        ServiceUnreachable: on transport errors and timeouts.
        UnexpectedStatus: when the status code is not 200.
        MalformedResponse: when the body is not JSON.
    """
    safe_target = safe_url(url)
    with Timer() as t:
        if is_debug_enabled(logger):
            logger.debug(
                "HTTP request",
                extra=extra_context(
                    event="http_request",
                    component="http_client",
                    action="GET",
                    target=safe_target,
                    context=context,
                ),
            )
        try:
            res = requests.get(url, headers=options.headers, auth=options.auth, timeout=options.timeout)
        except requests.RequestException as exc:  # includes ConnectionError and Timeout
            logger.debug(
                "HTTP request exception",
                extra=extra_context(
                    event="http_exception",
                    component="http_client",
                    action="GET",
                    outcome=type(exc).__name__,
                    target=safe_target,
                ),
            )
            raise ServiceUnreachable(safe_target, exc) from exc

        if is_debug_enabled(logger):
            logger.debug(
                "HTTP response",
                extra=extra_context(
                    event="http_response",
                    component="http_client",
                    action="GET",
                    status_code=res.status_code,
                    duration_ms=t.duration_ms(),
                    target=safe_target,
                ),
            )

    if res.status_code != 200:
        raise UnexpectedStatus(safe_target, res.status_code)
    try:
        return res.json()
    except ValueError as exc:
        raise MalformedResponse(safe_target, "body is not valid JSON") from exc


def stream_get(url: str, options: RequestOptions, *, timeout: Optional[float] = None) -> requests.Response:
    """Open a streamed GET without following redirects.

    The caller owns the response and must close it.

    Raises:
        ServiceUnreachable: on transport errors and timeouts.
    """
    safe_target = safe_url(url)
    if is_debug_enabled(logger):
        logger.debug(
            "HTTP stream request",
            extra=extra_context(
                event="http_request",
                component="http_client",
                action="GET",
                target=safe_target,
                authenticated=options.auth is not None,
            ),
        )
    try:
        return requests.get(
            url,
            headers=options.headers,
            auth=options.auth,
            timeout=Constants.DOWNLOAD_TIMEOUT if timeout is None else timeout,
            stream=True,
            allow_redirects=False,
        )
    except requests.RequestException as exc:
        raise ServiceUnreachable(safe_target, exc) from exc
