"""NuGet package download: locate the package base address and stream the archive to disk."""
from __future__ import annotations

import logging
import os
import threading
import time
import urllib.parse
from typing import Any, List, Mapping, Optional

from constants import Constants, ServiceTypes
from common import http_client
from common.errors import DownloadFailed, DownloadVerificationFailed, RegistryError
from common.http_client import RequestOptions
from common.logging_utils import extra_context, is_debug_enabled, safe_url, Timer

from .discovery import call_resilient, find_services
from .service_index import ServiceEndpoint, ServiceIndexDocument

logger = logging.getLogger(__name__)

HTTP_SEE_OTHER = 303


def package_file_name(package_name: str, version: str) -> str:
    """File name of a downloaded archive: ``{name}.{version}.nupkg``."""
    return f"{package_name}.{version}{Constants.PACKAGE_EXTENSION}"


def package_url(endpoint: ServiceEndpoint, package_name: str, version: str) -> str:
    """Build the flat-container URL of a package archive.

    ``{base}/{name}/{version}/{name}.{version}.nupkg`` with name and version lowercased.
    """
    base = endpoint.id if endpoint.id.endswith("/") else f"{endpoint.id}/"
    name = urllib.parse.quote(package_name.lower(), safe="")
    ver = urllib.parse.quote(version.lower(), safe="")
    return f"{base}{name}/{ver}/{name}.{ver}{Constants.PACKAGE_EXTENSION}"


def _write_stream(response, url: str, destination_path: str) -> None:
    """Stream the response body into ``destination_path`` under a deadline."""
    deadline = time.monotonic() + Constants.DOWNLOAD_DEADLINE_SEC
    # Unique per process and thread
    tmp_path = f"{destination_path}.{os.getpid()}.{threading.get_ident()}.part"
    try:
        with open(tmp_path, "wb") as fh:
            for chunk in response.iter_content(chunk_size=Constants.DOWNLOAD_CHUNK_SIZE):
                if time.monotonic() > deadline:
                    raise DownloadFailed(
                        safe_url(url),
                        detail=f"stream exceeded {Constants.DOWNLOAD_DEADLINE_SEC}s deadline",
                    )
                if chunk:
                    fh.write(chunk)
        os.replace(tmp_path, destination_path)
    except OSError as exc:
        raise DownloadFailed(safe_url(url), detail=f"error writing {destination_path}: {exc}") from exc
    finally:
        if os.path.exists(tmp_path):
            os.remove(tmp_path)


def _download_once(url: str, options: RequestOptions, destination_path: str) -> None:
    """Perform one download attempt, following 303 redirects iteratively.

    The credential is dropped before the first redirect hop: redirect
    targets are pre-signed URLs and must not receive it.
    """
    current_url = url
    current_options = options

    for _ in range(Constants.MAX_REDIRECTS + 1):
        response = http_client.stream_get(current_url, current_options)
        try:
            if response.status_code == HTTP_SEE_OTHER:
                location = response.headers.get("Location")
                if not location:
                    raise DownloadFailed(safe_url(current_url), HTTP_SEE_OTHER, "redirect without Location header")
                next_url = urllib.parse.urljoin(current_url, location)
                logger.debug(
                    "Following redirect",
                    extra=extra_context(
                        event="http_redirect",
                        component="download",
                        action="GET",
                        status_code=HTTP_SEE_OTHER,
                        target=safe_url(next_url),
                    ),
                )
                current_url = next_url
                current_options = current_options.without_auth()
                continue

            if response.status_code != 200:
                raise DownloadFailed(safe_url(current_url), response.status_code)

            _write_stream(response, current_url, destination_path)
            return
        except RegistryError:
            raise
        except Exception as exc:  # pylint: disable=broad-exception-caught
            # requests raises its own errors mid-stream (ChunkedEncodingError, ReadTimeout)
            raise DownloadFailed(safe_url(current_url), detail=str(exc)) from exc
        finally:
            response.close()

    raise DownloadFailed(safe_url(url), detail=f"more than {Constants.MAX_REDIRECTS} redirects")


def download_file(
    url: str,
    options: RequestOptions,
    destination_path: str,
    retries: Optional[int] = None,
    retry_delay: Optional[float] = None,
) -> None:
    """Download ``url`` to ``destination_path`` with bounded retries.

    Args:
        url: Archive URL
        options: Request options; the credential is used for the first hop only
        destination_path: Final archive path
        retries: Additional attempts after the first (default Constants.DOWNLOAD_RETRIES)
        retry_delay: Seconds to sleep between attempts (default Constants.DOWNLOAD_RETRY_DELAY_SEC)

    Raises:
        DownloadFailed: after the last attempt, wrapping the last error seen
    """
    retries = Constants.DOWNLOAD_RETRIES if retries is None else retries
    retry_delay = Constants.DOWNLOAD_RETRY_DELAY_SEC if retry_delay is None else retry_delay
    attempts = retries + 1
    errors: List[RegistryError] = []

    for attempt in range(1, attempts + 1):
        try:
            with Timer() as t:
                _download_once(url, options, destination_path)
            if is_debug_enabled(logger):
                logger.debug(
                    "Download complete",
                    extra=extra_context(
                        event="function_exit",
                        component="download",
                        action="download_file",
                        outcome="success",
                        attempt=attempt,
                        duration_ms=t.duration_ms(),
                        target=safe_url(url),
                    ),
                )
            return
        except RegistryError as exc:
            errors.append(exc)
            logger.debug(
                "Error downloading url: %s",
                exc,
                extra=extra_context(
                    event="retry",
                    component="download",
                    action="download_file",
                    outcome="failed",
                    attempt=attempt,
                    target=safe_url(url),
                ),
            )
            if attempt < attempts:
                time.sleep(retry_delay)

    last = errors[-1]
    raise DownloadFailed(
        safe_url(url),
        getattr(last, "status_code", None),
        detail=f"giving up after {attempts} attempts: {last}",
        errors=errors,
    ) from last


def _download_package(endpoint: ServiceEndpoint, options: RequestOptions, call_args: Mapping[str, Any]) -> str:
    """Download from a single package base address endpoint."""
    package_name: str = call_args["package_name"]
    version: str = call_args["version"]
    output_dir: str = call_args["output_dir"]

    url = package_url(endpoint, package_name, version)
    destination_path = os.path.join(output_dir, package_file_name(package_name, version))

    download_file(url, options, destination_path)

    # A "successful" stream with no file is a filesystem problem, not a network one
    if not os.path.isfile(destination_path):
        raise DownloadVerificationFailed(destination_path)
    return destination_path


def download_package(
    index: ServiceIndexDocument,
    options: RequestOptions,
    package_name: str,
    version: str,
    output_dir: str,
) -> str:
    """Download ``package_name`` ``version`` into ``output_dir``.

    Returns:
        Path of the downloaded archive

    Raises:
        ServiceNotFound: if the index lists no package base address
        DownloadFailed: once every endpoint failed
        DownloadVerificationFailed: if the archive is missing after a successful stream
    """
    services = find_services(
        index,
        ServiceTypes.PACKAGE_BASE_ADDRESS.value,
        Constants.KNOWN_PACKAGE_BASE_VERSIONS,
    )
    return call_resilient(
        services,
        options,
        {"package_name": package_name, "version": version, "output_dir": output_dir},
        _download_package,
    )
