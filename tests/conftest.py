"""Shared fixtures: a fake NuGet feed behind requests.get and in-memory archives."""

import io
import zipfile
from unittest.mock import MagicMock

import pytest

from constants import Constants
from installer.cache import LATEST_VERSIONS

SERVICE_INDEX_URL = "https://feed.example/v3/index.json"
REGISTRATION_BASE = "https://feed.example/v3/registration/"
PACKAGE_BASE = "https://feed.example/v3/flatcontainer/"

# A second member large enough to corrupt mid-stream after the first is written
TWO_MEMBER_FILES = {
    "tools/scanner": b"#!/bin/sh\necho scanning\n",
    "tools/rules/default.json": b'{"rules": [' + b'"no-secrets", ' * 200 + b'"no-eval"]}',
}


def make_response(status_code=200, json_data=None, body=b"", headers=None):
    """Build a requests.Response stand-in."""
    res = MagicMock()
    res.status_code = status_code
    res.headers = headers or {}
    if json_data is not None:
        res.json.return_value = json_data
    else:
        res.json.side_effect = ValueError("No JSON object could be decoded")
    res.iter_content.return_value = [body]
    return res


def make_nupkg(files=None, compression=zipfile.ZIP_STORED):
    """Return the bytes of a zip archive holding ``files`` (name -> bytes)."""
    if files is None:
        files = {
            "tools/scanner": b"#!/bin/sh\necho scanning\n",
            "tools/rules/default.json": b"{}",
            "contoso.tool.nuspec": b"<package/>",
        }
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w", compression=compression) as zf:
        for name, data in files.items():
            zf.writestr(name, data)
    return buf.getvalue()


def corrupt_member(archive, name):
    """Flip one byte in the middle of ``name``'s data, leaving the zip directory intact."""
    with zipfile.ZipFile(io.BytesIO(archive)) as zf:
        info = zf.getinfo(name)
    # Local header is 30 bytes plus name and extra field; writestr adds no extra
    data_start = info.header_offset + 30 + len(info.filename.encode("utf-8"))
    damaged = bytearray(archive)
    damaged[data_start + info.compress_size // 2] ^= 0xFF
    return bytes(damaged)


def service_index(resources=None):
    if resources is None:
        resources = [
            {"@id": REGISTRATION_BASE, "@type": "RegistrationsBaseUrl/3.6.0"},
            {"@id": PACKAGE_BASE, "@type": "PackageBaseAddress/3.0.0"},
            {"@id": "https://feed.example/v3/search", "@type": "SearchQueryService/3.5.0"},
        ]
    return {"version": "3.0.0", "resources": resources}


def registration(*entries):
    """Registration index with one inlined page of (version, listed) entries."""
    return {
        "items": [
            {"items": [{"catalogEntry": {"version": v, "listed": listed}} for v, listed in entries]}
        ]
    }


class FakeFeed:
    """Routes requests.get calls by URL and records them."""

    def __init__(self):
        self.routes = {}
        self.calls = []

    def add(self, url, *responses):
        self.routes[url] = list(responses)

    def __call__(self, url, **kwargs):
        self.calls.append((url, kwargs))
        queue = self.routes.get(url)
        if not queue:
            return make_response(404)
        outcome = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    def urls(self):
        return [url for url, _ in self.calls]


@pytest.fixture
def fake_feed(monkeypatch):
    """Patch requests.get as used by common.http_client with a FakeFeed."""
    feed = FakeFeed()
    monkeypatch.setattr("common.http_client.requests.get", feed)
    return feed


@pytest.fixture
def no_sleep(monkeypatch):
    """Skip the delay between download retries."""
    sleeps = []
    monkeypatch.setattr("registry.nuget.download.time.sleep", sleeps.append)
    return sleeps


@pytest.fixture(autouse=True)
def _isolate_process_state():
    """Reset the latest-version memo and any Constants a test overrides."""
    snapshot = {k: v for k, v in vars(Constants).items() if k.isupper()}
    LATEST_VERSIONS.clear()
    yield
    for key, value in snapshot.items():
        setattr(Constants, key, value)
    LATEST_VERSIONS.clear()
