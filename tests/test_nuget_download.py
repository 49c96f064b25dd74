"""Tests for NuGet package downloads."""

import itertools
import os
import threading
from types import SimpleNamespace

import pytest
import requests

from common.errors import DownloadFailed, DownloadVerificationFailed, ServiceNotFound
from common.http_client import RequestOptions
from constants import Constants
from registry.nuget.download import download_file, download_package, package_file_name, package_url
from registry.nuget.service_index import ServiceEndpoint, ServiceIndexDocument

from conftest import PACKAGE_BASE, SERVICE_INDEX_URL, make_response, service_index

PKG_URL = PACKAGE_BASE + "contoso.tool/2.3.1/contoso.tool.2.3.1.nupkg"


@pytest.fixture
def index():
    return ServiceIndexDocument.from_json(SERVICE_INDEX_URL, service_index())


class TestPackageUrl:
    """Test flat-container URL construction."""

    def test_lowercases_name_and_version(self):
        endpoint = ServiceEndpoint(PACKAGE_BASE, "PackageBaseAddress", "3.0.0")

        url = package_url(endpoint, "Contoso.Tool", "2.3.1-RC")

        assert url == PACKAGE_BASE + "contoso.tool/2.3.1-rc/contoso.tool.2.3.1-rc.nupkg"

    def test_adds_missing_trailing_slash(self):
        endpoint = ServiceEndpoint("https://feed.example/flat", "PackageBaseAddress", "3.0.0")

        assert package_url(endpoint, "a", "1.0.0") == "https://feed.example/flat/a/1.0.0/a.1.0.0.nupkg"

    def test_file_name_keeps_case(self):
        assert package_file_name("Contoso.Tool", "2.3.1") == "Contoso.Tool.2.3.1.nupkg"


class TestDownloadFile:
    """Test the retrying, redirect-following download."""

    def test_writes_body(self, tmp_path, fake_feed):
        fake_feed.add(PKG_URL, make_response(200, body=b"archive-bytes"))
        dest = str(tmp_path / "pkg.nupkg")

        download_file(PKG_URL, RequestOptions.for_token(), dest)

        with open(dest, "rb") as fh:
            assert fh.read() == b"archive-bytes"
        assert os.listdir(tmp_path) == ["pkg.nupkg"]

    def test_redirect_drops_credential(self, tmp_path, fake_feed):
        fake_feed.add(PKG_URL, make_response(303, headers={"Location": "https://example/actual.zip"}))
        fake_feed.add("https://example/actual.zip", make_response(200, body=b"zip"))
        dest = str(tmp_path / "pkg.nupkg")

        download_file(PKG_URL, RequestOptions.for_token("secret"), dest)

        assert fake_feed.urls() == [PKG_URL, "https://example/actual.zip"]
        assert fake_feed.calls[0][1]["auth"] == ("", "secret")
        assert fake_feed.calls[1][1]["auth"] is None
        assert fake_feed.calls[0][1]["allow_redirects"] is False

    def test_relative_location_is_resolved(self, tmp_path, fake_feed):
        fake_feed.add(PKG_URL, make_response(303, headers={"Location": "/blobs/abc"}))
        fake_feed.add("https://feed.example/blobs/abc", make_response(200, body=b"zip"))

        download_file(PKG_URL, RequestOptions.for_token(), str(tmp_path / "pkg.nupkg"))

        assert fake_feed.urls()[-1] == "https://feed.example/blobs/abc"

    def test_other_redirect_codes_are_failures(self, tmp_path, fake_feed, no_sleep):
        fake_feed.add(PKG_URL, make_response(302, headers={"Location": "https://example/actual.zip"}))

        with pytest.raises(DownloadFailed) as excinfo:
            download_file(PKG_URL, RequestOptions.for_token(), str(tmp_path / "pkg.nupkg"))

        assert excinfo.value.status_code == 302
        assert "https://example/actual.zip" not in fake_feed.urls()

    def test_redirect_loop_is_capped(self, tmp_path, fake_feed):
        fake_feed.add(PKG_URL, make_response(303, headers={"Location": PKG_URL}))

        with pytest.raises(DownloadFailed):
            download_file(PKG_URL, RequestOptions.for_token(), str(tmp_path / "pkg.nupkg"), retries=0)

        assert len(fake_feed.calls) == 6

    def test_retries_then_succeeds(self, tmp_path, fake_feed, no_sleep):
        fake_feed.add(PKG_URL, make_response(500), make_response(200, body=b"zip"))

        download_file(PKG_URL, RequestOptions.for_token(), str(tmp_path / "pkg.nupkg"))

        assert len(fake_feed.calls) == 2
        assert no_sleep == [1.0]

    def test_exhausted_retries_surface_last_error(self, tmp_path, fake_feed, no_sleep):
        fake_feed.add(
            PKG_URL,
            make_response(500),
            requests.ConnectionError("reset"),
            make_response(404),
        )

        with pytest.raises(DownloadFailed) as excinfo:
            download_file(PKG_URL, RequestOptions.for_token(), str(tmp_path / "pkg.nupkg"))

        err = excinfo.value
        assert len(fake_feed.calls) == 3
        assert len(err.errors) == 3
        assert err.status_code == 404
        assert err.__cause__ is err.errors[-1]
        assert no_sleep == [1.0, 1.0]

    def test_stream_error_is_download_failure(self, tmp_path, fake_feed, no_sleep):
        response = make_response(200)
        response.iter_content.side_effect = requests.exceptions.ChunkedEncodingError("broken")
        fake_feed.add(PKG_URL, response)
        dest = tmp_path / "pkg.nupkg"

        with pytest.raises(DownloadFailed):
            download_file(PKG_URL, RequestOptions.for_token(), str(dest), retries=0)

        assert not dest.exists()
        assert list(tmp_path.iterdir()) == []
        response.close.assert_called()

    def test_stream_deadline(self, tmp_path, fake_feed, monkeypatch):
        response = make_response(200)
        response.iter_content.return_value = [b"first", b"second", b"third"]
        fake_feed.add(PKG_URL, response)
        # Start and first chunk within the deadline, then past it
        ticks = itertools.chain([0.0, 1.0], itertools.repeat(Constants.DOWNLOAD_DEADLINE_SEC + 1.0))
        monkeypatch.setattr(
            "registry.nuget.download.time",
            SimpleNamespace(monotonic=lambda: next(ticks), sleep=lambda seconds: None),
        )

        with pytest.raises(DownloadFailed) as excinfo:
            download_file(PKG_URL, RequestOptions.for_token(), str(tmp_path / "pkg.nupkg"), retries=0)

        assert "deadline" in str(excinfo.value)
        assert list(tmp_path.iterdir()) == []

    def test_concurrent_threads_use_separate_temp_files(self, tmp_path, fake_feed):
        barrier = threading.Barrier(2, timeout=5)
        dest = str(tmp_path / "pkg.nupkg")
        errors = []

        def body(payload):
            yield payload[:4]
            barrier.wait()
            yield payload[4:]

        for n, payload in enumerate((b"aaaaaaaa", b"bbbbbbbb")):
            response = make_response(200)
            response.iter_content.return_value = body(payload)
            fake_feed.add(f"{PKG_URL}?mirror={n}", response)

        def worker(n):
            try:
                download_file(f"{PKG_URL}?mirror={n}", RequestOptions.for_token(), dest, retries=0)
            except DownloadFailed as exc:
                errors.append(exc)

        threads = [threading.Thread(target=worker, args=(n,)) for n in range(2)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert errors == []
        with open(dest, "rb") as fh:
            assert fh.read() in (b"aaaaaaaa", b"bbbbbbbb")
        assert os.listdir(tmp_path) == ["pkg.nupkg"]


class TestDownloadPackage:
    """Test downloads through the package base address service."""

    def test_downloads_into_output_dir(self, index, tmp_path, fake_feed):
        fake_feed.add(PKG_URL, make_response(200, body=b"zip"))

        path = download_package(index, RequestOptions.for_token(), "contoso.tool", "2.3.1", str(tmp_path))

        assert path == os.path.join(str(tmp_path), "contoso.tool.2.3.1.nupkg")
        assert os.path.isfile(path)

    def test_missing_file_after_download(self, index, tmp_path, monkeypatch):
        calls = []
        monkeypatch.setattr(
            "registry.nuget.download.download_file", lambda *args, **kwargs: calls.append(args)
        )

        with pytest.raises(DownloadVerificationFailed):
            download_package(index, RequestOptions.for_token(), "contoso.tool", "2.3.1", str(tmp_path))

        assert len(calls) == 1

    def test_missing_package_base_address(self, tmp_path, fake_feed):
        index = ServiceIndexDocument.from_json(SERVICE_INDEX_URL, service_index([
            {"@id": "https://feed.example/reg/", "@type": "RegistrationsBaseUrl/3.6.0"},
        ]))

        with pytest.raises(ServiceNotFound):
            download_package(index, RequestOptions.for_token(), "contoso.tool", "2.3.1", str(tmp_path))
