"""Tests for NuGet service discovery and resilient endpoint calls."""

import pytest

from common.errors import ServiceNotFound, ServiceUnreachable, UnexpectedStatus
from common.http_client import RequestOptions
from registry.nuget.discovery import ServiceSet, call_resilient, find_services
from registry.nuget.service_index import ServiceEndpoint, ServiceIndexDocument

from conftest import SERVICE_INDEX_URL, service_index

OPTIONS = RequestOptions.for_token()


def _index(*resources):
    return ServiceIndexDocument.from_json(SERVICE_INDEX_URL, service_index(list(resources)))


def _endpoint(endpoint_id, version="3.6.0"):
    return ServiceEndpoint(id=endpoint_id, name="RegistrationsBaseUrl", schema_version=version)


class TestFindServices:
    """Test partitioning of endpoints into known and unknown."""

    def test_partitions_by_known_versions(self):
        index = _index(
            {"@type": "RegistrationsBaseUrl/3.6.0", "@id": "A"},
            {"@type": "RegistrationsBaseUrl/9.9.9", "@id": "B"},
        )

        services = find_services(index, "RegistrationsBaseUrl", ["3.6.0"])

        assert [e.id for e in services.known] == ["A"]
        assert [e.id for e in services.unknown] == ["B"]

    def test_ignores_other_service_names(self):
        index = _index(
            {"@type": "RegistrationsBaseUrl/3.6.0", "@id": "A"},
            {"@type": "PackageBaseAddress/3.0.0", "@id": "P"},
        )

        services = find_services(index, "PackageBaseAddress", ["3.0.0"])

        assert [e.id for e in services.known] == ["P"]
        assert services.unknown == []

    def test_keeps_index_order(self):
        index = _index(
            {"@type": "RegistrationsBaseUrl/3.0.0-beta", "@id": "first"},
            {"@type": "RegistrationsBaseUrl/3.6.0", "@id": "second"},
        )

        services = find_services(index, "RegistrationsBaseUrl", ["3.6.0", "3.0.0-beta"])

        assert [e.id for e in services.known] == ["first", "second"]

    def test_missing_service_raises(self):
        index = _index({"@type": "SearchQueryService/3.5.0", "@id": "S"})

        with pytest.raises(ServiceNotFound) as excinfo:
            find_services(index, "RegistrationsBaseUrl", ["3.6.0"])

        assert excinfo.value.service_name == "RegistrationsBaseUrl"


class TestCallResilient:
    """Test known-first, unknown-fallback calling."""

    def test_returns_first_known_success(self):
        services = ServiceSet("RegistrationsBaseUrl", known=[_endpoint("A"), _endpoint("B")])
        called = []

        def call(endpoint, options, args):
            called.append(endpoint.id)
            return endpoint.id

        assert call_resilient(services, OPTIONS, {}, call) == "A"
        assert called == ["A"]

    def test_falls_back_to_unknown_when_known_fails(self):
        services = ServiceSet(
            "RegistrationsBaseUrl",
            known=[_endpoint("A")],
            unknown=[_endpoint("B", "9.9.9")],
        )

        def call(endpoint, options, args):
            if endpoint.id == "A":
                raise UnexpectedStatus(endpoint.id, 500)
            return "from-" + endpoint.id

        assert call_resilient(services, OPTIONS, {}, call) == "from-B"

    def test_unknown_only(self):
        services = ServiceSet("RegistrationsBaseUrl", unknown=[_endpoint("B", "4.0.0")])

        assert call_resilient(services, OPTIONS, {}, lambda e, o, a: e.id) == "B"

    def test_reraises_first_error_when_all_fail(self):
        services = ServiceSet(
            "RegistrationsBaseUrl",
            known=[_endpoint("A"), _endpoint("B")],
            unknown=[_endpoint("C", "9.9.9")],
        )
        attempts = []

        def call(endpoint, options, args):
            attempts.append(endpoint.id)
            raise UnexpectedStatus(endpoint.id, 500 + len(attempts))

        with pytest.raises(UnexpectedStatus) as excinfo:
            call_resilient(services, OPTIONS, {}, call)

        assert attempts == ["A", "B", "C"]
        assert excinfo.value.url == "A"

    def test_known_exhausted_with_empty_unknown(self):
        services = ServiceSet("RegistrationsBaseUrl", known=[_endpoint("A")])

        def call(endpoint, options, args):
            raise ServiceUnreachable(endpoint.id)

        with pytest.raises(ServiceUnreachable):
            call_resilient(services, OPTIONS, {}, call)

    def test_non_registry_errors_propagate_immediately(self):
        services = ServiceSet("RegistrationsBaseUrl", known=[_endpoint("A"), _endpoint("B")])
        attempts = []

        def call(endpoint, options, args):
            attempts.append(endpoint.id)
            raise KeyError("bug")

        with pytest.raises(KeyError):
            call_resilient(services, OPTIONS, {}, call)

        assert attempts == ["A"]

    def test_schema_version_override(self):
        services = ServiceSet(
            "RegistrationsBaseUrl",
            known=[_endpoint("A", "3.0.0-beta"), _endpoint("B", "3.6.0")],
        )

        def default_call(endpoint, options, args):
            raise UnexpectedStatus(endpoint.id, 404)

        def legacy_call(endpoint, options, args):
            return "legacy-" + args["package_name"]

        result = call_resilient(
            services, OPTIONS, {"package_name": "pkg"}, default_call, overrides={"3.0.0-beta": legacy_call}
        )

        assert result == "legacy-pkg"

    def test_options_and_args_passed_through(self):
        services = ServiceSet("RegistrationsBaseUrl", known=[_endpoint("A")])
        seen = {}

        def call(endpoint, options, args):
            seen["options"] = options
            seen["args"] = args
            return True

        call_resilient(services, OPTIONS, {"x": 1}, call)

        assert seen == {"options": OPTIONS, "args": {"x": 1}}
