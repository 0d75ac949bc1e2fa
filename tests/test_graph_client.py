"""Tests for the Graph client and the safety guardian."""
import json
import logging

import httpx
import pytest

from m365_dsc_engine.graph import client as client_module
from m365_dsc_engine.graph.client import (
    GraphAPIError,
    GraphAuthorizationError,
    GraphClient,
    GraphTransportError,
    odata_quote,
)
from m365_dsc_engine.safety.guardian import SafetyGuardian, SafetyViolation

BASE = "https://graph.microsoft.com/v1.0"


def make_client(handler, allow_writes=False):
    guardian = SafetyGuardian(allow_writes=allow_writes)
    return GraphClient("token", guardian, transport=httpx.MockTransport(handler))


class TestReads:
    """Listing, pagination and single-object reads."""

    def test_list_follows_next_link(self):
        seen = []

        def handler(request):
            seen.append(str(request.url))
            if "skiptoken" in str(request.url):
                return httpx.Response(200, json={"value": [{"id": "2"}]})
            return httpx.Response(200, json={
                "value": [{"id": "1"}],
                "@odata.nextLink": f"{BASE}/security/labels/categories?$skiptoken=abc",
            })

        with make_client(handler) as client:
            items = client.list("security/labels/categories")

        assert [i["id"] for i in items] == ["1", "2"]
        assert len(seen) == 2
        assert "$top" not in seen[1]
        assert "skiptoken=abc" in seen[1]

    def test_page_cap_warns_only_when_pages_remain(self, monkeypatch, caplog):
        monkeypatch.setattr(client_module, "MAX_PAGES_PER_ENDPOINT", 1)

        def last_page(request):
            return httpx.Response(200, json={"value": [{"id": "1"}]})

        with caplog.at_level(logging.WARNING, logger="m365_dsc_engine.graph"):
            with make_client(last_page) as client:
                assert len(client.list("security/labels/categories")) == 1
        assert "safety cap" not in caplog.text

        def more_pages(request):
            return httpx.Response(200, json={
                "value": [{"id": "1"}],
                "@odata.nextLink": f"{BASE}/security/labels/categories?$skiptoken=abc",
            })

        with caplog.at_level(logging.WARNING, logger="m365_dsc_engine.graph"):
            with make_client(more_pages) as client:
                assert len(client.list("security/labels/categories")) == 1
        assert "safety cap" in caplog.text

    def test_list_sends_filter(self):
        def handler(request):
            assert request.url.params["$filter"] == "displayName eq 'Demo'"
            assert request.headers["Authorization"] == "Bearer token"
            return httpx.Response(200, json={"value": []})

        with make_client(handler) as client:
            assert client.list("security/labels/categories", filter="displayName eq 'Demo'") == []

    def test_beta_endpoint(self):
        def handler(request):
            assert request.url.path.startswith("/beta/")
            return httpx.Response(200, json={"value": []})

        with make_client(handler) as client:
            client.list("deviceManagement/deviceEnrollmentConfigurations", beta=True)

    def test_get_by_id_404_returns_none(self):
        def handler(request):
            return httpx.Response(404, json={"error": {"message": "Not found"}})

        with make_client(handler) as client:
            assert client.get_by_id("security/labels/categories", "missing") is None

    def test_get_by_id_found(self):
        def handler(request):
            assert request.url.path == "/v1.0/security/labels/categories/abc"
            return httpx.Response(200, json={"id": "abc", "displayName": "HR"})

        with make_client(handler) as client:
            assert client.get_by_id("security/labels/categories", "abc")["displayName"] == "HR"


class TestErrors:
    """Failures map onto the GraphAPIError family and are never retried."""

    def test_forbidden_is_authorization_error(self):
        def handler(request):
            return httpx.Response(403, json={"error": {"message": "Insufficient privileges"}})

        with make_client(handler) as client:
            with pytest.raises(GraphAuthorizationError) as exc:
                client.list("deviceManagement/deviceEnrollmentConfigurations")
        assert exc.value.status_code == 403
        assert "Insufficient privileges" in str(exc.value)

    def test_throttling_not_retried(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(429, json={"error": {"message": "Too many requests"}})

        with make_client(handler) as client:
            with pytest.raises(GraphAPIError) as exc:
                client.list("security/labels/categories")
        assert exc.value.status_code == 429
        assert len(calls) == 1

    def test_transport_error_wrapped(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with make_client(handler) as client:
            with pytest.raises(GraphTransportError) as exc:
                client.list("security/labels/categories")
        assert exc.value.status_code == 0

    def test_non_json_error_body(self):
        def handler(request):
            return httpx.Response(502, text="Bad gateway")

        with make_client(handler) as client:
            with pytest.raises(GraphAPIError) as exc:
                client.list("security/labels/categories")
        assert exc.value.message == "Bad gateway"


class TestWrites:
    """Create, update and delete go through the guardian."""

    def test_create_posts_payload(self):
        def handler(request):
            assert request.method == "POST"
            body = json.loads(request.content)
            assert body == {"displayName": "HR"}
            return httpx.Response(201, json={"id": "new", **body})

        with make_client(handler, allow_writes=True) as client:
            created = client.create("security/labels/departments", {"displayName": "HR"})
        assert created["id"] == "new"
        assert client.guardian.mutations[0]["method"] == "POST"

    def test_update_and_delete(self):
        methods = []

        def handler(request):
            methods.append((request.method, request.url.path))
            return httpx.Response(204)

        with make_client(handler, allow_writes=True) as client:
            client.update("security/labels/departments", "abc", {"displayName": "HR"})
            client.delete("security/labels/departments", "abc")
        assert methods == [
            ("PATCH", "/v1.0/security/labels/departments/abc"),
            ("DELETE", "/v1.0/security/labels/departments/abc"),
        ]

    def test_read_only_client_refuses_writes(self):
        def handler(request):
            pytest.fail("request should never be sent")

        with make_client(handler) as client:
            with pytest.raises(SafetyViolation):
                client.create("security/labels/departments", {"displayName": "HR"})
        assert client.guardian.get_audit_record()["safety_guardian"]["status"] == "VIOLATIONS_DETECTED"


class TestSafetyGuardian:
    """Mode enforcement independent of the client."""

    def test_reads_always_allowed(self):
        guardian = SafetyGuardian()
        assert guardian.validate_request("GET", f"{BASE}/security/labels/categories")
        assert guardian.mutations == []

    def test_action_urls_blocked_even_when_writable(self):
        guardian = SafetyGuardian(allow_writes=True)
        with pytest.raises(SafetyViolation):
            guardian.validate_request("POST", f"{BASE}/deviceManagement/managedDevices/abc/wipe")

    def test_mutations_recorded(self):
        guardian = SafetyGuardian(allow_writes=True)
        guardian.validate_request("PATCH", f"{BASE}/x/1", {"limit": 5, "displayName": "Demo"})
        record = guardian.get_audit_record()["safety_guardian"]
        assert record["mode"] == "READ-WRITE"
        assert record["mutations"][0]["fields"] == ["displayName", "limit"]
        assert record["status"] == "CLEAN"


def test_odata_quote_doubles_single_quotes():
    assert odata_quote("O'Brien") == "'O''Brien'"
