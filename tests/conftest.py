"""Shared fixtures: an in-memory Graph gateway and a connection context."""
import copy
import itertools

import pytest

from m365_dsc_engine.engine import ConnectionContext, EventSink
from m365_dsc_engine.graph.client import GraphAPIError

LIMIT_TYPE = "#microsoft.graph.deviceEnrollmentLimitConfiguration"
ESP_TYPE = "#microsoft.graph.windows10EnrollmentCompletionPageConfiguration"
PLATFORM_TYPE = "#microsoft.graph.deviceEnrollmentPlatformRestrictionsConfiguration"
ENROLLMENT = "deviceManagement/deviceEnrollmentConfigurations"


class FakeGateway:
    """Stands in for GraphClient. Records every call; collections are plain lists."""

    def __init__(self):
        self.collections = {}
        self.calls = []
        self.read_error = None
        self.write_error = None
        self._ids = itertools.count(1)

    def seed(self, collection, **fields):
        obj = {"id": f"seed-{next(self._ids)}", **fields}
        self.collections.setdefault(collection, []).append(obj)
        return obj

    @property
    def mutations(self):
        return [c for c in self.calls if c[0] in ("create", "update", "delete")]

    def list(self, collection, filter=None, beta=False):
        self.calls.append(("list", collection, filter))
        if self.read_error:
            raise self.read_error
        return copy.deepcopy(self.collections.get(collection, []))

    def get_by_id(self, collection, object_id, beta=False):
        self.calls.append(("get_by_id", collection, object_id))
        if self.read_error:
            raise self.read_error
        for obj in self.collections.get(collection, []):
            if obj["id"] == object_id:
                return copy.deepcopy(obj)
        return None

    def create(self, collection, payload, beta=False):
        self.calls.append(("create", collection, payload))
        if self.write_error:
            raise self.write_error
        obj = {"id": f"new-{next(self._ids)}", **payload}
        self.collections.setdefault(collection, []).append(obj)
        return copy.deepcopy(obj)

    def update(self, collection, object_id, payload, beta=False):
        self.calls.append(("update", collection, object_id, payload))
        if self.write_error:
            raise self.write_error
        for obj in self.collections.get(collection, []):
            if obj["id"] == object_id:
                obj.update(payload)
                return
        raise GraphAPIError(404, "Not found", f"{collection}/{object_id}")

    def delete(self, collection, object_id, beta=False):
        self.calls.append(("delete", collection, object_id))
        if self.write_error:
            raise self.write_error
        items = self.collections.get(collection, [])
        self.collections[collection] = [o for o in items if o["id"] != object_id]


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def context(gateway):
    return ConnectionContext(
        graph=gateway,
        events=EventSink(),
        tenant_id="contoso.onmicrosoft.com",
        application_id="00000000-0000-0000-0000-000000000001",
        certificate_thumbprint="ABCDEF",
    )
