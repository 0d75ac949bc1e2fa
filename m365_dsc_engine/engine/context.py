"""Explicit per-call connection context for every engine operation."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Protocol

from .events import EventSink


class RemoteGateway(Protocol):
    """The Graph operations the engine consumes (see graph.client.GraphClient)."""

    def list(self, collection: str, filter: str | None = None, beta: bool = False) -> list[dict]: ...

    def get_by_id(self, collection: str, object_id: str, beta: bool = False) -> dict | None: ...

    def create(self, collection: str, payload: dict, beta: bool = False) -> dict: ...

    def update(self, collection: str, object_id: str, payload: dict, beta: bool = False) -> None: ...

    def delete(self, collection: str, object_id: str, beta: bool = False) -> None: ...


@dataclass
class ConnectionContext:
    """
    Everything an operation needs from the outside world. Passed in by the
    caller on every Get/Test/Set/Export; the engine holds no other state.
    """
    graph: RemoteGateway
    events: EventSink = field(default_factory=EventSink)
    tenant_id: str = ""
    application_id: str = ""
    certificate_thumbprint: str = ""
    auth_mode: str = "certificate"
    use_beta: bool = False
    what_if: bool = False
