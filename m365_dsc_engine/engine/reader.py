"""
State reader — resolves a resource's natural key to its current state.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Union

from ..graph.client import GraphAPIError, odata_quote
from ..schema import Ensure, ResourceDescriptor, ResourceState, ValidationError
from .context import ConnectionContext

logger = logging.getLogger("m365_dsc_engine.engine.reader")


@dataclass(frozen=True)
class Found:
    state: ResourceState
    remote_id: str


@dataclass(frozen=True)
class Absent:
    pass


@dataclass(frozen=True)
class ReadFailed:
    error: Exception


ReadResult = Union[Found, Absent, ReadFailed]


def read_state(
    descriptor: ResourceDescriptor,
    desired: ResourceState,
    context: ConnectionContext,
) -> ReadResult:
    """
    Look up the remote object for `desired`'s natural key.
    Graph failures become ReadFailed and are reported to the event sink.
    """
    try:
        remote = _lookup(descriptor, desired, context)
    except GraphAPIError as e:
        context.events.report(e, {
            "resource": descriptor.name,
            "operation": "get",
            "key": desired.natural_key,
        })
        return ReadFailed(e)

    if remote is None:
        logger.debug(f"[{descriptor.name}] No instance found for {desired.natural_key}")
        return Absent()

    try:
        state = descriptor.from_remote(remote)
    except ValidationError as e:
        context.events.report(e, {
            "resource": descriptor.name,
            "operation": "get",
            "key": desired.natural_key,
            "remote_id": remote.get("id"),
        })
        return ReadFailed(e)

    logger.debug(f"[{descriptor.name}] Found {desired.natural_key} with id {remote.get('id')}")
    return Found(state=state, remote_id=remote["id"])


def _lookup(
    descriptor: ResourceDescriptor,
    desired: ResourceState,
    context: ConnectionContext,
) -> Optional[dict]:
    beta = descriptor.beta or context.use_beta

    id_field = descriptor.id_field
    object_id = getattr(desired, id_field) if id_field else None
    if object_id:
        remote = context.graph.get_by_id(descriptor.collection, object_id, beta=beta)
        if remote is not None and descriptor.matches(remote):
            return remote
        logger.debug(f"[{descriptor.name}] Id {object_id} not found, falling back to natural key")

    query = None
    if descriptor.server_filter:
        query = " and ".join(
            f"{_graph_name(descriptor, name)} eq {odata_quote(getattr(desired, name))}"
            for name in descriptor.key_fields
        )
    candidates = context.graph.list(descriptor.collection, filter=query, beta=beta)

    # Server-side filters are not trusted: shared collections return every
    # variant, and some endpoints ignore $filter silently.
    matches = [
        r for r in candidates
        if descriptor.matches(r) and _key_of(descriptor, r) == desired.natural_key
    ]
    if not matches:
        return None
    if len(matches) > 1:
        context.events.report(None, {
            "resource": descriptor.name,
            "operation": "get",
            "key": desired.natural_key,
            "message": f"{len(matches)} instances share the key {desired.natural_key}; using id {matches[0].get('id')}",
        }, level="warning")
    return matches[0]


def _graph_name(descriptor: ResourceDescriptor, field_name: str) -> str:
    for f in descriptor.state_fields():
        if f.name == field_name:
            return descriptor.graph_property(f)
    raise KeyError(field_name)


def _key_of(descriptor: ResourceDescriptor, remote: dict) -> tuple:
    return tuple(remote.get(_graph_name(descriptor, name)) for name in descriptor.key_fields)


def current_state(
    descriptor: ResourceDescriptor,
    desired: ResourceState,
    result: ReadResult,
) -> ResourceState:
    """
    Engine-facing view of a read. Absent and ReadFailed both become an
    Absent state echoing the caller's input, which existing DSC callers
    expect; a read failure is therefore indistinguishable from absence here.
    """
    if isinstance(result, Found):
        return result.state
    if isinstance(result, ReadFailed):
        logger.warning(
            f"[{descriptor.name}] Read of {desired.natural_key} failed; reporting Absent: {result.error}"
        )
    return desired.replace(ensure=Ensure.ABSENT)
