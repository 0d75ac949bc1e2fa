"""
Exporter — enumerates every instance of a resource type and renders each
one's current state as declarative configuration.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Protocol

from ..graph.client import GraphAPIError, GraphAuthorizationError
from ..schema import Ensure, ResourceDescriptor, ResourceState, ValidationError
from .context import ConnectionContext

if TYPE_CHECKING:
    from ..resources.base import BaseResource

logger = logging.getLogger("m365_dsc_engine.engine.exporter")


class Formatter(Protocol):
    def format(self, descriptor: ResourceDescriptor, state: ResourceState) -> str: ...

    def document(self, blocks: list[str]) -> str: ...


def export_resource(
    resource: "BaseResource",
    context: ConnectionContext,
    formatter: Formatter,
) -> str:
    """
    Export all instances of one resource type. One Get round trip per
    instance. Enumeration failures yield an empty string, never a partial
    export.
    """
    descriptor = resource.descriptor
    beta = descriptor.beta or context.use_beta

    try:
        remotes = context.graph.list(descriptor.collection, beta=beta)
    except GraphAuthorizationError as e:
        context.events.report(e, {
            "resource": descriptor.name,
            "operation": "export",
            "message": (
                f"Tenant does not have access to {descriptor.name} "
                f"(missing license, feature or permission): {e.message}"
            ),
        }, level="warning")
        return ""
    except GraphAPIError as e:
        context.events.report(e, {"resource": descriptor.name, "operation": "export"})
        return ""

    instances = [r for r in remotes if descriptor.matches(r)]
    logger.info(f"[{descriptor.name}] Exporting {len(instances)} instance(s)")

    blocks: list[str] = []
    for i, remote in enumerate(instances, start=1):
        try:
            desired = _synthetic_desired(descriptor, remote)
        except ValidationError as e:
            context.events.report(e, {
                "resource": descriptor.name,
                "operation": "export",
                "remote_id": remote.get("id"),
            }, level="warning")
            continue

        logger.debug(f"[{descriptor.name}] [{i}/{len(instances)}] {desired.natural_key}")
        state = resource.get(desired, context)
        if state.ensure is not Ensure.PRESENT:
            # Deleted between enumeration and read, or the read failed.
            logger.warning(f"[{descriptor.name}] {desired.natural_key} could not be read back; skipped")
            continue
        blocks.append(formatter.format(descriptor, state))

    return "".join(blocks)


def export_tenant(
    resources: list["BaseResource"],
    context: ConnectionContext,
    formatter: Formatter,
) -> str:
    """Export several resource types into one configuration document."""
    blocks = []
    for resource in resources:
        text = export_resource(resource, context, formatter)
        if text:
            blocks.append(text)
    return formatter.document(blocks)


def _synthetic_desired(descriptor: ResourceDescriptor, remote: dict) -> ResourceState:
    values = {"ensure": Ensure.PRESENT}
    for f in descriptor.state_fields():
        if f.name in descriptor.key_fields:
            values[f.name] = remote.get(descriptor.graph_property(f))
        elif f.metadata.get("remote_id"):
            values[f.name] = remote.get("id")
    return descriptor.build(**values)
