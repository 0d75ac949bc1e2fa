"""
State writer — applies the transition implied by desired vs current state.
Issues at most one Graph mutation per call. Mutation failures are
reported to the event sink and not raised.
"""

from __future__ import annotations

import logging
from enum import Enum

from ..graph.client import GraphAPIError
from ..schema import Ensure, ResourceDescriptor, ResourceState
from .comparator import compare_states
from .context import ConnectionContext
from .reader import Found, ReadFailed, ReadResult

logger = logging.getLogger("m365_dsc_engine.engine.writer")


class Transition(str, Enum):
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    NONE = "none"


def plan_transition(
    descriptor: ResourceDescriptor,
    desired: ResourceState,
    result: ReadResult,
) -> Transition:
    """Dispatch on (desired.ensure, current ensure)."""
    if isinstance(result, ReadFailed):
        # The object may exist; creating blindly could duplicate it.
        return Transition.NONE

    if isinstance(result, Found):
        if desired.ensure is Ensure.ABSENT:
            return Transition.DELETE
        if compare_states(descriptor, desired, result.state).in_desired_state:
            return Transition.NONE
        return Transition.UPDATE

    if desired.ensure is Ensure.PRESENT:
        return Transition.CREATE
    return Transition.NONE


def apply_state(
    descriptor: ResourceDescriptor,
    desired: ResourceState,
    result: ReadResult,
    context: ConnectionContext,
) -> Transition:
    """Apply the planned transition through the gateway."""
    transition = plan_transition(descriptor, desired, result)
    key = desired.natural_key

    if transition is Transition.NONE:
        if isinstance(result, ReadFailed):
            context.events.report(result.error, {
                "resource": descriptor.name,
                "operation": "set",
                "key": key,
                "message": "current state unknown, no change applied",
            }, level="warning")
        else:
            logger.info(f"[{descriptor.name}] {key} already in desired state, nothing to do")
        return transition

    if context.what_if:
        logger.info(f"[{descriptor.name}] What-if: would {transition.value} {key}")
        context.events.report(None, {
            "resource": descriptor.name,
            "operation": "set",
            "key": key,
            "transition": transition.value,
            "message": f"What-if: would {transition.value} {key}",
        }, level="info")
        return transition

    beta = descriptor.beta or context.use_beta
    # plan_transition only yields UPDATE and DELETE for a Found result
    try:
        if transition is Transition.CREATE:
            payload = descriptor.to_payload(desired)
            logger.info(f"[{descriptor.name}] Creating {key}")
            created = context.graph.create(descriptor.collection, payload, beta=beta)
            logger.info(f"[{descriptor.name}] Created {key} with id {created.get('id')}")
        elif isinstance(result, Found) and transition is Transition.UPDATE:
            payload = descriptor.to_payload(desired)
            logger.info(f"[{descriptor.name}] Updating {key} ({result.remote_id})")
            context.graph.update(descriptor.collection, result.remote_id, payload, beta=beta)
        elif isinstance(result, Found) and transition is Transition.DELETE:
            logger.info(f"[{descriptor.name}] Removing {key} ({result.remote_id})")
            context.graph.delete(descriptor.collection, result.remote_id, beta=beta)
    except GraphAPIError as e:
        context.events.report(e, {
            "resource": descriptor.name,
            "operation": "set",
            "key": key,
            "transition": transition.value,
        })
    return transition
