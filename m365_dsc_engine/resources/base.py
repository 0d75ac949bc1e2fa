"""
Base resource class — the Get/Test/Set/Export contract every DSC
resource exposes. Subclasses only declare a state record and a
descriptor; the reconciliation logic is shared.
"""

from __future__ import annotations

import logging
from typing import Any, ClassVar, Union

from ..engine.comparator import DriftReport, compare_states
from ..engine.context import ConnectionContext
from ..engine.exporter import Formatter, export_resource
from ..engine.reader import Found, ReadFailed, current_state, read_state
from ..engine.writer import Transition, apply_state
from ..schema import ResourceDescriptor, ResourceState

logger = logging.getLogger("m365_dsc_engine.resources")

DesiredInput = Union[ResourceState, dict[str, Any]]


class BaseResource:
    """
    Base class for all DSC resources.

    Operations accept either a typed state record or a DSC parameter bag
    (``{"DisplayName": ..., "Ensure": ...}``); parameter bags are
    validated into the record before any Graph call is made.
    """

    descriptor: ClassVar[ResourceDescriptor]

    @property
    def name(self) -> str:
        return self.descriptor.name

    def desired(self, value: DesiredInput) -> ResourceState:
        if isinstance(value, ResourceState):
            if not isinstance(value, self.descriptor.state_type):
                raise TypeError(
                    f"{self.name} expects {self.descriptor.state_type.__name__}, "
                    f"got {type(value).__name__}"
                )
            return value
        return self.descriptor.from_parameters(value)

    def get(self, desired: DesiredInput, context: ConnectionContext) -> ResourceState:
        """Current state for the desired natural key; Absent echoes the input."""
        state = self.desired(desired)
        logger.info(f"[{self.name}] Getting configuration of {state.natural_key}")
        return current_state(self.descriptor, state, read_state(self.descriptor, state, context))

    def drift(self, desired: DesiredInput, context: ConnectionContext) -> DriftReport:
        """Full drift report, without event reporting."""
        state = self.desired(desired)
        result = read_state(self.descriptor, state, context)
        report = compare_states(
            self.descriptor, state, current_state(self.descriptor, state, result)
        )
        if isinstance(result, ReadFailed):
            report.read_failed = True
        return report

    def check(self, desired: DesiredInput, context: ConnectionContext) -> DriftReport:
        """One read and compare; drift goes to the event sink. test() is report.passed."""
        state = self.desired(desired)
        logger.info(f"[{self.name}] Testing configuration of {state.natural_key}")
        report = self.drift(state, context)

        if report.read_failed:
            logger.warning(f"[{self.name}] Current state of {state.natural_key} unknown; test result is False")
            return report
        if not report.in_desired_state:
            context.events.report(None, {
                "resource": self.name,
                "operation": "test",
                "key": state.natural_key,
                "drifts": [d.to_dict() for d in report.drifts],
                "message": f"Configuration drift detected on {', '.join(d.field for d in report.drifts)}",
            }, level="info")
        logger.info(f"[{self.name}] Test-TargetResource returned {report.in_desired_state}")
        return report

    def test(self, desired: DesiredInput, context: ConnectionContext) -> bool:
        return self.check(desired, context).passed

    def set(self, desired: DesiredInput, context: ConnectionContext) -> Transition:
        state = self.desired(desired)
        logger.info(f"[{self.name}] Setting configuration of {state.natural_key}")
        result = read_state(self.descriptor, state, context)
        return apply_state(self.descriptor, state, result, context)

    def export(self, context: ConnectionContext, formatter: Formatter) -> str:
        logger.info(f"[{self.name}] Exporting")
        return export_resource(self, context, formatter)

    def resolve_id(self, desired: DesiredInput, context: ConnectionContext) -> str | None:
        """Remote id for the desired natural key, or None when absent or unreadable."""
        result = read_state(self.descriptor, self.desired(desired), context)
        return result.remote_id if isinstance(result, Found) else None
