"""
Drift comparator — field-by-field comparison of desired and current state.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from ..schema import Ensure, ResourceDescriptor, ResourceState

logger = logging.getLogger("m365_dsc_engine.engine.comparator")


@dataclass(frozen=True)
class FieldDrift:
    field: str
    desired: Any
    current: Any

    def to_dict(self) -> dict:
        return {
            "field": self.field,
            "desired": self.desired.value if isinstance(self.desired, Ensure) else self.desired,
            "current": self.current.value if isinstance(self.current, Ensure) else self.current,
        }


@dataclass
class DriftReport:
    resource: str
    key: tuple
    compared: list[str] = field(default_factory=list)
    drifts: list[FieldDrift] = field(default_factory=list)
    read_failed: bool = False

    @property
    def in_desired_state(self) -> bool:
        return not self.drifts

    @property
    def passed(self) -> bool:
        """In the desired state and actually read; a failed read never passes."""
        return not self.read_failed and self.in_desired_state

    def to_dict(self) -> dict:
        return {
            "resource": self.resource,
            "key": list(self.key),
            "in_desired_state": self.in_desired_state,
            "passed": self.passed,
            "read_failed": self.read_failed,
            "compared": self.compared,
            "drifts": [d.to_dict() for d in self.drifts],
        }


def compare_states(
    descriptor: ResourceDescriptor,
    desired: ResourceState,
    current: ResourceState,
) -> DriftReport:
    """
    Compare the fields the caller specified, minus the remote id, with
    plain equality. Ensure is one of the compared fields, so a Present vs
    Absent mismatch is always drift.
    """
    comparable = set(descriptor.comparable_fields())
    report = DriftReport(resource=descriptor.name, key=desired.natural_key)

    for name, wanted in desired.specified().items():
        if name not in comparable:
            continue
        report.compared.append(name)
        actual = getattr(current, name)
        if actual != wanted:
            report.drifts.append(FieldDrift(field=name, desired=wanted, current=actual))

    if report.drifts:
        for d in report.drifts:
            logger.info(
                f"[{descriptor.name}] Drift on {desired.natural_key} {d.field}: "
                f"desired={d.desired!r} current={d.current!r}"
            )
    else:
        logger.debug(f"[{descriptor.name}] {desired.natural_key} is in the desired state")
    return report
