from typing import Optional

from .base import BaseResource
from .intune import (
    IntuneDeviceEnrollmentLimitRestriction,
    IntuneDeviceEnrollmentStatusPageWindows10,
)
from .compliance import (
    ComplianceFilePlanPropertyAuthority,
    ComplianceFilePlanPropertyCategory,
    ComplianceFilePlanPropertyCitation,
    ComplianceFilePlanPropertyDepartment,
    ComplianceFilePlanPropertyReferenceId,
)

ALL_RESOURCES = [
    IntuneDeviceEnrollmentLimitRestriction,
    IntuneDeviceEnrollmentStatusPageWindows10,
    ComplianceFilePlanPropertyCategory,
    ComplianceFilePlanPropertyDepartment,
    ComplianceFilePlanPropertyAuthority,
    ComplianceFilePlanPropertyReferenceId,
    ComplianceFilePlanPropertyCitation,
]


def get_resource(name: str) -> Optional[BaseResource]:
    """Instantiate a resource by its DSC name (case-insensitive)."""
    for cls in ALL_RESOURCES:
        if cls.descriptor.name.lower() == name.lower():
            return cls()
    return None


__all__ = [
    "BaseResource",
    "IntuneDeviceEnrollmentLimitRestriction",
    "IntuneDeviceEnrollmentStatusPageWindows10",
    "ComplianceFilePlanPropertyCategory",
    "ComplianceFilePlanPropertyDepartment",
    "ComplianceFilePlanPropertyAuthority",
    "ComplianceFilePlanPropertyReferenceId",
    "ComplianceFilePlanPropertyCitation",
    "ALL_RESOURCES",
    "get_resource",
]
