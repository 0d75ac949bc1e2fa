"""
Records management file plan properties (security/labels/*).
Each property type has its own collection, so no discriminator is needed.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from ..schema import ResourceDescriptor, ResourceState
from .base import BaseResource

FILE_PLAN_ROOT = "security/labels"


@dataclass
class FilePlanProperty(ResourceState):
    display_name: str


@dataclass
class FilePlanCitation(ResourceState):
    display_name: str
    citation_url: Optional[str] = None
    citation_jurisdiction: Optional[str] = None


def _file_plan_descriptor(name: str, collection: str, state_type: type = FilePlanProperty) -> ResourceDescriptor:
    return ResourceDescriptor(
        name=name,
        state_type=state_type,
        collection=f"{FILE_PLAN_ROOT}/{collection}",
    )


class ComplianceFilePlanPropertyCategory(BaseResource):
    descriptor = _file_plan_descriptor("ComplianceFilePlanPropertyCategory", "categories")


class ComplianceFilePlanPropertyDepartment(BaseResource):
    descriptor = _file_plan_descriptor("ComplianceFilePlanPropertyDepartment", "departments")


class ComplianceFilePlanPropertyAuthority(BaseResource):
    descriptor = _file_plan_descriptor("ComplianceFilePlanPropertyAuthority", "authorities")


class ComplianceFilePlanPropertyReferenceId(BaseResource):
    descriptor = _file_plan_descriptor("ComplianceFilePlanPropertyReferenceId", "filePlanReferences")


class ComplianceFilePlanPropertyCitation(BaseResource):
    descriptor = _file_plan_descriptor(
        "ComplianceFilePlanPropertyCitation", "citations", state_type=FilePlanCitation
    )
