"""
Intune enrollment resources.
Both live in deviceManagement/deviceEnrollmentConfigurations and are told
apart by their @odata.type.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from ..schema import ResourceDescriptor, ResourceState, bounded, remote_id
from .base import BaseResource

ENROLLMENT_CONFIGURATIONS = "deviceManagement/deviceEnrollmentConfigurations"


@dataclass
class EnrollmentLimitRestriction(ResourceState):
    """Maximum number of devices a user may enroll."""
    display_name: str
    description: Optional[str] = None
    limit: Optional[int] = field(default=None, metadata=bounded(1, 15))
    identity: Optional[str] = field(default=None, metadata=remote_id())


class IntuneDeviceEnrollmentLimitRestriction(BaseResource):
    descriptor = ResourceDescriptor(
        name="IntuneDeviceEnrollmentLimitRestriction",
        state_type=EnrollmentLimitRestriction,
        collection=ENROLLMENT_CONFIGURATIONS,
        discriminator="#microsoft.graph.deviceEnrollmentLimitConfiguration",
        # $filter on displayName is not supported for this collection
        server_filter=False,
    )


@dataclass
class EnrollmentStatusPageWindows10(ResourceState):
    """Windows 10 enrollment status page (ESP) settings."""
    display_name: str
    description: Optional[str] = None
    show_installation_progress: Optional[bool] = None
    block_device_setup_retry_by_user: Optional[bool] = None
    allow_device_reset_on_install_failure: Optional[bool] = None
    allow_log_collection_on_install_failure: Optional[bool] = None
    custom_error_message: Optional[str] = None
    install_progress_timeout_in_minutes: Optional[int] = field(
        default=None, metadata=bounded(1, 1440)
    )
    allow_device_use_on_install_failure: Optional[bool] = None
    identity: Optional[str] = field(default=None, metadata=remote_id())


class IntuneDeviceEnrollmentStatusPageWindows10(BaseResource):
    descriptor = ResourceDescriptor(
        name="IntuneDeviceEnrollmentStatusPageWindows10",
        state_type=EnrollmentStatusPageWindows10,
        collection=ENROLLMENT_CONFIGURATIONS,
        discriminator="#microsoft.graph.windows10EnrollmentCompletionPageConfiguration",
        server_filter=False,
    )
