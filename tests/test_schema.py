"""Tests for resource state records and descriptors."""
from dataclasses import dataclass, field
from typing import Optional

import pytest

from m365_dsc_engine.resources import (
    ComplianceFilePlanPropertyCitation,
    IntuneDeviceEnrollmentLimitRestriction,
    IntuneDeviceEnrollmentStatusPageWindows10,
)
from m365_dsc_engine.resources.intune import EnrollmentLimitRestriction
from m365_dsc_engine.schema import Ensure, ResourceState, ValidationError, choices

from conftest import LIMIT_TYPE

LIMIT = IntuneDeviceEnrollmentLimitRestriction.descriptor


class TestValidation:
    """Constraints are enforced when the record is built."""

    @pytest.mark.parametrize("limit", [0, 16, -1])
    def test_limit_out_of_range_rejected(self, limit):
        with pytest.raises(ValidationError):
            EnrollmentLimitRestriction(display_name="Demo", limit=limit)

    @pytest.mark.parametrize("limit", [1, 15])
    def test_limit_bounds_accepted(self, limit):
        state = EnrollmentLimitRestriction(display_name="Demo", limit=limit)
        assert state.limit == limit

    def test_bool_is_not_an_integer(self):
        with pytest.raises(ValidationError):
            EnrollmentLimitRestriction(display_name="Demo", limit=True)

    def test_empty_natural_key_rejected(self):
        with pytest.raises(ValidationError):
            EnrollmentLimitRestriction(display_name="  ")

    def test_ensure_parsed_case_insensitively(self):
        state = EnrollmentLimitRestriction(display_name="Demo", ensure="absent")
        assert state.ensure is Ensure.ABSENT

    def test_invalid_ensure_rejected(self):
        with pytest.raises(ValidationError):
            EnrollmentLimitRestriction(display_name="Demo", ensure="Maybe")

    def test_esp_timeout_bounds(self):
        desc = IntuneDeviceEnrollmentStatusPageWindows10.descriptor
        with pytest.raises(ValidationError):
            desc.build(display_name="ESP", install_progress_timeout_in_minutes=1441)
        assert desc.build(display_name="ESP", install_progress_timeout_in_minutes=60)

    def test_choices_enforced(self):
        @dataclass
        class Retention(ResourceState):
            display_name: str
            action: Optional[str] = field(default=None, metadata=choices("Keep", "Delete"))

        assert Retention(display_name="Keep7", action="Keep").action == "Keep"
        with pytest.raises(ValidationError):
            Retention(display_name="Keep7", action="Archive")

    def test_specified_skips_unset_fields(self):
        state = EnrollmentLimitRestriction(display_name="Demo", limit=5)
        assert state.specified() == {
            "display_name": "Demo",
            "limit": 5,
            "ensure": Ensure.PRESENT,
        }


class TestFromParameters:
    """DSC parameter bags are mapped onto the typed record."""

    def test_connection_parameters_dropped(self):
        state = LIMIT.from_parameters({
            "DisplayName": "Demo",
            "Limit": 5,
            "Ensure": "Present",
            "ApplicationId": "app",
            "TenantId": "contoso.onmicrosoft.com",
            "CertificateThumbprint": "ABC",
        })
        assert state == EnrollmentLimitRestriction(display_name="Demo", limit=5)

    def test_names_are_case_insensitive(self):
        state = LIMIT.from_parameters({"displayname": "Demo", "LIMIT": 3})
        assert state.limit == 3

    def test_strings_are_coerced(self):
        state = LIMIT.from_parameters({"DisplayName": "Demo", "Limit": "7"})
        assert state.limit == 7

    def test_bool_coercion(self):
        desc = IntuneDeviceEnrollmentStatusPageWindows10.descriptor
        state = desc.from_parameters({
            "DisplayName": "ESP",
            "ShowInstallationProgress": "$true",
            "AllowDeviceUseOnInstallFailure": "false",
        })
        assert state.show_installation_progress is True
        assert state.allow_device_use_on_install_failure is False

    def test_unknown_parameter_rejected(self):
        with pytest.raises(ValidationError) as exc:
            LIMIT.from_parameters({"DisplayName": "Demo", "Colour": "blue"})
        assert "Colour" in str(exc.value)

    def test_missing_key_rejected(self):
        with pytest.raises(ValidationError):
            LIMIT.from_parameters({"Limit": 5})

    def test_non_numeric_string_rejected(self):
        with pytest.raises(ValidationError):
            LIMIT.from_parameters({"DisplayName": "Demo", "Limit": "five"})

    def test_to_parameters_uses_dsc_names(self):
        state = EnrollmentLimitRestriction(display_name="Demo", limit=5, identity="abc")
        assert LIMIT.to_parameters(state) == {
            "DisplayName": "Demo",
            "Limit": 5,
            "Identity": "abc",
            "Ensure": "Present",
        }


class TestGraphMapping:
    """Payload and remote record mapping."""

    def test_payload_includes_discriminator(self):
        state = EnrollmentLimitRestriction(display_name="Demo", limit=5, identity="abc")
        assert LIMIT.to_payload(state) == {
            "@odata.type": LIMIT_TYPE,
            "displayName": "Demo",
            "limit": 5,
        }

    def test_payload_without_discriminator(self):
        desc = ComplianceFilePlanPropertyCitation.descriptor
        state = desc.build(display_name="SOX", citation_url="https://example.org/sox")
        assert desc.to_payload(state) == {
            "displayName": "SOX",
            "citationUrl": "https://example.org/sox",
        }

    def test_from_remote(self):
        remote = {
            "id": "abc",
            "@odata.type": LIMIT_TYPE,
            "displayName": "Demo",
            "description": "",
            "limit": 5,
            "priority": 1,
        }
        state = LIMIT.from_remote(remote)
        assert state == EnrollmentLimitRestriction(
            display_name="Demo", description="", limit=5, identity="abc", ensure=Ensure.PRESENT
        )

    def test_matches_checks_discriminator(self):
        assert LIMIT.matches({"@odata.type": LIMIT_TYPE})
        assert not LIMIT.matches({"@odata.type": "#microsoft.graph.other"})
        assert not LIMIT.matches({})

    def test_identity_not_comparable(self):
        assert "identity" not in LIMIT.comparable_fields()
        assert "ensure" in LIMIT.comparable_fields()
        assert LIMIT.id_field == "identity"
