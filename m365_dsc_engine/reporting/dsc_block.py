"""
DSC configuration formatter — renders current state as PowerShell DSC
resource blocks and wraps them in a configuration document.
Secrets are never written; connection parameters point at
$ConfigurationData instead.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from ..schema import Ensure, ResourceDescriptor, ResourceState

INDENT = " " * 8
CONFIGURATION_DATA_FILE = "ConfigurationData.psd1"

# Connection parameters emitted per auth mode, as references
CONNECTION_REFERENCES = {
    "certificate": {
        "ApplicationId": "$ConfigurationData.NonNodeData.ApplicationId",
        "TenantId": "$OrganizationName",
        "CertificateThumbprint": "$ConfigurationData.NonNodeData.CertificateThumbprint",
    },
    "secret": {
        "ApplicationId": "$ConfigurationData.NonNodeData.ApplicationId",
        "TenantId": "$OrganizationName",
        "ApplicationSecret": "$ConfigurationData.NonNodeData.ApplicationSecret",
    },
    "delegated": {
        "Credential": "$Credscredential",
    },
}


def ps_literal(value: Any) -> str:
    """PowerShell literal for a scalar state value."""
    if isinstance(value, Ensure):
        value = value.value
    if isinstance(value, bool):
        return "$True" if value else "$False"
    if isinstance(value, int):
        return str(value)
    text = str(value)
    for ch in ("`", '"', "$"):
        text = text.replace(ch, "`" + ch)
    return f'"{text}"'


class DscBlockFormatter:
    """
    Formats one resource instance per block. Connection parameters are
    $ConfigurationData references; configuration_data() renders the
    matching ConfigurationData.psd1 with the non-secret values.
    """

    def __init__(
        self,
        auth_mode: str = "certificate",
        configuration_name: str = "M365TenantConfig",
        organization: str = "",
        application_id: str = "",
        certificate_thumbprint: str = "",
    ):
        self.connection = CONNECTION_REFERENCES.get(auth_mode, {})
        self.configuration_name = configuration_name
        self.organization = organization
        self.application_id = application_id
        self.certificate_thumbprint = certificate_thumbprint

    def format(self, descriptor: ResourceDescriptor, state: ResourceState) -> str:
        params = descriptor.to_parameters(state)
        lines = [(k, ps_literal(v)) for k, v in params.items()]
        lines += list(self.connection.items())
        width = max(len(k) for k, _ in lines)

        key = "-".join(str(v) for v in state.natural_key)
        out = [f"{INDENT}{descriptor.name} {ps_literal(f'{descriptor.name}-{key}')}", f"{INDENT}{{"]
        for name, literal in lines:
            out.append(f"{INDENT}    {name:<{width}} = {literal};")
        out.append(f"{INDENT}}}")
        return "\n".join(out) + "\n"

    def document(self, blocks: list[str]) -> str:
        generated = datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")
        body = "".join(blocks)
        return (
            f"# Generated by m365_dsc_engine on {generated}\n"
            f"Configuration {self.configuration_name}\n"
            "{\n"
            "    $OrganizationName = $ConfigurationData.NonNodeData.OrganizationName\n"
            "\n"
            "    Import-DscResource -ModuleName 'Microsoft365DSC'\n"
            "\n"
            "    Node localhost\n"
            "    {\n"
            f"{body}"
            "    }\n"
            "}\n"
            "\n"
            f"{self.configuration_name} -ConfigurationData .\\{CONFIGURATION_DATA_FILE}\n"
        )

    def configuration_data(self) -> str:
        """ConfigurationData.psd1 for document(); secrets are left for the operator."""
        values = {"OrganizationName": self.organization}
        if "ApplicationId" in self.connection:
            values["ApplicationId"] = self.application_id
        if "CertificateThumbprint" in self.connection:
            values["CertificateThumbprint"] = self.certificate_thumbprint
        width = max(len(k) for k in values)

        out = [
            "@{",
            "    AllNodes = @(",
            "        @{",
            "            NodeName                    = 'localhost'",
            "            PSDscAllowPlainTextPassword = $true",
            "        }",
            "    )",
            "    NonNodeData = @{",
        ]
        for name, value in values.items():
            out.append(f"        {name:<{width}} = {ps_literal(value)}")
        if "ApplicationSecret" in self.connection:
            out.append("        # ApplicationSecret is not exported; add it before compiling")
        out += ["    }", "}"]
        return "\n".join(out) + "\n"
