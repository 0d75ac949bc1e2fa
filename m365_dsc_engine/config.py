"""
Configuration module for the M365 DSC engine.
Defines Graph endpoints, authentication settings, and export options.
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional


# ─── Tenant Authentication ───────────────────────────────────────────────────

@dataclass
class CertificateAuth:
    """Certificate-based app-only authentication configuration."""
    tenant_id: str
    client_id: str
    certificate_path: str          # Path to base64-encoded PFX
    certificate_password: str = "" # Falls back to M365_CERT_PASSWORD, then a prompt

@dataclass
class ClientSecretAuth:
    """Client-secret app-only authentication configuration."""
    tenant_id: str
    client_id: str
    client_secret: str = ""        # Falls back to M365_CLIENT_SECRET

@dataclass
class DelegatedAuth:
    """Delegated (device code) authentication configuration."""
    tenant_id: str
    client_id: str
    scopes: list[str] = field(default_factory=lambda: [
        "https://graph.microsoft.com/.default"
    ])

@dataclass
class AuthConfig:
    """Authentication configuration: certificate, secret or delegated."""
    mode: str = "certificate"  # "certificate", "secret" or "delegated"
    certificate: Optional[CertificateAuth] = None
    secret: Optional[ClientSecretAuth] = None
    delegated: Optional[DelegatedAuth] = None

    @property
    def tenant_id(self) -> str:
        active = {"certificate": self.certificate,
                  "secret": self.secret,
                  "delegated": self.delegated}.get(self.mode)
        return active.tenant_id if active else ""

    @property
    def client_id(self) -> str:
        active = {"certificate": self.certificate,
                  "secret": self.secret,
                  "delegated": self.delegated}.get(self.mode)
        return active.client_id if active else ""


# ─── Graph API Settings ─────────────────────────────────────────────────────

GRAPH_BASE_URL = "https://graph.microsoft.com"
GRAPH_API_VERSION = "v1.0"
GRAPH_BETA_VERSION = "beta"

REQUEST_TIMEOUT_SECONDS = 60.0
CONNECT_TIMEOUT_SECONDS = 30.0

# Pagination
DEFAULT_PAGE_SIZE = 999           # Maximum items per page ($top)
MAX_PAGES_PER_ENDPOINT = 10000    # Safety cap on pagination loops

# DSC parameters that carry connection/auth data and never take part in drift
CONNECTION_PARAMETERS = frozenset({
    "ApplicationId",
    "TenantId",
    "CertificateThumbprint",
    "CertificatePath",
    "CertificatePassword",
    "ApplicationSecret",
    "Credential",
    "ManagedIdentity",
    "AccessTokens",
})


# ─── Export Settings ────────────────────────────────────────────────────────

@dataclass
class ExportConfig:
    """Output settings for the export command."""
    output_dir: str = "./m365_dsc_export"
    format: str = "dsc"              # "dsc" or "json"
    configuration_name: str = "M365TenantConfig"
    organization: str = ""           # Written to ConfigurationData; defaults to the tenant id
    resources: list[str] = field(default_factory=list)  # Empty = every resource

    @property
    def output_path(self) -> Path:
        return Path(self.output_dir)

    def filename(self) -> str:
        suffix = "ps1" if self.format == "dsc" else "json"
        return f"{self.configuration_name}.{suffix}"


# ─── Master Configuration ───────────────────────────────────────────────────

@dataclass
class EngineConfig:
    """Top-level configuration for the engine."""
    auth: AuthConfig = field(default_factory=AuthConfig)
    export: ExportConfig = field(default_factory=ExportConfig)
    use_beta: bool = False        # Route every resource through /beta
    verbose: bool = False

    @classmethod
    def from_file(cls, path: str | os.PathLike) -> "EngineConfig":
        """Load configuration from a JSON file."""
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
        config = cls()
        if "auth" in data:
            auth_data = data["auth"]
            config.auth.mode = auth_data.get("mode", "certificate")
            if "certificate" in auth_data:
                c = auth_data["certificate"]
                config.auth.certificate = CertificateAuth(
                    tenant_id=c["tenant_id"],
                    client_id=c["client_id"],
                    certificate_path=c.get("certificate_path", "./base64.txt"),
                    certificate_password=c.get("certificate_password", ""),
                )
            if "secret" in auth_data:
                s = auth_data["secret"]
                config.auth.secret = ClientSecretAuth(
                    tenant_id=s["tenant_id"],
                    client_id=s["client_id"],
                    client_secret=s.get("client_secret", ""),
                )
            if "delegated" in auth_data:
                d = auth_data["delegated"]
                config.auth.delegated = DelegatedAuth(
                    tenant_id=d["tenant_id"],
                    client_id=d["client_id"],
                )
        if "export" in data:
            for k, v in data["export"].items():
                if hasattr(config.export, k):
                    setattr(config.export, k, v)
        config.use_beta = data.get("use_beta", False)
        config.verbose = data.get("verbose", False)
        return config


# ─── Required Graph API Permissions (Least Privilege) ─────────────────────

REQUIRED_PERMISSIONS = {
    "DeviceManagementServiceConfig.ReadWrite.All": "Read and write enrollment configurations",
    "RecordsManagement.ReadWrite.All": "Read and write file plan descriptors",
}

READ_PERMISSIONS = {
    "DeviceManagementServiceConfig.Read.All": "Read enrollment configurations (get/test/export)",
    "RecordsManagement.Read.All": "Read file plan descriptors (get/test/export)",
}
