"""
Tenant Profile Manager — Named connection profiles for multi-tenant use.

Profiles are stored in:
    ~/.m365_dsc_engine/profiles.json
or in the file named by the M365_DSC_PROFILES environment variable.

Each profile holds the tenant and app registration used to connect, plus
how to authenticate (certificate file or client secret). Secrets are
never stored; they come from the environment or a prompt.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from .config import AuthConfig, CertificateAuth, ClientSecretAuth, DelegatedAuth

logger = logging.getLogger("m365_dsc_engine.profiles")


def profiles_file() -> Path:
    override = os.environ.get("M365_DSC_PROFILES")
    if override:
        return Path(override).expanduser()
    return Path.home() / ".m365_dsc_engine" / "profiles.json"


# ---------------------------------------------------------------------------
# Data model
# ---------------------------------------------------------------------------

@dataclass
class TenantProfile:
    """A single named tenant profile."""
    name: str                          # Unique short name (e.g. "contoso-prod")
    tenant_id: str                     # Entra tenant ID or primary domain
    client_id: str                     # App registration client ID
    auth_mode: str = "certificate"     # "certificate", "secret" or "delegated"
    cert_path: str = "./base64.txt"    # Base64-encoded PFX, certificate mode only
    organization: str = ""             # e.g. contoso.onmicrosoft.com, written to ConfigurationData and export metadata

    def resolve_cert_path(self) -> str:
        """Return absolute cert path, resolving ~ and relative paths."""
        p = Path(self.cert_path).expanduser()
        if not p.is_absolute():
            p = Path.cwd() / p
        return str(p)

    def to_auth_config(self) -> AuthConfig:
        auth = AuthConfig(mode=self.auth_mode)
        if self.auth_mode == "certificate":
            auth.certificate = CertificateAuth(
                tenant_id=self.tenant_id,
                client_id=self.client_id,
                certificate_path=self.resolve_cert_path(),
            )
        elif self.auth_mode == "secret":
            auth.secret = ClientSecretAuth(tenant_id=self.tenant_id, client_id=self.client_id)
        else:
            auth.delegated = DelegatedAuth(tenant_id=self.tenant_id, client_id=self.client_id)
        return auth

    def to_dict(self) -> dict:
        return {
            "tenant_id": self.tenant_id,
            "client_id": self.client_id,
            "auth_mode": self.auth_mode,
            "cert_path": self.cert_path,
            "organization": self.organization,
        }


@dataclass
class ProfileStore:
    """Manages the collection of tenant profiles on disk."""
    path: Path = field(default_factory=profiles_file)
    profiles: dict[str, TenantProfile] = field(default_factory=dict)
    default_profile: str = ""

    @classmethod
    def load(cls, path: Optional[Path] = None) -> "ProfileStore":
        """Load profiles from disk. Returns an empty store if the file doesn't exist."""
        store = cls(path=path or profiles_file())
        if not store.path.exists():
            return store
        try:
            data = json.loads(store.path.read_text(encoding="utf-8"))
            store.default_profile = data.get("default_profile", "")
            for name, pdata in data.get("profiles", {}).items():
                store.profiles[name] = TenantProfile(
                    name=name,
                    tenant_id=pdata["tenant_id"],
                    client_id=pdata["client_id"],
                    auth_mode=pdata.get("auth_mode", "certificate"),
                    cert_path=pdata.get("cert_path", "./base64.txt"),
                    organization=pdata.get("organization", ""),
                )
        except (json.JSONDecodeError, KeyError) as e:
            logger.warning(f"Failed to parse {store.path}: {e}")
            return cls(path=store.path)
        return store

    def save(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        data = {
            "default_profile": self.default_profile,
            "profiles": {name: p.to_dict() for name, p in self.profiles.items()},
        }
        self.path.write_text(json.dumps(data, indent=2) + "\n", encoding="utf-8")

    # --- CRUD ---

    def add(self, profile: TenantProfile, set_default: bool = False) -> None:
        """Add or overwrite a profile."""
        self.profiles[profile.name] = profile
        if set_default or not self.default_profile:
            self.default_profile = profile.name
        self.save()

    def remove(self, name: str) -> bool:
        """Remove a profile by name. Returns True if it existed."""
        if name not in self.profiles:
            return False
        del self.profiles[name]
        if self.default_profile == name:
            self.default_profile = next(iter(self.profiles), "")
        self.save()
        return True

    def get(self, name: str) -> Optional[TenantProfile]:
        """Get a profile by name (case-insensitive)."""
        key = name.lower()
        for pname, profile in self.profiles.items():
            if pname.lower() == key:
                return profile
        return None

    def get_default(self) -> Optional[TenantProfile]:
        if self.default_profile:
            return self.profiles.get(self.default_profile)
        if self.profiles:
            return next(iter(self.profiles.values()))
        return None

    def set_default(self, name: str) -> bool:
        """Set the default profile. Returns True if the profile exists."""
        if name not in self.profiles:
            return False
        self.default_profile = name
        self.save()
        return True

    def list_profiles(self) -> list[TenantProfile]:
        return sorted(self.profiles.values(), key=lambda p: p.name)


def resolve_profile(
    profile_name: Optional[str] = None,
    path: Optional[Path] = None,
) -> Optional[TenantProfile]:
    """
    Look up a tenant profile by name, or the default profile if no name
    is given. Returns None if nothing matches.
    """
    store = ProfileStore.load(path)
    if profile_name:
        return store.get(profile_name)
    return store.get_default()
