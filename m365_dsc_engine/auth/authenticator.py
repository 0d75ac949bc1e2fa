"""
Authentication module — Certificate, client-secret and delegated auth.
Uses MSAL for token acquisition against Microsoft Identity Platform.
"""

from __future__ import annotations

import base64
import getpass
import logging
import os
from typing import Optional

from cryptography.hazmat.primitives.serialization import pkcs12, Encoding, PrivateFormat, NoEncryption
from cryptography.hazmat.primitives.hashes import SHA1
import msal

from ..config import AuthConfig, READ_PERMISSIONS, REQUIRED_PERMISSIONS

logger = logging.getLogger("m365_dsc_engine.auth")

# Default scopes for app-only auth
APP_SCOPES = ["https://graph.microsoft.com/.default"]

AUTHORITY_TEMPLATE = "https://login.microsoftonline.com/{tenant_id}"


class AuthenticationError(Exception):
    """Raised when authentication fails."""
    pass


class Authenticator:
    """
    Handles MSAL-based authentication for Microsoft Graph.
    Supports:
      - Certificate-based app-only authentication
      - Client-secret app-only authentication
      - Delegated interactive authentication (device code flow)
    """

    def __init__(self, config: AuthConfig):
        self.config = config
        self._access_token: Optional[str] = None
        self.certificate_thumbprint: str = ""

    def acquire_token(self) -> str:
        """Acquire an access token based on configured auth mode."""
        if self.config.mode == "certificate":
            return self._acquire_certificate_token()
        elif self.config.mode == "secret":
            return self._acquire_secret_token()
        elif self.config.mode == "delegated":
            return self._acquire_delegated_token()
        else:
            raise AuthenticationError(f"Unknown auth mode: {self.config.mode}")

    def _load_certificate(self, cert_path: str, password: str) -> tuple[str, str]:
        """Load a base64-encoded PFX and return (private key PEM, thumbprint)."""
        try:
            with open(cert_path, "r") as f:
                cert_base64 = f.read().strip()

            cert_bytes = base64.b64decode(cert_base64)
            password_bytes = password.encode("utf-8") if password else None

            private_key, certificate, _ = pkcs12.load_key_and_certificates(
                cert_bytes, password_bytes
            )
        except FileNotFoundError:
            raise AuthenticationError(f"Certificate file not found: {cert_path}.")
        except Exception as e:
            raise AuthenticationError(f"Failed to load certificate: {e}")

        if private_key is None or certificate is None:
            raise AuthenticationError(f"Certificate file has no key pair: {cert_path}")

        private_key_pem = private_key.private_bytes(
            Encoding.PEM, PrivateFormat.PKCS8, NoEncryption()
        ).decode("utf-8")
        thumbprint = certificate.fingerprint(SHA1()).hex()
        return private_key_pem, thumbprint

    def _acquire_certificate_token(self) -> str:
        """Acquire token using certificate-based client credentials."""
        cert_config = self.config.certificate
        if not cert_config:
            raise AuthenticationError("Certificate auth config not provided.")

        logger.info("Authenticating with certificate-based app credentials...")

        password = cert_config.certificate_password
        if not password:
            password = os.environ.get("M365_CERT_PASSWORD", "")
        if not password:
            password = getpass.getpass("Enter the certificate password: ")

        private_key_pem, thumbprint = self._load_certificate(
            cert_config.certificate_path, password
        )
        self.certificate_thumbprint = thumbprint
        logger.info(f"Certificate loaded. Thumbprint: {thumbprint}")

        app = msal.ConfidentialClientApplication(
            client_id=cert_config.client_id,
            authority=AUTHORITY_TEMPLATE.format(tenant_id=cert_config.tenant_id),
            client_credential={
                "thumbprint": thumbprint,
                "private_key": private_key_pem,
            },
        )
        return self._token_from(app.acquire_token_for_client(scopes=APP_SCOPES), "Certificate")

    def _acquire_secret_token(self) -> str:
        """Acquire token using a client secret."""
        secret_config = self.config.secret
        if not secret_config:
            raise AuthenticationError("Client secret auth config not provided.")

        secret = secret_config.client_secret or os.environ.get("M365_CLIENT_SECRET", "")
        if not secret:
            raise AuthenticationError(
                "No client secret configured. Set it in the config file or M365_CLIENT_SECRET."
            )

        logger.info("Authenticating with client secret...")
        app = msal.ConfidentialClientApplication(
            client_id=secret_config.client_id,
            authority=AUTHORITY_TEMPLATE.format(tenant_id=secret_config.tenant_id),
            client_credential=secret,
        )
        return self._token_from(app.acquire_token_for_client(scopes=APP_SCOPES), "Client secret")

    def _acquire_delegated_token(self) -> str:
        """Acquire token using delegated (device code) flow."""
        deleg_config = self.config.delegated
        if not deleg_config:
            raise AuthenticationError("Delegated auth config not provided.")

        logger.info("Initiating device code authentication flow...")

        app = msal.PublicClientApplication(
            client_id=deleg_config.client_id,
            authority=AUTHORITY_TEMPLATE.format(tenant_id=deleg_config.tenant_id),
        )

        flow = app.initiate_device_flow(scopes=deleg_config.scopes)
        if "user_code" not in flow:
            raise AuthenticationError(
                f"Device code flow failed: {flow.get('error_description', 'Unknown')}"
            )

        print(f"\n{'='*60}")
        print(f"  To sign in, open: {flow['verification_uri']}")
        print(f"  Enter code: {flow['user_code']}")
        print(f"{'='*60}\n")

        return self._token_from(app.acquire_token_by_device_flow(flow), "Delegated")

    def _token_from(self, result: dict, label: str) -> str:
        if "access_token" in result:
            self._access_token = result["access_token"]
            logger.info(f"{label} authentication successful.")
            return self._access_token
        error = result.get("error_description", result.get("error", "Unknown"))
        raise AuthenticationError(f"{label} auth failed: {error}")

    @staticmethod
    def list_required_permissions(read_only: bool = False) -> dict[str, str]:
        """Graph application permissions for set (read-write) or get/test/export."""
        return READ_PERMISSIONS if read_only else REQUIRED_PERMISSIONS
