"""Tests for MSAL token acquisition, with msal replaced by a stub app."""
import base64
import datetime

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.hazmat.primitives.serialization import BestAvailableEncryption, pkcs12
from cryptography.x509.oid import NameOID

from m365_dsc_engine.auth import authenticator as auth_module
from m365_dsc_engine.auth.authenticator import AuthenticationError, Authenticator
from m365_dsc_engine.config import AuthConfig, CertificateAuth, ClientSecretAuth


class StubApp:
    """Records construction arguments and returns a canned token result."""
    instances = []
    result = {"access_token": "token-123"}

    def __init__(self, **kwargs):
        self.kwargs = kwargs
        StubApp.instances.append(self)

    def acquire_token_for_client(self, scopes):
        self.scopes = scopes
        return StubApp.result


@pytest.fixture(autouse=True)
def stub_msal(monkeypatch):
    StubApp.instances = []
    StubApp.result = {"access_token": "token-123"}
    monkeypatch.setattr(auth_module.msal, "ConfidentialClientApplication", StubApp)
    monkeypatch.delenv("M365_CLIENT_SECRET", raising=False)
    monkeypatch.delenv("M365_CERT_PASSWORD", raising=False)


def write_pfx(path, password=b"pw"):
    key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    name = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, "m365-dsc-test")])
    now = datetime.datetime.now(datetime.timezone.utc)
    cert = (
        x509.CertificateBuilder()
        .subject_name(name)
        .issuer_name(name)
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now)
        .not_valid_after(now + datetime.timedelta(days=1))
        .sign(key, hashes.SHA256())
    )
    pfx = pkcs12.serialize_key_and_certificates(b"test", key, cert, None, BestAvailableEncryption(password))
    path.write_text(base64.b64encode(pfx).decode("ascii"))
    return cert.fingerprint(hashes.SHA1()).hex()


def test_secret_from_environment(monkeypatch):
    monkeypatch.setenv("M365_CLIENT_SECRET", "s3cret")
    config = AuthConfig(mode="secret", secret=ClientSecretAuth(tenant_id="contoso", client_id="app"))
    assert Authenticator(config).acquire_token() == "token-123"
    app = StubApp.instances[0]
    assert app.kwargs["client_credential"] == "s3cret"
    assert app.kwargs["authority"] == "https://login.microsoftonline.com/contoso"


def test_missing_secret_raises():
    config = AuthConfig(mode="secret", secret=ClientSecretAuth(tenant_id="contoso", client_id="app"))
    with pytest.raises(AuthenticationError):
        Authenticator(config).acquire_token()


def test_failed_token_result_raises():
    StubApp.result = {"error": "invalid_client", "error_description": "AADSTS7000215"}
    config = AuthConfig(mode="secret", secret=ClientSecretAuth(tenant_id="t", client_id="c", client_secret="x"))
    with pytest.raises(AuthenticationError) as exc:
        Authenticator(config).acquire_token()
    assert "AADSTS7000215" in str(exc.value)


def test_certificate_sets_thumbprint(tmp_path):
    cert_path = tmp_path / "base64.txt"
    thumbprint = write_pfx(cert_path)
    config = AuthConfig(mode="certificate", certificate=CertificateAuth(
        tenant_id="contoso", client_id="app", certificate_path=str(cert_path), certificate_password="pw",
    ))
    authenticator = Authenticator(config)
    assert authenticator.acquire_token() == "token-123"
    assert authenticator.certificate_thumbprint == thumbprint
    assert StubApp.instances[0].kwargs["client_credential"]["thumbprint"] == thumbprint


def test_missing_certificate_file(tmp_path):
    config = AuthConfig(mode="certificate", certificate=CertificateAuth(
        tenant_id="t", client_id="c", certificate_path=str(tmp_path / "nope.txt"), certificate_password="pw",
    ))
    with pytest.raises(AuthenticationError):
        Authenticator(config).acquire_token()


def test_unknown_mode():
    with pytest.raises(AuthenticationError):
        Authenticator(AuthConfig(mode="kerberos")).acquire_token()


def test_permission_sets():
    assert "RecordsManagement.Read.All" in Authenticator.list_required_permissions(read_only=True)
    assert "RecordsManagement.ReadWrite.All" in Authenticator.list_required_permissions()
