"""Shared fixtures: throwaway push certificates and a clean environment."""

import datetime
import os

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.serialization import pkcs12
from cryptography.x509.oid import NameOID

from apns_sender.certificate_loader import load_certificate

PASSPHRASE = "s3cret"

CONFIG_KEYS = (
    "APNS_CERTIFICATE_PATH",
    "APNS_CERTIFICATE_PASSPHRASE",
    "APNS_TOPIC",
    "APNS_ENVIRONMENT",
    "LOG_LEVEL",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    """Isolate tests from APNS_* variables and .env files of the developer machine."""
    keys = {key for key in os.environ if key.startswith("APNS_")} | set(CONFIG_KEYS)
    for key in keys:
        # setenv first so teardown also removes values a test's .env file loaded
        monkeypatch.setenv(key, "")
        monkeypatch.delenv(key)
    monkeypatch.chdir(tmp_path)


@pytest.fixture(scope="session")
def key_and_certificate():
    key = ec.generate_private_key(ec.SECP256R1())
    name = x509.Name([
        x509.NameAttribute(NameOID.COMMON_NAME, "Apple Push Services: com.example.app"),
        x509.NameAttribute(NameOID.USER_ID, "com.example.app"),
    ])
    now = datetime.datetime.now(datetime.timezone.utc)
    certificate = (
        x509.CertificateBuilder()
        .subject_name(name)
        .issuer_name(name)
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - datetime.timedelta(days=1))
        .not_valid_after(now + datetime.timedelta(days=30))
        .sign(key, hashes.SHA256())
    )
    return key, certificate


@pytest.fixture(scope="session")
def p12_bytes(key_and_certificate):
    key, certificate = key_and_certificate
    return pkcs12.serialize_key_and_certificates(
        name=b"push",
        key=key,
        cert=certificate,
        cas=None,
        encryption_algorithm=serialization.BestAvailableEncryption(PASSPHRASE.encode()),
    )


@pytest.fixture
def p12_path(tmp_path, p12_bytes):
    path = tmp_path / "push.p12"
    path.write_bytes(p12_bytes)
    return str(path)


@pytest.fixture
def certificate_only_p12_path(tmp_path, key_and_certificate):
    """A valid container that holds a certificate but no private key."""
    _, certificate = key_and_certificate
    path = tmp_path / "certificate-only.p12"
    path.write_bytes(
        pkcs12.serialize_key_and_certificates(
            name=None,
            key=None,
            cert=None,
            cas=[certificate],
            encryption_algorithm=serialization.BestAvailableEncryption(PASSPHRASE.encode()),
        )
    )
    return str(path)


@pytest.fixture
def client_identity(p12_path):
    return load_certificate(p12_path, PASSPHRASE)
