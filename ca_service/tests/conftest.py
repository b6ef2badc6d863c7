"""Test fixtures for ca_service tests."""

import threading
from collections.abc import Generator
from dataclasses import replace
from pathlib import Path

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric.rsa import RSAPrivateKey

from ca_service.lib.certificate_builder import CertificateBuilder
from ca_service.lib.config import CAConfig, DistinguishedName
from ca_service.lib.key_generator import build_csr, generate_private_key
from ca_service.lib.models import CAIdentity
from ca_service.lib.pem_codec import encode_cert, encode_key
from ca_service.lib.server import IssuanceServer


@pytest.fixture
def temp_output_dir(tmp_path: Path) -> Path:
    """Return temporary directory for test output artifacts."""
    return tmp_path


@pytest.fixture
def ca_config(tmp_path: Path) -> CAConfig:
    """Return test configuration with small keys and an ephemeral port."""
    return CAConfig(
        key_size=2048,  # Faster for tests
        root_validity_years=1,
        leaf_validity_days=30,
        host="127.0.0.1",
        port=0,
        ca_key_path=tmp_path / "ca.key",
        ca_cert_path=tmp_path / "ca.crt",
        connection_timeout=5.0,
    )


@pytest.fixture(scope="session")
def root_key() -> RSAPrivateKey:
    """Generate RSA private key for the root CA."""
    return generate_private_key(key_size=2048)


@pytest.fixture(scope="session")
def root_dn() -> DistinguishedName:
    """Return test root CA distinguished name."""
    return DistinguishedName(
        country="US",
        state="MI",
        organization="Test Org",
        organizational_unit="Test Unit",
        common_name="Test Root CA",
    )


@pytest.fixture(scope="session")
def root_cert(root_key: RSAPrivateKey, root_dn: DistinguishedName) -> x509.Certificate:
    """Generate self-signed root CA certificate."""
    return CertificateBuilder.build_root_ca(
        subject_dn=root_dn,
        private_key=root_key,
        validity_years=1,
    )


@pytest.fixture(scope="session")
def ca_identity(root_key: RSAPrivateKey, root_cert: x509.Certificate) -> CAIdentity:
    """Return the loaded form of the test CA."""
    return CAIdentity(private_key=root_key, certificate=root_cert)


@pytest.fixture(scope="session")
def client_key() -> RSAPrivateKey:
    """Generate RSA private key for client requests."""
    return generate_private_key(key_size=2048)


@pytest.fixture
def client_dn() -> DistinguishedName:
    """Return test client distinguished name."""
    return DistinguishedName(common_name="test.example.org", organization="Example")


@pytest.fixture
def client_csr(
    client_key: RSAPrivateKey,
    client_dn: DistinguishedName,
) -> x509.CertificateSigningRequest:
    """Generate client CSR."""
    return build_csr(client_key, client_dn)


@pytest.fixture
def duplicate_san_csr(
    client_key: RSAPrivateKey,
    client_dn: DistinguishedName,
) -> x509.CertificateSigningRequest:
    """Validly signed CSR carrying the SubjectAlternativeName extension twice."""
    san = x509.Extension(
        x509.ExtensionOID.SUBJECT_ALTERNATIVE_NAME,
        False,
        x509.SubjectAlternativeName([x509.DNSName("test.example.org")]),
    )
    return x509.CertificateSigningRequestBuilder(client_dn.to_x509_name(), [san, san]).sign(
        client_key, hashes.SHA256()
    )


@pytest.fixture
def ca_files_on_disk(
    ca_config: CAConfig,
    root_key: RSAPrivateKey,
    root_cert: x509.Certificate,
) -> Generator[CAConfig]:
    """Write the test CA to ca.key / ca.crt and return the config pointing at them."""
    ca_config.ca_key_path.write_bytes(encode_key(root_key))
    ca_config.ca_cert_path.write_bytes(encode_cert(root_cert))

    yield ca_config


@pytest.fixture
def running_server(
    ca_config: CAConfig, ca_identity: CAIdentity
) -> Generator[IssuanceServer]:
    """Start an issuance server on an ephemeral port in a background thread."""
    server = IssuanceServer(ca_config, ca_identity)
    thread = threading.Thread(target=server.serve_forever, kwargs={"poll_interval": 0.05}, daemon=True)
    thread.start()

    yield server

    server.shutdown()
    server.server_close()
    thread.join(timeout=5)


@pytest.fixture
def short_timeout_server(
    ca_config: CAConfig, ca_identity: CAIdentity
) -> Generator[IssuanceServer]:
    """Start an issuance server whose connections time out quickly."""
    server = IssuanceServer(replace(ca_config, connection_timeout=0.3), ca_identity)
    thread = threading.Thread(target=server.serve_forever, kwargs={"poll_interval": 0.05}, daemon=True)
    thread.start()

    yield server

    server.shutdown()
    server.server_close()
    thread.join(timeout=5)
