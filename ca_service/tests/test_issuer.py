"""Tests for the certificate issuer."""

from datetime import UTC, datetime, timedelta
from unittest.mock import patch

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.asymmetric.rsa import RSAPrivateKey

from ca_service.lib.cert_utils import (
    SERIAL_NUMBER_BITS,
    generate_serial_number,
    get_certificate_serial_hex,
    is_issued_by,
)
from ca_service.lib.certificate_builder import CertificateBuilder
from ca_service.lib.config import DistinguishedName
from ca_service.lib.errors import InvalidCsrError, SigningError
from ca_service.lib.issuer import issue
from ca_service.lib.key_generator import generate_private_key
from ca_service.lib.models import CAIdentity


class TestIssue:
    """Tests for issue()."""

    def test_signature_verifies_with_ca_key(
        self,
        client_csr: x509.CertificateSigningRequest,
        ca_identity: CAIdentity,
    ) -> None:
        """Issued cert is signed by the CA and names it as issuer."""
        cert = issue(client_csr, ca_identity)

        cert.verify_directly_issued_by(ca_identity.certificate)
        assert cert.issuer == ca_identity.certificate.subject

    def test_subject_and_key_copied_from_csr(
        self,
        client_csr: x509.CertificateSigningRequest,
        client_key: RSAPrivateKey,
        ca_identity: CAIdentity,
    ) -> None:
        """Subject and public key come from the CSR."""
        cert = issue(client_csr, ca_identity)

        assert cert.subject == client_csr.subject
        assert cert.public_key().public_numbers() == client_key.public_key().public_numbers()  # type: ignore[union-attr]

    def test_validity_window(
        self,
        client_csr: x509.CertificateSigningRequest,
        ca_identity: CAIdentity,
    ) -> None:
        """Validity is [now, now + validity_days]."""
        before = datetime.now(UTC).replace(microsecond=0)
        cert = issue(client_csr, ca_identity, validity_days=30)

        assert cert.not_valid_before_utc >= before
        lifetime = cert.not_valid_after_utc - cert.not_valid_before_utc
        assert lifetime == timedelta(days=30)

    def test_validity_clamped_to_ca_expiry(
        self,
        client_csr: x509.CertificateSigningRequest,
        ca_identity: CAIdentity,
    ) -> None:
        """A leaf never outlives the CA that signed it."""
        cert = issue(client_csr, ca_identity, validity_days=365 * 5)

        assert cert.not_valid_after_utc <= ca_identity.certificate.not_valid_after_utc

    def test_leaf_extensions(
        self,
        client_csr: x509.CertificateSigningRequest,
        ca_identity: CAIdentity,
    ) -> None:
        """Issued cert is an end-entity cert with key identifiers."""
        cert = issue(client_csr, ca_identity)

        bc = cert.extensions.get_extension_for_class(x509.BasicConstraints)
        assert bc.critical is True
        assert bc.value.ca is False
        ku = cert.extensions.get_extension_for_class(x509.KeyUsage).value
        assert ku.digital_signature is True
        assert ku.key_cert_sign is False
        aki = cert.extensions.get_extension_for_class(x509.AuthorityKeyIdentifier).value
        ski = ca_identity.certificate.extensions.get_extension_for_class(x509.SubjectKeyIdentifier).value
        assert aki.key_identifier == ski.digest

    def test_uses_sha256(
        self,
        client_csr: x509.CertificateSigningRequest,
        ca_identity: CAIdentity,
    ) -> None:
        cert = issue(client_csr, ca_identity)
        assert isinstance(cert.signature_hash_algorithm, hashes.SHA256)

    def test_copies_subject_alternative_name(
        self,
        client_key: RSAPrivateKey,
        ca_identity: CAIdentity,
    ) -> None:
        """A SAN requested in the CSR appears in the certificate."""
        san = x509.SubjectAlternativeName([x509.DNSName("test.example.org")])
        csr = (
            x509.CertificateSigningRequestBuilder()
            .subject_name(DistinguishedName(common_name="test.example.org").to_x509_name())
            .add_extension(san, critical=False)
            .sign(client_key, hashes.SHA256())
        )
        cert = issue(csr, ca_identity)

        assert cert.extensions.get_extension_for_class(x509.SubjectAlternativeName).value == san

    def test_accepts_ec_csr(self, ca_identity: CAIdentity) -> None:
        """EC requester keys are accepted."""
        ec_key = ec.generate_private_key(ec.SECP256R1())
        csr = (
            x509.CertificateSigningRequestBuilder()
            .subject_name(DistinguishedName(common_name="ec.example.org").to_x509_name())
            .sign(ec_key, hashes.SHA256())
        )
        cert = issue(csr, ca_identity)

        assert is_issued_by(cert, ca_identity.certificate)

    def test_rejects_tampered_csr(
        self,
        client_csr: x509.CertificateSigningRequest,
        ca_identity: CAIdentity,
    ) -> None:
        """A CSR whose self-signature fails raises InvalidCsrError."""
        der = bytearray(client_csr.public_bytes(serialization.Encoding.DER))
        der[-5] ^= 0xFF
        tampered = x509.load_der_x509_csr(bytes(der))

        with pytest.raises(InvalidCsrError):
            issue(tampered, ca_identity)

    def test_rejects_duplicate_extensions(
        self,
        duplicate_san_csr: x509.CertificateSigningRequest,
        ca_identity: CAIdentity,
    ) -> None:
        """A correctly signed CSR with a repeated extension raises InvalidCsrError."""
        with pytest.raises(InvalidCsrError, match="extensions"):
            issue(duplicate_san_csr, ca_identity)

    def test_signing_failure_raises_signing_error(
        self,
        client_csr: x509.CertificateSigningRequest,
        ca_identity: CAIdentity,
    ) -> None:
        """Errors from the signature operation surface as SigningError."""
        with patch.object(
            CertificateBuilder,
            "build_leaf_certificate",
            side_effect=ValueError("sign failed"),
        ):
            with pytest.raises(SigningError, match="sign failed"):
                issue(client_csr, ca_identity)

    def test_expired_ca_refuses_to_issue(self, client_csr: x509.CertificateSigningRequest) -> None:
        """An expired CA cannot sign."""
        key = generate_private_key(key_size=2048)
        name = DistinguishedName(common_name="Expired CA").to_x509_name()
        now = datetime.now(UTC)
        expired = (
            x509.CertificateBuilder()
            .subject_name(name)
            .issuer_name(name)
            .public_key(key.public_key())
            .serial_number(generate_serial_number())
            .not_valid_before(now - timedelta(days=10))
            .not_valid_after(now - timedelta(days=1))
            .sign(key, hashes.SHA256())
        )
        with pytest.raises(SigningError, match="expired"):
            issue(client_csr, CAIdentity(private_key=key, certificate=expired))


class TestSerialNumbers:
    """Tests for serial number assignment."""

    def test_serial_is_positive_and_bounded(self) -> None:
        """Serials are positive and fit in 127 bits."""
        for _ in range(1000):
            serial = generate_serial_number()
            assert 0 < serial < (1 << SERIAL_NUMBER_BITS)

    def test_serials_are_unique(self) -> None:
        """Many draws produce no collisions."""
        serials = [generate_serial_number() for _ in range(10000)]
        assert len(set(serials)) == len(serials)

    def test_repeated_issuance_of_same_csr_gets_new_serials(
        self,
        client_csr: x509.CertificateSigningRequest,
        ca_identity: CAIdentity,
    ) -> None:
        """Issuing the same CSR repeatedly never repeats a serial."""
        certs = [issue(client_csr, ca_identity) for _ in range(25)]
        assert len({cert.serial_number for cert in certs}) == 25

    def test_serial_hex_format(
        self,
        client_csr: x509.CertificateSigningRequest,
        ca_identity: CAIdentity,
    ) -> None:
        """get_certificate_serial_hex returns colon-separated uppercase hex."""
        cert = issue(client_csr, ca_identity)
        serial_hex = get_certificate_serial_hex(cert)

        assert serial_hex == serial_hex.upper()
        assert int(serial_hex.replace(":", ""), 16) == cert.serial_number
        assert all(len(part) == 2 for part in serial_hex.split(":"))
