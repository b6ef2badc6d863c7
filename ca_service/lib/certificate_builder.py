"""Certificate builder for X.509 certificate construction."""

from datetime import datetime, timedelta, timezone

from cryptography import x509
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric.rsa import RSAPrivateKey
from cryptography.hazmat.primitives.asymmetric.types import CertificatePublicKeyTypes

from .cert_utils import generate_serial_number
from .config import DistinguishedName


class CertificateBuilder:
    """Builds the self-signed root and the leaf certificates it signs."""

    @staticmethod
    def build_root_ca(
        subject_dn: DistinguishedName,
        private_key: RSAPrivateKey,
        validity_years: int,
    ) -> x509.Certificate:
        """Build self-signed Root CA certificate.

        Args:
            subject_dn: Distinguished name for certificate subject
            private_key: RSA private key for signing
            validity_years: Certificate validity period in years

        Returns:
            Self-signed X.509 certificate with CA extensions
        """
        subject = subject_dn.to_x509_name()
        public_key = private_key.public_key()
        not_before = datetime.now(timezone.utc)
        not_after = not_before + timedelta(days=validity_years * 365)

        builder = (
            x509.CertificateBuilder()
            .subject_name(subject)
            .issuer_name(subject)
            .public_key(public_key)
            .serial_number(generate_serial_number())
            .not_valid_before(not_before)
            .not_valid_after(not_after)
            .add_extension(
                x509.BasicConstraints(ca=True, path_length=0),
                critical=True,
            )
            .add_extension(
                x509.KeyUsage(
                    digital_signature=False,
                    content_commitment=False,
                    key_encipherment=False,
                    data_encipherment=False,
                    key_agreement=False,
                    key_cert_sign=True,
                    crl_sign=True,
                    encipher_only=False,
                    decipher_only=False,
                ),
                critical=True,
            )
            .add_extension(
                x509.SubjectKeyIdentifier.from_public_key(public_key),
                critical=False,
            )
        )

        return builder.sign(private_key, hashes.SHA256())

    @staticmethod
    def build_leaf_certificate(
        subject: x509.Name,
        public_key: CertificatePublicKeyTypes,
        issuer_cert: x509.Certificate,
        issuer_key: RSAPrivateKey,
        serial_number: int,
        not_before: datetime,
        not_after: datetime,
        subject_alternative_name: x509.SubjectAlternativeName | None = None,
    ) -> x509.Certificate:
        """Build end-entity certificate signed directly by the root CA.

        The caller has already validated the request the subject and public
        key come from.

        Args:
            subject: Subject name copied from the CSR
            public_key: Public key copied from the CSR
            issuer_cert: Root CA certificate (issuer)
            issuer_key: Root CA private key for signing
            serial_number: Fresh serial for this certificate
            not_before: Start of validity window
            not_after: End of validity window
            subject_alternative_name: SAN extension carried over from the CSR

        Returns:
            X.509 end-entity certificate signed with SHA-256
        """
        builder = (
            x509.CertificateBuilder()
            .subject_name(subject)
            .issuer_name(issuer_cert.subject)
            .public_key(public_key)
            .serial_number(serial_number)
            .not_valid_before(not_before)
            .not_valid_after(not_after)
            .add_extension(
                x509.BasicConstraints(ca=False, path_length=None),
                critical=True,
            )
            .add_extension(
                x509.KeyUsage(
                    digital_signature=True,
                    content_commitment=False,
                    key_encipherment=True,
                    data_encipherment=False,
                    key_agreement=False,
                    key_cert_sign=False,
                    crl_sign=False,
                    encipher_only=False,
                    decipher_only=False,
                ),
                critical=False,
            )
            .add_extension(
                x509.SubjectKeyIdentifier.from_public_key(public_key),
                critical=False,
            )
            .add_extension(
                x509.AuthorityKeyIdentifier.from_issuer_public_key(issuer_key.public_key()),
                critical=False,
            )
        )

        if subject_alternative_name is not None:
            builder = builder.add_extension(subject_alternative_name, critical=False)

        return builder.sign(issuer_key, hashes.SHA256())
