"""RSA key generation and CSR construction."""

from cryptography import x509
from cryptography.exceptions import InvalidSignature, UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.hazmat.primitives.asymmetric.rsa import RSAPrivateKey

from .config import CAConfig, DistinguishedName
from .errors import GenerationError
from .logging_config import LOGGER

PUBLIC_EXPONENT = 65537


def generate_private_key(key_size: int = 4096) -> RSAPrivateKey:
    """Generate RSA private key with specified size."""
    return rsa.generate_private_key(
        public_exponent=PUBLIC_EXPONENT,
        key_size=key_size,
    )


def build_csr(private_key: RSAPrivateKey, subject: DistinguishedName) -> x509.CertificateSigningRequest:
    """Build a CSR for subject, self-signed with SHA-256 to prove key possession."""
    return (
        x509.CertificateSigningRequestBuilder()
        .subject_name(subject.to_x509_name())
        .sign(private_key, hashes.SHA256())
    )


def generate_csr(
    subject: DistinguishedName | None = None,
    key_size: int | None = None,
    config: CAConfig | None = None,
) -> tuple[RSAPrivateKey, x509.CertificateSigningRequest]:
    """Generate a fresh key pair and a CSR signed with it.

    Args:
        subject: Requested identity (default: the configured requester DN)
        key_size: RSA modulus size in bits (default: config.key_size)
        config: Service configuration supplying defaults

    Returns:
        Tuple of (private_key, csr)

    Raises:
        GenerationError: If key generation or CSR signing fails
    """
    if config is None:
        config = CAConfig()
    if subject is None:
        subject = config.subject_dn()
    if key_size is None:
        key_size = config.key_size

    try:
        private_key = generate_private_key(key_size)
        csr = build_csr(private_key, subject)
    except (ValueError, TypeError, UnsupportedAlgorithm) as e:
        raise GenerationError(f"failed to generate key and CSR for {subject.common_name}: {e}") from e

    LOGGER.debug("Generated %d-bit key and CSR for %s", key_size, csr.subject.rfc4514_string())
    return private_key, csr


def verify_csr_signature(csr: x509.CertificateSigningRequest) -> bool:
    """Verify CSR self-signature to prove private key possession.

    Args:
        csr: Certificate signing request

    Returns:
        True if signature is valid, False otherwise
    """
    try:
        return csr.is_signature_valid
    except (InvalidSignature, ValueError, UnsupportedAlgorithm):
        return False
