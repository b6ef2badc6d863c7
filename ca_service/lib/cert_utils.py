"""Certificate utility functions for serial numbers and signature checks."""

import secrets

from cryptography import x509
from cryptography.exceptions import InvalidSignature, UnsupportedAlgorithm
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.types import PublicKeyTypes

SERIAL_NUMBER_BITS = 127


def generate_serial_number() -> int:
    """Generate certificate serial number from the OS CSPRNG.

    Draws 127 random bits so the value fits a 128-bit field with the top bit
    clear, keeping the DER INTEGER encoding positive and canonical. This is
    well above the CA/Browser Forum minimum of 64 bits, so collisions across a
    CA's lifetime are negligible without any shared counter.

    Returns:
        Positive integer serial for x509.CertificateBuilder.serial_number()
    """
    return 1 + secrets.randbelow((1 << SERIAL_NUMBER_BITS) - 1)


def get_certificate_serial_hex(cert: x509.Certificate) -> str:
    """Return certificate serial number as hex with colons (e.g., 3A:F2:B1:...)."""
    serial_hex = f"{cert.serial_number:X}"
    if len(serial_hex) % 2 != 0:
        serial_hex = "0" + serial_hex
    return ":".join(serial_hex[i : i + 2] for i in range(0, len(serial_hex), 2))


def public_key_fingerprint(public_key: PublicKeyTypes) -> bytes:
    """Return DER SubjectPublicKeyInfo bytes for key comparison."""
    return public_key.public_bytes(
        encoding=serialization.Encoding.DER,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    )


def public_keys_match(first: PublicKeyTypes, second: PublicKeyTypes) -> bool:
    """Check whether two public keys are the same key."""
    return public_key_fingerprint(first) == public_key_fingerprint(second)


def is_issued_by(cert: x509.Certificate, issuer: x509.Certificate) -> bool:
    """Verify cert's issuer name and signature against issuer.

    Returns True if cert was directly issued by issuer, False otherwise.
    """
    try:
        cert.verify_directly_issued_by(issuer)
        return True
    except (InvalidSignature, ValueError, TypeError, UnsupportedAlgorithm):
        return False


def is_self_signed(cert: x509.Certificate) -> bool:
    """Check that cert's subject equals its issuer and it verifies with its own key."""
    return cert.subject == cert.issuer and is_issued_by(cert, cert)
