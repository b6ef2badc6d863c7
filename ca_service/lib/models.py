"""Domain models for CA issuance."""

from dataclasses import dataclass
from pathlib import Path

from cryptography import x509
from cryptography.hazmat.primitives.asymmetric.rsa import RSAPrivateKey


@dataclass(frozen=True)
class CAIdentity:
    """CA private key and self-signed root certificate.

    Loaded once at startup and shared read-only between issuance workers.
    """

    private_key: RSAPrivateKey
    certificate: x509.Certificate

    @property
    def subject(self) -> x509.Name:
        return self.certificate.subject


@dataclass
class BootstrapResult:
    """Result from CA bootstrap operation."""

    key_path: Path
    cert_path: Path
    serial_number: str
    subject: str
