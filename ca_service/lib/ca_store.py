"""CA credential loading and bootstrap from flat PEM files."""

import os
from pathlib import Path

from cryptography.exceptions import UnsupportedAlgorithm

from .cert_utils import get_certificate_serial_hex, is_self_signed, public_keys_match
from .certificate_builder import CertificateBuilder
from .config import DistinguishedName
from .errors import CaCorruptError, CaMismatchError, CaNotFoundError, MalformedPemError
from .key_generator import generate_private_key
from .logging_config import LOGGER
from .models import BootstrapResult, CAIdentity
from .pem_codec import decode_cert, decode_key, encode_cert, encode_key


def _read_ca_file(path: Path, what: str) -> bytes:
    try:
        return path.read_bytes()
    except OSError as e:
        raise CaNotFoundError(f"CA {what} not readable: {path} ({e.strerror or e})") from e


def load_ca(key_path: Path | str, cert_path: Path | str) -> CAIdentity:
    """Load the CA private key and self-signed root certificate.

    Both files are read before either is decoded, so a missing file is always
    reported as CaNotFoundError.

    Args:
        key_path: Path to the PEM CA private key
        cert_path: Path to the PEM CA root certificate

    Returns:
        CAIdentity holding the key and certificate

    Raises:
        CaNotFoundError: If either file is absent or unreadable
        CaCorruptError: If either file fails to decode, or the root is not self-signed
        CaMismatchError: If the key does not belong to the certificate
    """
    key_path = Path(key_path)
    cert_path = Path(cert_path)

    cert_pem = _read_ca_file(cert_path, "certificate")
    key_pem = _read_ca_file(key_path, "key")

    try:
        certificate = decode_cert(cert_pem)
    except MalformedPemError as e:
        raise CaCorruptError(f"CA certificate is corrupt: {cert_path}: {e}") from e
    try:
        private_key = decode_key(key_pem)
    except MalformedPemError as e:
        raise CaCorruptError(f"CA key is corrupt: {key_path}: {e}") from e

    try:
        cert_public_key = certificate.public_key()
    except (ValueError, UnsupportedAlgorithm) as e:
        raise CaCorruptError(f"CA certificate public key is unusable: {cert_path}: {e}") from e

    if not public_keys_match(private_key.public_key(), cert_public_key):
        raise CaMismatchError(f"CA key {key_path} does not match certificate {cert_path}")
    if not is_self_signed(certificate):
        raise CaCorruptError(f"CA certificate is not a self-signed root: {cert_path}")

    LOGGER.info(
        "Loaded CA %s serial=%s",
        certificate.subject.rfc4514_string(),
        get_certificate_serial_hex(certificate),
    )
    return CAIdentity(private_key=private_key, certificate=certificate)


def bootstrap_ca(
    key_path: Path,
    cert_path: Path,
    subject: DistinguishedName,
    key_size: int = 4096,
    validity_years: int = 10,
    overwrite: bool = False,
) -> BootstrapResult:
    """Generate a root CA key and self-signed certificate and write them as PEM.

    Args:
        key_path: Output path for the CA private key (written with mode 0600)
        cert_path: Output path for the CA certificate
        subject: Root CA distinguished name
        key_size: RSA key size in bits
        validity_years: Root certificate validity in years
        overwrite: Replace existing files instead of refusing

    Returns:
        BootstrapResult with file paths and serial number

    Raises:
        FileExistsError: If an output file exists and overwrite is False
    """
    if not overwrite:
        for path in (key_path, cert_path):
            if path.exists():
                raise FileExistsError(f"refusing to overwrite existing CA file: {path}")

    private_key = generate_private_key(key_size)
    certificate = CertificateBuilder.build_root_ca(
        subject_dn=subject,
        private_key=private_key,
        validity_years=validity_years,
    )

    key_path.parent.mkdir(parents=True, exist_ok=True)
    cert_path.parent.mkdir(parents=True, exist_ok=True)

    fd = os.open(key_path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
    with os.fdopen(fd, "wb") as key_file:
        key_file.write(encode_key(private_key))
    cert_path.write_bytes(encode_cert(certificate))

    return BootstrapResult(
        key_path=key_path,
        cert_path=cert_path,
        serial_number=get_certificate_serial_hex(certificate),
        subject=certificate.subject.rfc4514_string(),
    )
