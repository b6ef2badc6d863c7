"""PEM encoding and strict decoding for keys, certificates and CSRs."""

import base64
import binascii
import re

from cryptography import x509
from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.rsa import RSAPrivateKey

from .errors import MalformedPemError

_PEM_BLOCK = re.compile(
    rb"\A\s*-----BEGIN (?P<label>[A-Z0-9 ]+)-----\r?\n"
    rb"(?P<body>[A-Za-z0-9+/=\r\n]+)"
    rb"-----END (?P=label)-----\s*\Z"
)

KEY_LABELS = (b"PRIVATE KEY", b"RSA PRIVATE KEY")
CERTIFICATE_LABELS = (b"CERTIFICATE",)
CSR_LABELS = (b"CERTIFICATE REQUEST", b"NEW CERTIFICATE REQUEST")


def _unwrap_pem(pem_data: bytes | str, labels: tuple[bytes, ...]) -> bytes:
    """Return the DER payload of a single PEM block.

    Args:
        pem_data: PEM text containing exactly one block
        labels: Accepted BEGIN/END labels

    Returns:
        DER bytes from the block body

    Raises:
        MalformedPemError: If framing, label or base64 body is invalid
    """
    if isinstance(pem_data, str):
        try:
            pem_data = pem_data.encode("ascii")
        except UnicodeEncodeError as e:
            raise MalformedPemError("PEM data must be ASCII") from e
    if not isinstance(pem_data, bytes):
        raise MalformedPemError(f"expected bytes, got {type(pem_data).__name__}")

    match = _PEM_BLOCK.match(pem_data)
    if match is None:
        raise MalformedPemError("input is not a single complete PEM block")

    label = match.group("label")
    if label not in labels:
        expected = " or ".join(lbl.decode() for lbl in labels)
        raise MalformedPemError(f"unexpected PEM label {label.decode()!r}, expected {expected}")

    body = b"".join(match.group("body").split())
    try:
        der = base64.b64decode(body, validate=True)
    except binascii.Error as e:
        raise MalformedPemError(f"invalid base64 in PEM body: {e}") from e
    if not der:
        raise MalformedPemError("empty PEM body")
    return der


def encode_key(key: RSAPrivateKey) -> bytes:
    """Serialize private key to PEM format (PKCS8, no encryption)."""
    return key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    )


def decode_key(pem_data: bytes) -> RSAPrivateKey:
    """Deserialize an unencrypted RSA private key from PEM bytes.

    Raises:
        MalformedPemError: If the PEM is invalid or does not hold an RSA key
    """
    der = _unwrap_pem(pem_data, KEY_LABELS)
    try:
        key = serialization.load_der_private_key(der, password=None)
    except (ValueError, TypeError, UnsupportedAlgorithm) as e:
        raise MalformedPemError(f"invalid private key: {e}") from e
    if not isinstance(key, RSAPrivateKey):
        raise MalformedPemError("expected RSA private key")
    return key


def encode_cert(cert: x509.Certificate) -> bytes:
    """Serialize certificate to PEM format."""
    return cert.public_bytes(serialization.Encoding.PEM)


def decode_cert(pem_data: bytes) -> x509.Certificate:
    """Deserialize certificate from PEM bytes.

    Raises:
        MalformedPemError: If the PEM or the DER certificate is invalid
    """
    der = _unwrap_pem(pem_data, CERTIFICATE_LABELS)
    try:
        return x509.load_der_x509_certificate(der)
    except ValueError as e:
        raise MalformedPemError(f"invalid certificate: {e}") from e


def encode_csr(csr: x509.CertificateSigningRequest) -> bytes:
    """Serialize CSR to PEM format."""
    return csr.public_bytes(serialization.Encoding.PEM)


def decode_csr(pem_data: bytes) -> x509.CertificateSigningRequest:
    """Deserialize CSR from PEM bytes.

    Raises:
        MalformedPemError: If the PEM or the DER request is invalid
    """
    der = _unwrap_pem(pem_data, CSR_LABELS)
    try:
        return x509.load_der_x509_csr(der)
    except ValueError as e:
        raise MalformedPemError(f"invalid certificate signing request: {e}") from e
