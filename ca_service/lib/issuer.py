"""Certificate issuance: validate a CSR and sign it with the CA key."""

from datetime import datetime, timedelta, timezone

from cryptography import x509
from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives.asymmetric import ec, rsa

from .cert_utils import generate_serial_number, get_certificate_serial_hex
from .certificate_builder import CertificateBuilder
from .errors import InvalidCsrError, SigningError
from .key_generator import verify_csr_signature
from .logging_config import LOGGER
from .models import CAIdentity

DEFAULT_VALIDITY_DAYS = 365


def _subject_alternative_name(
    csr: x509.CertificateSigningRequest,
) -> x509.SubjectAlternativeName | None:
    try:
        return csr.extensions.get_extension_for_class(x509.SubjectAlternativeName).value
    except x509.ExtensionNotFound:
        return None
    except (ValueError, x509.DuplicateExtension, x509.UnsupportedGeneralNameType) as e:
        raise InvalidCsrError(f"CSR extensions could not be parsed: {e}") from e


def issue(
    csr: x509.CertificateSigningRequest,
    ca_identity: CAIdentity,
    validity_days: int = DEFAULT_VALIDITY_DAYS,
) -> x509.Certificate:
    """Issue a leaf certificate for csr, signed by the CA.

    Subject and public key are copied from the CSR; issuer is the CA subject.
    The validity window starts now and never extends past the CA certificate's
    own expiry. A SubjectAlternativeName requested in the CSR is carried over.

    Reads ca_identity only, so concurrent calls for independent CSRs are safe.

    Args:
        csr: Certificate signing request from the client
        ca_identity: Loaded CA key and root certificate
        validity_days: Certificate lifetime in days

    Returns:
        Signed X.509 certificate

    Raises:
        InvalidCsrError: If the CSR signature does not verify or its key type
            is unsupported
        SigningError: If the CA signature operation fails
    """
    if not verify_csr_signature(csr):
        raise InvalidCsrError("CSR signature validation failed")

    try:
        public_key = csr.public_key()
    except (ValueError, UnsupportedAlgorithm) as e:
        raise InvalidCsrError(f"CSR public key could not be loaded: {e}") from e
    if not isinstance(public_key, (rsa.RSAPublicKey, ec.EllipticCurvePublicKey)):
        raise InvalidCsrError(f"unsupported CSR public key type: {type(public_key).__name__}")

    san = _subject_alternative_name(csr)

    not_before = datetime.now(timezone.utc)
    not_after = min(
        not_before + timedelta(days=validity_days),
        ca_identity.certificate.not_valid_after_utc,
    )
    if not_after <= not_before:
        raise SigningError("CA certificate has expired")

    try:
        cert = CertificateBuilder.build_leaf_certificate(
            subject=csr.subject,
            public_key=public_key,
            issuer_cert=ca_identity.certificate,
            issuer_key=ca_identity.private_key,
            serial_number=generate_serial_number(),
            not_before=not_before,
            not_after=not_after,
            subject_alternative_name=san,
        )
    except (ValueError, TypeError, UnsupportedAlgorithm) as e:
        raise SigningError(f"failed to sign certificate: {e}") from e

    LOGGER.info(
        "Issued certificate for %s serial=%s not_after=%s",
        cert.subject.rfc4514_string(),
        get_certificate_serial_hex(cert),
        not_after.isoformat(),
    )
    return cert
