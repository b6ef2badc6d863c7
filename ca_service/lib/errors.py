"""Exception hierarchy for the CA issuance service.

Each error carries a stable ``code`` that is sent to clients in error frames.
"""


class CAServiceError(Exception):
    """Base class for all CA service errors."""

    code = "internal_error"


class ConfigError(CAServiceError):
    """Raised when configuration values are invalid."""

    code = "config_error"


class GenerationError(CAServiceError):
    """Raised when key generation or CSR signing fails."""

    code = "generation_error"


class MalformedPemError(CAServiceError):
    """Raised when PEM input is structurally invalid, truncated or corrupted."""

    code = "malformed_pem"


class CaNotFoundError(CAServiceError):
    """Raised when a CA key or certificate file is absent or unreadable."""

    code = "ca_not_found"


class CaCorruptError(CAServiceError):
    """Raised when a CA key or certificate file cannot be decoded."""

    code = "ca_corrupt"


class CaMismatchError(CAServiceError):
    """Raised when the CA private key does not match the CA certificate."""

    code = "ca_mismatch"


class InvalidCsrError(CAServiceError):
    """Raised when a CSR self-signature does not verify."""

    code = "invalid_csr"


class SigningError(CAServiceError):
    """Raised when the CA signature operation fails."""

    code = "signing_error"


class TransportError(CAServiceError, ConnectionError):
    """Raised on transport-level I/O failure for a single connection."""

    code = "connection_error"


class FramingError(TransportError):
    """Raised when a wire frame is malformed, oversized or truncated."""

    code = "framing_error"


class IssuanceRejectedError(CAServiceError):
    """Raised client-side when the server answers with an error frame."""

    def __init__(self, code: str, message: str) -> None:
        super().__init__(f"{code}: {message}")
        self.code = code
        self.message = message
