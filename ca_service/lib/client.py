"""Client for requesting certificates from the issuance server."""

import socket

from cryptography import x509

from .errors import FramingError, IssuanceRejectedError, TransportError
from .pem_codec import decode_cert, encode_csr
from .protocol import STATUS_ERROR, STATUS_OK, decode_error, encode_frame, read_frame, write_frame

DEFAULT_TIMEOUT = 30.0
MAX_RESPONSE_BYTES = 1024 * 1024


class IssuanceClient:
    """Keeps one connection open to the issuance server for repeated requests."""

    def __init__(self, host: str, port: int, timeout: float = DEFAULT_TIMEOUT) -> None:
        self.host = host
        self.port = port
        self.timeout = timeout
        self._sock: socket.socket | None = None

    def __enter__(self) -> "IssuanceClient":
        self.connect()
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def connect(self) -> None:
        """Open the connection.

        Raises:
            TransportError: If the server cannot be reached
        """
        try:
            self._sock = socket.create_connection((self.host, self.port), timeout=self.timeout)
        except OSError as e:
            raise TransportError(f"cannot connect to {self.host}:{self.port}: {e}") from e

    def close(self) -> None:
        if self._sock is not None:
            self._sock.close()
            self._sock = None

    def request_pem(self, csr_pem: bytes) -> bytes:
        """Send raw request bytes and return the PEM certificate bytes.

        Raises:
            IssuanceRejectedError: If the server answers with an error frame
            TransportError: On connection failure or a malformed response
        """
        if self._sock is None:
            raise TransportError("client is not connected")

        write_frame(self._sock, encode_frame(STATUS_OK, csr_pem))
        frame = read_frame(self._sock, MAX_RESPONSE_BYTES)
        if frame is None:
            raise FramingError("server closed the connection without responding")

        status, payload = frame
        if status == STATUS_ERROR:
            raise IssuanceRejectedError(*decode_error(payload))
        return payload

    def request_certificate(self, csr: x509.CertificateSigningRequest) -> x509.Certificate:
        """Send csr and return the signed certificate."""
        return decode_cert(self.request_pem(encode_csr(csr)))


def request_certificate(
    host: str,
    port: int,
    csr: x509.CertificateSigningRequest,
    timeout: float = DEFAULT_TIMEOUT,
) -> x509.Certificate:
    """Request a single certificate over a fresh connection.

    Args:
        host: Issuance server host
        port: Issuance server port
        csr: Signed certificate signing request
        timeout: Socket timeout in seconds

    Returns:
        Certificate issued by the server

    Raises:
        IssuanceRejectedError: If the server rejects the request
        TransportError: On connection or framing failure
        MalformedPemError: If the returned certificate cannot be decoded
    """
    with IssuanceClient(host, port, timeout) as client:
        return client.request_certificate(csr)
