"""TCP issuance server: receives CSRs and answers with signed certificates."""

import socketserver

from .ca_store import load_ca
from .config import CAConfig
from .errors import (
    CAServiceError,
    FramingError,
    InvalidCsrError,
    MalformedPemError,
    SigningError,
    TransportError,
)
from .issuer import issue
from .logging_config import LOGGER
from .models import CAIdentity
from .pem_codec import decode_csr, encode_cert
from .protocol import STATUS_OK, encode_error, encode_frame, read_frame, write_frame


def _format_peer(client_address) -> str:
    host, port = client_address[:2]
    return f"{host}:{port}"


class IssuanceRequestHandler(socketserver.BaseRequestHandler):
    """Serves one connection: request frames in, certificate frames out.

    Runs in its own worker thread, so a slow client only holds up itself.
    """

    server: "IssuanceServer"

    def setup(self) -> None:
        self.peer = _format_peer(self.client_address)
        self.request.settimeout(self.server.config.connection_timeout)
        LOGGER.info("Accepted connection from %s", self.peer)

    def handle(self) -> None:
        max_payload = self.server.config.max_request_bytes

        while True:
            try:
                frame = read_frame(self.request, max_payload)
            except FramingError as e:
                LOGGER.warning("Framing error from %s: %s", self.peer, e)
                self._send_best_effort(encode_error(e.code, str(e)))
                return
            except TransportError as e:
                LOGGER.warning("Connection error from %s: %s", self.peer, e)
                return

            if frame is None:
                LOGGER.debug("Client %s closed the connection", self.peer)
                return

            status, payload = frame
            if status != STATUS_OK:
                LOGGER.warning("Unexpected request status 0x%02x from %s", status, self.peer)
                self._send_best_effort(
                    encode_error(FramingError.code, "request frames must use status 0x00")
                )
                return

            response = self.server.handle_csr(payload, self.peer)

            try:
                write_frame(self.request, response)
            except TransportError as e:
                LOGGER.warning("Failed to respond to %s: %s", self.peer, e)
                return

    def finish(self) -> None:
        LOGGER.info("Closed connection from %s", self.peer)

    def _send_best_effort(self, frame: bytes) -> None:
        try:
            write_frame(self.request, frame)
        except TransportError as e:
            LOGGER.debug("Could not send error frame to %s: %s", self.peer, e)


class IssuanceServer(socketserver.ThreadingTCPServer):
    """Threaded TCP server holding the read-only CA identity."""

    allow_reuse_address = True
    daemon_threads = True

    def __init__(
        self,
        config: CAConfig,
        ca_identity: CAIdentity,
        bind_and_activate: bool = True,
    ) -> None:
        """Initialize and, by default, bind the listening socket.

        Args:
            config: Service configuration (host, port, timeouts, limits)
            ca_identity: Loaded CA credentials used for every issuance
            bind_and_activate: Bind and listen immediately
        """
        self.config = config
        self.ca_identity = ca_identity
        super().__init__((config.host, config.port), IssuanceRequestHandler, bind_and_activate)

    @property
    def address(self) -> tuple[str, int]:
        """Actual bound (host, port); useful when configured with port 0."""
        host, port = self.server_address[:2]
        return host, port

    def handle_csr(self, payload: bytes, peer: str) -> bytes:
        """Decode a CSR payload, issue a certificate and return the response frame.

        Per-request failures become error frames, including unexpected ones, so
        the connection stays usable.
        """
        try:
            csr = decode_csr(payload)
            cert = issue(csr, self.ca_identity, self.config.leaf_validity_days)
        except (MalformedPemError, InvalidCsrError, SigningError) as e:
            LOGGER.warning("Rejected request from %s: %s: %s", peer, e.code, e)
            return encode_error(e.code, str(e))
        except Exception:
            LOGGER.exception("Issuance failed unexpectedly for %s", peer)
            return encode_error(CAServiceError.code, "internal error while issuing certificate")

        LOGGER.info("Issued certificate to %s for %s", peer, cert.subject.rfc4514_string())
        return encode_frame(STATUS_OK, encode_cert(cert))

    def handle_error(self, request, client_address) -> None:
        """Log unexpected handler failures; the accept loop keeps running."""
        LOGGER.exception("Unhandled error serving %s", _format_peer(client_address))


def run_server(config: CAConfig) -> None:
    """Load the CA, then bind and serve until interrupted.

    The CA is loaded before the socket is created, so CA errors stop startup
    without ever listening.

    Raises:
        CaNotFoundError, CaCorruptError, CaMismatchError: If the CA cannot be loaded
        OSError: If the listening socket cannot be bound
    """
    ca_identity = load_ca(config.ca_key_path, config.ca_cert_path)

    with IssuanceServer(config, ca_identity) as server:
        host, port = server.address
        LOGGER.info("Listening on %s:%d", host, port)
        try:
            server.serve_forever()
        except KeyboardInterrupt:
            LOGGER.info("Interrupted, shutting down")
    LOGGER.info("Server closed")
