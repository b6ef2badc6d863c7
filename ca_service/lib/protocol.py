"""Length-prefixed wire framing for the issuance protocol.

Every message, in either direction, is one frame::

    +--------+---------------------+----------------+
    | status | length              | payload        |
    | 1 byte | 4 bytes, big-endian | length bytes   |
    +--------+---------------------+----------------+

Requests carry STATUS_OK and a PEM-encoded CSR. Responses carry STATUS_OK and
a PEM-encoded certificate, or STATUS_ERROR and a UTF-8 payload of the form
``"<error_code>: <message>"``.

A connection may carry any number of request/response exchanges. It ends when
the client closes it between frames, on a read/write timeout, or after a
framing error.
"""

import socket
import struct

from .errors import FramingError, TransportError

STATUS_OK = 0x00
STATUS_ERROR = 0x01

HEADER = struct.Struct("!BI")
DEFAULT_MAX_PAYLOAD = 65536


def encode_frame(status: int, payload: bytes) -> bytes:
    """Build a frame from a status byte and payload."""
    if status not in (STATUS_OK, STATUS_ERROR):
        raise ValueError(f"unknown frame status: {status}")
    return HEADER.pack(status, len(payload)) + payload


def encode_error(code: str, message: str) -> bytes:
    """Build an error frame."""
    return encode_frame(STATUS_ERROR, f"{code}: {message}".encode("utf-8"))


def decode_error(payload: bytes) -> tuple[str, str]:
    """Split an error payload into (code, message)."""
    text = payload.decode("utf-8", errors="replace")
    code, sep, message = text.partition(": ")
    if not sep:
        return "unknown_error", text
    return code, message


def _recv_exact(sock: socket.socket, size: int) -> bytes:
    """Read exactly size bytes, or fewer only if the peer closed first."""
    chunks: list[bytes] = []
    remaining = size
    while remaining:
        try:
            chunk = sock.recv(remaining)
        except TimeoutError as e:
            raise TransportError("timed out waiting for data") from e
        except OSError as e:
            raise TransportError(f"receive failed: {e}") from e
        if not chunk:
            break
        chunks.append(chunk)
        remaining -= len(chunk)
    return b"".join(chunks)


def read_frame(
    sock: socket.socket, max_payload: int = DEFAULT_MAX_PAYLOAD
) -> tuple[int, bytes] | None:
    """Read one frame from sock.

    Args:
        sock: Connected socket
        max_payload: Largest payload accepted

    Returns:
        (status, payload), or None if the peer closed cleanly before a frame

    Raises:
        FramingError: If the header is invalid, the payload is oversized or
            the peer closed mid-frame
        TransportError: On timeout or socket failure
    """
    header = _recv_exact(sock, HEADER.size)
    if not header:
        return None
    if len(header) < HEADER.size:
        raise FramingError("connection closed inside frame header")

    status, length = HEADER.unpack(header)
    if status not in (STATUS_OK, STATUS_ERROR):
        raise FramingError(f"unknown frame status byte 0x{status:02x}")
    if length > max_payload:
        raise FramingError(f"frame payload of {length} bytes exceeds limit of {max_payload}")

    payload = _recv_exact(sock, length)
    if len(payload) < length:
        raise FramingError(f"connection closed after {len(payload)} of {length} payload bytes")
    return status, payload


def write_frame(sock: socket.socket, frame: bytes) -> None:
    """Send an encoded frame.

    Raises:
        TransportError: On timeout or socket failure
    """
    try:
        sock.sendall(frame)
    except TimeoutError as e:
        raise TransportError("timed out sending data") from e
    except OSError as e:
        raise TransportError(f"send failed: {e}") from e
