#!/usr/bin/env python3
"""Generate a key and CSR, then request a signed certificate from the server."""

import argparse
import os
import sys
from pathlib import Path

from ca_service.lib.cert_utils import get_certificate_serial_hex
from ca_service.lib.client import request_certificate
from ca_service.lib.config import CAConfig
from ca_service.lib.crypto_context import crypto_session
from ca_service.lib.errors import CAServiceError, ConfigError
from ca_service.lib.key_generator import generate_csr
from ca_service.lib.logging_config import LOGGER
from ca_service.lib.pem_codec import encode_cert, encode_key


def _file_stem(common_name: str) -> str:
    """Return common_name as a file stem, refusing anything that could leave the output dir."""
    if common_name in ("", ".", "..") or "/" in common_name or "\\" in common_name or "\0" in common_name:
        raise ValueError(f"common name {common_name!r} cannot be used as a file name")
    return common_name


def main(argv: list[str] | None = None) -> int:
    """Request a certificate for the given common name.

    Returns:
        Exit code (0 for success, 1 for failure)
    """
    parser = argparse.ArgumentParser(description="Request a certificate from the issuance server")
    parser.add_argument("--common-name", help="Subject CN (default: configured requester CN)")
    parser.add_argument("--host", default="127.0.0.1", help="Server host (default: 127.0.0.1)")
    parser.add_argument("--port", type=int, help="Server port (default: 8000)")
    parser.add_argument("--key-size", type=int, help="RSA key size in bits (default: 4096)")
    parser.add_argument(
        "--output-dir",
        type=Path,
        default=Path("."),
        help="Directory for <cn>.key and <cn>.crt (default: current directory)",
    )
    args = parser.parse_args(argv)

    try:
        config = CAConfig.from_env().with_overrides(port=args.port, key_size=args.key_size)
    except ConfigError as e:
        LOGGER.error("Invalid configuration: %s", e)
        return 1

    try:
        subject = config.subject_dn(args.common_name)
        stem = _file_stem(subject.common_name)
    except ValueError as e:
        LOGGER.error("Invalid subject: %s", e)
        return 1

    key_path = args.output_dir / f"{stem}.key"
    cert_path = args.output_dir / f"{stem}.crt"

    try:
        with crypto_session():
            key, csr = generate_csr(subject=subject, config=config)
            LOGGER.info("Requesting certificate for %s from %s:%d", subject.common_name, args.host, config.port)
            cert = request_certificate(args.host, config.port, csr, timeout=config.connection_timeout)
    except CAServiceError as e:
        LOGGER.error("Certificate request failed: %s", e)
        return 1

    try:
        args.output_dir.mkdir(parents=True, exist_ok=True)
        fd = os.open(key_path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        with os.fdopen(fd, "wb") as key_file:
            key_file.write(encode_key(key))
        cert_path.write_bytes(encode_cert(cert))
    except OSError as e:
        LOGGER.error("Failed to write certificate files: %s", e)
        return 1

    LOGGER.info("Certificate issued:")
    LOGGER.info("  Key: %s", key_path)
    LOGGER.info("  Cert: %s", cert_path)
    LOGGER.info("  Serial: %s", get_certificate_serial_hex(cert))
    LOGGER.info("  Issuer: %s", cert.issuer.rfc4514_string())
    return 0


if __name__ == "__main__":
    sys.exit(main())
