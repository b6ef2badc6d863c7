#!/usr/bin/env python3
"""Run the certificate issuance server."""

import argparse
import sys
from pathlib import Path

from ca_service.lib.config import CAConfig
from ca_service.lib.crypto_context import crypto_session
from ca_service.lib.errors import CaCorruptError, CaMismatchError, CaNotFoundError, ConfigError
from ca_service.lib.logging_config import LOGGER, set_log_level
from ca_service.lib.server import run_server


def main(argv: list[str] | None = None) -> int:
    """Load the CA and serve issuance requests until interrupted.

    Returns:
        Exit code (0 for clean shutdown, 1 for failure)
    """
    parser = argparse.ArgumentParser(
        description="Certificate issuance server: accepts PEM CSRs, returns signed certificates"
    )
    parser.add_argument("--host", help="Listen address (default: 0.0.0.0)")
    parser.add_argument("--port", type=int, help="Listen port (default: 8000)")
    parser.add_argument("--ca-key", type=Path, dest="ca_key_path", help="CA private key (default: server.key)")
    parser.add_argument("--ca-cert", type=Path, dest="ca_cert_path", help="CA certificate (default: server.crt)")
    parser.add_argument("--validity-days", type=int, help="Issued certificate lifetime (default: 365)")
    parser.add_argument("--timeout", type=float, help="Per-connection read/write timeout in seconds")
    parser.add_argument("--log-level", help="Log level (default: INFO)")
    args = parser.parse_args(argv)

    try:
        config = CAConfig.from_env().with_overrides(
            host=args.host,
            port=args.port,
            ca_key_path=args.ca_key_path,
            ca_cert_path=args.ca_cert_path,
            leaf_validity_days=args.validity_days,
            connection_timeout=args.timeout,
            log_level=args.log_level,
        )
        set_log_level(config.log_level)
    except (ConfigError, ValueError) as e:
        LOGGER.error("Invalid configuration: %s", e)
        return 1

    try:
        with crypto_session():
            run_server(config)
    except (CaNotFoundError, CaCorruptError, CaMismatchError) as e:
        LOGGER.error("Cannot start without a usable CA: %s: %s", e.code, e)
        return 1
    except OSError as e:
        LOGGER.error("Cannot listen on %s:%d: %s", config.host, config.port, e)
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
