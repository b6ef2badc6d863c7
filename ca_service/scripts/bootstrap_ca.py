#!/usr/bin/env python3
"""Bootstrap the CA by generating a root key and self-signed certificate."""

import argparse
import sys
from pathlib import Path

from ca_service.lib.ca_store import bootstrap_ca
from ca_service.lib.config import CAConfig
from ca_service.lib.crypto_context import crypto_session
from ca_service.lib.errors import ConfigError
from ca_service.lib.logging_config import LOGGER


def main(argv: list[str] | None = None) -> int:
    """Generate CA credentials.

    Returns:
        Exit code (0 for success, 1 for failure)
    """
    parser = argparse.ArgumentParser(description="Bootstrap CA (generate root key + certificate)")
    parser.add_argument("--key-path", type=Path, help="CA private key output path (default: server.key)")
    parser.add_argument("--cert-path", type=Path, help="CA certificate output path (default: server.crt)")
    parser.add_argument("--common-name", help="Root CA common name")
    parser.add_argument("--key-size", type=int, help="RSA key size in bits (default: 4096)")
    parser.add_argument("--validity-years", type=int, help="Root validity in years (default: 10)")
    parser.add_argument("--force", action="store_true", help="Overwrite existing CA files")
    args = parser.parse_args(argv)

    try:
        config = CAConfig.from_env().with_overrides(
            ca_key_path=args.key_path,
            ca_cert_path=args.cert_path,
            ca_common_name=args.common_name,
            key_size=args.key_size,
            root_validity_years=args.validity_years,
        )
    except ConfigError as e:
        LOGGER.error("Invalid configuration: %s", e)
        return 1

    try:
        with crypto_session():
            LOGGER.info("Bootstrapping CA...")
            result = bootstrap_ca(
                key_path=config.ca_key_path,
                cert_path=config.ca_cert_path,
                subject=config.ca_subject_dn(),
                key_size=config.key_size,
                validity_years=config.root_validity_years,
                overwrite=args.force,
            )
    except FileExistsError as e:
        LOGGER.error("%s (use --force to replace)", e)
        return 1
    except Exception as e:
        LOGGER.error("Bootstrap failed: %s", e)
        return 1

    LOGGER.info("Root CA created:")
    LOGGER.info("  Subject: %s", result.subject)
    LOGGER.info("  Key: %s", result.key_path)
    LOGGER.info("  Cert: %s", result.cert_path)
    LOGGER.info("  Serial: %s", result.serial_number)
    return 0


if __name__ == "__main__":
    sys.exit(main())
