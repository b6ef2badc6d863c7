"""Process-wide cryptography library scope.

cryptography initializes OpenSSL itself on import; this scope checks that the
backend is usable before any key material is touched and logs the bracket
around the service's crypto work.
"""

from collections.abc import Iterator
from contextlib import contextmanager

from cryptography.hazmat.backends import default_backend

from .logging_config import LOGGER


def openssl_version() -> str:
    """Return the OpenSSL version string cryptography is linked against."""
    return default_backend().openssl_version_text()


@contextmanager
def crypto_session() -> Iterator[str]:
    """Bracket cryptographic work with library setup and teardown logging.

    Yields:
        The OpenSSL version text
    """
    version = openssl_version()
    LOGGER.info("Cryptography backend ready: %s", version)
    try:
        yield version
    finally:
        LOGGER.info("Cryptography backend released")
