"""CA service configuration dataclasses."""

import os
from collections.abc import Mapping
from dataclasses import dataclass, fields, replace
from pathlib import Path

from cryptography import x509
from cryptography.x509 import oid

from .errors import ConfigError

ENV_PREFIX = "CA_SERVICE_"

_NAME_OIDS = (
    ("country", oid.NameOID.COUNTRY_NAME),
    ("state", oid.NameOID.STATE_OR_PROVINCE_NAME),
    ("locality", oid.NameOID.LOCALITY_NAME),
    ("organization", oid.NameOID.ORGANIZATION_NAME),
    ("organizational_unit", oid.NameOID.ORGANIZATIONAL_UNIT_NAME),
    ("common_name", oid.NameOID.COMMON_NAME),
)


@dataclass(frozen=True)
class DistinguishedName:
    """X.509 Subject Distinguished Name.

    Empty attributes are left out of the encoded name; common_name is required.
    """

    common_name: str
    country: str = ""
    state: str = ""
    locality: str = ""
    organization: str = ""
    organizational_unit: str = ""

    def __post_init__(self) -> None:
        if not self.common_name:
            raise ValueError("common_name must not be empty")
        if self.country and len(self.country) != 2:
            raise ValueError(f"country must be a 2-letter code, got {self.country!r}")

    def to_x509_name(self) -> x509.Name:
        """Convert to cryptography x509.Name for certificate generation."""
        return x509.Name(
            [
                x509.NameAttribute(name_oid, getattr(self, attr))
                for attr, name_oid in _NAME_OIDS
                if getattr(self, attr)
            ]
        )


@dataclass(frozen=True)
class CAConfig:
    """Issuance service configuration.

    Defaults are the service's historical fixed values: a 4096-bit
    key, the GVSU requester identity and port 8000.
    """

    country: str = "US"
    state: str = "MI"
    locality: str = ""
    organization: str = "Grand Valley State University"
    organizational_unit: str = "IT"
    common_name: str = "www.gvsu.edu"
    ca_common_name: str = "CA Service Root CA"
    key_size: int = 4096
    root_validity_years: int = 10
    leaf_validity_days: int = 365
    host: str = "0.0.0.0"
    port: int = 8000
    ca_key_path: Path = Path("server.key")
    ca_cert_path: Path = Path("server.crt")
    connection_timeout: float = 30.0
    max_request_bytes: int = 65536
    log_level: str = "INFO"

    def __post_init__(self) -> None:
        if self.key_size < 2048:
            raise ConfigError(f"key_size must be at least 2048 bits, got {self.key_size}")
        if not 0 <= self.port <= 65535:
            raise ConfigError(f"port out of range: {self.port}")
        if self.leaf_validity_days <= 0:
            raise ConfigError("leaf_validity_days must be positive")
        if self.root_validity_years <= 0:
            raise ConfigError("root_validity_years must be positive")
        if self.connection_timeout <= 0:
            raise ConfigError("connection_timeout must be positive")
        if self.max_request_bytes <= 0:
            raise ConfigError("max_request_bytes must be positive")

    def subject_dn(self, common_name: str | None = None) -> DistinguishedName:
        """Build the default requester DN, optionally overriding the CN."""
        return DistinguishedName(
            country=self.country,
            state=self.state,
            locality=self.locality,
            organization=self.organization,
            organizational_unit=self.organizational_unit,
            common_name=common_name or self.common_name,
        )

    def ca_subject_dn(self) -> DistinguishedName:
        """Build the DN used when bootstrapping a new root CA."""
        return self.subject_dn(self.ca_common_name)

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "CAConfig":
        """Load configuration, overriding defaults from CA_SERVICE_* variables.

        Args:
            environ: Mapping to read from (default: os.environ)

        Returns:
            CAConfig with environment overrides applied

        Raises:
            ConfigError: If a variable cannot be converted to the field type
        """
        if environ is None:
            environ = os.environ

        defaults = cls()
        overrides: dict[str, object] = {}
        for field in fields(cls):
            raw = environ.get(ENV_PREFIX + field.name.upper())
            if raw is None:
                continue
            current = getattr(defaults, field.name)
            try:
                if isinstance(current, Path):
                    overrides[field.name] = Path(raw)
                elif isinstance(current, int):
                    overrides[field.name] = int(raw)
                elif isinstance(current, float):
                    overrides[field.name] = float(raw)
                else:
                    overrides[field.name] = raw
            except ValueError as e:
                raise ConfigError(f"invalid value for {ENV_PREFIX}{field.name.upper()}: {raw!r}") from e

        return replace(defaults, **overrides)

    def with_overrides(self, **overrides: object) -> "CAConfig":
        """Return a copy with non-None overrides applied (used by CLI flags)."""
        return replace(self, **{k: v for k, v in overrides.items() if v is not None})
