"""Client configuration.

This module defines the configuration dataclass for :class:`BankIDClient`
and loading of configuration from YAML files.

Example YAML::

    url: https://appapi2.test.bankid.com/rp/v6.0   # or: test: true
    timeout: 5
    certificate:
      path: certs/rp.p12
      passphrase: qwerty123
      ca_path: certs/ca.pem       # optional
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional, Union

import yaml

from .certs import CertificateBundle
from .constants import DEFAULT_TIMEOUT, PRODUCTION_URL, TEST_PASSPHRASE, TEST_URL
from .exceptions import ConfigurationError


@dataclass
class ClientConfig:
    """BankID client configuration.

    Attributes:
        url: Versioned API base URL. Defaults to production.
        timeout: Request timeout in seconds.
        certificate: RP certificate material. Its ``ca_certificate`` must
            be set unless ``ca_prod.crt``/``ca_test.crt`` were added to the
            ``bankid.roots`` package at install time; the source tree ships
            without them, and loading then raises ``CertificateError``.

    Example:
        >>> config = ClientConfig(
        ...     url=TEST_URL,
        ...     certificate=CertificateBundle.from_paths("rp.p12", "qwerty123"),
        ... )
        >>> config.validate()
    """

    url: str = PRODUCTION_URL
    timeout: float = DEFAULT_TIMEOUT
    certificate: Optional[CertificateBundle] = None

    @property
    def is_test(self) -> bool:
        """True if the client talks to the test environment."""
        return self.url.rstrip("/") == TEST_URL

    def validate(self, require_certificate: bool = True) -> None:
        """Validate configuration values.

        Args:
            require_certificate: Also require certificate material. Not
                needed when the caller supplies its own transport.

        Raises:
            ConfigurationError: If configuration is invalid.
        """
        if not self.url:
            raise ConfigurationError("URL cannot be empty", config_key="url")
        if not self.url.startswith("https://"):
            raise ConfigurationError(
                "URL must use https", config_key="url", config_value=self.url
            )
        if self.timeout <= 0:
            raise ConfigurationError(
                "Timeout must be positive", config_key="timeout", config_value=self.timeout
            )
        if not require_certificate:
            return
        if self.certificate is None:
            raise ConfigurationError(
                "Certificate bundle is required", config_key="certificate"
            )
        if not self.certificate.data:
            raise ConfigurationError(
                "Certificate data is empty", config_key="certificate"
            )

    @classmethod
    def for_test(cls, certificate: CertificateBundle, timeout: float = DEFAULT_TIMEOUT) -> "ClientConfig":
        """Configuration for the public test environment."""
        return cls(url=TEST_URL, timeout=timeout, certificate=certificate)

    @classmethod
    def from_dict(
        cls, data: dict[str, Any], base_dir: Optional[Path] = None
    ) -> "ClientConfig":
        """Create configuration from dictionary.

        Args:
            data: Configuration dictionary (from YAML file).
            base_dir: Directory that relative certificate paths are
                resolved against. Defaults to the working directory.

        Returns:
            ClientConfig instance.

        Raises:
            ConfigurationError: If a value has the wrong type.
            CertificateError: If a certificate file cannot be read.
        """
        data = dict(data)
        test = bool(data.pop("test", False))
        url = data.pop("url", None) or (TEST_URL if test else PRODUCTION_URL)

        try:
            timeout = float(data.pop("timeout", DEFAULT_TIMEOUT))
        except (TypeError, ValueError):
            raise ConfigurationError("Timeout must be a number", config_key="timeout") from None

        certificate = None
        cert_data = data.pop("certificate", None)
        if cert_data is not None:
            if not isinstance(cert_data, dict) or "path" not in cert_data:
                raise ConfigurationError(
                    "certificate must be a mapping with a 'path' key",
                    config_key="certificate",
                )
            default_passphrase = TEST_PASSPHRASE if url.rstrip("/") == TEST_URL else ""
            certificate = CertificateBundle.from_paths(
                _resolve(cert_data["path"], base_dir),
                passphrase=str(cert_data.get("passphrase", default_passphrase)),
                ca_path=_resolve(cert_data.get("ca_path"), base_dir),
                key_path=_resolve(cert_data.get("key_path"), base_dir),
            )

        if data:
            raise ConfigurationError(
                f"Unknown configuration keys: {', '.join(sorted(data))}",
                config_key=next(iter(sorted(data))),
            )

        return cls(url=url, timeout=timeout, certificate=certificate)


def _resolve(path: Optional[str], base_dir: Optional[Path]) -> Optional[Path]:
    if not path:
        return None
    resolved = Path(path).expanduser()
    if base_dir is not None and not resolved.is_absolute():
        resolved = base_dir / resolved
    return resolved


def load_config(path: Union[str, Path]) -> ClientConfig:
    """Load client configuration from a YAML file.

    Relative certificate paths are resolved against the file's directory.

    Raises:
        ConfigurationError: If the file cannot be read or parsed.
    """
    path = Path(path)
    try:
        with open(path) as f:
            data = yaml.safe_load(f) or {}
    except OSError as e:
        raise ConfigurationError(
            f"Cannot read config file: {e.strerror}", {"path": str(path)}
        ) from e
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML: {e}", {"path": str(path)}) from e

    if not isinstance(data, dict):
        raise ConfigurationError("Config file must contain a mapping", {"path": str(path)})
    return ClientConfig.from_dict(data, base_dir=path.parent)
