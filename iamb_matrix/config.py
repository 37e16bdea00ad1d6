"""
Account and client configuration.

Account settings can be built directly, from a dict, from environment
variables, or from the ``matrix`` section of a YAML settings file:

```yaml
matrix:
  url: "https://matrix.example.com"
  username: "@alice:example.com"
  password: "hunter2"     # or token: "syt_..."
client:
  sync_interval: 1.0
```
"""

from __future__ import annotations

import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from .exceptions import ConfigValidationError

DEFAULT_SETTINGS_PATH = Path.home() / ".iamb" / "settings.yaml"

_URL_PATTERN = re.compile(r"^https://")


@dataclass
class AccountConfig:
    """Credentials for one homeserver account.

    Attributes:
        url: Homeserver base URL (must be https)
        username: Login name or full user id
        token: Existing access token (takes precedence over password)
        password: Password for ``m.login.password``
    """

    url: str
    username: str
    token: str | None = None
    password: str | None = None

    def validate(self) -> None:
        """Check the account against the auth schema.

        Raises:
            ConfigValidationError: If a field is missing or malformed
        """
        if not isinstance(self.url, str) or not self.url:
            raise ConfigValidationError("url", "is required")
        if not _URL_PATTERN.match(self.url):
            raise ConfigValidationError("url", "must start with https://")
        if not isinstance(self.username, str) or not self.username:
            raise ConfigValidationError("username", "is required")
        for name in ("token", "password"):
            value = getattr(self, name)
            if value is not None and not isinstance(value, str):
                raise ConfigValidationError(name, "must be a string")
        if not self.token and not self.password:
            raise ConfigValidationError(
                "token", "one of token or password must be provided"
            )

    @property
    def uses_token(self) -> bool:
        return bool(self.token)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AccountConfig:
        """Build and validate an account from a mapping."""
        config = cls(
            url=data.get("url", ""),
            username=data.get("username", ""),
            token=data.get("token"),
            password=data.get("password"),
        )
        config.validate()
        return config

    @classmethod
    def from_environment(cls) -> AccountConfig:
        """Build an account from environment variables.

        Environment Variables:
            IAMB_MATRIX_URL: Homeserver URL
            IAMB_MATRIX_USERNAME: Login name
            IAMB_MATRIX_TOKEN: Access token (optional)
            IAMB_MATRIX_PASSWORD: Password (optional)
        """
        return cls.from_dict(
            {
                "url": os.environ.get("IAMB_MATRIX_URL", ""),
                "username": os.environ.get("IAMB_MATRIX_USERNAME", ""),
                "token": os.environ.get("IAMB_MATRIX_TOKEN"),
                "password": os.environ.get("IAMB_MATRIX_PASSWORD"),
            }
        )

    def __repr__(self) -> str:
        # Secrets stay out of logs
        return (
            f"AccountConfig(url={self.url!r}, username={self.username!r}, "
            f"token={'***' if self.token else None}, "
            f"password={'***' if self.password else None})"
        )


@dataclass
class ClientConfig:
    """Tunables for the sync engine."""

    # Fixed pause between syncs, and before retrying a failed sync
    sync_interval: float = 1.0

    # Long-poll timeout passed to /sync; None leaves it to the server
    sync_timeout_ms: int | None = None

    device_display_name: str = "iamb"

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ClientConfig:
        config = cls(
            sync_interval=float(data.get("sync_interval", 1.0)),
            sync_timeout_ms=data.get("sync_timeout_ms"),
            device_display_name=data.get("device_display_name", "iamb"),
        )
        if config.sync_interval < 0:
            raise ConfigValidationError("sync_interval", "must not be negative")
        return config


def load_config(path: Path | None = None) -> tuple[AccountConfig, ClientConfig]:
    """Load account and client settings from a YAML file.

    Args:
        path: Settings file. Defaults to ~/.iamb/settings.yaml

    Returns:
        Tuple of (account config, client config)

    Raises:
        ConfigValidationError: If the file is missing or invalid
    """
    path = path or DEFAULT_SETTINGS_PATH
    if not path.exists():
        raise ConfigValidationError("path", f"settings file not found: {path}")

    try:
        data = yaml.safe_load(path.read_text()) or {}
    except yaml.YAMLError as e:
        raise ConfigValidationError("path", f"cannot parse {path}: {e}") from e

    if not isinstance(data, dict) or not isinstance(data.get("matrix"), dict):
        raise ConfigValidationError("matrix", "section is required")

    account = AccountConfig.from_dict(data["matrix"])
    client = ClientConfig.from_dict(data.get("client") or {})
    return account, client
