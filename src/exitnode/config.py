"""
Configuration for the exitnode CLI and provisioners.

Settings live in ``<home>/config.yaml``. Anything left unset there is
filled from the standard AWS environment variables, so a bare shell with
``AWS_ACCESS_KEY_ID`` exported works without a config file at all.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, Field

from . import EXITNODE_HOME

logger = logging.getLogger(__name__)

DEFAULT_REGION = "us-east-1"
DEFAULT_OS = "ubuntu/images/hvm-ssd/ubuntu-jammy-22.04-amd64-server-*"
DEFAULT_PLAN = "t3.nano"
DEFAULT_TUNNEL_PORT = 8080

_ENV_FALLBACKS = {
    "region": "AWS_DEFAULT_REGION",
    "access_key": "AWS_ACCESS_KEY_ID",
    "secret_key": "AWS_SECRET_ACCESS_KEY",
    "profile": "AWS_PROFILE",
}


class AWSConfig(BaseModel):
    """Credentials and region for the AWS backend.

    Static keys win over key files, key files win over a named profile.
    With none of them set, boto3's own credential chain is used.
    """

    region: Optional[str] = None
    access_key: Optional[str] = None
    secret_key: Optional[str] = None
    access_key_file: Optional[Path] = None
    secret_key_file: Optional[Path] = None
    profile: Optional[str] = None

    def resolved_region(self) -> str:
        return self.region or DEFAULT_REGION

    def resolved_keys(self) -> tuple[Optional[str], Optional[str]]:
        """Return (access_key, secret_key), reading key files if needed."""
        access = self.access_key or _read_key_file(self.access_key_file)
        secret = self.secret_key or _read_key_file(self.secret_key_file)
        return access, secret


class ExitNodeConfig(BaseModel):
    """Persistent defaults for provisioning exit nodes."""

    provider: str = "aws"
    os: str = DEFAULT_OS
    plan: str = DEFAULT_PLAN
    tunnel_port: int = Field(default=DEFAULT_TUNNEL_PORT, ge=1, le=65535)
    # Delete the security group again when instance creation fails.
    cleanup_on_failure: bool = False
    aws: AWSConfig = Field(default_factory=AWSConfig)


def _read_key_file(path: Optional[Path]) -> Optional[str]:
    if path is None:
        return None
    return Path(path).expanduser().read_text().strip()


def _apply_env(config: ExitNodeConfig) -> ExitNodeConfig:
    updates = {}
    for field_name, env_var in _ENV_FALLBACKS.items():
        if getattr(config.aws, field_name) is None and os.environ.get(env_var):
            updates[field_name] = os.environ[env_var]
    if not updates:
        return config
    return config.model_copy(update={"aws": config.aws.model_copy(update=updates)})


def load_config(home: Optional[Path] = None) -> ExitNodeConfig:
    """Load configuration from ``<home>/config.yaml``.

    A missing file means defaults. An unreadable or invalid file is logged
    and also falls back to defaults.

    Args:
        home: Config directory. Defaults to EXITNODE_HOME.

    Returns:
        The loaded ExitNodeConfig with environment fallbacks applied.
    """
    home = Path(home or EXITNODE_HOME).expanduser()
    config_file = home / "config.yaml"
    config = ExitNodeConfig()
    if config_file.exists():
        try:
            data = yaml.safe_load(config_file.read_text()) or {}
            config = ExitNodeConfig(**data)
        except (OSError, yaml.YAMLError, ValueError, TypeError) as exc:
            logger.warning("Failed to load config %s: %s, using defaults", config_file, exc)
    return _apply_env(config)
