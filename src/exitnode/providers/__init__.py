"""
Provisioner backends, one module per cloud.

Each backend implements the Provisioner contract from providers.base and
registers itself by name. Callers use get_provisioner() and never import
a concrete backend.
"""

from .base import (
    Provisioner,
    available_provisioners,
    get_provisioner,
    provisioner_from_config,
    register_provisioner,
)
from .aws import AWSProvisioner

__all__ = [
    "Provisioner",
    "AWSProvisioner",
    "available_provisioners",
    "get_provisioner",
    "provisioner_from_config",
    "register_provisioner",
]
