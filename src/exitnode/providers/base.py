"""
Provisioner contract and backend registry.

Each cloud backend implements Provisioner. Callers hold a Provisioner and
never a concrete backend type; get_provisioner() picks the backend by name.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, List

from ..models import HostRequest, ProvisionedHost

if TYPE_CHECKING:
    from ..config import ExitNodeConfig

_PROVISIONERS: Dict[str, type] = {}


def register_provisioner(name: str):
    """Decorator to register a provisioner class under a backend name.

    Args:
        name: Backend name (e.g. 'aws').
    """
    def wrapper(cls):
        _PROVISIONERS[name] = cls
        return cls
    return wrapper


def available_provisioners() -> List[str]:
    """Names of every registered backend, sorted."""
    return sorted(_PROVISIONERS)


def _provisioner_class(name: str) -> type:
    try:
        return _PROVISIONERS[name]
    except KeyError:
        raise KeyError(
            f"Unknown provisioner '{name}' "
            f"(available: {', '.join(available_provisioners()) or 'none'})"
        ) from None


def get_provisioner(name: str, **config: Any) -> Provisioner:
    """Instantiate the provisioner registered under ``name``.

    Args:
        name: Backend name.
        **config: Backend-specific constructor arguments.

    Returns:
        A ready Provisioner.

    Raises:
        KeyError: If no backend is registered under ``name``.
    """
    return _provisioner_class(name)(**config)


class Provisioner:
    """Abstract base for exit node backends.

    Implementations perform blocking remote calls and keep no state
    between calls apart from their client handle.
    """

    name: str = ""

    def provision(self, request: HostRequest) -> ProvisionedHost:
        """Create one instance for ``request``.

        Args:
            request: What to provision.

        Returns:
            The instance as first reported by the backend.
        """
        raise NotImplementedError

    def status(self, instance_id: str) -> ProvisionedHost:
        """Re-read an instance from the backend.

        Args:
            instance_id: Backend instance identifier.

        Returns:
            The instance with its canonical status.
        """
        raise NotImplementedError

    def delete(self, instance_id: str) -> None:
        """Request termination of an instance.

        Args:
            instance_id: Backend instance identifier.
        """
        raise NotImplementedError

    @classmethod
    def from_config(cls, config: ExitNodeConfig) -> Provisioner:
        """Build the backend from the loaded exitnode configuration."""
        raise NotImplementedError


def provisioner_from_config(config: ExitNodeConfig) -> Provisioner:
    """Build the provisioner named by ``config.provider``.

    Raises:
        KeyError: If no backend is registered under that name.
    """
    return _provisioner_class(config.provider).from_config(config)
