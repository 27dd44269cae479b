"""
Typed errors raised by the provisioning engine.

Every failure names the step that produced it so callers can tell a
missing image from a rejected security group without parsing messages.
"""

from __future__ import annotations

from typing import Optional


class ProvisionError(Exception):
    """Base class for every provisioning failure.

    Args:
        message: Human-readable description.
        step: Provisioning step that failed (e.g. 'resolve-image').
    """

    def __init__(self, message: str, step: Optional[str] = None) -> None:
        super().__init__(message)
        self.step = step

    def __str__(self) -> str:
        message = super().__str__()
        if self.step:
            return f"[{self.step}] {message}"
        return message


class NotFoundError(ProvisionError):
    """A single item was expected but the backend returned none."""


class ValidationError(ProvisionError):
    """A caller-supplied parameter is missing or malformed."""


class MalformedDataError(ProvisionError):
    """A value returned by the backend does not match its expected format."""


class ProviderError(ProvisionError):
    """Transport or API failure reported by the cloud backend.

    Args:
        message: Human-readable description.
        step: Provisioning step that failed.
        code: Backend error code, when the backend supplied one.
        group_id: Security group left behind by a partial failure.
    """

    def __init__(
        self,
        message: str,
        step: Optional[str] = None,
        code: Optional[str] = None,
        group_id: Optional[str] = None,
    ) -> None:
        super().__init__(message, step=step)
        self.code = code
        self.group_id = group_id
