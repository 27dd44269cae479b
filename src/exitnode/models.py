"""
Pydantic models for provisioning requests and their results.

A HostRequest says what to build; a ProvisionedHost says what the
backend reports back. Neither is tied to a particular cloud.
"""

from __future__ import annotations

import re
from datetime import datetime
from typing import Any, Dict, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic import ValidationError as PydanticValidationError

from .errors import ValidationError

TUNNEL_PORT_KEY = "inlets-port"

# Plain base-10 digits only: no sign, separators, whitespace or fraction.
_PORT_PATTERN = re.compile(r"[0-9]+")


class HostRequest(BaseModel):
    """Immutable description of the exit node to provision.

    ``additional`` carries provider-specific string parameters. The tunnel
    port is lifted out of it into the typed ``tunnel_port`` field when the
    request is built, so provisioners never parse it themselves.
    """

    model_config = ConfigDict(frozen=True)

    name: str = Field(min_length=1, description="Display name, also tags the instance")
    os: str = Field(min_length=1, description="Image name selector")
    plan: str = Field(min_length=1, description="Instance type / size")
    user_data: bytes = Field(default=b"", description="Boot-time script payload")
    additional: Dict[str, str] = Field(default_factory=dict)
    tunnel_port: Optional[int] = Field(default=None, ge=1, le=65535, strict=True)

    @model_validator(mode="before")
    @classmethod
    def _lift_tunnel_port(cls, data: Any) -> Any:
        if not isinstance(data, dict) or data.get("tunnel_port") is not None:
            return data
        raw = (data.get("additional") or {}).get(TUNNEL_PORT_KEY)
        if raw is None:
            return data
        if isinstance(raw, str) and _PORT_PATTERN.fullmatch(raw):
            raw = int(raw)
        # Anything else reaches the strict int field as-is and is rejected there.
        return {**data, "tunnel_port": raw}

    @classmethod
    def from_parameters(
        cls,
        name: str,
        os: str,
        plan: str,
        user_data: Union[bytes, str] = b"",
        additional: Optional[Dict[str, str]] = None,
        tunnel_port: Optional[int] = None,
    ) -> "HostRequest":
        """Build a request, reporting bad input as a ValidationError.

        Raises:
            ValidationError: If any field is missing or malformed, including
                a tunnel port that is not an integer in 1-65535.
        """
        try:
            return cls(
                name=name,
                os=os,
                plan=plan,
                user_data=user_data,
                additional=additional or {},
                tunnel_port=tunnel_port,
            )
        except PydanticValidationError as exc:
            problems = "; ".join(
                f"{'.'.join(str(p) for p in err['loc']) or 'request'}: {err['msg']}"
                for err in exc.errors()
            )
            raise ValidationError(f"Invalid host request: {problems}", step="request") from exc


class ProvisionedHost(BaseModel):
    """What the backend reports about one instance."""

    model_config = ConfigDict(frozen=True)

    id: str
    ip: str = ""
    status: str


class ImageCandidate(BaseModel):
    """An image considered during resolution."""

    image_id: str
    created_at: datetime
