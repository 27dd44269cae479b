"""Canonical instance status vocabulary."""

from __future__ import annotations

ACTIVE_STATUS = "active"

_RUNNING_STATE = "running"


def normalize_status(state: str) -> str:
    """Map a provider-native instance state to the canonical status.

    Only ``running`` is collapsed into :data:`ACTIVE_STATUS`; every other
    state (``pending``, ``stopping``, ``terminated``, or anything the
    provider invents later) is reported verbatim.

    Args:
        state: Provider state name.

    Returns:
        Canonical status string.
    """
    if state == _RUNNING_STATE:
        return ACTIVE_STATUS
    return state
