"""Tests for canonical status normalization."""

from __future__ import annotations

import pytest

from exitnode.status import ACTIVE_STATUS, normalize_status


class TestNormalizeStatus:
    """Tests for normalize_status."""

    def test_running_becomes_active(self):
        assert normalize_status("running") == ACTIVE_STATUS == "active"

    @pytest.mark.parametrize(
        "state",
        ["pending", "stopping", "stopped", "shutting-down", "terminated"],
    )
    def test_other_states_pass_through(self, state):
        assert normalize_status(state) == state

    def test_unknown_state_passes_through(self):
        assert normalize_status("hibernating") == "hibernating"

    def test_match_is_exact(self):
        assert normalize_status("RUNNING") == "RUNNING"
