"""Tests for the provisioning error taxonomy."""

from __future__ import annotations

from exitnode.errors import (
    MalformedDataError,
    NotFoundError,
    ProviderError,
    ProvisionError,
    ValidationError,
)


class TestProvisionError:

    def test_all_errors_share_a_base(self):
        for cls in (NotFoundError, ValidationError, MalformedDataError, ProviderError):
            assert issubclass(cls, ProvisionError)

    def test_message_names_step(self):
        exc = NotFoundError("No image", step="resolve-image")
        assert str(exc) == "[resolve-image] No image"
        assert exc.step == "resolve-image"

    def test_message_without_step(self):
        assert str(ValidationError("bad port")) == "bad port"

    def test_provider_error_carries_code_and_group(self):
        exc = ProviderError("boom", step="ingress-boundary", code="Throttling", group_id="sg-1")
        assert exc.code == "Throttling"
        assert exc.group_id == "sg-1"
