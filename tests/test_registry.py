"""Tests for the provisioner contract and registry."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest

from exitnode.config import ExitNodeConfig
from exitnode.models import HostRequest
from exitnode.providers import (
    AWSProvisioner,
    Provisioner,
    available_provisioners,
    get_provisioner,
    provisioner_from_config,
    register_provisioner,
)
from exitnode.providers import base


class TestRegistry:

    def test_aws_is_registered(self):
        assert "aws" in available_provisioners()

    def test_get_provisioner_builds_backend(self):
        client = MagicMock()
        provisioner = get_provisioner("aws", client=client)
        assert isinstance(provisioner, AWSProvisioner)
        assert isinstance(provisioner, Provisioner)

    def test_unknown_backend(self):
        with pytest.raises(KeyError, match="digitalocean"):
            get_provisioner("digitalocean")

    def test_provisioner_from_config(self):
        with patch("exitnode.providers.aws.create_ec2_client") as factory:
            provisioner = provisioner_from_config(ExitNodeConfig(provider="aws"))
        assert isinstance(provisioner, AWSProvisioner)
        factory.assert_called_once()

    def test_unknown_backend_in_config(self):
        with pytest.raises(KeyError, match="available: .*aws"):
            provisioner_from_config(ExitNodeConfig(provider="linode"))

    def test_misspelled_option_rejected(self):
        with pytest.raises(TypeError, match="cleanup_on_falure"):
            get_provisioner("aws", client=MagicMock(), cleanup_on_falure=True)

    def test_options_reach_backend(self):
        provisioner = get_provisioner("aws", client=MagicMock(), cleanup_on_failure=True)
        assert provisioner._cleanup_on_failure is True

    def test_register_custom_backend(self, monkeypatch):
        monkeypatch.setattr(base, "_PROVISIONERS", dict(base._PROVISIONERS))

        @register_provisioner("fake")
        class FakeProvisioner(Provisioner):
            name = "fake"

        assert "fake" in available_provisioners()
        assert isinstance(get_provisioner("fake"), FakeProvisioner)


class TestProvisionerContract:

    def test_base_methods_are_abstract(self):
        provisioner = Provisioner()
        request = HostRequest.from_parameters(name="h", os="img", plan="small")
        with pytest.raises(NotImplementedError):
            provisioner.provision(request)
        with pytest.raises(NotImplementedError):
            provisioner.status("id")
        with pytest.raises(NotImplementedError):
            provisioner.delete("id")
        with pytest.raises(NotImplementedError):
            Provisioner.from_config(ExitNodeConfig())
