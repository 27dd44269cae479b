"""Tests for HostRequest and ProvisionedHost."""

from __future__ import annotations

import pytest
from pydantic import ValidationError as PydanticValidationError

from exitnode.errors import ValidationError
from exitnode.models import TUNNEL_PORT_KEY, HostRequest, ProvisionedHost


def _request(**overrides) -> HostRequest:
    params = {
        "name": "tunnel-1",
        "os": "ubuntu-22.04",
        "plan": "t3.nano",
        "additional": {TUNNEL_PORT_KEY: "8080"},
    }
    params.update(overrides)
    return HostRequest.from_parameters(**params)


class TestHostRequestTunnelPort:
    """The tunnel port is parsed once, when the request is built."""

    def test_port_lifted_from_additional(self):
        assert _request().tunnel_port == 8080

    def test_leading_zeros_accepted(self):
        assert _request(additional={TUNNEL_PORT_KEY: "08123"}).tunnel_port == 8123

    def test_missing_port_is_none(self):
        assert _request(additional={}).tunnel_port is None

    def test_explicit_port_must_be_int(self):
        with pytest.raises(ValidationError):
            _request(tunnel_port="8080")

    def test_explicit_port_wins(self):
        req = _request(tunnel_port=9000)
        assert req.tunnel_port == 9000
        assert req.additional[TUNNEL_PORT_KEY] == "8080"

    @pytest.mark.parametrize(
        "port",
        ["not-a-port", "", "8080.0", "8_080", "+8080", "0x1F90", "8080\n", " 8123 ", "1e3"],
    )
    def test_unparsable_port_rejected(self, port):
        """Only plain decimal digits count as a port."""
        with pytest.raises(ValidationError) as exc_info:
            _request(additional={TUNNEL_PORT_KEY: port})
        assert exc_info.value.step == "request"
        assert "tunnel_port" in str(exc_info.value)

    @pytest.mark.parametrize("port", ["0", "65536", "-1"])
    def test_out_of_range_port_rejected(self, port):
        with pytest.raises(ValidationError):
            _request(additional={TUNNEL_PORT_KEY: port})

    def test_other_parameters_kept(self):
        req = _request(additional={TUNNEL_PORT_KEY: "8080", "zone": "us-east-1a"})
        assert req.additional["zone"] == "us-east-1a"


class TestHostRequestFields:

    def test_empty_name_rejected(self):
        with pytest.raises(ValidationError):
            _request(name="")

    def test_empty_os_rejected(self):
        with pytest.raises(ValidationError):
            _request(os="")

    def test_text_user_data_becomes_bytes(self):
        assert _request(user_data="#!/bin/sh\necho hi\n").user_data == b"#!/bin/sh\necho hi\n"

    def test_request_is_frozen(self):
        req = _request()
        with pytest.raises(PydanticValidationError):
            req.name = "other"


class TestProvisionedHost:

    def test_ip_defaults_to_empty(self):
        host = ProvisionedHost(id="i-1", status="pending")
        assert host.ip == ""

    def test_dump(self):
        host = ProvisionedHost(id="i-1", ip="1.2.3.4", status="active")
        assert host.model_dump() == {"id": "i-1", "ip": "1.2.3.4", "status": "active"}
