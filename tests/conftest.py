"""Shared test fixtures for exitnode."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

_AWS_ENV = (
    "AWS_DEFAULT_REGION",
    "AWS_ACCESS_KEY_ID",
    "AWS_SECRET_ACCESS_KEY",
    "AWS_PROFILE",
)


@pytest.fixture
def clean_aws_env(monkeypatch):
    """Remove AWS credential variables so config defaults are predictable."""
    for name in _AWS_ENV:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def ec2() -> MagicMock:
    """A boto3 EC2 client stand-in with a happy-path setup."""
    mock = MagicMock()
    mock.describe_images.return_value = {
        "Images": [
            {"ImageId": "ami-new", "CreationDate": "2023-03-01T00:00:00.000Z"},
        ]
    }
    mock.describe_vpcs.return_value = {
        "Vpcs": [{"VpcId": "vpc-default", "IsDefault": True}]
    }
    mock.create_security_group.return_value = {"GroupId": "sg-123"}
    mock.run_instances.return_value = {
        "Instances": [{"InstanceId": "i-0001", "State": {"Name": "pending"}}]
    }
    return mock
