"""
AWS EC2 provisioner: exit nodes on EC2 via boto3.

One provision call resolves the newest public AMI for the requested name,
makes sure the region has a default VPC, opens a fresh security group for
HTTP, HTTPS and the tunnel control port, then launches a single instance
with a 20 GiB EBS volume and the caller's boot script.

Partial failures are not rolled back unless ``cleanup_on_failure`` is
set: a security group created before a failed launch stays behind and
its id is carried on the raised ProviderError.

Default VPC creation is not atomic across callers. Two provisions that
both find no default VPC will both call CreateDefaultVpc; EC2 rejects
the second with ``DefaultVpcAlreadyExists``, which surfaces as a
ProviderError.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from ..config import AWSConfig, ExitNodeConfig
from ..errors import MalformedDataError, NotFoundError, ProviderError, ValidationError
from ..models import TUNNEL_PORT_KEY, HostRequest, ImageCandidate, ProvisionedHost
from ..status import normalize_status
from .base import Provisioner, register_provisioner

logger = logging.getLogger(__name__)

_ARCHITECTURE = "x86_64"
_ANY_SOURCE = "0.0.0.0/0"
_WEB_PORTS = (80, 443)
_SECURITY_GROUP_PREFIX = "inlets-sg-"
_SECURITY_GROUP_DESCRIPTION = "Inlets security group"
# RFC 3339 with a mandatory offset; fractional seconds are optional.
_CREATION_DATE_FORMATS = ("%Y-%m-%dT%H:%M:%S.%f%z", "%Y-%m-%dT%H:%M:%S%z")
_VOLUME_DEVICE = "/dev/sdh"
_VOLUME_SIZE_GIB = 20
_NAME_TAG = "name"
_INSTANCE_NOT_FOUND_CODES = ("InvalidInstanceID.NotFound", "InvalidInstanceID.Malformed")


def _error_code(exc: Exception) -> Optional[str]:
    if isinstance(exc, ClientError):
        return exc.response.get("Error", {}).get("Code")
    return None


def _provider_error(
    step: str, action: str, exc: Exception, group_id: Optional[str] = None,
) -> ProviderError:
    """Wrap a botocore failure in a ProviderError for ``step``."""
    return ProviderError(
        f"{action} failed: {exc}", step=step, code=_error_code(exc), group_id=group_id,
    )


def create_ec2_client(aws: AWSConfig) -> Any:
    """Create a boto3 EC2 client for the configured region and credentials.

    Args:
        aws: AWS section of the exitnode config.

    Returns:
        boto3 EC2 client.

    Raises:
        ProviderError: If a key file cannot be read or the session cannot
            be set up (e.g. unknown profile).
    """
    try:
        access_key, secret_key = aws.resolved_keys()
    except OSError as exc:
        raise ProviderError(f"Cannot read AWS key file: {exc}", step="session") from exc

    try:
        if access_key and secret_key:
            session = boto3.Session(
                aws_access_key_id=access_key,
                aws_secret_access_key=secret_key,
                region_name=aws.resolved_region(),
            )
        else:
            session = boto3.Session(profile_name=aws.profile, region_name=aws.resolved_region())
        return session.client("ec2")
    except BotoCoreError as exc:
        raise _provider_error("session", "Creating EC2 client", exc) from exc


def _parse_creation_date(value: Any) -> datetime:
    """Parse an AMI CreationDate (RFC 3339, e.g. 2023-03-01T00:00:00.000Z).

    Raises:
        MalformedDataError: If the value is not an RFC 3339 timestamp
            with a UTC offset.
    """
    if not isinstance(value, str):
        raise MalformedDataError(
            f"Image creation date is not a string: {value!r}", step="resolve-image",
        )
    for fmt in _CREATION_DATE_FORMATS:
        try:
            return datetime.strptime(value, fmt)
        except ValueError:
            continue
    raise MalformedDataError(
        f"Unparsable image creation date: {value!r}", step="resolve-image",
    )


def _instance_to_host(instance: Dict[str, Any], step: str) -> ProvisionedHost:
    try:
        instance_id = instance["InstanceId"]
        state = instance["State"]["Name"]
    except (KeyError, TypeError) as exc:
        raise MalformedDataError(f"Instance record is missing {exc}", step=step) from exc
    return ProvisionedHost(
        id=instance_id,
        ip=instance.get("PublicIpAddress") or "",
        status=normalize_status(state),
    )


# ---------------------------------------------------------------------------
# Image resolution
# ---------------------------------------------------------------------------

class ImageResolver:
    """Find the newest public, available x86_64 AMI with a given name.

    Args:
        client: boto3 EC2 client.
    """

    def __init__(self, client: Any) -> None:
        self._client = client

    def _candidates(self, images: List[Dict[str, Any]]) -> List[ImageCandidate]:
        candidates = []
        for image in images:
            image_id = image.get("ImageId")
            try:
                if not image_id:
                    raise MalformedDataError("Image record has no ImageId", step="resolve-image")
                created_at = _parse_creation_date(image.get("CreationDate"))
            except MalformedDataError as exc:
                logger.warning("Skipping image %s: %s", image_id or "<unknown>", exc)
                continue
            candidates.append(ImageCandidate(image_id=image_id, created_at=created_at))
        return candidates

    def resolve(self, selector: str) -> str:
        """Return the id of the most recently created matching image.

        Candidates with an unparsable creation date are skipped.

        Args:
            selector: Exact image name (AMI name filters accept wildcards).

        Returns:
            AMI id.

        Raises:
            ValidationError: If the selector is empty.
            NotFoundError: If no usable image matches.
            ProviderError: If DescribeImages fails.
        """
        if not selector:
            raise ValidationError("Image selector must not be empty", step="resolve-image")

        try:
            result = self._client.describe_images(
                Filters=[
                    {"Name": "name", "Values": [selector]},
                    {"Name": "is-public", "Values": ["true"]},
                    {"Name": "architecture", "Values": [_ARCHITECTURE]},
                    {"Name": "state", "Values": ["available"]},
                ],
            )
        except (ClientError, BotoCoreError) as exc:
            raise _provider_error("resolve-image", "DescribeImages", exc) from exc

        candidates = self._candidates(result.get("Images", []))
        if not candidates:
            raise NotFoundError(f"No available image matches '{selector}'", step="resolve-image")

        latest = max(candidates, key=lambda c: c.created_at)
        logger.info(
            "Resolved image '%s' to %s (created %s, %d candidates)",
            selector, latest.image_id, latest.created_at.isoformat(), len(candidates),
        )
        return latest.image_id


# ---------------------------------------------------------------------------
# Network bootstrap
# ---------------------------------------------------------------------------

def _tcp_from_anywhere(port: int) -> Dict[str, Any]:
    return {
        "IpProtocol": "tcp",
        "FromPort": port,
        "ToPort": port,
        "IpRanges": [{"CidrIp": _ANY_SOURCE}],
    }


class NetworkBootstrapper:
    """Default VPC lookup/creation and per-host security groups.

    Args:
        client: boto3 EC2 client.
    """

    def __init__(self, client: Any) -> None:
        self._client = client

    def ensure_default_network(self) -> str:
        """Return the default VPC id, creating the default VPC if missing.

        Raises:
            ProviderError: If listing or creating the VPC fails.
        """
        try:
            result = self._client.describe_vpcs()
        except (ClientError, BotoCoreError) as exc:
            raise _provider_error("default-network", "DescribeVpcs", exc) from exc

        for vpc in result.get("Vpcs", []):
            if vpc.get("IsDefault"):
                return vpc["VpcId"]

        logger.info("No default VPC found, creating one")
        try:
            created = self._client.create_default_vpc()
        except (ClientError, BotoCoreError) as exc:
            raise _provider_error("default-network", "CreateDefaultVpc", exc) from exc

        vpc_id = created["Vpc"]["VpcId"]
        logger.info("Created default VPC %s", vpc_id)
        return vpc_id

    def create_ingress_boundary(self, network_id: str, host_name: str, tunnel_port: int) -> str:
        """Create a security group allowing TCP 80, 443 and ``tunnel_port``.

        Args:
            network_id: VPC to create the group in.
            host_name: Host name, used to derive the group name.
            tunnel_port: Tunnel control port.

        Returns:
            Security group id.

        Raises:
            ValidationError: If ``tunnel_port`` is outside 1-65535.
            ProviderError: If creation or rule authorization fails. When
                only authorization failed, ``group_id`` names the group
                that was left behind.
        """
        if isinstance(tunnel_port, bool) or not isinstance(tunnel_port, int) \
                or not 1 <= tunnel_port <= 65535:
            raise ValidationError(
                f"Invalid tunnel port: {tunnel_port!r} (expected 1-65535)",
                step="ingress-boundary",
            )

        group_name = f"{_SECURITY_GROUP_PREFIX}{host_name}"
        try:
            created = self._client.create_security_group(
                Description=_SECURITY_GROUP_DESCRIPTION,
                GroupName=group_name,
                VpcId=network_id,
            )
        except (ClientError, BotoCoreError) as exc:
            raise _provider_error("ingress-boundary", "CreateSecurityGroup", exc) from exc

        group_id = created["GroupId"]
        ports = [*_WEB_PORTS, tunnel_port]
        try:
            self._client.authorize_security_group_ingress(
                GroupId=group_id,
                IpPermissions=[_tcp_from_anywhere(port) for port in ports],
            )
        except (ClientError, BotoCoreError) as exc:
            raise _provider_error(
                "ingress-boundary", "AuthorizeSecurityGroupIngress", exc, group_id=group_id,
            ) from exc

        logger.info(
            "Created security group %s (%s) in %s for ports %s",
            group_id, group_name, network_id, ", ".join(str(p) for p in ports),
        )
        return group_id

    def delete_ingress_boundary(self, group_id: str) -> None:
        """Delete a security group created by create_ingress_boundary.

        Raises:
            ProviderError: If the deletion fails.
        """
        try:
            self._client.delete_security_group(GroupId=group_id)
        except (ClientError, BotoCoreError) as exc:
            raise _provider_error("cleanup", "DeleteSecurityGroup", exc, group_id=group_id) from exc
        logger.info("Deleted security group %s", group_id)


# ---------------------------------------------------------------------------
# Instance lifecycle
# ---------------------------------------------------------------------------

@register_provisioner("aws")
class AWSProvisioner(Provisioner):
    """Provision exit nodes on AWS EC2.

    The client is the only state kept between calls. boto3 clients are
    safe to share between threads; instance state is re-read on every
    status() call.

    Args:
        client: boto3 EC2 client scoped to one region.
        cleanup_on_failure: Delete the security group created by a
            provision() call whose later steps failed.
    """

    name = "aws"

    def __init__(self, client: Any, cleanup_on_failure: bool = False) -> None:
        self._client = client
        self._cleanup_on_failure = cleanup_on_failure
        self._images = ImageResolver(client)
        self._network = NetworkBootstrapper(client)

    @classmethod
    def from_config(cls, config: ExitNodeConfig) -> "AWSProvisioner":
        """Build a provisioner with a client created from ``config.aws``."""
        return cls(
            create_ec2_client(config.aws),
            cleanup_on_failure=config.cleanup_on_failure,
        )

    def _compensate(self, group_id: str) -> bool:
        """Delete an orphaned security group if cleanup is enabled.

        Returns:
            True if the group was deleted.
        """
        if not self._cleanup_on_failure:
            logger.warning("Security group %s was left behind by a failed provision", group_id)
            return False
        try:
            self._network.delete_ingress_boundary(group_id)
        except ProviderError as exc:
            logger.warning("Could not clean up security group %s: %s", group_id, exc)
            return False
        return True

    def provision(self, request: HostRequest) -> ProvisionedHost:
        """Launch one EC2 instance for ``request``.

        Args:
            request: Host to provision. ``tunnel_port`` must be set.

        Returns:
            The instance as reported by RunInstances.

        Raises:
            ValidationError: If the request has no tunnel port. Raised
                before any call to AWS.
            NotFoundError: If no image matches ``request.os``.
            ProviderError: If any AWS call fails.
        """
        if request.tunnel_port is None:
            raise ValidationError(
                f"Missing tunnel port ('{TUNNEL_PORT_KEY}' parameter)", step="request",
            )

        image_id = self._images.resolve(request.os)
        vpc_id = self._network.ensure_default_network()

        try:
            group_id = self._network.create_ingress_boundary(
                vpc_id, request.name, request.tunnel_port,
            )
        except ProviderError as exc:
            if exc.group_id and self._compensate(exc.group_id):
                exc.group_id = None
            raise

        logger.info(
            "Launching EC2 instance %s (type=%s ami=%s sg=%s)",
            request.name, request.plan, image_id, group_id,
        )
        try:
            # Raw bytes: botocore base64-encodes UserData for RunInstances.
            result = self._client.run_instances(
                ImageId=image_id,
                InstanceType=request.plan,
                MinCount=1,
                MaxCount=1,
                UserData=request.user_data,
                SecurityGroupIds=[group_id],
                BlockDeviceMappings=[
                    {
                        "DeviceName": _VOLUME_DEVICE,
                        "Ebs": {"VolumeSize": _VOLUME_SIZE_GIB},
                    },
                ],
                TagSpecifications=[
                    {
                        "ResourceType": "instance",
                        "Tags": [{"Key": _NAME_TAG, "Value": request.name}],
                    },
                ],
            )
        except (ClientError, BotoCoreError) as exc:
            orphan = None if self._compensate(group_id) else group_id
            raise _provider_error("create-instance", "RunInstances", exc, group_id=orphan) from exc

        instances = result.get("Instances", [])
        if not instances:
            orphan = None if self._compensate(group_id) else group_id
            raise ProviderError(
                "RunInstances returned no instances", step="create-instance", group_id=orphan,
            )

        host = _instance_to_host(instances[0], step="create-instance")
        logger.info("Instance %s created (status=%s)", host.id, host.status)
        return host

    def status(self, instance_id: str) -> ProvisionedHost:
        """Describe one instance and normalize its state.

        Raises:
            NotFoundError: If EC2 reports no instance with that id.
            ProviderError: If DescribeInstances fails.
        """
        try:
            result = self._client.describe_instances(InstanceIds=[instance_id])
        except (ClientError, BotoCoreError) as exc:
            if _error_code(exc) in _INSTANCE_NOT_FOUND_CODES:
                raise NotFoundError(f"Instance {instance_id} not found", step="status") from exc
            raise _provider_error("status", "DescribeInstances", exc) from exc

        reservations = result.get("Reservations", [])
        if not reservations or not reservations[0].get("Instances"):
            raise NotFoundError(f"Instance {instance_id} not found", step="status")

        return _instance_to_host(reservations[0]["Instances"][0], step="status")

    def delete(self, instance_id: str) -> None:
        """Terminate one instance.

        Raises:
            ProviderError: If TerminateInstances fails, including for
                unknown or already-terminated ids when EC2 rejects them.
        """
        logger.info("Terminating EC2 instance %s", instance_id)
        try:
            self._client.terminate_instances(InstanceIds=[instance_id])
        except (ClientError, BotoCoreError) as exc:
            raise _provider_error("delete", "TerminateInstances", exc) from exc
