from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Protocol

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from .models import (
    OWNER_NOT_AVAILABLE,
    InstanceRecord,
    NetworkUsage,
    format_launch_time,
)

logger = logging.getLogger(__name__)

DEFAULT_REGION = "us-east-1"
DEFAULT_OWNER_TAG_KEY = "user_id"
METRIC_NAMESPACE = "AWS/EC2"
METRIC_PERIOD_SECONDS = 3600
NETWORK_IN_METRIC = "NetworkIn"
NETWORK_OUT_METRIC = "NetworkOut"

DEMO_REGIONS = ("us-east-1", "eu-west-1", "ap-southeast-2")


class ProviderError(Exception):
    """Region enumeration or instance listing failed."""

    def __init__(self, message: str, region: str | None = None) -> None:
        super().__init__(message)
        self.region = region


class MetricError(Exception):
    """A single CloudWatch metric could not be fetched for one instance."""

    def __init__(self, metric_name: str, instance_id: str, cause: Exception) -> None:
        super().__init__(f"{metric_name} for {instance_id}: {cause}")
        self.metric_name = metric_name
        self.instance_id = instance_id


class NetworkMetrics(Protocol):
    def network_usage(self, region: str, instance_id: str, start: datetime) -> NetworkUsage: ...


class Ec2Inventory(Protocol):
    def list_regions(self) -> list[str]: ...

    def list_instances(self, region: str, metrics: NetworkMetrics) -> list[InstanceRecord]: ...


@dataclass(slots=True, frozen=True)
class AwsCredentials:
    profile: str | None = None
    access_key_id: str | None = None
    secret_access_key: str | None = field(default=None, repr=False)

    @property
    def has_static_keys(self) -> bool:
        return bool(self.access_key_id and self.secret_access_key)

    @property
    def is_explicit(self) -> bool:
        """True when a profile or static keys were configured rather than the default chain."""
        return bool(self.profile) or self.has_static_keys

    def session(self, region: str) -> boto3.Session:
        if self.has_static_keys:
            return boto3.Session(
                aws_access_key_id=self.access_key_id,
                aws_secret_access_key=self.secret_access_key,
                region_name=region,
            )
        return boto3.Session(profile_name=self.profile or None, region_name=region)

    def is_available(self, region: str = DEFAULT_REGION) -> bool:
        try:
            return self.session(region).get_credentials() is not None
        except BotoCoreError:
            return False


class AwsEc2Service:
    def __init__(
        self,
        credentials: AwsCredentials,
        default_region: str = DEFAULT_REGION,
        owner_tag_key: str = DEFAULT_OWNER_TAG_KEY,
    ) -> None:
        self.credentials = credentials
        self.default_region = default_region or DEFAULT_REGION
        self.owner_tag_key = owner_tag_key or DEFAULT_OWNER_TAG_KEY

    def list_regions(self) -> list[str]:
        try:
            ec2 = self.credentials.session(self.default_region).client("ec2")
            response = ec2.describe_regions()
        except (BotoCoreError, ClientError) as error:
            raise ProviderError(f"Failed to list regions: {error}") from error
        return [region["RegionName"] for region in response.get("Regions", [])]

    def list_instances(self, region: str, metrics: NetworkMetrics) -> list[InstanceRecord]:
        try:
            ec2 = self.credentials.session(region).client("ec2")
            response = ec2.describe_instances()
        except (BotoCoreError, ClientError) as error:
            raise ProviderError(f"Failed to list instances in {region}: {error}", region=region) from error

        records: list[InstanceRecord] = []
        for reservation in response.get("Reservations", []):
            for instance in reservation.get("Instances", []):
                records.append(self._to_record(instance, region, metrics))
        return records

    def _to_record(self, instance: dict[str, Any], region: str, metrics: NetworkMetrics) -> InstanceRecord:
        instance_id = instance["InstanceId"]
        launched_at: datetime = instance["LaunchTime"]
        usage = metrics.network_usage(region, instance_id, launched_at)
        return InstanceRecord(
            instance_id=instance_id,
            instance_type=instance.get("InstanceType", "unknown"),
            launch_time=format_launch_time(launched_at),
            owner=_tag_value(instance.get("Tags", []), self.owner_tag_key) or OWNER_NOT_AVAILABLE,
            region=region,
            state=instance.get("State", {}).get("Name", "unknown"),
            network_in=usage.network_in,
            network_out=usage.network_out,
        )


class CloudWatchNetworkMetrics:
    def __init__(self, credentials: AwsCredentials, period: int = METRIC_PERIOD_SECONDS) -> None:
        self.credentials = credentials
        self.period = period

    def network_usage(self, region: str, instance_id: str, start: datetime) -> NetworkUsage:
        end = datetime.now(timezone.utc)
        return NetworkUsage(
            network_in=self._sum_or_zero(region, instance_id, NETWORK_IN_METRIC, start, end),
            network_out=self._sum_or_zero(region, instance_id, NETWORK_OUT_METRIC, start, end),
        )

    def metric_sum(
        self,
        region: str,
        instance_id: str,
        metric_name: str,
        start: datetime,
        end: datetime,
    ) -> float:
        try:
            cloudwatch = self.credentials.session(region).client("cloudwatch")
            response = cloudwatch.get_metric_statistics(
                Namespace=METRIC_NAMESPACE,
                MetricName=metric_name,
                Dimensions=[{"Name": "InstanceId", "Value": instance_id}],
                StartTime=start,
                EndTime=end,
                Period=self.period,
                Statistics=["Sum"],
            )
            return float(sum(point.get("Sum", 0.0) for point in response.get("Datapoints", [])))
        except Exception as error:
            # Metrics are best effort; any failure here must not abort the scan.
            raise MetricError(metric_name, instance_id, error) from error

    def _sum_or_zero(
        self,
        region: str,
        instance_id: str,
        metric_name: str,
        start: datetime,
        end: datetime,
    ) -> float:
        try:
            return self.metric_sum(region, instance_id, metric_name, start, end)
        except MetricError as error:
            logger.warning("Error fetching %s", error)
            return 0.0


class DemoEc2Service:
    def list_regions(self) -> list[str]:
        return list(DEMO_REGIONS)

    def list_instances(self, region: str, metrics: NetworkMetrics) -> list[InstanceRecord]:
        return build_mock_instances(region, metrics)


class DemoNetworkMetrics:
    def network_usage(self, region: str, instance_id: str, start: datetime) -> NetworkUsage:
        seed = sum(ord(char) for char in instance_id)
        return NetworkUsage(network_in=float(seed * 40_961), network_out=float(seed * 12_289))


def build_mock_instances(region: str, metrics: NetworkMetrics) -> list[InstanceRecord]:
    short_region = region.replace("-", "")
    launched_at = datetime(2024, 1, 15, 9, 30, tzinfo=timezone.utc)
    specs = (
        (f"i-{short_region}a1b2c3d4e5f6", "t3.micro", "running", "alice"),
        (f"i-{short_region}112233445566", "t3.small", "stopped", None),
        (f"i-{short_region}998877665544", "m5.large", "terminated", "bob"),
    )
    records: list[InstanceRecord] = []
    for offset, (instance_id, instance_type, state, owner) in enumerate(specs):
        started = launched_at + timedelta(days=offset * 7)
        usage = metrics.network_usage(region, instance_id, started)
        records.append(
            InstanceRecord(
                instance_id=instance_id,
                instance_type=instance_type,
                launch_time=format_launch_time(started),
                owner=owner or OWNER_NOT_AVAILABLE,
                region=region,
                state=state,
                network_in=usage.network_in,
                network_out=usage.network_out,
            )
        )
    return records


def _tag_value(tags: Iterable[dict[str, str]], key: str) -> str:
    for tag in tags:
        if tag.get("Key") == key:
            return tag.get("Value", "")
    return ""
