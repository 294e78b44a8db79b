"""Shared fixtures: fake inventory and metrics services, boto3 client mocks."""

import os
import sys
from datetime import datetime, timezone
from pathlib import Path
from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import pytest
from botocore.exceptions import ClientError

src_root = Path(__file__).parent.parent / "src"
if str(src_root) not in sys.path:
    sys.path.insert(0, str(src_root))

from ec2_dashboard.aws_api import ProviderError  # noqa: E402
from ec2_dashboard.models import InstanceRecord, NetworkUsage  # noqa: E402


@pytest.fixture(autouse=True)
def setup_test_environment():
    os.environ.setdefault("AWS_DEFAULT_REGION", "us-east-1")
    os.environ.setdefault("AWS_ACCESS_KEY_ID", "testing")
    os.environ.setdefault("AWS_SECRET_ACCESS_KEY", "testing")
    yield


def make_instance(instance_id, region="us-east-1", state="running", **overrides):
    values = {
        "instance_id": instance_id,
        "instance_type": "t3.micro",
        "launch_time": "01/15/24 09:30:00",
        "owner": "N/A",
        "region": region,
        "state": state,
        "network_in": 0.0,
        "network_out": 0.0,
    }
    values.update(overrides)
    return InstanceRecord(**values)


def client_error(operation, code="AuthFailure"):
    return ClientError({"Error": {"Code": code, "Message": "denied"}}, operation)


class FakeMetrics:
    def __init__(self, usage=NetworkUsage(1024.0, 2048.0)):
        self.usage = usage
        self.calls = []

    def network_usage(self, region, instance_id, start):
        self.calls.append((region, instance_id, start))
        return self.usage


class FakeInventory:
    """In-memory stand-in for AwsEc2Service."""

    def __init__(self, instances_by_region, fail_regions=False, fail_in_region=None):
        self.instances_by_region = instances_by_region
        self.fail_regions = fail_regions
        self.fail_in_region = fail_in_region
        self.list_regions_calls = 0
        self.scanned = []

    def list_regions(self):
        self.list_regions_calls += 1
        if self.fail_regions:
            raise ProviderError("Failed to list regions: denied")
        return list(self.instances_by_region)

    def list_instances(self, region, metrics):
        self.scanned.append(region)
        if region == self.fail_in_region:
            raise ProviderError(f"Failed to list instances in {region}: denied", region=region)
        return list(self.instances_by_region[region])


@pytest.fixture
def two_region_inventory():
    return FakeInventory(
        {
            "us-east-1": [make_instance("i-east1", "us-east-1", "running")],
            "eu-west-1": [
                make_instance("i-west1", "eu-west-1", "stopped"),
                make_instance("i-west2", "eu-west-1", "running"),
            ],
        }
    )


@pytest.fixture
def fake_metrics():
    return FakeMetrics()


@pytest.fixture
def aws_clients():
    """Patch boto3.Session in ec2_dashboard.aws_api; expose the per-service client mocks."""
    clients = SimpleNamespace(ec2=MagicMock(), cloudwatch=MagicMock())
    with patch("ec2_dashboard.aws_api.boto3.Session") as mock_session_class:
        mock_session = MagicMock()
        mock_session_class.return_value = mock_session
        mock_session.client.side_effect = lambda name: getattr(clients, name)
        clients.session_class = mock_session_class
        yield clients


@pytest.fixture
def launch_time():
    return datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)
