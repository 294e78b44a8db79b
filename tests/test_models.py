"""Tests for ec2_dashboard.models"""

from datetime import datetime, timezone

import pytest

from conftest import make_instance
from ec2_dashboard.models import (
    ALL_STATES,
    FILTER_OPTIONS,
    INSTANCE_STATES,
    filter_instances,
    format_bytes,
    format_launch_time,
    is_filter_value,
    state_category,
)

INSTANCES = (
    make_instance("i-1", state="running"),
    make_instance("i-2", state="stopped"),
    make_instance("i-3", state="running"),
    make_instance("i-4", state="terminated"),
)


class TestFilterInstances:
    def test_all_returns_everything_in_order(self):
        assert filter_instances(INSTANCES, ALL_STATES) == INSTANCES

    @pytest.mark.parametrize("state", INSTANCE_STATES)
    def test_state_filter_keeps_exact_matches_in_order(self, state):
        expected = tuple(instance for instance in INSTANCES if instance.state == state)
        assert filter_instances(INSTANCES, state) == expected

    def test_running_subset(self):
        assert [instance.instance_id for instance in filter_instances(INSTANCES, "running")] == ["i-1", "i-3"]

    def test_no_match_is_empty(self):
        assert filter_instances(INSTANCES, "pending") == ()

    def test_does_not_touch_input(self):
        source = list(INSTANCES)
        filter_instances(source, "stopped")
        assert source == list(INSTANCES)


class TestFilterOptions:
    def test_order_matches_selector(self):
        assert [value for _, value in FILTER_OPTIONS] == [
            "All",
            "running",
            "stopped",
            "terminated",
            "pending",
            "shutting-down",
            "stopping",
        ]

    def test_every_state_is_a_filter(self):
        assert all(is_filter_value(state) for state in INSTANCE_STATES)
        assert is_filter_value(ALL_STATES)
        assert not is_filter_value("rebooting")


@pytest.mark.parametrize(
    ("state", "category"),
    [
        ("running", "positive"),
        ("stopped", "negative"),
        ("pending", "neutral"),
        ("terminated", "neutral"),
        ("shutting-down", "neutral"),
    ],
)
def test_state_category(state, category):
    assert state_category(state) == category


def test_format_bytes_groups_thousands():
    assert format_bytes(1234567.0) == "1,234,567"
    assert format_bytes(0) == "0"


def test_format_launch_time_uses_local_timezone():
    launched = datetime(2024, 3, 5, 18, 45, 10, tzinfo=timezone.utc)
    assert format_launch_time(launched) == launched.astimezone().strftime("%x %X")
