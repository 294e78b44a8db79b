from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime

OWNER_NOT_AVAILABLE = "N/A"
ALL_STATES = "All"

INSTANCE_STATES = ("pending", "running", "stopping", "stopped", "shutting-down", "terminated")

FILTER_OPTIONS: tuple[tuple[str, str], ...] = (
    ("All States", ALL_STATES),
    ("Running", "running"),
    ("Stopped", "stopped"),
    ("Terminated", "terminated"),
    ("Pending", "pending"),
    ("Shutting Down", "shutting-down"),
    ("Stopping", "stopping"),
)


@dataclass(slots=True, frozen=True)
class NetworkUsage:
    network_in: float = 0.0
    network_out: float = 0.0


@dataclass(slots=True, frozen=True)
class InstanceRecord:
    instance_id: str
    instance_type: str
    launch_time: str
    owner: str
    region: str
    state: str
    network_in: float = 0.0
    network_out: float = 0.0


def filter_instances(instances: Iterable[InstanceRecord], state: str) -> tuple[InstanceRecord, ...]:
    if state == ALL_STATES:
        return tuple(instances)
    return tuple(instance for instance in instances if instance.state == state)


def is_filter_value(value: str) -> bool:
    return any(option == value for _, option in FILTER_OPTIONS)


def state_category(state: str) -> str:
    """Visual category of an instance state: positive, negative or neutral."""
    if state == "running":
        return "positive"
    if state == "stopped":
        return "negative"
    return "neutral"


def format_launch_time(value: datetime) -> str:
    return value.astimezone().strftime("%x %X")


def format_bytes(value: float) -> str:
    return f"{value:,.0f}"
