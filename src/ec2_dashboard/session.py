from __future__ import annotations

import enum
import logging
from collections.abc import Callable
from dataclasses import dataclass

from .aws_api import ProviderError
from .models import ALL_STATES, InstanceRecord, filter_instances, is_filter_value
from .scanner import FleetScanner

logger = logging.getLogger(__name__)

IDLE_MESSAGE = ""
ENUMERATING_MESSAGE = "Fetching available AWS regions..."
COMPLETE_MESSAGE = "Fetch complete."
FAILED_MESSAGE = "Error fetching instances."


class FetchPhase(enum.Enum):
    IDLE = "idle"
    ENUMERATING = "enumerating"
    SCANNING = "scanning"
    COMPLETE = "complete"
    FAILED = "failed"


@dataclass(slots=True)
class FetchSession:
    """Fetched instances, lifecycle phase and the selected state filter.

    ``instances`` only ever holds the result of the last fully completed fetch;
    it is cleared by ``begin`` and replaced in one step by ``complete``.
    """

    instances: tuple[InstanceRecord, ...] = ()
    loading: bool = False
    status_message: str = IDLE_MESSAGE
    filter: str = ALL_STATES
    phase: FetchPhase = FetchPhase.IDLE
    current_region: str | None = None
    error: str | None = None

    @property
    def visible_instances(self) -> tuple[InstanceRecord, ...]:
        return filter_instances(self.instances, self.filter)

    def select_filter(self, value: str) -> None:
        if not is_filter_value(value):
            raise ValueError(f"Unknown state filter: {value!r}")
        self.filter = value

    def begin(self) -> bool:
        if self.loading:
            return False
        self.loading = True
        self.instances = ()
        self.current_region = None
        self.error = None
        self.phase = FetchPhase.ENUMERATING
        self.status_message = ENUMERATING_MESSAGE
        return True

    def scanning(self, region: str) -> None:
        self.phase = FetchPhase.SCANNING
        self.current_region = region
        self.status_message = f"Checking region: {region}..."

    def complete(self, instances: tuple[InstanceRecord, ...]) -> None:
        self.instances = tuple(instances)
        self.loading = False
        self.current_region = None
        self.phase = FetchPhase.COMPLETE
        self.status_message = COMPLETE_MESSAGE

    def fail(self, error: Exception | None = None) -> None:
        self.instances = ()
        self.error = str(error) if error is not None else None
        self.loading = False
        self.phase = FetchPhase.FAILED
        self.status_message = FAILED_MESSAGE

    def run_scan(self, scanner: FleetScanner, on_change: Callable[[], None] | None = None) -> bool:
        """Drive an already begun fetch to completion or failure."""
        notify = on_change or (lambda: None)

        def on_region(region: str) -> None:
            self.scanning(region)
            notify()

        try:
            instances = scanner.scan(on_region=on_region)
        except ProviderError as error:
            logger.error("Error fetching instances: %s", error)
            self.fail(error)
            notify()
            return False

        self.complete(instances)
        notify()
        return True

    def fetch(self, scanner: FleetScanner, on_change: Callable[[], None] | None = None) -> bool:
        if not self.begin():
            return False
        if on_change is not None:
            on_change()
        return self.run_scan(scanner, on_change)
