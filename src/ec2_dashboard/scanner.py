"""Serial fan-out over every region of the account.

Regions are scanned one at a time in enumeration order and instances one at a
time within a region. The result is folded into a single immutable tuple that
only exists once every region has been scanned, so a failure part way through
never leaves a partial result behind.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from functools import reduce

from .aws_api import Ec2Inventory, NetworkMetrics
from .models import InstanceRecord

logger = logging.getLogger(__name__)


class FleetScanner:
    def __init__(self, inventory: Ec2Inventory, metrics: NetworkMetrics) -> None:
        self.inventory = inventory
        self.metrics = metrics

    def scan(self, on_region: Callable[[str], None] | None = None) -> tuple[InstanceRecord, ...]:
        """Return every instance of every region, or raise ``ProviderError``."""
        regions = self.inventory.list_regions()
        logger.info("Scanning %d regions", len(regions))

        def scan_region(found: tuple[InstanceRecord, ...], region: str) -> tuple[InstanceRecord, ...]:
            if on_region is not None:
                on_region(region)
            instances = self.inventory.list_instances(region, self.metrics)
            logger.debug("Found %d instances in %s", len(instances), region)
            return found + tuple(instances)

        return reduce(scan_region, regions, ())
