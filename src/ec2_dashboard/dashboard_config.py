from __future__ import annotations

from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any

import yaml

from .aws_api import DEFAULT_OWNER_TAG_KEY, DEFAULT_REGION, METRIC_PERIOD_SECONDS, AwsCredentials

DEFAULT_CONFIG_PATH = Path("dashboard.yaml")


@dataclass(slots=True, frozen=True)
class DashboardConfig:
    profile: str | None = None
    default_region: str = DEFAULT_REGION
    owner_tag_key: str = DEFAULT_OWNER_TAG_KEY
    metric_period: int = METRIC_PERIOD_SECONDS
    access_key_id: str | None = None
    secret_access_key: str | None = field(default=None, repr=False)

    def credentials(self) -> AwsCredentials:
        return AwsCredentials(
            profile=self.profile,
            access_key_id=self.access_key_id,
            secret_access_key=self.secret_access_key,
        )

    def with_overrides(self, *, profile: str | None = None, region: str | None = None) -> DashboardConfig:
        return replace(
            self,
            profile=profile or self.profile,
            default_region=region or self.default_region,
        )


DEFAULT_DASHBOARD_CONFIG = DashboardConfig()


def load_dashboard_config(config_path: str | Path | None = None) -> DashboardConfig:
    path = Path(config_path).expanduser() if config_path else DEFAULT_CONFIG_PATH
    if not path.is_file():
        return DEFAULT_DASHBOARD_CONFIG

    with path.open("r", encoding="utf-8") as handle:
        loaded = yaml.safe_load(handle) or {}

    defaults = DEFAULT_DASHBOARD_CONFIG
    return DashboardConfig(
        profile=_coerce_text(_safe_mapping_get(loaded, "profile"), fallback=defaults.profile),
        default_region=_coerce_text(
            _safe_mapping_get(loaded, "default_region"),
            fallback=defaults.default_region,
        ),
        owner_tag_key=_coerce_text(
            _safe_mapping_get(loaded, "owner_tag_key"),
            fallback=defaults.owner_tag_key,
        ),
        metric_period=_coerce_period(_safe_mapping_get(loaded, "metric_period"), fallback=defaults.metric_period),
        access_key_id=_coerce_text(_safe_mapping_get(loaded, "access_key_id"), fallback=None),
        secret_access_key=_coerce_text(_safe_mapping_get(loaded, "secret_access_key"), fallback=None),
    )


def _coerce_period(value: Any, fallback: int) -> int:
    # CloudWatch periods are whole minutes.
    try:
        period = int(value)
    except (TypeError, ValueError):
        return fallback

    if period >= 60 and period % 60 == 0:
        return period
    return fallback


def _coerce_text(value: Any, fallback: Any) -> Any:
    if value is None:
        return fallback
    text = str(value).strip()
    return text or fallback


def _safe_mapping_get(mapping: Any, key: str, fallback: Any = None) -> Any:
    try:
        return mapping[key]
    except (KeyError, TypeError):
        return fallback
