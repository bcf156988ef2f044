"""Monitoring: source-to-site bindings and their run schedule."""

from newsflow.monitoring.config import MonitoringSettings
from newsflow.monitoring.repository import MonitoringRepository
from newsflow.monitoring.schedule import due_configs, next_run
from newsflow.monitoring.schemas import (
    FREQUENCY_PRESETS,
    MonitoringConfig,
    MonitoringConfigCreate,
    NextRun,
    RunState,
)

__all__ = [
    "FREQUENCY_PRESETS",
    "MonitoringConfig",
    "MonitoringConfigCreate",
    "MonitoringRepository",
    "MonitoringSettings",
    "NextRun",
    "RunState",
    "due_configs",
    "next_run",
]
