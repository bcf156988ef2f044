"""Next-run calculation for monitoring configs.

Pure functions: nothing here reads the clock unless ``now`` is omitted,
and nothing mutates the config.
"""

from datetime import datetime, timedelta, timezone

from newsflow.monitoring.schemas import MonitoringConfig, NextRun, RunState


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def next_run(config: MonitoringConfig, now: datetime | None = None) -> NextRun:
    """Compute when ``config`` is due.

    Inactive configs are PAUSED. Otherwise the next run is
    ``last_check_at + check_interval_minutes``; a time at or before
    ``now`` means READY. A config that has never run is treated as
    checked at ``now``.
    """
    if not config.active:
        return NextRun(RunState.PAUSED)

    now = _as_utc(now or datetime.now(timezone.utc))
    last_check = _as_utc(config.last_check_at) if config.last_check_at else now
    due = last_check + timedelta(minutes=config.check_interval_minutes)

    if due <= now:
        return NextRun(RunState.READY)
    return NextRun(RunState.SCHEDULED, at=due)


def due_configs(
    configs: list[MonitoringConfig], now: datetime | None = None
) -> list[MonitoringConfig]:
    """Configs whose next run is READY, in input order."""
    now = now or datetime.now(timezone.utc)
    return [c for c in configs if next_run(c, now).is_ready]
