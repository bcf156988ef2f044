"""Backend repository for monitoring configurations."""

import logging
from datetime import datetime, timezone
from typing import Any

import pydantic

from newsflow.backend.client import BackendClient, unwrap_data
from newsflow.backend.http_client import HTTPClientError
from newsflow.errors import ValidationError
from newsflow.monitoring.config import MonitoringSettings
from newsflow.monitoring.schemas import (
    FREQUENCY_PRESETS,
    MonitoringConfig,
    MonitoringConfigCreate,
)
from newsflow.sources.repository import validation_errors

logger = logging.getLogger(__name__)

_BASE = "/news/monitoring"


class MonitoringRepository:
    """CRUD operations for monitoring configs over the backend API.

    Orphaned configs (source or site gone) are returned like any other;
    the integrity validator reports them and nothing here deletes them.
    """

    def __init__(
        self,
        backend: BackendClient,
        settings: MonitoringSettings | None = None,
    ) -> None:
        self._backend = backend
        self._settings = settings or MonitoringSettings()

    async def list_configs(self, active_only: bool = False) -> list[MonitoringConfig]:
        payload = await self._backend.get(_BASE)
        configs = [MonitoringConfig.model_validate(row) for row in unwrap_data(payload) or []]
        if active_only:
            configs = [c for c in configs if c.active]
        return configs

    async def get(self, config_id: str) -> MonitoringConfig | None:
        try:
            payload = await self._backend.get(f"{_BASE}/{config_id}")
        except HTTPClientError as e:
            if e.status_code == 404:
                return None
            raise
        data = unwrap_data(payload)
        return MonitoringConfig.model_validate(data) if data else None

    def validate(self, data: MonitoringConfigCreate | dict[str, Any]) -> dict[str, Any]:
        """Check a create/update payload and return the backend body.

        Raises:
            ValidationError: Missing source or site, interval outside the
                configured bounds, or article limit out of range.
        """
        if not isinstance(data, MonitoringConfigCreate):
            try:
                data = MonitoringConfigCreate.model_validate(data)
            except pydantic.ValidationError as e:
                errors = validation_errors(e)
                raise ValidationError(_describe(errors), errors=errors) from e

        s = self._settings
        interval = data.check_interval_minutes
        if interval is None:
            interval = FREQUENCY_PRESETS.get(data.frequency or "", s.default_interval_minutes)
        limit = data.article_limit if data.article_limit is not None else s.default_article_limit

        errors: dict[str, str] = {}
        if not data.news_source_id:
            errors["news_source_id"] = "source is required"
        if not data.site_id:
            errors["site_id"] = "site is required"
        if not s.min_interval_minutes <= interval <= s.max_interval_minutes:
            errors["check_interval_minutes"] = (
                f"must be between {s.min_interval_minutes} and "
                f"{s.max_interval_minutes} minutes"
            )
        if not 1 <= limit <= s.max_article_limit:
            errors["article_limit"] = f"must be between 1 and {s.max_article_limit}"
        if errors:
            raise ValidationError(_describe(errors), errors=errors)

        return data.to_payload(interval=interval, article_limit=limit)

    async def create(self, data: MonitoringConfigCreate | dict[str, Any]) -> MonitoringConfig:
        body = self.validate(data)
        payload = await self._backend.post(_BASE, body)
        config = MonitoringConfig.model_validate(unwrap_data(payload))
        logger.info(
            "Created monitoring %s (source=%s, site=%s)",
            config.id,
            config.news_source_id,
            config.site_id,
        )
        return config

    async def update(
        self, config_id: str, data: MonitoringConfigCreate | dict[str, Any]
    ) -> MonitoringConfig:
        body = self.validate(data)
        payload = await self._backend.put(f"{_BASE}/{config_id}", body)
        return MonitoringConfig.model_validate(unwrap_data(payload))

    async def delete(self, config_id: str) -> bool:
        try:
            await self._backend.delete(f"{_BASE}/{config_id}")
        except HTTPClientError as e:
            if e.status_code == 404:
                return False
            raise
        logger.info("Deleted monitoring %s", config_id)
        return True

    async def toggle(self, config_id: str) -> MonitoringConfig:
        payload = await self._backend.post(f"{_BASE}/{config_id}/toggle")
        return MonitoringConfig.model_validate(unwrap_data(payload))

    async def mark_checked(
        self, config_id: str, checked_at: datetime | None = None
    ) -> MonitoringConfig:
        """Stamp ``last_check_at`` after a run."""
        checked_at = checked_at or datetime.now(timezone.utc)
        payload = await self._backend.put(
            f"{_BASE}/{config_id}",
            {"last_check_at": checked_at.isoformat()},
        )
        return MonitoringConfig.model_validate(unwrap_data(payload))


def _describe(errors: dict[str, str]) -> str:
    return "Invalid monitoring config: " + ", ".join(f"{k}: {v}" for k, v in errors.items())
