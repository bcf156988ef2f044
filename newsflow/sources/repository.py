"""Backend repository for news sources."""

import logging
from datetime import datetime, timezone
from typing import Any

import pydantic

from newsflow.backend.client import BackendClient, unwrap_data
from newsflow.backend.http_client import HTTPClientError
from newsflow.errors import ValidationError
from newsflow.sources.schemas import Source, SourceCreate, SourceValidation

logger = logging.getLogger(__name__)

_BASE = "/news/sources"


def validation_errors(exc: pydantic.ValidationError) -> dict[str, str]:
    """Flatten a pydantic error into ``{field: message}``."""
    errors: dict[str, str] = {}
    for err in exc.errors():
        field = ".".join(str(part) for part in err.get("loc", ())) or "__root__"
        message = err.get("msg", "invalid value")
        errors.setdefault(field, message.removeprefix("Value error, "))
    return errors


class SourcesRepository:
    """CRUD operations for sources over the backend API."""

    def __init__(self, backend: BackendClient) -> None:
        self._backend = backend

    async def list_sources(self, active_only: bool = False) -> list[Source]:
        payload = await self._backend.get(_BASE)
        sources = [Source.model_validate(row) for row in unwrap_data(payload) or []]
        if active_only:
            sources = [s for s in sources if s.active]
        return sources

    async def get(self, source_id: str) -> Source | None:
        """Fetch a single source, or None if the backend does not know it."""
        try:
            payload = await self._backend.get(f"{_BASE}/{source_id}")
        except HTTPClientError as e:
            if e.status_code == 404:
                return None
            raise
        data = unwrap_data(payload)
        return Source.model_validate(data) if data else None

    async def create(self, data: SourceCreate | dict[str, Any]) -> Source:
        """Validate and create a source.

        Raises:
            ValidationError: If name, url or type are missing or malformed.
        """
        if not isinstance(data, SourceCreate):
            try:
                data = SourceCreate.model_validate(data)
            except pydantic.ValidationError as e:
                errors = validation_errors(e)
                raise ValidationError(
                    "Invalid source: " + ", ".join(f"{k}: {v}" for k, v in errors.items()),
                    errors=errors,
                ) from e

        payload = await self._backend.post(_BASE, data.model_dump(mode="json"))
        source = Source.model_validate(unwrap_data(payload))
        logger.info("Created source %s (%s)", source.id, source.name)
        return source

    async def update(self, source_id: str, fields: dict[str, Any]) -> Source:
        payload = await self._backend.put(f"{_BASE}/{source_id}", fields)
        return Source.model_validate(unwrap_data(payload))

    async def delete(self, source_id: str) -> bool:
        """Delete a source. Terminal: the registry never resurrects it."""
        try:
            await self._backend.delete(f"{_BASE}/{source_id}")
        except HTTPClientError as e:
            if e.status_code == 404:
                return False
            raise
        logger.info("Deleted source %s", source_id)
        return True

    async def toggle(self, source_id: str) -> Source:
        """Flip the active flag."""
        payload = await self._backend.post(f"{_BASE}/{source_id}/toggle")
        return Source.model_validate(unwrap_data(payload))

    async def mark_checked(
        self,
        source_id: str,
        validation: SourceValidation,
        consecutive_empty_runs: int,
        checked_at: datetime | None = None,
    ) -> Source:
        """Record the outcome of a successful processing run."""
        checked_at = checked_at or datetime.now(timezone.utc)
        return await self.update(
            source_id,
            {
                "validation_status": validation.status.value,
                "validation_message": validation.message or None,
                "consecutive_empty_runs": consecutive_empty_runs,
                "last_check_at": checked_at.isoformat(),
            },
        )
