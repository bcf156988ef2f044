"""Configuration for the credit ledger client."""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class CreditsConfig(BaseSettings):
    """Credit ledger behavior.

    All settings can be overridden via environment variables with the
    ``CREDITS_`` prefix (e.g. ``CREDITS_FAIL_OPEN=false``).
    """

    model_config = SettingsConfigDict(
        env_prefix="CREDITS_",
        case_sensitive=False,
        extra="ignore",
    )

    fail_open: bool = Field(
        default=True,
        description=(
            "Treat a ledger transport failure during a credit *check* as "
            "'has credits'. Consume and restore never fail open."
        ),
    )
    request_timeout: float = Field(
        default=15.0,
        gt=0,
        description="Timeout in seconds for ledger calls",
    )
