"""Data models for credit accounting."""

from dataclasses import dataclass
from enum import Enum


class CreditType(str, Enum):
    """Consumable resource types gated by credits."""

    ARTICLES = "articles"
    IDEAS = "ideas"
    SITES = "sites"


@dataclass
class CreditBalance:
    """Quota and consumption for one user and one resource type.

    ``available`` is derived and never negative, even if the stored
    counters disagree.
    """

    user_id: str
    credit_type: CreditType
    quota: int = 0
    consumed: int = 0

    @property
    def available(self) -> int:
        return max(0, self.quota - self.consumed)


@dataclass
class CreditCheck:
    """Answer to "does the user have ``quantity`` credits?".

    Attributes:
        has_credits: Whether the operation may proceed.
        current_credits: Available balance, when the ledger reported one.
        fail_open: True when the ledger was unreachable and the check was
            allowed by policy rather than by balance.
    """

    has_credits: bool
    current_credits: int | None = None
    fail_open: bool = False


@dataclass
class ConsumeResult:
    """Outcome of a consume call."""

    success: bool
    remaining_credits: int | None = None
    error: str | None = None
