"""Credits: per-user consumable quotas with check / consume / restore."""

from newsflow.credits.config import CreditsConfig
from newsflow.credits.ledger import CreditLedger, CreditLedgerClient, InMemoryCreditLedger
from newsflow.credits.schemas import ConsumeResult, CreditBalance, CreditCheck, CreditType

__all__ = [
    "ConsumeResult",
    "CreditBalance",
    "CreditCheck",
    "CreditLedger",
    "CreditLedgerClient",
    "CreditType",
    "CreditsConfig",
    "InMemoryCreditLedger",
]
