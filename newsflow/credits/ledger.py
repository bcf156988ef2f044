"""Credit ledger clients.

CreditLedgerClient talks to the remote ledger service, which is the
system of record and is responsible for atomic read-then-write. The
in-memory ledger implements the same contract for local runs and tests.
"""

import asyncio
import logging
from typing import Protocol

from newsflow.backend.client import BackendClient
from newsflow.backend.http_client import HTTPClientError
from newsflow.credits.config import CreditsConfig
from newsflow.credits.schemas import (
    ConsumeResult,
    CreditBalance,
    CreditCheck,
    CreditType,
)
from newsflow.errors import LedgerError, ValidationError

logger = logging.getLogger(__name__)


class CreditLedger(Protocol):
    """check / consume / restore contract shared by all ledgers."""

    async def check_credits(
        self, user_id: str, credit_type: CreditType, quantity: int = 1
    ) -> CreditCheck: ...

    async def consume_credits(
        self, user_id: str, credit_type: CreditType, quantity: int = 1
    ) -> ConsumeResult: ...

    async def restore_credit(
        self, user_id: str, credit_type: CreditType, quantity: int = 1
    ) -> bool: ...


def _validate_quantity(quantity: int) -> None:
    if quantity <= 0:
        raise ValidationError(
            f"Credit quantity must be positive, got {quantity}",
            errors={"quantity": "must be > 0"},
        )


class CreditLedgerClient:
    """Remote ledger at ``/users/<id>/{check,consume,restore}-credits``.

    Args:
        backend: Connected backend client.
        config: Ledger configuration (fail-open policy, timeout).
    """

    def __init__(
        self,
        backend: BackendClient,
        config: CreditsConfig | None = None,
    ) -> None:
        self._backend = backend
        self._config = config or CreditsConfig()

    async def check_credits(
        self, user_id: str, credit_type: CreditType, quantity: int = 1
    ) -> CreditCheck:
        _validate_quantity(quantity)
        try:
            payload = await self._backend.post(
                f"/users/{user_id}/check-credits",
                {"creditType": CreditType(credit_type).value, "quantity": quantity},
                timeout=self._config.request_timeout,
                idempotent=True,
            )
        except HTTPClientError as e:
            if self._config.fail_open:
                logger.warning(
                    "Credit check failed for user %s, allowing by fail-open policy: %s",
                    user_id,
                    e,
                )
                return CreditCheck(has_credits=True, fail_open=True)
            raise LedgerError(f"Credit check failed: {e}") from e

        current = payload.get("currentCredits")
        return CreditCheck(
            has_credits=bool(payload.get("hasCredits")),
            current_credits=int(current) if current is not None else None,
        )

    async def consume_credits(
        self, user_id: str, credit_type: CreditType, quantity: int = 1
    ) -> ConsumeResult:
        _validate_quantity(quantity)
        try:
            payload = await self._backend.post(
                f"/users/{user_id}/consume-credits",
                {"creditType": CreditType(credit_type).value, "quantity": quantity},
                timeout=self._config.request_timeout,
            )
        except HTTPClientError as e:
            raise LedgerError(f"Credit consumption failed: {e}") from e

        remaining = payload.get("remainingCredits")
        result = ConsumeResult(
            success=bool(payload.get("success")),
            remaining_credits=int(remaining) if remaining is not None else None,
            error=payload.get("error"),
        )
        if result.success and result.remaining_credits is not None and result.remaining_credits < 0:
            # A negative balance means the ledger accepted an overdraft
            logger.error(
                "Ledger reported negative balance %d for user %s",
                result.remaining_credits,
                user_id,
            )
            return ConsumeResult(success=False, error="ledger reported a negative balance")
        return result

    async def restore_credit(
        self, user_id: str, credit_type: CreditType, quantity: int = 1
    ) -> bool:
        _validate_quantity(quantity)
        try:
            payload = await self._backend.post(
                f"/users/{user_id}/restore-credits",
                {"creditType": CreditType(credit_type).value, "quantity": quantity},
                timeout=self._config.request_timeout,
            )
        except HTTPClientError as e:
            raise LedgerError(f"Credit restore failed: {e}") from e
        return bool(payload.get("success"))

    async def get_balance(self, user_id: str, credit_type: CreditType) -> CreditBalance:
        """Read quota and consumption for a user."""
        try:
            payload = await self._backend.get(f"/users/{user_id}/credits")
        except HTTPClientError as e:
            raise LedgerError(f"Could not read credit balance: {e}") from e

        data = payload.get("data", payload)
        key = CreditType(credit_type).value
        quotas = data.get("quotas") or {}
        consumed = data.get("consumo") or data.get("consumed") or {}
        return CreditBalance(
            user_id=str(user_id),
            credit_type=CreditType(credit_type),
            quota=int(quotas.get(key, 0) or 0),
            consumed=int(consumed.get(key, 0) or 0),
        )


class InMemoryCreditLedger:
    """Process-local ledger with atomic consume/restore.

    Every mutation happens under a single asyncio lock, so concurrent
    consumers can never drive a balance negative.
    """

    def __init__(self) -> None:
        self._balances: dict[tuple[str, CreditType], CreditBalance] = {}
        self._lock = asyncio.Lock()

    def set_quota(
        self,
        user_id: str,
        credit_type: CreditType,
        quota: int,
        consumed: int = 0,
    ) -> CreditBalance:
        balance = CreditBalance(
            user_id=str(user_id),
            credit_type=CreditType(credit_type),
            quota=quota,
            consumed=consumed,
        )
        self._balances[(str(user_id), CreditType(credit_type))] = balance
        return balance

    def balance(self, user_id: str, credit_type: CreditType) -> CreditBalance:
        key = (str(user_id), CreditType(credit_type))
        if key not in self._balances:
            return CreditBalance(user_id=str(user_id), credit_type=CreditType(credit_type))
        return self._balances[key]

    async def get_balance(self, user_id: str, credit_type: CreditType) -> CreditBalance:
        return self.balance(user_id, credit_type)

    async def check_credits(
        self, user_id: str, credit_type: CreditType, quantity: int = 1
    ) -> CreditCheck:
        _validate_quantity(quantity)
        available = self.balance(user_id, credit_type).available
        return CreditCheck(has_credits=available >= quantity, current_credits=available)

    async def consume_credits(
        self, user_id: str, credit_type: CreditType, quantity: int = 1
    ) -> ConsumeResult:
        _validate_quantity(quantity)
        async with self._lock:
            balance = self._balances.get((str(user_id), CreditType(credit_type)))
            available = balance.available if balance else 0
            if balance is None or quantity > available:
                return ConsumeResult(
                    success=False,
                    remaining_credits=available,
                    error=f"insufficient credits: requested {quantity}, available {available}",
                )
            balance.consumed += quantity
            return ConsumeResult(success=True, remaining_credits=balance.available)

    async def restore_credit(
        self, user_id: str, credit_type: CreditType, quantity: int = 1
    ) -> bool:
        _validate_quantity(quantity)
        async with self._lock:
            balance = self._balances.get((str(user_id), CreditType(credit_type)))
            if balance is None:
                return False
            balance.consumed = max(0, balance.consumed - quantity)
            return True
