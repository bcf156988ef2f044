"""Tests for the credit ledger clients."""

import json

import httpx
import pytest
import respx

from newsflow.credits.config import CreditsConfig
from newsflow.credits.ledger import CreditLedgerClient, InMemoryCreditLedger
from newsflow.credits.schemas import CreditBalance, CreditType
from newsflow.errors import LedgerError, ValidationError

API = "https://api.test/api"


class TestCreditBalance:
    def test_available_never_negative(self):
        balance = CreditBalance(user_id="1", credit_type=CreditType.ARTICLES, quota=2, consumed=5)

        assert balance.available == 0


class TestInMemoryCreditLedger:
    @pytest.fixture
    def ledger(self) -> InMemoryCreditLedger:
        ledger = InMemoryCreditLedger()
        ledger.set_quota("42", CreditType.ARTICLES, quota=3)
        return ledger

    @pytest.mark.asyncio
    async def test_check(self, ledger):
        assert (await ledger.check_credits("42", CreditType.ARTICLES, 3)).has_credits
        check = await ledger.check_credits("42", CreditType.ARTICLES, 4)
        assert not check.has_credits
        assert check.current_credits == 3

    @pytest.mark.asyncio
    async def test_consume_more_than_available_fails(self, ledger):
        result = await ledger.consume_credits("42", CreditType.ARTICLES, 4)

        assert not result.success
        assert ledger.balance("42", CreditType.ARTICLES).available == 3

    @pytest.mark.asyncio
    async def test_consume_never_goes_negative(self, ledger):
        results = [await ledger.consume_credits("42", CreditType.ARTICLES) for _ in range(5)]

        assert [r.success for r in results] == [True, True, True, False, False]
        assert ledger.balance("42", CreditType.ARTICLES).available == 0
        assert all(r.remaining_credits >= 0 for r in results)

    @pytest.mark.asyncio
    async def test_unknown_user_has_no_credits(self, ledger):
        result = await ledger.consume_credits("99", CreditType.ARTICLES)

        assert not result.success

    @pytest.mark.asyncio
    async def test_consume_then_restore_nets_to_zero(self, ledger):
        before = ledger.balance("42", CreditType.ARTICLES).available

        await ledger.consume_credits("42", CreditType.ARTICLES)
        assert await ledger.restore_credit("42", CreditType.ARTICLES)

        assert ledger.balance("42", CreditType.ARTICLES).available == before

    @pytest.mark.asyncio
    async def test_restore_does_not_push_consumed_below_zero(self, ledger):
        await ledger.restore_credit("42", CreditType.ARTICLES, 2)

        assert ledger.balance("42", CreditType.ARTICLES).consumed == 0

    @pytest.mark.asyncio
    async def test_non_positive_quantity_rejected(self, ledger):
        with pytest.raises(ValidationError):
            await ledger.consume_credits("42", CreditType.ARTICLES, 0)


class TestCreditLedgerClient:
    @pytest.mark.asyncio
    @respx.mock
    async def test_check_sends_type_and_quantity(self, backend):
        route = respx.post(f"{API}/users/42/check-credits").mock(
            return_value=httpx.Response(200, json={"hasCredits": False, "currentCredits": 1})
        )

        check = await CreditLedgerClient(backend).check_credits("42", CreditType.ARTICLES, 3)

        assert not check.has_credits
        assert check.current_credits == 1
        assert json.loads(route.calls.last.request.content) == {"creditType": "articles", "quantity": 3}

    @pytest.mark.asyncio
    @respx.mock
    async def test_check_fails_open_on_transport_error(self, backend):
        respx.post(f"{API}/users/42/check-credits").mock(return_value=httpx.Response(500))

        check = await CreditLedgerClient(backend).check_credits("42", CreditType.ARTICLES)

        assert check.has_credits
        assert check.fail_open

    @pytest.mark.asyncio
    @respx.mock
    async def test_check_fail_closed_when_configured(self, backend):
        respx.post(f"{API}/users/42/check-credits").mock(return_value=httpx.Response(500))
        client = CreditLedgerClient(backend, CreditsConfig(fail_open=False))

        with pytest.raises(LedgerError):
            await client.check_credits("42", CreditType.ARTICLES)

    @pytest.mark.asyncio
    @respx.mock
    async def test_consume_rejects_negative_balance(self, backend):
        respx.post(f"{API}/users/42/consume-credits").mock(
            return_value=httpx.Response(200, json={"success": True, "remainingCredits": -1})
        )

        result = await CreditLedgerClient(backend).consume_credits("42", CreditType.ARTICLES)

        assert not result.success

    @pytest.mark.asyncio
    @respx.mock
    async def test_consume_failure_passthrough(self, backend):
        respx.post(f"{API}/users/42/consume-credits").mock(
            return_value=httpx.Response(
                200, json={"success": False, "remainingCredits": 0, "error": "quota exceeded"}
            )
        )

        result = await CreditLedgerClient(backend).consume_credits("42", CreditType.ARTICLES)

        assert not result.success
        assert result.error == "quota exceeded"

    @pytest.mark.asyncio
    @respx.mock
    async def test_restore(self, backend):
        respx.post(f"{API}/users/42/restore-credits").mock(
            return_value=httpx.Response(200, json={"success": True})
        )

        assert await CreditLedgerClient(backend).restore_credit("42", CreditType.ARTICLES)

    @pytest.mark.asyncio
    @respx.mock
    async def test_restore_transport_error_raises(self, backend):
        respx.post(f"{API}/users/42/restore-credits").mock(side_effect=httpx.ConnectError("down"))

        with pytest.raises(LedgerError):
            await CreditLedgerClient(backend).restore_credit("42", CreditType.ARTICLES)

    @pytest.mark.asyncio
    @respx.mock
    async def test_get_balance(self, backend):
        respx.get(f"{API}/users/42/credits").mock(
            return_value=httpx.Response(
                200,
                json={"data": {"quotas": {"articles": 10}, "consumo": {"articles": 4}}},
            )
        )

        balance = await CreditLedgerClient(backend).get_balance("42", CreditType.ARTICLES)

        assert balance.quota == 10
        assert balance.consumed == 4
        assert balance.available == 6
