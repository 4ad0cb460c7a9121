"""
Tests for transaction records and history
"""

import pytest
from datetime import datetime, timezone

from openbank.accounts import SubAccount
from openbank.errors import InvalidLimit, InvalidTransactionType
from openbank.money import Money
from openbank.transactions import (
    TransactionType, TransferLeg, default_title, format_display_amount
)


class TestFormatting:

    def test_transaction_type_parse(self):
        assert TransactionType.parse("Deposit") == TransactionType.DEPOSIT
        assert TransactionType.parse(TransactionType.TRANSFER) == TransactionType.TRANSFER
        with pytest.raises(InvalidTransactionType, match="Invalid transaction type: refund"):
            TransactionType.parse("refund")
        with pytest.raises(InvalidTransactionType):
            TransactionType.parse(None)

    def test_default_titles(self):
        assert default_title(TransactionType.DEPOSIT) == "Deposit transaction"
        assert default_title(TransactionType.WITHDRAWAL) == "Withdrawal transaction"
        assert default_title(TransactionType.TRANSFER) == "Transfer transaction"

    def test_display_amounts(self):
        amount = Money(150000)
        assert format_display_amount(TransactionType.DEPOSIT, amount, "R") == "+R1500.00"
        assert format_display_amount(TransactionType.WITHDRAWAL, amount, "R") == "-R1500.00"
        assert format_display_amount(TransactionType.TRANSFER, amount, "R") == "R1500.00"


class TestTransactionRecorder:

    def test_record_deposit(self, recorder):
        now = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)
        records = recorder.record(
            "u1", TransactionType.DEPOSIT, Money(150000), SubAccount.CHECKING, now=now
        )
        assert len(records) == 1
        record = records[0]
        assert record.type == TransactionType.DEPOSIT
        assert record.amount == Money(150000)
        assert record.display_amount == "+R1500.00"
        assert record.account == "Checking"
        assert record.title == "Deposit transaction"
        assert record.date == now
        assert record.leg is None and record.transfer_id is None
        assert record.signed_amount() == Money(150000)

    def test_custom_title_kept(self, recorder):
        record = recorder.record(
            "u1", TransactionType.WITHDRAWAL, Money(100), SubAccount.SAVINGS, title="ATM"
        )[0]
        assert record.title == "ATM"
        assert record.signed_amount() == Money(-100)

    def test_blank_title_defaults(self, recorder):
        record = recorder.record(
            "u1", TransactionType.DEPOSIT, Money(100), SubAccount.SAVINGS, title="   "
        )[0]
        assert record.title == "Deposit transaction"

    def test_transfer_legs_are_paired(self, recorder):
        outbound, inbound = recorder.record(
            "u1", TransactionType.TRANSFER, Money(50000),
            SubAccount.CHECKING, destination=SubAccount.SAVINGS
        )
        assert outbound.leg == TransferLeg.OUTBOUND
        assert inbound.leg == TransferLeg.INBOUND
        assert outbound.transfer_id == inbound.transfer_id
        assert outbound.account == "Checking"
        assert inbound.account == "Savings"
        for leg in (outbound, inbound):
            assert leg.from_account == "Checking"
            assert leg.to_account == "Savings"
            assert leg.display_amount == "R500.00"
            assert leg.amount == Money(50000)
        assert outbound.date == inbound.date
        assert outbound.sequence < inbound.sequence
        assert outbound.signed_amount() + inbound.signed_amount() == Money.zero()

    def test_transfer_without_destination(self, recorder):
        with pytest.raises(ValueError):
            recorder.record("u1", TransactionType.TRANSFER, Money(1), SubAccount.CHECKING)

    def test_list_recent_newest_first(self, recorder):
        for cents in (100, 200, 300):
            recorder.record("u1", TransactionType.DEPOSIT, Money(cents), SubAccount.CHECKING)
        recorder.record("u2", TransactionType.DEPOSIT, Money(999), SubAccount.CHECKING)

        history = recorder.list_recent("u1")
        assert [r.amount.cents for r in history] == [300, 200, 100]
        assert all(r.user_id == "u1" for r in history)
        assert [r.sequence for r in history] == [3, 2, 1]

    def test_list_recent_limit_is_capped(self, recorder):
        for _ in range(55):
            recorder.record("u1", TransactionType.DEPOSIT, Money(1), SubAccount.CHECKING)
        assert len(recorder.list_recent("u1", limit=500)) == 50
        assert len(recorder.list_recent("u1", limit=5)) == 5
        with pytest.raises(InvalidLimit) as exc_info:
            recorder.list_recent("u1", limit=0)
        assert exc_info.value.to_dict()["error"] == "INVALID_LIMIT"

    def test_list_recent_account_filter(self, recorder):
        recorder.record("u1", TransactionType.DEPOSIT, Money(100), SubAccount.CHECKING)
        recorder.record(
            "u1", TransactionType.TRANSFER, Money(40), SubAccount.CHECKING,
            destination=SubAccount.SAVINGS
        )
        savings = recorder.list_recent("u1", account=SubAccount.SAVINGS)
        assert len(savings) == 1
        assert savings[0].leg == TransferLeg.INBOUND
        assert len(recorder.list_recent("u1", account=SubAccount.CHECKING)) == 2
        assert recorder.list_recent("u1", account=SubAccount.BUSINESS) == []

    def test_replay_balances(self, recorder):
        recorder.record("u1", TransactionType.DEPOSIT, Money(1000), SubAccount.CHECKING)
        recorder.record("u1", TransactionType.WITHDRAWAL, Money(250), SubAccount.CHECKING)
        recorder.record(
            "u1", TransactionType.TRANSFER, Money(500), SubAccount.CHECKING,
            destination=SubAccount.INVESTMENT
        )
        replayed = recorder.replay_balances("u1")
        assert replayed[SubAccount.CHECKING] == Money(250)
        assert replayed[SubAccount.INVESTMENT] == Money(500)
        assert replayed[SubAccount.SAVINGS] == Money.zero()
        assert recorder.replay_balances("nobody") == {a: Money.zero() for a in SubAccount}
