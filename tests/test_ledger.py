"""Tests for the credit ledger."""

from datetime import UTC, datetime

import pytest

from tldw.domain.enums import TransactionType
from tldw.domain.errors import InsufficientCredits
from tldw.services.ledger import CreditLedger


class TestDeduct:
    def test_deduct_decrements_and_records_spent_entry(self, session, make_user) -> None:
        user = make_user(credit_balance=5)
        ledger = CreditLedger(session)

        entry = ledger.deduct(user, 1, "Video summary generated", {"video_id": "abc123"})

        assert user.credit_balance == 4
        assert user.lifetime_spent == 1
        assert entry.type == TransactionType.SPENT
        assert entry.amount == -1
        assert entry.balance_after == 4
        assert entry.metadata_ == {"video_id": "abc123"}

    def test_deduct_refuses_overdraft_without_changes(self, session, make_user) -> None:
        user = make_user(credit_balance=0)
        entries_before = len(user.credit_transactions)

        with pytest.raises(InsufficientCredits) as exc_info:
            CreditLedger(session).deduct(user, 1, "Video summary generated")

        assert exc_info.value.balance == 0
        assert user.credit_balance == 0
        assert user.lifetime_spent == 0
        assert len(user.credit_transactions) == entries_before

    @pytest.mark.parametrize("amount", [0, -3, 1.5, True, "1"])
    def test_invalid_amounts_rejected(self, session, make_user, amount) -> None:
        user = make_user(credit_balance=5)

        with pytest.raises(ValueError):
            CreditLedger(session).deduct(user, amount, "bad")
        assert user.credit_balance == 5


class TestAdd:
    def test_add_increments_balance_and_lifetime_earned(self, session, make_user) -> None:
        user = make_user(credit_balance=3)
        earned_before = user.lifetime_earned

        entry = CreditLedger(session).add(user, 2, TransactionType.REFUND, "Summary generation failed")

        assert user.credit_balance == 5
        assert user.lifetime_earned == earned_before + 2
        assert entry.type == "refund"
        assert entry.amount == 2
        assert entry.balance_after == 5

    def test_add_rejects_debit_kinds(self, session, make_user) -> None:
        user = make_user()

        with pytest.raises(ValueError):
            CreditLedger(session).add(user, 1, TransactionType.SPENT, "nope")

    def test_add_rejects_non_positive(self, session, make_user) -> None:
        user = make_user()

        with pytest.raises(ValueError):
            CreditLedger(session).add(user, 0, TransactionType.BONUS, "nothing")


class TestMonthlyReset:
    def test_reset_applies_once_per_period(self, session, make_user) -> None:
        user = make_user(credit_balance=3, summaries_this_month=7)
        ledger = CreditLedger(session)
        april = datetime(2026, 4, 2, 9, 0, tzinfo=UTC)

        assert ledger.reset_monthly(user, april) is True
        assert user.credit_balance == user.monthly_allocation == 20
        assert user.summaries_this_month == 0
        assert user.next_credit_reset_at == datetime(2026, 5, 1, tzinfo=UTC)

        entry = user.credit_transactions[-1]
        assert entry.type == TransactionType.MONTHLY_RESET
        assert entry.amount == 17
        assert entry.metadata_["previous_balance"] == 3

        user.credit_balance = 10
        assert ledger.reset_monthly(user, datetime(2026, 4, 30, 23, 59, tzinfo=UTC)) is False
        assert user.credit_balance == 10

    def test_reset_before_boundary_is_noop(self, session, make_user, now) -> None:
        user = make_user(credit_balance=3)

        assert CreditLedger(session).reset_monthly(user, now) is False
        assert user.credit_balance == 3

    def test_pro_users_are_never_reset(self, session, make_user) -> None:
        user = make_user(plan="pro")
        balance = user.credit_balance

        assert CreditLedger(session).reset_monthly(user, datetime(2026, 6, 1, tzinfo=UTC)) is False
        assert user.credit_balance == balance


class TestAdjustments:
    def test_record_adjustment_leaves_balance(self, session, make_user) -> None:
        user = make_user(credit_balance=8)

        entry = CreditLedger(session).record_adjustment(user, "Plan changed", {"new_plan": "pro"})

        assert entry.type == TransactionType.ADMIN_ADJUSTMENT
        assert entry.amount == 0
        assert entry.balance_after == 8
        assert user.credit_balance == 8

    def test_history_is_pruned_to_limit(self, session, make_user) -> None:
        user = make_user(credit_balance=100)
        ledger = CreditLedger(session, transaction_limit=5)

        for i in range(8):
            ledger.deduct(user, 1, f"Summary {i}")
        session.flush()

        assert len(user.credit_transactions) == 5
        assert [t.description for t in user.credit_transactions] == [f"Summary {i}" for i in range(3, 8)]
        assert user.credit_balance == 92
