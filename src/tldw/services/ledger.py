"""Credit ledger.

Every change to a user's credit balance goes through ``CreditLedger`` and is
recorded as an append-only ``CreditTransactionModel`` row carrying the balance
after the change. The ledger only stages changes on the session; committing
is the caller's job so that a deduction and the work it pays for land in the
same database transaction.
"""

from datetime import datetime
from typing import Any

from sqlalchemy.orm import Session

from tldw.config import settings
from tldw.db.models import CreditTransactionModel, UserModel
from tldw.domain.enums import Plan, TransactionType
from tldw.domain.errors import InsufficientCredits
from tldw.logging import get_logger
from tldw.utils.time import ensure_utc, first_of_next_month, utcnow

logger = get_logger(__name__)

# Kinds accepted by ``add``
CREDIT_KINDS = frozenset(
    {
        TransactionType.EARNED,
        TransactionType.BONUS,
        TransactionType.REFUND,
        TransactionType.ADMIN_ADJUSTMENT,
        TransactionType.REFERRAL,
        TransactionType.PURCHASE,
    }
)


def _check_amount(amount: Any) -> int:
    # bool is an int subclass but never a valid amount
    if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
        raise ValueError(f"Credit amount must be a positive integer, got {amount!r}")
    return amount


class CreditLedger:
    """Applies balance mutations and records them in the user's ledger."""

    def __init__(self, session: Session, transaction_limit: int | None = None) -> None:
        self.session = session
        self.transaction_limit = transaction_limit or settings.credit_transaction_limit

    def deduct(
        self,
        user: UserModel,
        amount: int,
        reason: str,
        metadata: dict[str, Any] | None = None,
    ) -> CreditTransactionModel:
        """Spend ``amount`` credits.

        Raises:
            InsufficientCredits: If the balance is below ``amount``. Nothing
                is changed in that case.
            ValueError: If ``amount`` is not a positive integer.
        """
        amount = _check_amount(amount)
        if user.credit_balance < amount:
            logger.info(
                "credit_deduction_refused",
                user_id=str(user.id),
                balance=user.credit_balance,
                required=amount,
            )
            raise InsufficientCredits(balance=user.credit_balance, required=amount)

        user.credit_balance -= amount
        user.lifetime_spent += amount
        entry = self._append(user, TransactionType.SPENT, -amount, reason, metadata)

        logger.info(
            "credits_deducted",
            user_id=str(user.id),
            amount=amount,
            balance=user.credit_balance,
        )
        return entry

    def add(
        self,
        user: UserModel,
        amount: int,
        kind: TransactionType | str,
        reason: str,
        metadata: dict[str, Any] | None = None,
    ) -> CreditTransactionModel:
        """Grant ``amount`` credits as a ledger entry of ``kind``."""
        amount = _check_amount(amount)
        kind = TransactionType(kind)
        if kind not in CREDIT_KINDS:
            raise ValueError(f"Cannot add credits as {kind.value!r}")

        user.credit_balance += amount
        user.lifetime_earned += amount
        entry = self._append(user, kind, amount, reason, metadata)

        logger.info(
            "credits_added",
            user_id=str(user.id),
            kind=kind.value,
            amount=amount,
            balance=user.credit_balance,
        )
        return entry

    def reset_monthly(self, user: UserModel, now: datetime | None = None) -> bool:
        """Refill a free user's balance once the reset boundary has passed.

        The balance is set to ``monthly_allocation`` and the next boundary
        moves to the first day of the month after ``now``, so repeated calls
        inside the same period do nothing.

        Returns:
            True if a reset was applied.
        """
        now = ensure_utc(now or utcnow())
        if user.plan != Plan.FREE:
            return False
        if user.next_credit_reset_at is not None and now < ensure_utc(user.next_credit_reset_at):
            return False

        previous_balance = user.credit_balance
        user.credit_balance = user.monthly_allocation
        delta = user.monthly_allocation - previous_balance
        if delta > 0:
            user.lifetime_earned += delta
        user.last_credit_reset = now
        user.next_credit_reset_at = first_of_next_month(now)
        user.summaries_this_month = 0

        self._append(
            user,
            TransactionType.MONTHLY_RESET,
            delta,
            "Monthly credit reset",
            {"previous_balance": previous_balance, "allocation": user.monthly_allocation},
        )

        logger.info(
            "monthly_credits_reset",
            user_id=str(user.id),
            previous_balance=previous_balance,
            balance=user.credit_balance,
            next_reset=user.next_credit_reset_at.isoformat(),
        )
        return True

    def record_adjustment(
        self,
        user: UserModel,
        description: str,
        metadata: dict[str, Any] | None = None,
        amount: int = 0,
    ) -> CreditTransactionModel:
        """Record an ``admin_adjustment`` entry.

        With the default amount of zero this only documents an event such as
        a plan change; the balance is left alone.
        """
        return self._append(user, TransactionType.ADMIN_ADJUSTMENT, amount, description, metadata)

    def _append(
        self,
        user: UserModel,
        kind: TransactionType,
        amount: int,
        description: str,
        metadata: dict[str, Any] | None,
    ) -> CreditTransactionModel:
        entry = CreditTransactionModel(
            type=kind.value,
            amount=amount,
            balance_after=user.credit_balance,
            description=description,
            metadata_=dict(metadata) if metadata else None,
            created_at=utcnow(),
        )
        user.credit_transactions.append(entry)

        overflow = len(user.credit_transactions) - self.transaction_limit
        if overflow > 0:
            # Oldest first; delete-orphan removes the rows
            del user.credit_transactions[:overflow]

        return entry
