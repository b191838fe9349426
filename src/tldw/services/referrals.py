"""Referral accounting.

A referrer earns a tiered reward for each distinct user who signs up with
their code: 50 credits for the first referral, 25 for the second and 15 for
every one after that. The referred user gets a flat welcome bonus.
"""

import secrets
from dataclasses import dataclass
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from tldw.config import settings
from tldw.db.models import ReferralModel, UserModel
from tldw.domain.enums import TransactionType
from tldw.domain.errors import InvalidReferral
from tldw.logging import get_logger
from tldw.services.ledger import CreditLedger

logger = get_logger(__name__)

REFERRAL_TIERS = (50, 25)
REFERRAL_TIER_FLOOR = 15


def reward_for(referral_count: int) -> int:
    """Credits a referrer earns for their next referral, given how many they already have."""
    if referral_count < len(REFERRAL_TIERS):
        return REFERRAL_TIERS[referral_count]
    return REFERRAL_TIER_FLOOR


def new_referral_code() -> str:
    return f"REF{secrets.token_hex(8).upper()}"


@dataclass
class ReferralResult:
    """Outcome of a processed referral."""

    referrer_id: Any
    referrer_email: str
    referrer_earned: int
    new_user_bonus: int
    referral_number: int


class ReferralService:
    """Validates referral codes and pays out referral rewards."""

    def __init__(self, session: Session, ledger: CreditLedger | None = None) -> None:
        self.session = session
        self.ledger = CreditLedger(session) if ledger is None else ledger

    def find_referrer(self, referral_code: str) -> UserModel | None:
        code = referral_code.strip().upper()
        if not code:
            return None
        return self.session.execute(
            select(UserModel).where(UserModel.referral_code == code)
        ).scalar_one_or_none()

    def ensure_referral_code(self, user: UserModel) -> str:
        """Give ``user`` a unique referral code if they don't have one yet."""
        if user.referral_code:
            return user.referral_code

        while True:
            code = new_referral_code()
            taken = self.session.execute(
                select(UserModel.id).where(UserModel.referral_code == code)
            ).first()
            if taken is None:
                break

        user.referral_code = code
        logger.info("referral_code_generated", user_id=str(user.id))
        return code

    def process_referral(
        self,
        new_user: UserModel,
        referral_code: str,
        metadata: dict[str, Any] | None = None,
    ) -> ReferralResult:
        """Credit the owner of ``referral_code`` for referring ``new_user``.

        Raises:
            InvalidReferral: For an unknown code, a self-referral, or a pair
                that has already been rewarded.
        """
        referrer = self.find_referrer(referral_code)
        if referrer is None:
            raise InvalidReferral("Invalid referral code")

        if referrer.id == new_user.id:
            raise InvalidReferral("Cannot refer yourself")

        already_processed = self.session.execute(
            select(ReferralModel.id).where(
                ReferralModel.referrer_id == referrer.id,
                ReferralModel.referred_user_id == new_user.id,
            )
        ).first()
        if already_processed is not None:
            raise InvalidReferral("Referral already processed")

        referral_number = referrer.total_referrals + 1
        credits = reward_for(referrer.total_referrals)
        context = dict(metadata or {})

        self.session.add(
            ReferralModel(
                referrer_id=referrer.id,
                referred_user_id=new_user.id,
                referred_email=new_user.email,
                credits_given=credits,
            )
        )
        self.session.flush()
        referrer.total_referrals += 1
        referrer.total_referral_credits += credits

        self.ledger.add(
            referrer,
            credits,
            TransactionType.EARNED,
            f"Referral #{referral_number}: {new_user.email}",
            {
                **context,
                "referred_user_id": str(new_user.id),
                "referred_user_email": new_user.email,
                "referral_number": referral_number,
            },
        )

        bonus = settings.referral_welcome_bonus
        if bonus > 0:
            self.ledger.add(
                new_user,
                bonus,
                TransactionType.BONUS,
                "Welcome bonus for joining with a referral",
                {**context, "referrer_id": str(referrer.id)},
            )

        logger.info(
            "referral_processed",
            referrer_id=str(referrer.id),
            referred_user_id=str(new_user.id),
            referral_number=referral_number,
            credits=credits,
        )

        return ReferralResult(
            referrer_id=referrer.id,
            referrer_email=referrer.email,
            referrer_earned=credits,
            new_user_bonus=bonus,
            referral_number=referral_number,
        )
