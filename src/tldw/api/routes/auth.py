"""Sign-in and token endpoints.

The Google OAuth exchange happens in front of this service; the verified
profile is posted to ``/auth/oauth/google`` and traded for an access token.
"""

from typing import Any

from fastapi import APIRouter, Response, status
from pydantic import BaseModel, EmailStr, Field

from tldw.api.deps import ClockDep, CurrentUserDep, SessionDep, TokenServiceDep
from tldw.config import settings
from tldw.db.models import UserModel
from tldw.logging import get_logger
from tldw.services.auth import ACCESS_TOKEN_COOKIE, TokenService
from tldw.services.referrals import ReferralService
from tldw.services.users import OAuthProfile, get_or_create_oauth_user

router = APIRouter(prefix="/auth", tags=["Auth"])
logger = get_logger(__name__)


class GoogleProfileRequest(BaseModel):
    """Verified Google profile."""

    google_id: str = Field(..., min_length=1, description="Google account subject id")
    email: EmailStr
    name: str = Field(..., min_length=1)
    picture: str | None = None
    referral_code: str | None = Field(default=None, description="Referral code from the invite link")


class UserSummary(BaseModel):
    id: str
    email: str
    name: str
    picture: str | None = None
    role: str
    plan: str
    is_premium: bool
    credit_balance: int
    referral_code: str | None = None


class TokenResponse(BaseModel):
    """Access token plus the signed-in user."""

    token: str
    expires_in: int
    user: UserSummary
    is_new_user: bool = False


class VerifyResponse(BaseModel):
    valid: bool
    user: UserSummary


class ReferralCodeResponse(BaseModel):
    valid: bool
    referrer_name: str | None = None


def _user_summary(user: UserModel) -> UserSummary:
    return UserSummary(
        id=str(user.id),
        email=user.email,
        name=user.name,
        picture=user.picture,
        role=user.role,
        plan=user.plan,
        is_premium=user.is_premium,
        credit_balance=user.credit_balance,
        referral_code=user.referral_code,
    )


def _set_token_cookie(response: Response, token: str, tokens: TokenService) -> None:
    response.set_cookie(
        ACCESS_TOKEN_COOKIE,
        token,
        max_age=tokens.expire_seconds,
        httponly=True,
        secure=settings.frontend_url.startswith("https"),
        samesite="lax",
    )


@router.post(
    "/oauth/google",
    response_model=TokenResponse,
    summary="Sign in with Google",
    description="Exchange a verified Google profile for an access token, creating the account on first sign-in.",
)
async def google_sign_in(
    request: GoogleProfileRequest,
    response: Response,
    session: SessionDep,
    tokens: TokenServiceDep,
    clock: ClockDep,
) -> TokenResponse:
    now = clock()
    user, created = get_or_create_oauth_user(
        session,
        OAuthProfile(
            google_id=request.google_id,
            email=request.email,
            name=request.name,
            picture=request.picture,
        ),
        referral_code=request.referral_code,
        now=now,
    )
    session.commit()

    token = tokens.create_token(user)
    _set_token_cookie(response, token, tokens)
    logger.info("sign_in_completed", user_id=str(user.id), is_new_user=created)

    return TokenResponse(
        token=token,
        expires_in=tokens.expire_seconds,
        user=_user_summary(user),
        is_new_user=created,
    )


@router.post("/refresh", response_model=TokenResponse, summary="Refresh access token")
async def refresh_token(
    user: CurrentUserDep,
    response: Response,
    tokens: TokenServiceDep,
) -> TokenResponse:
    token = tokens.create_token(user)
    _set_token_cookie(response, token, tokens)
    return TokenResponse(token=token, expires_in=tokens.expire_seconds, user=_user_summary(user))


@router.get("/verify", response_model=VerifyResponse, summary="Verify access token")
async def verify_token(user: CurrentUserDep) -> VerifyResponse:
    return VerifyResponse(valid=True, user=_user_summary(user))


@router.post("/logout", status_code=status.HTTP_200_OK, summary="Sign out")
async def logout(response: Response) -> dict[str, Any]:
    response.delete_cookie(ACCESS_TOKEN_COOKIE)
    return {"success": True}


@router.get(
    "/referral/validate/{code}",
    response_model=ReferralCodeResponse,
    summary="Validate a referral code",
)
async def validate_referral_code(code: str, session: SessionDep) -> ReferralCodeResponse:
    referrer = ReferralService(session).find_referrer(code)
    if referrer is None:
        return ReferralCodeResponse(valid=False)
    return ReferralCodeResponse(valid=True, referrer_name=referrer.name)
