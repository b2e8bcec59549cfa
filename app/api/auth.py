from __future__ import annotations

import logging
from datetime import timedelta
from typing import Literal

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.passwords import hash_password, password_problems, verify_password
from app.auth.service import (
    consume_one_time_token,
    create_one_time_token,
    find_user_by_email,
    issue_session,
    public_user,
    revoke_session,
    utcnow,
)
from app.db.core import AsyncSessionLocal, get_async_db
from app.db.models import EmailVerificationToken, PasswordResetToken, User
from app.db.retry import retry_on_connection_limit
from app.db.session import session_scope
from app.deps.user import CurrentUser, bearer_token, get_current_user
from app.email_service import send_password_reset_email, send_verification_email
from app.http_errors import bad_request, not_found, server_error, unauthorized
from app.profile.completion import EMPTY_ARRAY
from app.profile.models import ProfileUpdate, UserOut
from app.profile.service import ProfileNotFound, update_profile
from app.settings import settings

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["Auth"])

DEVELOPER_INTENT = "developer-setup"
FORGOT_PASSWORD_MESSAGE = (
    "If an account with this email exists, a password reset link has been sent."
)


# ---------------------------------------------------------------------------
# Request bodies
# ---------------------------------------------------------------------------


def _check_password(v: str) -> str:
    problems = password_problems(v)
    if problems:
        raise ValueError(problems[0])
    return v


class SignupRequest(BaseModel):
    model_config = ConfigDict(extra="ignore")

    email: EmailStr
    password: str
    name: str | None = None
    role: Literal["client", "developer"] | None = None
    intent: str | None = None

    @field_validator("password")
    @classmethod
    def check_password_policy(cls, v: str) -> str:
        return _check_password(v)


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=1)


class TokenRequest(BaseModel):
    token: str | None = None


class EmailRequest(BaseModel):
    email: str | None = None


class ResetPasswordRequest(BaseModel):
    token: str | None = None
    password: str | None = None


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------


class _DuplicateEmail(Exception):
    pass


@router.post("/signup", status_code=201)
async def signup(body: SignupRequest, request: Request):
    intent = request.query_params.get("intent") or body.intent or ""
    role = "developer" if intent.strip().lower() == DEVELOPER_INTENT else (body.role or "client")
    email = str(body.email)

    async def _create_account() -> tuple[dict, str, str]:
        async with session_scope(AsyncSessionLocal) as db:
            if await find_user_by_email(db, email) is not None:
                raise _DuplicateEmail(email)
            user = User(
                email=email,
                password=hash_password(body.password),
                name=body.name,
                role=role,
                email_verified=False,
                project_types=EMPTY_ARRAY,
                preferred_cities=EMPTY_ARRAY,
                languages=EMPTY_ARRAY,
                specializations=EMPTY_ARRAY,
            )
            db.add(user)
            await db.flush()
            verification = await create_one_time_token(
                db,
                EmailVerificationToken,
                user.id,
                ttl=timedelta(hours=settings.VERIFICATION_TOKEN_TTL_HOURS),
            )
            token = await issue_session(db, user)
            await db.refresh(user)
            return public_user(user), verification, token

    try:
        user_out, verification, token = await retry_on_connection_limit(_create_account)
    except (_DuplicateEmail, IntegrityError):
        raise bad_request("An account with this email already exists")
    except SQLAlchemyError:
        logger.exception("❌ SIGNUP_FAILED", extra={"meta": {"role": role}})
        raise server_error("An error occurred while creating your account")

    logger.info(
        "✨ USER_CREATED", extra={"meta": {"user_id": user_out["id"], "role": role}}
    )
    if not await send_verification_email(email, verification):
        logger.warning(
            "📧 VERIFICATION_EMAIL_NOT_SENT", extra={"meta": {"user_id": user_out["id"]}}
        )

    return {
        "message": "Account created successfully. Please check your email to verify your account.",
        "token": token,
        "user": user_out,
    }


@router.post("/login")
async def login(body: LoginRequest, db: AsyncSession = Depends(get_async_db)):
    user = await find_user_by_email(db, str(body.email))
    if user is None or not verify_password(body.password, user.password):
        raise unauthorized("Invalid email or password")

    token = await issue_session(db, user)
    user.last_login = utcnow()
    await db.commit()
    await db.refresh(user)
    return {"message": "Signed in successfully", "token": token, "user": public_user(user)}


@router.get("/me")
async def get_me(
    current: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    user = await db.get(User, current.user_id)
    if user is None:
        raise not_found("User not found")
    return {"user": public_user(user)}


@router.put("/me")
async def put_me(
    body: ProfileUpdate,
    current: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    try:
        user, _ = await update_profile(db, current.user_id, body)
        await db.commit()
    except ProfileNotFound:
        await db.rollback()
        raise not_found("User not found")
    except SQLAlchemyError:
        await db.rollback()
        logger.exception(
            "❌ PROFILE_UPDATE_FAILED", extra={"meta": {"user_id": current.user_id}}
        )
        raise server_error("An error occurred while updating your profile")

    return {
        "message": "Profile updated successfully",
        "user": UserOut.model_validate(user).model_dump(),
    }


@router.post("/logout")
async def logout(request: Request, db: AsyncSession = Depends(get_async_db)):
    token = bearer_token(request)
    if token:
        await revoke_session(db, token)
        await db.commit()
    return {"message": "Signed out successfully"}


@router.post("/verify-email")
async def verify_email(body: TokenRequest, db: AsyncSession = Depends(get_async_db)):
    if not body.token:
        raise bad_request("Verification token is required")

    row = await consume_one_time_token(db, EmailVerificationToken, body.token)
    if row is None:
        raise bad_request("Invalid or expired verification token")

    await db.execute(
        update(User).where(User.id == row.user_id).values(email_verified=True)
    )
    user = await db.get(User, row.user_id, populate_existing=True)
    if user is None:
        raise bad_request("Invalid or expired verification token")
    token = await issue_session(db, user)
    await db.commit()
    await db.refresh(user)

    logger.info("✅ EMAIL_VERIFIED", extra={"meta": {"user_id": user.id}})
    return {
        "message": "Email verified successfully",
        "token": token,
        "user": public_user(user),
    }


@router.post("/resend-verification")
async def resend_verification(
    body: EmailRequest, db: AsyncSession = Depends(get_async_db)
):
    if not body.email:
        raise bad_request("Email is required")

    user = await find_user_by_email(db, body.email)
    if user is None:
        raise not_found("User not found")
    if user.email_verified:
        raise bad_request("Email is already verified")

    token = await create_one_time_token(
        db,
        EmailVerificationToken,
        user.id,
        ttl=timedelta(hours=settings.VERIFICATION_TOKEN_TTL_HOURS),
    )
    await db.commit()

    if not await send_verification_email(body.email, token):
        raise server_error("Failed to send verification email")
    return {"message": "Verification email sent successfully"}


@router.post("/forgot-password")
async def forgot_password(body: EmailRequest, db: AsyncSession = Depends(get_async_db)):
    if not body.email:
        raise bad_request("Email is required")

    user = await find_user_by_email(db, body.email)
    if user is None:
        # Same answer whether or not the account exists
        return {"message": FORGOT_PASSWORD_MESSAGE}

    token = await create_one_time_token(
        db,
        PasswordResetToken,
        user.id,
        ttl=timedelta(hours=settings.RESET_TOKEN_TTL_HOURS),
    )
    await db.commit()

    if not await send_password_reset_email(body.email, token):
        logger.error("📧 RESET_EMAIL_NOT_SENT", extra={"meta": {"user_id": user.id}})
        raise server_error("Failed to send password reset email")
    return {"message": FORGOT_PASSWORD_MESSAGE}


@router.post("/reset-password")
async def reset_password(
    body: ResetPasswordRequest, db: AsyncSession = Depends(get_async_db)
):
    if not body.token or not body.password:
        raise bad_request("Token and password are required")
    problems = password_problems(body.password)
    if problems:
        raise bad_request(problems[0])

    row = await consume_one_time_token(db, PasswordResetToken, body.token)
    if row is None:
        raise bad_request("Invalid or expired reset token")

    await db.execute(
        update(User)
        .where(User.id == row.user_id)
        .values(password=hash_password(body.password))
    )
    await db.commit()
    logger.info("🔑 PASSWORD_RESET", extra={"meta": {"user_id": row.user_id}})
    return {"message": "Password reset successfully"}
