"""
Account endpoints
=================

POST /api/v1/customers/register        -- register a customer (201)
POST /api/v1/drivers/register          -- register a driver (201, unverified)
POST /api/v1/admins/register           -- register an admin (201, unverified)
POST /api/v1/login                     -- exchange credentials for a JWT
POST /api/v1/logout                    -- revoke the presented JWT
POST /api/v1/password-reset            -- mail a password-reset token
POST /api/v1/password-reset/confirm    -- set a new password with a token
POST /api/v1/verify-email              -- mail an email-verification token
POST /api/v1/verify-email/confirm      -- mark the email as verified
"""

from fastapi import APIRouter, Depends, Request

from src.api.dependencies import get_account_service, get_bearer_token, get_current_user
from src.api.middleware import limiter
from src.api.schemas import (
    AdminRegisterRequest,
    CustomerRegisterRequest,
    DriverRegisterRequest,
    EmailRequest,
    LoginRequest,
    LoginResponse,
    MessageResponse,
    PasswordResetConfirmRequest,
    ProfileResponse,
    TokenRequest,
)
from src.config import settings
from src.infrastructure.models import UserModel
from src.services.accounts import AccountService

router = APIRouter(tags=["accounts"])


@router.post(
    "/customers/register",
    status_code=201,
    response_model=ProfileResponse,
    summary="Register a customer",
)
@limiter.limit(settings.rate_limit)
async def register_customer(
    request: Request,
    body: CustomerRegisterRequest,
    accounts: AccountService = Depends(get_account_service),
):
    return await accounts.register_customer(
        body.username,
        body.password,
        body.email,
        address=body.address,
        mobile_number=body.mobile_number,
    )


@router.post(
    "/drivers/register",
    status_code=201,
    response_model=ProfileResponse,
    summary="Register a driver",
    description="Drivers start unverified and cannot take trips until an admin verifies them.",
)
@limiter.limit(settings.rate_limit)
async def register_driver(
    request: Request,
    body: DriverRegisterRequest,
    accounts: AccountService = Depends(get_account_service),
):
    return await accounts.register_driver(
        body.username,
        body.password,
        body.email,
        body.licence_no,
        address=body.address,
        mobile_number=body.mobile_number,
    )


@router.post(
    "/admins/register",
    status_code=201,
    response_model=ProfileResponse,
    summary="Register an admin",
    description="Admins start unverified and cannot use admin routes until verified.",
)
@limiter.limit(settings.rate_limit)
async def register_admin(
    request: Request,
    body: AdminRegisterRequest,
    accounts: AccountService = Depends(get_account_service),
):
    return await accounts.register_admin(
        body.username,
        body.password,
        body.email,
        name=body.name,
        address=body.address,
        mobile_number=body.mobile_number,
    )


@router.post("/login", response_model=LoginResponse, summary="Log in")
@limiter.limit(settings.rate_limit)
async def login(
    request: Request,
    body: LoginRequest,
    accounts: AccountService = Depends(get_account_service),
):
    user, token = await accounts.login(body.username, body.password)
    return LoginResponse(user_id=user.id, role=user.role.value, token=token)


@router.post("/logout", response_model=MessageResponse, summary="Log out")
@limiter.limit(settings.rate_limit)
async def logout(
    request: Request,
    user: UserModel = Depends(get_current_user),
    token: str = Depends(get_bearer_token),
    accounts: AccountService = Depends(get_account_service),
):
    await accounts.logout(token)
    return MessageResponse(message=f"User {user.username} logged out")


@router.post(
    "/password-reset", response_model=MessageResponse, summary="Request a password reset"
)
@limiter.limit(settings.rate_limit)
async def request_password_reset(
    request: Request,
    body: EmailRequest,
    accounts: AccountService = Depends(get_account_service),
):
    await accounts.request_password_reset(body.email)
    return MessageResponse(message="Password reset token sent")


@router.post(
    "/password-reset/confirm",
    response_model=MessageResponse,
    summary="Reset the password with a token",
)
@limiter.limit(settings.rate_limit)
async def confirm_password_reset(
    request: Request,
    body: PasswordResetConfirmRequest,
    accounts: AccountService = Depends(get_account_service),
):
    await accounts.reset_password(body.token, body.new_password)
    return MessageResponse(message="Password has been reset")


@router.post(
    "/verify-email", response_model=MessageResponse, summary="Request email verification"
)
@limiter.limit(settings.rate_limit)
async def request_email_verification(
    request: Request,
    body: EmailRequest,
    accounts: AccountService = Depends(get_account_service),
):
    await accounts.request_email_verification(body.email)
    return MessageResponse(message="Verification token sent")


@router.post(
    "/verify-email/confirm", response_model=MessageResponse, summary="Verify an email"
)
@limiter.limit(settings.rate_limit)
async def confirm_email_verification(
    request: Request,
    body: TokenRequest,
    accounts: AccountService = Depends(get_account_service),
):
    user = await accounts.verify_email(body.token)
    return MessageResponse(message=f"Email {user.email} verified")
