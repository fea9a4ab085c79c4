"""
Profile endpoints
=================

GET    /api/v1/profile -- the authenticated user's profile
PATCH  /api/v1/profile -- update address, mobile number or email
DELETE /api/v1/profile -- delete the account
POST   /api/v1/profile/photo -- upload or replace the profile photo (multipart)
"""

from fastapi import APIRouter, Depends, File, Request, UploadFile

from src.api.dependencies import get_account_service, get_current_user
from src.api.middleware import limiter
from src.api.schemas import MessageResponse, ProfileResponse, ProfileUpdateRequest
from src.config import settings
from src.infrastructure.models import UserModel
from src.services.accounts import AccountService

router = APIRouter(prefix="/profile", tags=["profile"])


@router.get("", response_model=ProfileResponse, summary="My profile")
@limiter.limit(settings.rate_limit)
async def get_profile(request: Request, user: UserModel = Depends(get_current_user)):
    return user


@router.patch("", response_model=ProfileResponse, summary="Update my profile")
@limiter.limit(settings.rate_limit)
async def update_profile(
    request: Request,
    body: ProfileUpdateRequest,
    user: UserModel = Depends(get_current_user),
    accounts: AccountService = Depends(get_account_service),
):
    return await accounts.update_profile(
        user,
        address=body.address,
        mobile_number=body.mobile_number,
        email=body.email,
    )


@router.delete("", response_model=MessageResponse, summary="Delete my account")
@limiter.limit(settings.rate_limit)
async def delete_profile(
    request: Request,
    user: UserModel = Depends(get_current_user),
    accounts: AccountService = Depends(get_account_service),
):
    username = user.username
    await accounts.delete_user(user)
    return MessageResponse(message=f"User {username} deleted")


@router.post("/photo", response_model=ProfileResponse, summary="Upload my profile photo")
@limiter.limit(settings.rate_limit)
async def upload_photo(
    request: Request,
    file: UploadFile = File(...),
    user: UserModel = Depends(get_current_user),
    accounts: AccountService = Depends(get_account_service),
):
    data = await file.read()
    return await accounts.upload_profile_photo(
        user, file.filename, data, content_type=file.content_type
    )
