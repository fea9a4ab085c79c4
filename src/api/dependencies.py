"""FastAPI dependency injection helpers."""

from typing import AsyncGenerator, Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from src.domain.enums import Role
from src.domain.errors import AuthenticationError, PermissionDeniedError
from src.infrastructure.database import async_session_factory
from src.infrastructure.models import UserModel
from src.infrastructure.repositories import BlacklistedTokenRepository, UserRepository
from src.infrastructure.security import TokenService
from src.infrastructure.storage import FileStorage
from src.services.accounts import AccountService
from src.services.trips import TripLifecycleManager

bearer = HTTPBearer(auto_error=False)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Yield an async DB session; commit on success, rollback on error."""
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


def get_locks(request: Request):
    return request.app.state.locks


def get_token_service(request: Request) -> TokenService:
    return request.app.state.token_service


def get_file_storage(request: Request) -> FileStorage:
    return request.app.state.file_storage


def get_bearer_token(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer),
) -> str:
    if credentials is None or not credentials.credentials:
        raise AuthenticationError("Missing bearer token")
    return credentials.credentials


async def get_current_user(
    token: str = Depends(get_bearer_token),
    tokens: TokenService = Depends(get_token_service),
    db: AsyncSession = Depends(get_db),
) -> UserModel:
    """Resolve the bearer token to a user, rejecting revoked tokens."""
    claims = tokens.decode(token)
    if await BlacklistedTokenRepository(db).contains(token):
        raise AuthenticationError("Token has been revoked")
    user = await UserRepository(db).get_by_username(claims["sub"])
    if user is None:
        raise AuthenticationError("User no longer exists")
    return user


def require_roles(*roles: Role):
    """Dependency factory: the current user must hold one of *roles*.

    Admins must also have been verified by another admin.
    """

    async def checker(user: UserModel = Depends(get_current_user)) -> UserModel:
        if user.role not in roles:
            raise PermissionDeniedError(
                f"{user.role.value} accounts may not perform this operation"
            )
        if user.role == Role.ADMIN and not user.verified:
            raise PermissionDeniedError("Admin account has not been verified yet")
        return user

    return checker


def get_account_service(
    request: Request,
    db: AsyncSession = Depends(get_db),
    tokens: TokenService = Depends(get_token_service),
) -> AccountService:
    return AccountService(
        db, tokens, request.app.state.mailer, storage=request.app.state.file_storage
    )


def get_trip_manager(
    db: AsyncSession = Depends(get_db),
    locks=Depends(get_locks),
) -> TripLifecycleManager:
    return TripLifecycleManager(db, locks)
