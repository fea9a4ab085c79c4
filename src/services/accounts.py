"""
Accounts
========

Registration for the three roles, login / logout, profile maintenance and
the token flows for email verification and password reset.  Profile
photos are kept in a ``FileStorage``; replacing or deleting an account
removes the old file once the database change is committed.

Usernames and emails are unique across all roles; driver licence numbers
are unique ignoring case.  Drivers and admins are created unverified and
must be approved by a verified admin (``src.services.admin``).

Account tokens are random hex strings stored with an expiry and removed on
first use.  Requesting a new token for an email replaces any outstanding
one of the same purpose.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from src.config import settings
from src.domain.enums import Role, TokenPurpose
from src.domain.errors import (
    AuthenticationError,
    ConflictError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from src.domain.lifecycle import utcnow
from src.infrastructure.models import AccountTokenModel, UserModel
from src.infrastructure.repositories import (
    AccountTokenRepository,
    BlacklistedTokenRepository,
    CabRepository,
    TripRepository,
    UserRepository,
)
from src.infrastructure.security import TokenService, hash_password, verify_password
from src.infrastructure.storage import FileStorage

from .notifications import LoggingMailer

logger = logging.getLogger(__name__)

_BAD_CREDENTIALS = "Invalid username or password"


def _as_utc(value: datetime) -> datetime:
    # SQLite hands timestamps back without tzinfo
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class AccountService:
    def __init__(
        self,
        session: AsyncSession,
        tokens: Optional[TokenService] = None,
        mailer: Optional[LoggingMailer] = None,
        *,
        storage: Optional[FileStorage] = None,
        bcrypt_rounds: Optional[int] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.session = session
        self.tokens = tokens
        self.mailer = mailer or LoggingMailer()
        self.storage = storage or FileStorage(settings.upload_path)
        self.bcrypt_rounds = (
            settings.bcrypt_rounds if bcrypt_rounds is None else bcrypt_rounds
        )
        self.clock = clock
        self.users = UserRepository(session)
        self.cabs = CabRepository(session)
        self.trips = TripRepository(session)
        self.account_tokens = AccountTokenRepository(session)
        self.blacklist = BlacklistedTokenRepository(session)

    # ── Registration ──────────────────────────────────────────────────

    async def register_customer(
        self,
        username: str,
        password: str,
        email: str,
        address: Optional[str] = None,
        mobile_number: Optional[str] = None,
    ) -> UserModel:
        return await self._register(
            Role.CUSTOMER,
            username,
            password,
            email,
            address=address,
            mobile_number=mobile_number,
        )

    async def register_driver(
        self,
        username: str,
        password: str,
        email: str,
        licence_no: str,
        address: Optional[str] = None,
        mobile_number: Optional[str] = None,
    ) -> UserModel:
        if not licence_no or not licence_no.strip():
            raise ValidationError("Licence number is required")
        if await self.users.exists_by_licence_no(licence_no.strip()):
            raise ConflictError(f"Licence number {licence_no} is already registered")
        return await self._register(
            Role.DRIVER,
            username,
            password,
            email,
            address=address,
            mobile_number=mobile_number,
            licence_no=licence_no.strip(),
            rating=0.0,
            total_ratings=0,
            is_available=True,
            verified=False,
        )

    async def register_admin(
        self,
        username: str,
        password: str,
        email: str,
        name: Optional[str] = None,
        address: Optional[str] = None,
        mobile_number: Optional[str] = None,
    ) -> UserModel:
        return await self._register(
            Role.ADMIN,
            username,
            password,
            email,
            name=name,
            address=address,
            mobile_number=mobile_number,
            verified=False,
        )

    async def _register(
        self, role: Role, username: str, password: str, email: str, **fields
    ) -> UserModel:
        if await self.users.exists_by_username(username):
            raise ConflictError(f"Username {username} is already taken")
        if await self.users.exists_by_email(email):
            raise ConflictError(f"Email {email} is already registered")

        user = await self.users.create(
            UserModel(
                role=role,
                username=username,
                password_hash=hash_password(password, self.bcrypt_rounds),
                email=email,
                **fields,
            )
        )
        await self.session.commit()
        logger.info("Registered %s %s (id=%s)", role.value, username, user.id)
        return user

    # ── Sessions ──────────────────────────────────────────────────────

    async def login(self, username: str, password: str) -> tuple[UserModel, str]:
        """Check credentials and return the user with a fresh JWT."""
        user = await self.users.get_by_username(username)
        if user is None or not verify_password(password, user.password_hash):
            logger.warning("Failed login for username %s", username)
            raise AuthenticationError(_BAD_CREDENTIALS)
        token = self._token_service().issue(user.username, user.role.value)
        logger.info("User %s logged in", username)
        return user, token

    async def logout(self, token: str) -> None:
        await self.blacklist.add(token)
        await self.session.commit()

    async def is_blacklisted(self, token: str) -> bool:
        return await self.blacklist.contains(token)

    def _token_service(self) -> TokenService:
        if self.tokens is None:
            raise RuntimeError("AccountService was built without a TokenService")
        return self.tokens

    # ── Profile ───────────────────────────────────────────────────────

    async def update_profile(
        self,
        user: UserModel,
        *,
        address: Optional[str] = None,
        mobile_number: Optional[str] = None,
        email: Optional[str] = None,
    ) -> UserModel:
        if email is not None and email.lower() != user.email.lower():
            if await self.users.exists_by_email(email):
                raise ConflictError(f"Email {email} is already registered")
            user.email = email
            user.email_verified = False
        if address is not None:
            user.address = address
        if mobile_number is not None:
            user.mobile_number = mobile_number
        await self.session.commit()
        return user

    async def upload_profile_photo(
        self,
        user: UserModel,
        filename: Optional[str],
        data: bytes,
        content_type: Optional[str] = None,
    ) -> UserModel:
        """Store a new photo for *user*; the replaced file is removed afterwards."""
        if not data:
            raise ValidationError("Uploaded file is empty")
        if content_type and not content_type.startswith("image/"):
            raise ValidationError(f"Profile photo must be an image, got {content_type}")

        previous = user.profile_photo
        user.profile_photo = self.storage.save(filename, data)
        await self.session.commit()
        self.storage.delete(previous)
        logger.info("User %s uploaded profile photo %s", user.username, user.profile_photo)
        return user

    async def delete_user(self, user: UserModel) -> None:
        if await self.trips.count_for_user(user.id):
            raise ConflictError(
                f"User {user.username} has trip history and cannot be deleted"
            )
        if user.role == Role.DRIVER:
            cab = await self.cabs.get_by_driver_id(user.id)
            if cab is not None:
                cab.driver_id = None
        await self.account_tokens.delete_for_email(user.email)
        photo = user.profile_photo
        await self.users.delete(user)
        await self.session.commit()
        self.storage.delete(photo)
        logger.info("Deleted %s %s", user.role.value, user.username)

    async def delete_by_username(self, username: str) -> None:
        user = await self.users.get_by_username(username)
        if user is None:
            raise NotFoundError(f"User {username} not found")
        await self.delete_user(user)

    # ── Account tokens ────────────────────────────────────────────────

    async def request_password_reset(self, email: str) -> str:
        user = await self.users.get_by_email(email)
        if user is None:
            raise NotFoundError(f"No account registered for {email}")
        token = await self._issue_account_token(
            user.email,
            TokenPurpose.PASSWORD_RESET,
            settings.password_reset_token_minutes,
        )
        self.mailer.send_password_reset(user.email, token)
        return token

    async def reset_password(self, token: str, new_password: str) -> UserModel:
        email = await self._redeem_account_token(token, TokenPurpose.PASSWORD_RESET)
        user = await self.users.get_by_email(email)
        if user is None:
            raise NotFoundError(f"No account registered for {email}")
        user.password_hash = hash_password(new_password, self.bcrypt_rounds)
        await self.session.commit()
        logger.info("Password reset for %s", user.username)
        return user

    async def request_email_verification(self, email: str) -> str:
        user = await self.users.get_by_email(email)
        if user is None:
            raise NotFoundError(f"No account registered for {email}")
        if user.email_verified:
            raise InvalidStateError(f"Email {email} is already verified")
        token = await self._issue_account_token(
            user.email,
            TokenPurpose.EMAIL_VERIFICATION,
            settings.verification_token_minutes,
        )
        self.mailer.send_verification(user.email, token)
        return token

    async def verify_email(self, token: str) -> UserModel:
        email = await self._redeem_account_token(token, TokenPurpose.EMAIL_VERIFICATION)
        user = await self.users.get_by_email(email)
        if user is None:
            raise NotFoundError(f"No account registered for {email}")
        user.email_verified = True
        await self.session.commit()
        logger.info("Email verified for %s", user.username)
        return user

    async def _issue_account_token(
        self, email: str, purpose: TokenPurpose, minutes: int
    ) -> str:
        token = uuid.uuid4().hex
        await self.account_tokens.delete_for_email(email, purpose)
        await self.account_tokens.create(
            AccountTokenModel(
                token=token,
                purpose=purpose,
                user_email=email,
                expires_at=self.clock() + timedelta(minutes=minutes),
            )
        )
        await self.session.commit()
        return token

    async def _redeem_account_token(self, token: str, purpose: TokenPurpose) -> str:
        record = await self.account_tokens.get(token, purpose)
        if record is None:
            raise ValidationError("Invalid token")
        email = record.user_email
        expired = _as_utc(record.expires_at) <= self.clock()
        await self.account_tokens.delete(record)
        if expired:
            await self.session.commit()
            raise ValidationError("Token has expired")
        return email
