"""
Identity service keeping provider accounts and local user rows in step.

Each operation talks to the identity provider first and the database second.
There is no distributed transaction between the two; see ``register`` for the
one compensating step that is attempted.
"""

from datetime import datetime
from typing import Any, Dict, Optional, Tuple

from fastapi import Depends
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from backend.src.core.exceptions import AuthenticationError
from backend.src.core.firebase import IdentityProvider, get_identity_provider
from backend.src.core.logging import get_logger
from backend.src.models.user import User

logger = get_logger(__name__)

# Profile fields the provider also stores, mapped to its attribute names
_PROVIDER_PROFILE_FIELDS = {"username": "display_name", "photo_url": "photo_url"}


class IdentityService:
    """Service for registration, login and mirrored profile management."""

    def __init__(self, provider: IdentityProvider):
        self.provider = provider

    async def _find_by_uid(self, firebase_uid: str, db: AsyncSession) -> Optional[User]:
        result = await db.execute(
            select(User)
            .where(User.firebase_uid == firebase_uid)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def register(
        self,
        email: str,
        password: str,
        username: Optional[str],
        db: AsyncSession,
    ) -> Tuple[User, str]:
        """
        Create a provider account and its local mirror.

        If the local insert fails the new provider account is deleted again on
        a best-effort basis and the original error is re-raised.

        Args:
            email: Account email
            password: Account password (stored only by the provider)
            username: Optional display name
            db: Database session

        Returns:
            Tuple of (user, token)

        Raises:
            DuplicateResourceError: If the email is already registered
        """
        account = await self.provider.create_account(
            email=email,
            password=password,
            display_name=username,
        )
        token = await self.provider.mint_token(account.uid)

        user = User(
            firebase_uid=account.uid,
            email=account.email or email,
            username=account.display_name,
            photo_url=account.photo_url,
            email_verified_at=datetime.utcnow() if account.email_verified else None,
            status="active",
        )

        try:
            db.add(user)
            await db.commit()
        except Exception as e:
            await db.rollback()
            logger.error(
                "Local user insert failed after provider account creation",
                extra={"firebase_uid": account.uid, "error": str(e)},
                exc_info=True,
            )
            await self._discard_account(account.uid)
            raise

        await db.refresh(user)

        logger.info(
            "User registered",
            extra={"user_id": user.id, "firebase_uid": account.uid},
        )
        return user, token

    async def _discard_account(self, firebase_uid: str) -> None:
        try:
            await self.provider.delete_account(firebase_uid)
            logger.warning(
                "Orphaned provider account removed",
                extra={"firebase_uid": firebase_uid},
            )
        except Exception as e:
            logger.error(
                "Could not remove orphaned provider account",
                extra={"firebase_uid": firebase_uid, "error": str(e)},
            )

    async def login(self, email: str, password: str, db: AsyncSession) -> Tuple[User, str]:
        """
        Issue a token for an existing account.

        The password is not checked here; the provider's client sign-in
        verifies credentials.

        Raises:
            AuthenticationError: If the account is unknown to either store
        """
        account = await self.provider.get_account_by_email(email)
        if account is None:
            raise AuthenticationError("Invalid email or password", error="Unknown account")

        token = await self.provider.mint_token(account.uid)

        await db.execute(
            update(User)
            .where(User.firebase_uid == account.uid)
            .values(updated_at=datetime.utcnow())
            .execution_options(synchronize_session=False)
        )
        await db.commit()

        user = await self._find_by_uid(account.uid, db)
        if user is None:
            logger.error(
                "Provider account has no local user",
                extra={"firebase_uid": account.uid},
            )
            raise AuthenticationError(
                "Invalid email or password",
                error="User exists with the identity provider but not in the database",
            )

        logger.info("User logged in", extra={"user_id": user.id})
        return user, token

    async def verify_token(self, token: str, db: AsyncSession) -> User:
        """
        Resolve a bearer token to its local user.

        Raises:
            AuthenticationError: If verification or the lookup fails
        """
        claims = await self.provider.verify_token(token)
        uid = claims.get("uid") or claims.get("sub")
        if not uid:
            raise AuthenticationError("Invalid or expired token", error="Token has no subject")

        user = await self._find_by_uid(uid, db)
        if user is None:
            raise AuthenticationError("Invalid or expired token", error="User not found in database")
        return user

    async def get_by_id(self, user_id: int, db: AsyncSession) -> Optional[User]:
        """User with the given id, or None."""
        result = await db.execute(
            select(User).where(User.id == user_id).execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def update_profile(
        self,
        user_id: int,
        changes: Dict[str, Any],
        db: AsyncSession,
    ) -> Optional[User]:
        """
        Change profile fields on both stores.

        Args:
            user_id: User ID
            changes: Supplied fields among username, photo_url and status
            db: Database session

        Returns:
            Updated user, or None if it does not exist
        """
        user = await self.get_by_id(user_id, db)
        if user is None:
            return None
        if not changes:
            return user

        provider_changes = {
            _PROVIDER_PROFILE_FIELDS[field]: value
            for field, value in changes.items()
            if field in _PROVIDER_PROFILE_FIELDS and value != getattr(user, field)
        }
        if provider_changes:
            await self.provider.update_account(user.firebase_uid, **provider_changes)

        await db.execute(
            update(User)
            .where(User.id == user_id)
            .values(**changes)
            .execution_options(synchronize_session=False)
        )
        await db.commit()

        logger.info(
            "User profile updated",
            extra={"user_id": user_id, "fields": sorted(changes)},
        )
        return await self.get_by_id(user_id, db)

    async def delete_user(self, user_id: int, db: AsyncSession) -> bool:
        """
        Delete the provider account, then the local row.

        Returns:
            False if the user does not exist
        """
        user = await self.get_by_id(user_id, db)
        if user is None:
            return False

        if not await self.provider.delete_account(user.firebase_uid):
            logger.warning(
                "Provider account already absent",
                extra={"user_id": user_id, "firebase_uid": user.firebase_uid},
            )

        await db.delete(user)
        await db.commit()

        logger.info("User deleted", extra={"user_id": user_id})
        return True


def get_identity_service(
    provider: IdentityProvider = Depends(get_identity_provider),
) -> IdentityService:
    """Dependency to get IdentityService instance."""
    return IdentityService(provider)
