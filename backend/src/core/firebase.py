"""
Firebase Admin bootstrap and the identity provider facade.

The Admin SDK is blocking, so every provider call is moved to a worker
thread to keep the event loop free.
"""

import asyncio
import threading
from dataclasses import dataclass
from typing import Any, Dict, Optional

import firebase_admin
from firebase_admin import auth, credentials
from firebase_admin.exceptions import FirebaseError

from backend.src.core.config import settings
from backend.src.core.exceptions import (
    AuthenticationError,
    ConfigurationError,
    DuplicateResourceError,
    ExternalServiceError,
)
from backend.src.core.logging import get_logger

logger = get_logger(__name__)

_app: Optional[firebase_admin.App] = None
_app_lock = threading.Lock()


def get_firebase_app() -> firebase_admin.App:
    """
    Return the Firebase Admin app, initializing it on first use.

    Raises:
        ConfigurationError: If service account credentials are missing
    """
    global _app
    with _app_lock:
        if _app is not None:
            return _app

        if not settings.firebase_configured:
            raise ConfigurationError(
                "Firebase service account credentials are not configured",
                config_key="FIREBASE_PRIVATE_KEY",
            )

        certificate = credentials.Certificate(
            {
                "type": "service_account",
                "project_id": settings.FIREBASE_PROJECT_ID,
                "client_email": settings.FIREBASE_CLIENT_EMAIL,
                "private_key": settings.FIREBASE_PRIVATE_KEY,
                "token_uri": "https://oauth2.googleapis.com/token",
            }
        )
        _app = firebase_admin.initialize_app(
            certificate,
            {"databaseURL": settings.firebase_database_url},
        )

        logger.info(
            "Firebase initialized",
            extra={
                "project_id": settings.FIREBASE_PROJECT_ID,
                "region": settings.FIREBASE_DATABASE_REGION,
                "database_url": settings.firebase_database_url,
            },
        )
        return _app


@dataclass(frozen=True)
class ExternalAccount:
    """Account as known by the identity provider."""

    uid: str
    email: Optional[str]
    display_name: Optional[str] = None
    photo_url: Optional[str] = None
    email_verified: bool = False

    @classmethod
    def from_record(cls, record: auth.UserRecord) -> "ExternalAccount":
        return cls(
            uid=record.uid,
            email=record.email,
            display_name=record.display_name,
            photo_url=record.photo_url,
            email_verified=bool(record.email_verified),
        )


class IdentityProvider:
    """Async facade over Firebase Authentication."""

    SERVICE_NAME = "firebase_auth"

    async def _call(self, operation: str, func, *args, **kwargs):
        try:
            return await asyncio.to_thread(func, *args, app=get_firebase_app(), **kwargs)
        except (FirebaseError, ValueError) as e:
            logger.error(
                "Identity provider call failed",
                extra={"operation": operation, "error": str(e)},
            )
            raise ExternalServiceError(
                message=f"Identity provider {operation} failed",
                service_name=self.SERVICE_NAME,
                original_error=e,
            ) from e

    async def create_account(
        self,
        email: str,
        password: str,
        display_name: Optional[str] = None,
    ) -> ExternalAccount:
        """
        Create an account with the provider.

        Raises:
            DuplicateResourceError: If the email is already registered
        """
        try:
            record = await asyncio.to_thread(
                auth.create_user,
                email=email,
                password=password,
                display_name=display_name,
                app=get_firebase_app(),
            )
        except auth.EmailAlreadyExistsError as e:
            raise DuplicateResourceError("Account", email) from e
        except (FirebaseError, ValueError) as e:
            raise ExternalServiceError(
                message="Identity provider create_account failed",
                service_name=self.SERVICE_NAME,
                original_error=e,
            ) from e
        return ExternalAccount.from_record(record)

    async def get_account_by_email(self, email: str) -> Optional[ExternalAccount]:
        """Look up an account, returning None when the email is unknown."""
        try:
            record = await asyncio.to_thread(auth.get_user_by_email, email, app=get_firebase_app())
        except auth.UserNotFoundError:
            return None
        except (FirebaseError, ValueError) as e:
            raise ExternalServiceError(
                message="Identity provider get_account_by_email failed",
                service_name=self.SERVICE_NAME,
                original_error=e,
            ) from e
        return ExternalAccount.from_record(record)

    async def mint_token(self, uid: str) -> str:
        """Issue a custom token for the account."""
        token = await self._call("mint_token", auth.create_custom_token, uid)
        return token.decode("utf-8") if isinstance(token, bytes) else token

    async def verify_token(self, token: str) -> Dict[str, Any]:
        """
        Verify an ID token and return its claims.

        Raises:
            AuthenticationError: If the token cannot be verified for any reason
        """
        try:
            return await asyncio.to_thread(auth.verify_id_token, token, app=get_firebase_app())
        except Exception as e:
            logger.warning(
                "Token verification failed",
                extra={"error_type": type(e).__name__},
            )
            raise AuthenticationError("Invalid or expired token", error=str(e)) from e

    async def update_account(
        self,
        uid: str,
        display_name: Optional[str] = None,
        photo_url: Optional[str] = None,
    ) -> None:
        """Push profile changes; fields left as None are not sent."""
        changes: Dict[str, Any] = {}
        if display_name is not None:
            changes["display_name"] = display_name
        if photo_url is not None:
            changes["photo_url"] = photo_url
        if not changes:
            return
        await self._call("update_account", auth.update_user, uid, **changes)

    async def delete_account(self, uid: str) -> bool:
        """
        Delete an account.

        Returns:
            False if the provider no longer knew the account
        """
        try:
            await asyncio.to_thread(auth.delete_user, uid, app=get_firebase_app())
        except auth.UserNotFoundError:
            return False
        except (FirebaseError, ValueError) as e:
            raise ExternalServiceError(
                message="Identity provider delete_account failed",
                service_name=self.SERVICE_NAME,
                original_error=e,
            ) from e
        return True


# Global provider instance
identity_provider = IdentityProvider()


def get_identity_provider() -> IdentityProvider:
    """Dependency returning the identity provider."""
    return identity_provider
