"""Identity provider contract over Supabase Auth."""

from typing import Callable, Optional
import logging

from supabase import create_client, Client
from growth_academy.config import settings
from growth_academy.errors import AuthError
from growth_academy.models import Identity

logger = logging.getLogger(__name__)

INVALID_CREDENTIALS_MESSAGE = (
    "Invalid username or password. Please check your credentials and try again."
)
RATE_LIMITED_MESSAGE = (
    "Access to this account has been temporarily disabled due to many failed login "
    "attempts. You can immediately restore it by resetting your password or you can "
    "try again later."
)
UNEXPECTED_ERROR_MESSAGE = "An unexpected error occurred. Please try again."


def username_to_email(username: str) -> str:
    """Students sign in with a bare username; anything with an @ is already an email"""
    username = username.strip()
    if "@" in username:
        return username
    return f"{username}@{settings.student_email_domain}"


def create_auth_client() -> Client:
    """Each client context gets its own auth client so sign-outs stay independent"""
    return create_client(
        settings.supabase_url,
        settings.supabase_anon_key.get_secret_value()
    )


def _is_rate_limited(error: Exception) -> bool:
    if getattr(error, "status", None) == 429:
        return True
    text = str(error).lower()
    return "too many" in text or "rate limit" in text


def _is_invalid_credentials(error: Exception) -> bool:
    if getattr(error, "status", None) in (400, 401):
        return True
    text = str(error).lower()
    return "invalid" in text or "not found" in text


class IdentityProvider:
    """Sign-in, sign-out and identity change notifications for one client context"""

    def __init__(self, client_factory: Callable[[], Client] = create_auth_client):
        self._client_factory = client_factory
        self._client: Optional[Client] = None

    @property
    def client(self) -> Client:
        if self._client is None:
            self._client = self._client_factory()
        return self._client

    def sign_in(self, username: str, password: str) -> Identity:
        email = username_to_email(username)
        try:
            auth_response = self.client.auth.sign_in_with_password({
                "email": email,
                "password": password
            })
        except Exception as e:
            if _is_rate_limited(e):
                raise AuthError(RATE_LIMITED_MESSAGE, rate_limited=True) from e
            if _is_invalid_credentials(e):
                raise AuthError(INVALID_CREDENTIALS_MESSAGE) from e
            logger.error(f"Sign-in error for {email}: {e}")
            raise AuthError(UNEXPECTED_ERROR_MESSAGE) from e

        if not auth_response.user or not auth_response.session:
            raise AuthError(INVALID_CREDENTIALS_MESSAGE)

        return Identity(id=auth_response.user.id, email=auth_response.user.email)

    def sign_out(self):
        self.client.auth.sign_out()

    def on_identity_change(self, callback: Callable[[Optional[Identity]], None]) -> Callable[[], None]:
        """Invoke callback with the current identity (or None) on every auth transition"""
        def _listener(event, session):
            user = session.user if session else None
            callback(Identity(id=user.id, email=user.email) if user else None)

        subscription = self.client.auth.on_auth_state_change(_listener)
        return subscription.unsubscribe

    def send_password_reset(self, identifier: str):
        email = username_to_email(identifier)
        try:
            self.client.auth.reset_password_for_email(email)
        except Exception as e:
            logger.error(f"Password reset error for {email}: {e}")
            if _is_rate_limited(e):
                raise AuthError(RATE_LIMITED_MESSAGE, rate_limited=True) from e
            raise AuthError(UNEXPECTED_ERROR_MESSAGE) from e
