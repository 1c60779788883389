"""
Quick Thoughts Backend: Session Verification
==============================================

What:  Resolves the caller's identity from the access token issued by the
       hosted auth provider (Supabase).
How:   The token is read from `Authorization: Bearer <token>` or the
       `sb-access-token` cookie and verified with one call to
       GET {SUPABASE_URL}/auth/v1/user. The project's public key goes in the
       `apikey` header as the provider requires.
Who:   Every route that touches user data depends on get_current_user().

Outcomes:
    no token / token rejected (401, 403)  → UnauthorizedError (HTTP 400)
    network error / provider 5xx          → RequestFailedError (HTTP 500)
    credentials not configured            → ConfigurationError (HTTP 500)
"""

import logging
import uuid
from dataclasses import dataclass
from typing import Optional

import httpx
from fastapi import Request

from quickthoughts.config import settings
from quickthoughts.exceptions import (
    ConfigurationError,
    RequestFailedError,
    UnauthorizedError,
)

logger = logging.getLogger(__name__)

ACCESS_TOKEN_COOKIE = "sb-access-token"


@dataclass(frozen=True)
class AuthenticatedUser:
    id: uuid.UUID
    email: Optional[str] = None


def extract_access_token(request: Request) -> Optional[str]:
    header = request.headers.get("Authorization", "")
    scheme, _, token = header.partition(" ")
    if scheme.lower() == "bearer" and token.strip():
        return token.strip()
    cookie = request.cookies.get(ACCESS_TOKEN_COOKIE)
    return cookie.strip() if cookie else None


class SupabaseAuthClient:
    """Thin client for the provider's user endpoint."""

    def __init__(self, base_url: Optional[str] = None, api_key: Optional[str] = None):
        self.base_url = (base_url if base_url is not None else settings.supabase_url).rstrip("/")
        self.api_key = api_key if api_key is not None else settings.supabase_anon_key

    async def get_user(self, access_token: str) -> AuthenticatedUser:
        url = f"{self.base_url}/auth/v1/user"
        headers = {
            "apikey": self.api_key,
            "Authorization": f"Bearer {access_token}",
        }
        try:
            async with httpx.AsyncClient(timeout=settings.auth_timeout) as client:
                response = await client.get(url, headers=headers)
        except httpx.HTTPError as e:
            logger.error("Auth provider unreachable: %s", str(e))
            raise RequestFailedError(
                message="Could not verify your session. Please try again.",
                context={"error_type": type(e).__name__},
            )

        if response.status_code in (401, 403):
            raise UnauthorizedError(context={"status_code": response.status_code})
        if response.status_code >= 400:
            logger.error("Auth provider returned HTTP %d", response.status_code)
            raise RequestFailedError(
                message="Could not verify your session. Please try again.",
                status_code=response.status_code,
            )

        body = response.json()
        try:
            user_id = uuid.UUID(str(body.get("id")))
        except (TypeError, ValueError, AttributeError):
            raise UnauthorizedError(message="Your session is not valid. Please sign in again.")
        return AuthenticatedUser(id=user_id, email=body.get("email"))


supabase_auth = SupabaseAuthClient()


def require_store_config() -> None:
    """Route dependency: the auth provider and store credentials must be set."""
    if not settings.store_configured:
        missing = [m for m in settings.missing_credentials() if m.startswith("SUPABASE")]
        raise ConfigurationError(missing=missing)


def require_ai_config() -> None:
    """Route dependency: the Gemini credential must be set."""
    if not settings.ai_configured:
        raise ConfigurationError(missing=["GEMINI_API_KEY"])


async def get_current_user(request: Request) -> AuthenticatedUser:
    """FastAPI dependency returning the verified caller."""
    require_store_config()
    token = extract_access_token(request)
    if not token:
        raise UnauthorizedError()
    user = await supabase_auth.get_user(token)
    request.state.user_id = str(user.id)
    return user
