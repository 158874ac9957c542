"""
Auth Service - Supabase sign-in and per-request session resolution

The cookie session (signed by FastHTML/Starlette) keeps:
- user: {"id", "email"}
- access_token / refresh_token: Supabase session tokens

resolve_auth() turns those tokens into an AuthContext whose client acts as the
signed-in user, so PostgREST evaluates row-level security for that user.
"""

import logging
from dataclasses import dataclass
from typing import Optional
from urllib.parse import urlsplit

from supabase import Client, AuthError, AuthInvalidCredentialsError

from services.database import create_supabase_client

logger = logging.getLogger(__name__)

SESSION_KEYS = ("user", "access_token", "refresh_token")


@dataclass
class AuthContext:
    """Signed-in caller plus a Supabase client bound to their session"""
    user_id: str
    email: Optional[str]
    client: Client


def _store_tokens(session, auth_session, user) -> None:
    session["user"] = {"id": user.id, "email": user.email}
    session["access_token"] = auth_session.access_token
    session["refresh_token"] = auth_session.refresh_token


def clear_auth(session) -> None:
    """Remove Supabase tokens and user info from the cookie session"""
    for key in SESSION_KEYS:
        session.pop(key, None)


def sign_in(session, email: str, password: str) -> AuthContext:
    """
    Sign in with email and password and remember the session.

    Raises:
        AuthError: invalid credentials or any other auth failure
    """
    client = create_supabase_client()
    response = client.auth.sign_in_with_password({
        "email": email,
        "password": password,
    })

    if not response.user or not response.session:
        raise AuthInvalidCredentialsError("Invalid login credentials")

    _store_tokens(session, response.session, response.user)
    logger.info(f"User signed in: {response.user.email}")
    return AuthContext(user_id=response.user.id, email=response.user.email, client=client)


def resolve_auth(session) -> Optional[AuthContext]:
    """
    Resolve the caller's Supabase session from the cookie session.

    Returns None when there is no session or Supabase rejects the tokens;
    rejected tokens are removed from the cookie. Refreshed tokens are written
    back so the next request uses them.
    """
    access_token = session.get("access_token")
    refresh_token = session.get("refresh_token")
    if not access_token or not refresh_token:
        return None

    client = create_supabase_client()
    try:
        response = client.auth.set_session(access_token, refresh_token)
    except AuthError as e:
        logger.info(f"Discarding stale session: {e}")
        clear_auth(session)
        return None

    user = response.user
    if user is None:
        clear_auth(session)
        return None

    if response.session and response.session.access_token != access_token:
        _store_tokens(session, response.session, user)

    return AuthContext(user_id=user.id, email=user.email, client=client)


def sign_out(session, auth: Optional[AuthContext] = None) -> None:
    """End the Supabase session (when known) and clear the cookie session"""
    if auth is not None:
        try:
            auth.client.auth.sign_out()
        except AuthError as e:
            logger.warning(f"Supabase sign out failed for {auth.email}: {e}")
    clear_auth(session)


def safe_next_path(value: Optional[str], default: str = "/quotes") -> str:
    """Return value if it is a local absolute path, otherwise default"""
    if not value or not value.startswith("/") or value.startswith("//") or "\\" in value:
        return default
    parts = urlsplit(value)
    if parts.scheme or parts.netloc:
        return default
    return value
