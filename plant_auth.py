"""
Supabase auth for the MediHort page.

Each browser session gets its own Supabase client (the client holds the
signed-in session), stored in the Streamlit session state. There is no
local copy of the user: the page asks the client for the session on every
rerun, so sign-in, sign-out and token refreshes show up on the next render.
"""
import logging
from typing import Any, MutableMapping, Optional

from supabase import create_client, Client

from api_config import SUPABASE_URL, SUPABASE_ANON_KEY

logger = logging.getLogger(__name__)

CLIENT_KEY = "supabase_client"


class SupabaseConfigError(RuntimeError):
    """SUPABASE_URL / SUPABASE_ANON_KEY are not configured."""


def supabase_configured() -> bool:
    return bool(SUPABASE_URL and SUPABASE_ANON_KEY)


def get_supabase_client(state: MutableMapping[str, Any]) -> Client:
    client = state.get(CLIENT_KEY)
    if client is not None:
        return client
    if not supabase_configured():
        raise SupabaseConfigError("Supabase URL or anon key is missing. Please check your .env file.")

    client = create_client(SUPABASE_URL, SUPABASE_ANON_KEY)
    state[CLIENT_KEY] = client
    logger.info("Supabase client created for new browser session")
    return client


def get_session(client: Client):
    return client.auth.get_session()


def current_user(client: Client):
    session = get_session(client)
    return session.user if session else None


def access_token(client: Client) -> Optional[str]:
    session = get_session(client)
    return session.access_token if session else None


def _check_credentials(email: str, password: str) -> dict:
    email = (email or "").strip()
    if not email or not password:
        raise ValueError("Email and password are required.")
    return {"email": email, "password": password}


def sign_in(client: Client, email: str, password: str):
    response = client.auth.sign_in_with_password(_check_credentials(email, password))
    logger.info("Signed in %s", response.user.email if response.user else email)
    return response.user


def sign_up(client: Client, email: str, password: str):
    """Creates the account. Returns the user, which may still need email confirmation."""
    response = client.auth.sign_up(_check_credentials(email, password))
    logger.info("Signed up %s (session issued: %s)", email, response.session is not None)
    return response.user


def sign_out(client: Client) -> None:
    client.auth.sign_out()
    logger.info("Signed out")


def user_display(user) -> str:
    if user is None:
        return ""
    return getattr(user, "email", None) or "Signed in"
