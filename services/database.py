"""
Supabase connection settings and client factory.

Every request builds its own client through create_supabase_client() and binds
it to the caller's session (see services.auth_service), so row-level security
is evaluated for that user and no state is shared between requests.
"""

import os
from dataclasses import dataclass
from supabase import create_client, Client
from supabase.lib.client_options import ClientOptions
from dotenv import load_dotenv

load_dotenv()


@dataclass(frozen=True)
class Settings:
    """Process configuration for the Supabase project"""
    supabase_url: str
    supabase_anon_key: str
    schema: str = "public"


def get_settings() -> Settings:
    """Read Supabase settings from the environment (.env is loaded first)"""
    url = os.getenv("SUPABASE_URL")
    key = os.getenv("SUPABASE_ANON_KEY")

    if not url or not key:
        raise RuntimeError("SUPABASE_URL and SUPABASE_ANON_KEY must be set")

    return Settings(
        supabase_url=url,
        supabase_anon_key=key,
        schema=os.getenv("SUPABASE_SCHEMA", "public"),
    )


def create_supabase_client(settings: Settings = None) -> Client:
    """Create a new Supabase client with the public anon key"""
    settings = settings or get_settings()
    # Sessions live in the signed cookie, not inside the client
    opts = ClientOptions(schema=settings.schema, auto_refresh_token=False, persist_session=False)
    return create_client(settings.supabase_url, settings.supabase_anon_key, options=opts)
