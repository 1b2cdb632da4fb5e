"""
Supabase Client
===============
Provides the configured Supabase client shared by the auth helper and
the activity source readers.

Uses the service_role key because the calendar reads workouts, stretch
sessions and meditation sessions on behalf of the authenticated user;
every query filters on user_id explicitly.
"""

from functools import lru_cache

from supabase import Client, create_client

from app.config import get_settings


@lru_cache
def get_supabase_client() -> Client:
    settings = get_settings()
    return create_client(settings.supabase_url, settings.supabase_service_key)
