"""
Wellness API Configuration
==========================
All environment variables in one place. Pydantic Settings validates
types at startup so a bad table name or log level fails on boot.
"""

from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Loaded from environment variables or a .env file."""

    # --- Supabase ---
    supabase_url: str = "http://localhost:54321"
    supabase_service_key: str = ""  # service_role key for backend reads

    # --- Activity tables ---
    workouts_table: str = "workouts"
    workout_sets_table: str = "workout_sets"
    plan_days_table: str = "plan_days"
    stretch_sessions_table: str = "stretch_sessions"
    meditation_sessions_table: str = "meditation_sessions"

    # --- App settings ---
    environment: str = "development"  # development | staging | production
    log_level: str = "INFO"
    cors_origins: list[str] = ["http://localhost:8081", "http://localhost:19006"]

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


@lru_cache
def get_settings() -> Settings:
    return Settings()
