from pydantic_settings import BaseSettings
from pydantic import SecretStr
from typing import Optional
import os
from dotenv import load_dotenv

load_dotenv()

class Settings(BaseSettings):
    app_name: str = "Growth Academy API"
    debug: bool = os.getenv("DEBUG", "false").lower() == "true"
    log_level: str = os.getenv("LOG_LEVEL", "INFO")

    # Supabase Configuration
    supabase_url: Optional[str] = os.getenv("SUPABASE_URL")
    supabase_anon_key: SecretStr = os.getenv("SUPABASE_ANON_KEY", "")
    supabase_service_role_key: SecretStr = os.getenv("SUPABASE_SERVICE_ROLE_KEY", "")
    use_memory_store: bool = os.getenv("USE_MEMORY_STORE", "false").lower() == "true"

    # Identity
    admin_user_id: str = os.getenv("ADMIN_USER_ID", "O7hofZGIF2NyWHXp6HXN7OXBEXI3")
    student_email_domain: str = os.getenv("STUDENT_EMAIL_DOMAIN", "growth.academy")

    # Session guard
    session_poll_interval: float = float(os.getenv("SESSION_POLL_INTERVAL", 15))  # seconds
    context_max_age: int = int(os.getenv("CONTEXT_MAX_AGE", 7200))  # 2 hours
    cleanup_interval: int = int(os.getenv("CLEANUP_INTERVAL", 300))  # 5 minutes
    heartbeat_interval: int = int(os.getenv("HEARTBEAT_INTERVAL", 30))

    # Quiz attempt persistence
    attempt_max_retries: int = int(os.getenv("ATTEMPT_MAX_RETRIES", 3))
    attempt_retry_backoff: float = float(os.getenv("ATTEMPT_RETRY_BACKOFF", 0.5))  # seconds

    # Collection names
    sessions_collection: str = "sessions"
    attempts_collection: str = "quizAttempts"
    quizzes_collection: str = "quizzes"
    notes_collection: str = "notes"
    tests_collection: str = "tests"
    activity_collection: str = "recentActivity"
    student_users_collection: str = "studentUsers"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"

settings = Settings()
