"""
Studio Configuration

Configuration class for the Studio API (advisor, risk and fitness apps).
"""
import os
from pathlib import Path
from typing import List
from urllib.parse import quote_plus
from dotenv import load_dotenv

# Load .env file from project root
_env_path = Path(__file__).parent.parent.parent / ".env"
load_dotenv(_env_path)


def _csv(value: str) -> List[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


class Config:
    """Configuration class for Studio API"""

    # Base paths
    BASE_DIR = Path(__file__).parent.parent.parent
    DATA_DIR = BASE_DIR / "data"
    PROMPTS_DIR = Path(__file__).parent / "prompts"
    UPLOAD_DIR = Path(os.getenv("UPLOAD_DIR", str(DATA_DIR / "uploads")))

    # Database settings (Supabase exposes a plain Postgres endpoint)
    DB_HOST = os.getenv("DB_HOST", "localhost")
    DB_PORT = os.getenv("DB_PORT", "5432")
    DB_NAME = os.getenv("DB_NAME", "studio")
    DB_USER = os.getenv("DB_USER", "postgres")
    DB_PASSWORD = os.getenv("DB_PASSWORD", "")
    POSTGRES_DSN = os.getenv("POSTGRES_DSN", "")

    # API settings
    API_HOST = os.getenv("API_HOST", "127.0.0.1")
    API_PORT = int(os.getenv("API_PORT", "8100"))
    CORS_ORIGINS = _csv(os.getenv("CORS_ORIGINS", "*"))

    # Anthropic
    ANTHROPIC_API_KEY = os.getenv("ANTHROPIC_API_KEY", "")
    ANTHROPIC_MODEL = os.getenv("ANTHROPIC_MODEL", "claude-sonnet-4-20250514")
    LLM_TIMEOUT = float(os.getenv("LLM_TIMEOUT", "120"))

    # JWT settings
    JWT_SECRET = os.getenv("JWT_SECRET", "studio-secret-key-change-in-production")
    JWT_ALGORITHM = "HS256"
    JWT_EXPIRATION_HOURS = int(os.getenv("JWT_EXPIRATION_HOURS", "24"))
    ADMIN_USER_IDS = _csv(os.getenv("ADMIN_USER_IDS", ""))

    # Password hashing
    PASSWORD_SALT_ROUNDS = int(os.getenv("PASSWORD_SALT_ROUNDS", "12"))

    # Audit log buffer
    AUDIT_FLUSH_SIZE = int(os.getenv("AUDIT_FLUSH_SIZE", "100"))
    AUDIT_FLUSH_INTERVAL = float(os.getenv("AUDIT_FLUSH_INTERVAL", "5"))

    # X (Twitter) posting
    X_POST_ENABLED = os.getenv("X_POST_ENABLED", "false").lower() == "true"
    X_ACCESS_TOKEN = os.getenv("X_ACCESS_TOKEN", "")
    X_MAX_POSTS_PER_HOUR = int(os.getenv("X_MAX_POSTS_PER_HOUR", "15"))
    SITE_URL = os.getenv("SITE_URL", "https://bitcoinrmf.com")

    # Threat feeds
    NVD_API_KEY = os.getenv("NVD_API_KEY", "")
    GITHUB_TOKEN = os.getenv("GITHUB_TOKEN", "")

    # Risk pipeline
    CRON_SECRET = os.getenv("CRON_SECRET", "")
    REEVAL_BATCH_SIZE = int(os.getenv("REEVAL_BATCH_SIZE", "5"))
    REEVAL_MAX_DAILY = int(os.getenv("REEVAL_MAX_DAILY", "50"))
    PIPELINE_SCHEDULER_ENABLED = os.getenv("PIPELINE_SCHEDULER_ENABLED", "false").lower() == "true"
    PIPELINE_POLL_INTERVAL = int(os.getenv("PIPELINE_POLL_INTERVAL", "60"))
    THREAT_SCAN_CRON = os.getenv("THREAT_SCAN_CRON", "0 */6 * * *")
    REEVAL_CRON = os.getenv("REEVAL_CRON", "15 * * * *")
    SNAPSHOT_CRON = os.getenv("SNAPSHOT_CRON", "0 0 * * *")

    @staticmethod
    def get_postgres_dsn() -> str:
        """Get PostgreSQL DSN with password handling"""
        if Config.POSTGRES_DSN:
            return Config.POSTGRES_DSN
        if Config.DB_PASSWORD:
            password = quote_plus(Config.DB_PASSWORD)
            return f"postgresql://{Config.DB_USER}:{password}@{Config.DB_HOST}:{Config.DB_PORT}/{Config.DB_NAME}"
        return f"postgresql://{Config.DB_USER}@{Config.DB_HOST}:{Config.DB_PORT}/{Config.DB_NAME}"

    @staticmethod
    def is_admin_id(user_id) -> bool:
        """Check whether a user id is listed in ADMIN_USER_IDS"""
        return str(user_id) in Config.ADMIN_USER_IDS
