"""Configuration management."""
import os
from dotenv import load_dotenv

# Load environment variables
load_dotenv()


class Config:
    """Application configuration."""

    # Database
    DB_HOST = os.getenv("DB_HOST", "localhost")
    DB_PORT = os.getenv("DB_PORT", "5432")
    DB_NAME = os.getenv("DB_NAME", "librarydb")
    DB_USER = os.getenv("DB_USER", "postgres")
    DB_PASSWORD = os.getenv("DB_PASSWORD", "")
    DB_MIN_CONN = int(os.getenv("DB_MIN_CONN", "1"))
    DB_MAX_CONN = int(os.getenv("DB_MAX_CONN", "10"))

    @property
    def DATABASE_URL(self):
        """Build PostgreSQL connection string."""
        return f"postgresql://{self.DB_USER}:{self.DB_PASSWORD}@{self.DB_HOST}:{self.DB_PORT}/{self.DB_NAME}"

    # API
    GOOGLE_BOOKS_API_KEY = os.getenv("GOOGLE_BOOKS_API_KEY")

    # Defaults
    DEFAULT_TIMEOUT = int(os.getenv("DEFAULT_TIMEOUT", "10"))
    SUGGESTION_MIN_QUERY_LENGTH = int(os.getenv("SUGGESTION_MIN_QUERY_LENGTH", "3"))
    SUGGESTION_MAX_RESULTS = int(os.getenv("SUGGESTION_MAX_RESULTS", "40"))

    # Logging
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
