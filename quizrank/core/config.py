"""
Core configuration for QuizRank Backend
Quiz scoring and live leaderboard service
"""

from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings"""

    # Application Settings
    APP_NAME: str = "QuizRank"
    APP_VERSION: str = "1.0.0"
    APP_DESCRIPTION: str = "Quiz scoring and live leaderboard backend"
    ENVIRONMENT: str = Field(default="development")
    DEBUG: bool = Field(default=False)

    # API Settings
    API_V1_STR: str = "/api/v1"
    PROJECT_NAME: str = "QuizRank Backend"

    # Database
    DATABASE_URL: Optional[str] = Field(default=None)
    POSTGRES_USER: Optional[str] = Field(default=None)
    POSTGRES_PASSWORD: Optional[str] = Field(default=None)
    POSTGRES_SERVER: Optional[str] = Field(default=None)
    POSTGRES_PORT: str = Field(default="5432")
    POSTGRES_DB: Optional[str] = Field(default=None)
    DB_POOL_PRE_PING: bool = Field(default=True)
    DB_ECHO: bool = Field(default=False)

    # Redis
    REDIS_ENABLED: bool = Field(default=True)
    REDIS_URL: Optional[str] = Field(default=None)
    REDIS_HOST: str = Field(default="localhost")
    REDIS_PORT: int = Field(default=6379)
    REDIS_DB: int = Field(default=0)
    REDIS_POOL_MAX_CONNECTIONS: int = Field(default=50)

    # Question-set cache
    QUESTION_SET_CACHE_TTL: int = Field(default=300)  # 5 minutes
    QUESTION_SET_CACHE_PREFIX: str = Field(default="quiz:start")

    # Leaderboard
    LEADERBOARD_BACKEND: str = Field(default="redis")  # redis | memory
    LEADERBOARD_KEY: str = Field(default="leaderboard:all")
    LEADERBOARD_DEFAULT_PAGE_SIZE: int = Field(default=10)
    LEADERBOARD_MAX_PAGE_SIZE: int = Field(default=50)
    LEADERBOARD_TOP_SIZE: int = Field(default=10)
    LEDGER_RECONCILE_INTERVAL: int = Field(default=0)  # seconds, 0 disables

    # Stats
    RECENT_ATTEMPTS_DEFAULT_LIMIT: int = Field(default=10)
    RECENT_ATTEMPTS_MAX_LIMIT: int = Field(default=50)

    # Logging
    LOG_LEVEL: str = Field(default="INFO")
    LOG_FORMAT: str = Field(default="%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    LOG_FILE: Optional[str] = Field(default=None)
    LOG_MAX_BYTES: int = Field(default=10 * 1024 * 1024)
    LOG_BACKUP_COUNT: int = Field(default=5)

    # CORS
    BACKEND_CORS_ORIGINS: str = Field(
        default="http://localhost:3000,http://localhost:8081"
    )

    # Sentry
    SENTRY_DSN: Optional[str] = Field(default=None)

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"

    def get_database_url(self) -> str:
        """Get database URL with proper formatting"""
        if self.DATABASE_URL:
            # Handle Render's postgres:// URLs
            db_url = self.DATABASE_URL
            if db_url.startswith("postgres://"):
                db_url = db_url.replace("postgres://", "postgresql://", 1)
            return db_url

        # Build URL from components
        if all([self.POSTGRES_USER, self.POSTGRES_PASSWORD,
                self.POSTGRES_SERVER, self.POSTGRES_DB]):
            return (
                f"postgresql://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}@"
                f"{self.POSTGRES_SERVER}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"
            )

        # Default for development
        return "sqlite:///./quizrank.db"

    def get_redis_url(self) -> str:
        """Get Redis URL"""
        if self.REDIS_URL:
            return self.REDIS_URL
        return f"redis://{self.REDIS_HOST}:{self.REDIS_PORT}/{self.REDIS_DB}"

    def get_cors_origins(self) -> list[str]:
        """Get CORS origins as list"""
        if self.BACKEND_CORS_ORIGINS:
            return [origin.strip() for origin in self.BACKEND_CORS_ORIGINS.split(",")]
        return ["http://localhost:3000", "http://localhost:8081"]

    def is_production(self) -> bool:
        """Check whether the service runs in production"""
        return self.ENVIRONMENT.lower() == "production"


settings = Settings()
