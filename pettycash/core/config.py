"""
Application Configuration
"""
from pydantic_settings import BaseSettings
from typing import List, Tuple
import warnings

INSECURE_SECRET_KEYS = (
    "your-super-secret-key-change-in-production-min-32-chars",
    "dev-secret-key-change-in-production",
    "secret-key",
    "change-me",
)


class Settings(BaseSettings):
    """Ledger service settings, read from the environment or .env"""

    # Application
    APP_NAME: str = "Petty Cash Ledger API"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    ENVIRONMENT: str = "development"  # development, staging, production
    LOG_LEVEL: str = "INFO"

    # Database
    DATABASE_URL: str = "sqlite:///./pettycash.db"

    # Token verification
    SECRET_KEY: str = INSECURE_SECRET_KEYS[0]
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 1440  # 24 hours

    # Rate Limiting (write requests per client per minute)
    RATE_LIMIT_ENABLED: bool = True
    RATE_LIMIT_TRANSFERS_PER_MINUTE: int = 10
    RATE_LIMIT_RETIREMENTS_PER_MINUTE: int = 5
    RATE_LIMIT_WRITES_PER_MINUTE: int = 30

    # CORS
    CORS_ORIGINS: str = "http://localhost:5173,http://127.0.0.1:5173"

    # Listing
    DEFAULT_PAGE_SIZE: int = 15
    MAX_PAGE_SIZE: int = 100

    @property
    def cors_origins_list(self) -> List[str]:
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]

    @property
    def database_url(self) -> str:
        """DATABASE_URL with file: paths turned into SQLite URLs"""
        if self.DATABASE_URL.startswith("file:"):
            return f"sqlite:///{self.DATABASE_URL[len('file:'):]}"
        return self.DATABASE_URL

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT.lower() == "production"

    def security_problems(self) -> List[Tuple[str, bool]]:
        """(message, fatal in production) for every insecure setting"""
        problems = []
        if self.SECRET_KEY in INSECURE_SECRET_KEYS:
            problems.append(("Default SECRET_KEY in use; set SECRET_KEY to a random value.", True))
        if len(self.SECRET_KEY) < 32:
            problems.append(("SECRET_KEY should be at least 32 characters.", True))
        if self.DEBUG and self.is_production:
            problems.append(("DEBUG is enabled in production.", True))
        return problems

    def validate_security_settings(self):
        """Raise in production, warn elsewhere"""
        for message, fatal in self.security_problems():
            if fatal and self.is_production:
                raise ValueError(f"CRITICAL: {message}")
            warnings.warn(f"WARNING: {message}", UserWarning)
        return True

    def clamp_page_size(self, per_page: int) -> int:
        """Keep a requested page size within the configured bounds"""
        if per_page is None or per_page < 1:
            return self.DEFAULT_PAGE_SIZE
        return min(per_page, self.MAX_PAGE_SIZE)

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"


settings = Settings()
settings.validate_security_settings()
