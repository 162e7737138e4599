"""
Application settings and configuration
"""

from typing import Set

from pydantic_settings import BaseSettings
from pydantic import Field


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    # Server Configuration
    HOST: str = Field(default="0.0.0.0", description="Server host")
    PORT: int = Field(default=3000, description="Server port")
    DEBUG: bool = Field(default=False, description="Debug mode")
    LOG_LEVEL: str = Field(default="INFO", description="Logging level")

    # GitHub Configuration
    GITHUB_WEBHOOK_SECRET: str = Field(..., description="GitHub webhook secret")
    GITHUB_TOKEN: str = Field(default="", description="GitHub token for outbound API calls")
    GITHUB_API_URL: str = Field(
        default="https://api.github.com", description="GitHub API URL"
    )
    GITHUB_META_URL: str = Field(
        default="https://api.github.com/meta",
        description="GitHub meta endpoint publishing webhook source ranges",
    )

    # Authorization
    ALLOWED_OWNERS: str = Field(
        default="", description="Comma-separated list of repository owners accepted by the receiver"
    )

    # Source IP validation
    WEBHOOK_IP_VALIDATION: bool = Field(
        default=False, description="Reject deliveries not coming from GitHub's hook ranges"
    )
    WEBHOOK_IP_FAIL_OPEN: bool = Field(
        default=False, description="Accept deliveries when the hook ranges cannot be fetched"
    )
    TRUST_PROXY: bool = Field(
        default=False, description="Trust X-Forwarded-For / X-Real-IP headers"
    )
    IP_RANGES_CACHE_TTL: float = Field(
        default=3600.0, description="Seconds a fetched range snapshot stays fresh"
    )

    # Outbound retry policy
    RETRY_MAX_ATTEMPTS: int = Field(default=3, description="Retries after the first attempt")
    RETRY_INITIAL_DELAY: float = Field(default=1.0, description="First retry delay in seconds")
    RETRY_MAX_DELAY: float = Field(default=10.0, description="Upper bound for a retry delay in seconds")
    RETRY_BACKOFF_MULTIPLIER: float = Field(default=2.0, description="Exponential backoff factor")

    @property
    def allowed_owners_set(self) -> Set[str]:
        """Get allowed owners as a set"""
        if not self.ALLOWED_OWNERS:
            return set()
        return {owner.strip() for owner in self.ALLOWED_OWNERS.split(",") if owner.strip()}

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True


# Global settings instance
settings = Settings()
