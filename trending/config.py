"""Configuration loaded from environment variables."""
import logging
import os
from dataclasses import dataclass
from typing import Optional
from dotenv import load_dotenv
from trending.domain.errors import ConfigurationError


LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def load_env() -> None:
    """Load environment variables from .env or env file."""
    load_dotenv('.env') or load_dotenv('env')


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=LOG_FORMAT
    )


@dataclass(frozen=True)
class Settings:
    """Runtime settings; every field maps to one environment variable."""
    github_token: Optional[str] = None
    postgres_host: str = "localhost"
    postgres_port: str = "5432"
    postgres_db: str = "trending_repos"
    postgres_user: str = "postgres"
    postgres_password: str = "postgres"
    redis_url: Optional[str] = None
    search_cache_ttl_seconds: int = 1800
    cron_secret: Optional[str] = None
    api_host: str = "0.0.0.0"
    api_port: int = 8080
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> 'Settings':
        """Build settings from the process environment."""
        return cls(
            github_token=os.getenv("GITHUB_TOKEN") or None,
            postgres_host=os.getenv("POSTGRES_HOST", "localhost"),
            postgres_port=os.getenv("POSTGRES_PORT", "5432"),
            postgres_db=os.getenv("POSTGRES_DB", "trending_repos"),
            postgres_user=os.getenv("POSTGRES_USER", "postgres"),
            postgres_password=os.getenv("POSTGRES_PASSWORD", "postgres"),
            redis_url=os.getenv("REDIS_URL") or None,
            search_cache_ttl_seconds=int(os.getenv("SEARCH_CACHE_TTL_SECONDS", "1800")),
            cron_secret=os.getenv("CRON_SECRET") or None,
            api_host=os.getenv("API_HOST", "0.0.0.0"),
            api_port=int(os.getenv("API_PORT", "8080")),
            log_level=os.getenv("LOG_LEVEL", "INFO")
        )

    @property
    def connection_string(self) -> str:
        """PostgreSQL connection string built from the POSTGRES_* settings."""
        return (
            f"host={self.postgres_host} port={self.postgres_port} dbname={self.postgres_db} "
            f"user={self.postgres_user} password={self.postgres_password}"
        )

    def require_github_token(self) -> str:
        """Return the GitHub token or fail before any sync work starts."""
        if not self.github_token:
            raise ConfigurationError("GITHUB_TOKEN must be set")
        return self.github_token
