from functools import lru_cache
from typing import List
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Database
    postgres_host: str = "localhost"
    postgres_port: int = 5432
    postgres_db: str = "treemerge"
    postgres_user: str = "treemerge"
    postgres_password: str = "localdev"

    # GEDCOM
    supported_gedcom_versions: List[str] = ["5.5.1", "7.0"]

    # Duplicate detection
    duplicate_confidence_threshold: int = 70
    duplicate_name_weight: float = 0.6
    duplicate_birth_date_weight: float = 0.4

    # Preview state
    preview_ttl_seconds: int = 3600

    # Logging
    log_level: str = "INFO"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"

    @property
    def database_url(self) -> str:
        """Async database URL for asyncpg"""
        return f"postgresql+asyncpg://{self.postgres_user}:{self.postgres_password}@{self.postgres_host}:{self.postgres_port}/{self.postgres_db}"


@lru_cache()
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
