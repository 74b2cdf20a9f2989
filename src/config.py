from typing import List, Optional
from pydantic import PostgresDsn, computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    PROJECT_NAME: str = "Piping Engineering Backend"
    VERSION: str = "0.1.0"
    API_V1_STR: str = "/v1"
    LOG_LEVEL: str = "INFO"

    # CORS
    BACKEND_CORS_ORIGINS: List[str] = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]

    # Database
    POSTGRES_SERVER: str = "localhost"
    POSTGRES_USER: str = "postgres"
    POSTGRES_PASSWORD: str = "postgres"
    POSTGRES_DB: str = "piping"
    POSTGRES_PORT: int = 5432
    DATABASE_URL: Optional[str] = None  # overrides the Postgres DSN (e.g. sqlite+aiosqlite://)

    @computed_field
    @property
    def SQLALCHEMY_DATABASE_URI(self) -> str:
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return str(PostgresDsn.build(
            scheme="postgresql+asyncpg",
            username=self.POSTGRES_USER,
            password=self.POSTGRES_PASSWORD,
            host=self.POSTGRES_SERVER,
            port=self.POSTGRES_PORT,
            path=self.POSTGRES_DB,
        ))

    # Revision file storage
    STORAGE_BACKEND: str = "s3"  # "s3" | "memory"
    REVISION_FILES_BUCKET: str = "revision-files"
    AWS_REGION: str = "us-east-1"
    S3_ENDPOINT_URL: Optional[str] = None

    # Signed URL lifetimes (seconds)
    SIGNED_URL_TTL_UPLOAD: int = 60 * 60 * 24 * 365
    SIGNED_URL_TTL_LIST: int = 60 * 60 * 24
    SIGNED_URL_TTL_SINGLE: int = 60 * 60

    model_config = SettingsConfigDict(case_sensitive=True, env_file=".env", extra="ignore")

settings = Settings()
