"""
Configuration management using Pydantic BaseSettings.
All values can be overridden via environment variables or a .env file.
"""
from typing import Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # ── TiDB (MySQL-protocol compatible) ───────────────────────────────────
    tidb_host: str = "tidb"
    tidb_port: int = 4000
    tidb_user: str = "root"
    tidb_password: str = ""
    tidb_database: str = "social_blog"
    # Full SQLAlchemy URL; wins over the tidb_* parts when set
    database_url: Optional[str] = None
    db_pool_size: int = 20
    db_max_overflow: int = 10
    db_echo: bool = False

    @property
    def sqlalchemy_url(self) -> str:
        if self.database_url:
            return self.database_url
        return (
            f"mysql+aiomysql://{self.tidb_user}:{self.tidb_password}"
            f"@{self.tidb_host}:{self.tidb_port}/{self.tidb_database}"
        )

    # ── Redis (rendered-view cache) ────────────────────────────────────────
    redis_host: str = "redis"
    redis_port: int = 6379
    redis_db: int = 0
    view_cache_ttl: int = 300            # seconds a cached view may live

    # ── Pagination ─────────────────────────────────────────────────────────
    default_page_size: int = 10
    max_page_size: int = 100

    # ── Identity gateway ───────────────────────────────────────────────────
    # Header carrying the external (identity-provider) user id
    external_id_header: str = "X-User-Id"

    # ── Observability ──────────────────────────────────────────────────────
    otel_exporter_otlp_endpoint: str = "http://jaeger:4317"
    tracing_enabled: bool = True
    service_name: str = "social-blog-api"
    environment: str = "development"
    log_level: str = "INFO"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


settings = Settings()
