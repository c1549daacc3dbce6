"""
Configuration management using Pydantic BaseSettings.
All values can be overridden via environment variables or a .env file.
"""
from typing import Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # ── Database (TiDB / MySQL-protocol) ───────────────────────────────────
    # DATABASE_URL wins when set (e.g. sqlite+aiosqlite for local runs).
    database_url: Optional[str] = None
    tidb_host: str = "tidb"
    tidb_port: int = 4000
    tidb_user: str = "root"
    tidb_password: str = ""
    tidb_database: str = "gourmet_taste"

    @property
    def db_url(self) -> str:
        if self.database_url:
            return self.database_url
        return (
            f"mysql+aiomysql://{self.tidb_user}:{self.tidb_password}"
            f"@{self.tidb_host}:{self.tidb_port}/{self.tidb_database}"
        )

    # ── Redis ──────────────────────────────────────────────────────────────
    redis_host: str = "redis"
    redis_port: int = 6379
    tss_cache_ttl: int = 86400           # 24h TTL for cached pair scores

    # ── Kafka ──────────────────────────────────────────────────────────────
    kafka_bootstrap_servers: str = "kafka:9092"
    kafka_topic_note_events: str = "note-events"
    kafka_consumer_group: str = "taste-api-note-events"

    # ── Note store (CRUD backend) ──────────────────────────────────────────
    note_store_url: str = "http://notes-backend:3000"
    note_store_timeout: float = 5.0
    note_store_page_size: int = 200
    note_store_token: str = ""

    # ── Taste similarity policy ────────────────────────────────────────────
    tss_pin_min_score: float = 0.70
    tss_min_overlap: int = 5
    tss_moderate_min_score: float = 0.50
    tss_recency_half_life_days: Optional[float] = None   # None = unweighted
    tss_wine_vintage_in_key: bool = True
    tss_spirit_distillery_in_key: bool = False
    tss_max_concurrent_fetches: int = 16
    tss_batch_lock_ttl: int = 7200       # 2h

    # ── Discovery ──────────────────────────────────────────────────────────
    discover_page_size: int = 20
    discover_max_page_size: int = 100

    # ── Observability ──────────────────────────────────────────────────────
    otel_enabled: bool = True
    otel_exporter_otlp_endpoint: str = "http://jaeger:4317"
    service_name: str = "taste-api"
    environment: str = "development"
    log_level: str = "INFO"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


settings = Settings()
