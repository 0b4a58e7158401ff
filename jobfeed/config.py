from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    DB_URL: str = "sqlite:///./jobs.db"

    # worker pool / queue
    WORKER_CONCURRENCY: int = 2
    WORKER_POLL_INTERVAL: float = 1.0
    WORKERS_ENABLED: bool = True
    QUEUE_MAX_ATTEMPTS: int = 3
    QUEUE_BACKOFF_SECONDS: float = 5.0
    QUEUE_KEEP_COMPLETED: int = 50
    QUEUE_KEEP_FAILED: int = 50

    # fetcher
    FETCH_TIMEOUT: float = 30.0

    # scheduler (UTC)
    IMPORT_CRON: str = "0 * * * *"
    IMPORT_JITTER_SECONDS: float = 5.0
    SCHEDULER_ENABLED: bool = True

    LOG_LEVEL: str = "INFO"
    HOST: str = "0.0.0.0"
    PORT: int = 3001

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

settings = Settings()
