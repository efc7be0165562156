# insegnami/core/config.py
"""Application configuration using Pydantic."""
from pydantic_settings import BaseSettings
from typing import List, Optional

class Settings(BaseSettings):
    database_url: str
    redis_url: str
    jwt_secret_key: str

    app_version: str = '1.0.0'
    environment: str = 'development'
    log_level: str = 'info'
    allowed_origins: List[str] = ['*']

    # Sessions
    jwt_algorithm: str = 'HS256'
    session_max_age_seconds: int = 30 * 24 * 60 * 60

    # Identity lifecycle
    registration_enabled: bool = True
    verification_token_ttl_hours: int = 24
    password_reset_ttl_hours: int = 1
    app_base_url: str = 'http://localhost:3000'

    # Outbound email (consumed by the Celery worker)
    smtp_host: str = 'localhost'
    smtp_port: int = 587
    smtp_username: Optional[str] = None
    smtp_password: Optional[str] = None
    smtp_from: str = 'noreply@insegnami.pro'
    smtp_use_tls: bool = True

    # Pools and caching
    db_pool_size: int = 15
    db_max_overflow: int = 25
    dashboard_cache_ttl: int = 60

    model_config = {
        'env_file': '.env',
        'extra': 'ignore'
    }

settings = Settings()
