"""
Core configuration module for the TripDesk search & facts engine.
Settings are loaded from environment variables / .env with sensible defaults.
"""

from pydantic_settings import BaseSettings
import logging

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.
    Search weights and fallback budgets are tunable here rather than in code.
    """

    # Application
    app_name: str = "TripDesk Search & Facts Engine"
    app_version: str = "1.0.0"
    environment: str = "production"
    debug: bool = False

    # Database
    database_url: str = "sqlite:///./tripdesk.db"
    database_pool_size: int = 10
    database_max_overflow: int = 20
    database_pool_recycle: int = 1800  # Recycle connections after 30 min
    database_pool_pre_ping: bool = True
    database_statement_timeout_ms: int = 5000
    database_init_attempts: int = 3

    # API Configuration
    api_prefix: str = "/api/v1"
    api_host: str = "0.0.0.0"
    api_port: int = 8890
    api_workers: int = 4

    # Logging
    log_level: str = "INFO"
    log_format: str = "text"  # "text" | "json"
    slow_request_seconds: float = 2.0

    # CORS
    cors_origins: list = ["http://localhost:3000", "http://127.0.0.1:3000"]
    cors_allow_credentials: bool = False
    cors_allow_methods: list = ["GET", "POST", "OPTIONS"]
    cors_allow_headers: list = ["Content-Type", "Accept", "X-API-Key"]

    # Throttling (slowapi limit strings)
    rate_limit_enabled: bool = True
    rate_limit_search: str = "100/minute"
    rate_limit_facts: str = "60/minute"
    rate_limit_bulk_refresh: str = "10/minute"
    rate_limit_health: str = "1000/minute"
    rate_limit_retry_after: int = 60

    # Term classification
    search_max_terms: int = 3
    search_min_term_length: int = 2

    # Trip surface search
    search_default_limit: int = 5
    search_candidate_limit: int = 25
    search_max_query_tokens: int = 8

    # Progressive fallback
    fallback_soft_budget_ms: float = 800.0
    fallback_secondary_limit: int = 10
    fallback_emergency_limit: int = 5

    # Semantic search
    semantic_max_results: int = 10

    # Facts recomputation
    facts_inline_max_activities: int = 50
    facts_bulk_limit: int = 20
    dirty_batch_limit: int = 50
    facts_refresh_interval_seconds: float = 30.0  # 0 disables the background drain

    # Surface scoring weights (empirical, tune per deployment)
    score_slug_exact: int = 160
    score_trip_id_exact: int = 140
    score_primary_email_exact: int = 120
    score_traveler_email: int = 80
    score_search_token: int = 22
    score_phonetic_token: int = 14
    score_normalized_trip_name: int = 12
    score_destination: int = 10
    score_traveler_name: int = 9
    score_email_token: int = 7
    score_primary_client_name: int = 6
    score_trip_name_partial: int = 6
    score_confirmed_status: int = 3
    score_traveler_count_cap: int = 5

    class Config:
        env_file = ".env"
        case_sensitive = False


# Global settings instance
settings = Settings()
