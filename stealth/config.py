"""
Application configuration. Loads from environment variables.
Secrets and sensitive config must never be hardcoded.
"""

import os

from dotenv import load_dotenv

load_dotenv()
from functools import lru_cache


@lru_cache(maxsize=1)
def get_settings() -> "Settings":
    """Return cached settings instance."""
    return Settings()


def _split_csv(raw: str) -> tuple[str, ...]:
    return tuple(part.strip().lower() for part in raw.split(",") if part.strip())


class Settings:
    """Application settings loaded from environment."""

    # App
    app_name: str = "Stealth Discovery"
    debug: bool = False

    # Database (postgresql+psycopg for psycopg3; sqlite URLs work for local runs and tests)
    database_url: str = "postgresql+psycopg://localhost:5432/stealth_dev"
    db_connect_timeout: int = 10  # seconds

    # Security
    internal_job_token: str = ""  # Required for /internal/* endpoints

    # Ingestion
    ingest_default_since_days: int = 30
    ingest_adapter_timeout: float = 120.0  # seconds, when an adapter config sets none

    # Entity resolution
    resolver_match_threshold: float = 0.8
    resolver_review_threshold: float = 0.5
    resolver_candidate_limit: int = 50
    registration_identifier_keys: tuple[str, ...] = ("abn", "acn")

    # Scoring
    scoring_k: float = 0.1
    scoring_half_life_months: float = 6.0
    high_score_threshold: float = 70.0

    # IP Australia OAuth client credentials
    ipa_client_id: str = ""
    ipa_client_secret: str = ""
    ipa_use_test_env: bool = True

    def __init__(self) -> None:
        self.app_name = os.getenv("APP_NAME", self.app_name)
        self.debug = os.getenv("DEBUG", "false").lower() == "true"

        default_user = os.getenv("PGUSER") or os.getenv("USER") or "postgres"
        default_url = (
            f"postgresql+psycopg://{default_user}:"
            f"{os.getenv('PGPASSWORD', '')}@"
            f"{os.getenv('PGHOST', 'localhost')}:"
            f"{os.getenv('PGPORT', '5432')}/"
            f"{os.getenv('PGDATABASE', 'stealth_dev')}"
        )
        raw_url = os.getenv("DATABASE_URL", default_url)
        # Ensure psycopg3 driver if URL uses generic postgresql://
        if raw_url.startswith("postgresql://") and not raw_url.startswith("postgresql+psycopg"):
            raw_url = raw_url.replace("postgresql://", "postgresql+psycopg://", 1)
        self.database_url = raw_url
        self.db_connect_timeout = int(os.getenv("DB_CONNECT_TIMEOUT", str(self.db_connect_timeout)))

        self.internal_job_token = os.getenv("INTERNAL_JOB_TOKEN", "")

        self.ingest_default_since_days = int(
            os.getenv("INGEST_DEFAULT_SINCE_DAYS", str(self.ingest_default_since_days))
        )
        self.ingest_adapter_timeout = float(
            os.getenv("INGEST_ADAPTER_TIMEOUT", str(self.ingest_adapter_timeout))
        )

        self.resolver_match_threshold = float(
            os.getenv("RESOLVER_MATCH_THRESHOLD", str(self.resolver_match_threshold))
        )
        self.resolver_review_threshold = float(
            os.getenv("RESOLVER_REVIEW_THRESHOLD", str(self.resolver_review_threshold))
        )
        self.resolver_candidate_limit = int(
            os.getenv("RESOLVER_CANDIDATE_LIMIT", str(self.resolver_candidate_limit))
        )
        raw_keys = os.getenv("REGISTRATION_IDENTIFIER_KEYS")
        if raw_keys is not None:
            self.registration_identifier_keys = _split_csv(raw_keys)

        self.scoring_k = float(os.getenv("SCORING_K", str(self.scoring_k)))
        self.scoring_half_life_months = float(
            os.getenv("SCORING_HALF_LIFE_MONTHS", str(self.scoring_half_life_months))
        )
        self.high_score_threshold = float(
            os.getenv("HIGH_SCORE_THRESHOLD", str(self.high_score_threshold))
        )

        self.ipa_client_id = os.getenv("IPA_CLIENT_ID", "")
        self.ipa_client_secret = os.getenv("IPA_CLIENT_SECRET", "")
        self.ipa_use_test_env = os.getenv("IPA_USE_TEST_ENV", "true").lower() != "false"
