from pydantic import BaseModel
from pydantic_settings import BaseSettings
from typing import Dict, Optional
from pathlib import Path

# Get the project root directory (parent of review_engine folder)
PROJECT_ROOT = Path(__file__).parent.parent


class TierQuota(BaseModel):
    """AI request quota for one subscription tier"""
    requests: int
    window_seconds: int


class Settings(BaseSettings):
    """Application configuration loaded from environment variables"""
    database_url: str = "sqlite:///./review_engine.db"
    redis_url: Optional[str] = None  # unset: in-process counter store

    # AI Provider Configuration
    ai_provider: str = "ollama"
    ollama_base_url: str = "http://localhost:11434"
    ollama_model: str = "llama3.2:latest"

    # Per-tier AI rate limits, e.g. AI_RATE_LIMITS='{"FREE": {"requests": 5, "window_seconds": 60}}'
    ai_rate_limits: Dict[str, TierQuota] = {
        "FREE": TierQuota(requests=20, window_seconds=3600),
        "PRO": TierQuota(requests=200, window_seconds=3600),
    }
    default_tier: str = "FREE"

    # SM-2 policy
    first_interval_days: int = 1
    second_interval_days: int = 6
    initial_ease_factor: float = 2.5
    ease_factor_floor: float = 1.3
    ease_bonus: float = 0.1
    ease_linear_penalty: float = 0.08
    ease_quadratic_penalty: float = 0.02
    max_interval_days: int = 36500  # keeps next_review_date representable
    review_update_retries: Optional[int] = None  # None retries until the review lands
    review_retry_backoff: float = 0.005  # seconds, doubled per attempt with full jitter
    review_retry_backoff_max: float = 0.1

    # Review queue policy
    default_max_daily_reviews: int = 20
    max_queue_topics: int = 5
    questions_per_topic: int = 2
    max_queue_items: int = 10
    seconds_per_review_item: int = 30
    max_review_minutes: int = 5

    # Learning model policy
    confidence_increment: float = 0.05
    confidence_ceiling: float = 1.0
    pattern_retention: int = 500  # 0 keeps every pattern

    class Config:
        env_file = str(PROJECT_ROOT / ".env")

    def quota_for(self, tier: Optional[str]) -> TierQuota:
        """Quota for a tier, falling back to the default tier"""
        if tier and tier.upper() in self.ai_rate_limits:
            return self.ai_rate_limits[tier.upper()]
        return self.ai_rate_limits[self.default_tier]


settings = Settings()
