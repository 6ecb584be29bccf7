"""Application configuration with comprehensive validation."""
from typing import Optional, Literal, List, Dict
from functools import lru_cache
from pydantic import Field, field_validator, model_validator, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings with production-grade validation."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    APP_NAME: str = "Award Assessment Platform"
    APP_VERSION: str = "1.0.0"
    APP_ENV: Literal["development", "staging", "production"] = "development"
    DEBUG: bool = False
    LOG_LEVEL: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    LOG_FORMAT: Literal["json", "console"] = "json"
    SECRET_KEY: SecretStr = SecretStr("development-secret-key")

    # Snowflake
    SNOWFLAKE_ACCOUNT: Optional[str] = None
    SNOWFLAKE_USER: Optional[str] = None
    SNOWFLAKE_PASSWORD: Optional[SecretStr] = None
    SNOWFLAKE_DATABASE: Optional[str] = None
    SNOWFLAKE_SCHEMA: Optional[str] = None
    SNOWFLAKE_WAREHOUSE: Optional[str] = None
    SNOWFLAKE_ROLE: Optional[str] = None
    SNOWFLAKE_LOGIN_TIMEOUT: int = Field(default=30, ge=1, le=300)

    # Redis
    REDIS_URL: str = "redis://localhost:6379/0"
    REDIS_SOCKET_TIMEOUT: float = Field(default=5.0, gt=0, le=60)
    CACHE_TTL_RANKINGS: int = 300      # 5 minutes

    # Jury rubric (award ranking) scale
    RUBRIC_MIN_SCORE: float = Field(default=1.0, ge=0)
    RUBRIC_MAX_SCORE: float = Field(default=5.0, gt=0, le=100)

    # Rubric dimension weights (overall = Σ weight × average)
    W_RELEVANCE: float = Field(default=1.0, ge=0.0)
    W_IMPACT: float = Field(default=1.0, ge=0.0)
    W_INCLUSIVITY: float = Field(default=1.0, ge=0.0)
    W_SUSTAINABILITY: float = Field(default=1.0, ge=0.0)
    W_INNOVATION: float = Field(default=1.0, ge=0.0)
    W_PRESENTATION: float = Field(default=1.0, ge=0.0)

    # Per-question jury score scale
    QUESTION_SCORE_MIN: float = Field(default=0.0, ge=0)
    QUESTION_SCORE_MAX: float = Field(default=10.0, gt=0, le=100)

    # Submission validation
    EXEMPT_SECTION_PREFIXES: List[str] = Field(default=["Pengusulan"])

    # Auto-save retry (idempotent writes only)
    AUTOSAVE_RETRY_ATTEMPTS: int = Field(default=3, ge=1, le=10)
    AUTOSAVE_RETRY_MAX_WAIT: float = Field(default=2.0, gt=0, le=30)

    @field_validator("EXEMPT_SECTION_PREFIXES")
    @classmethod
    def strip_prefixes(cls, v: List[str]) -> List[str]:
        return [p.strip() for p in v if p and p.strip()]

    @model_validator(mode="after")
    def validate_score_ranges(self):
        """Validate that both score scales are non-empty ranges."""
        if self.RUBRIC_MIN_SCORE >= self.RUBRIC_MAX_SCORE:
            raise ValueError(
                f"RUBRIC_MIN_SCORE ({self.RUBRIC_MIN_SCORE}) must be below "
                f"RUBRIC_MAX_SCORE ({self.RUBRIC_MAX_SCORE})"
            )
        if self.QUESTION_SCORE_MIN >= self.QUESTION_SCORE_MAX:
            raise ValueError(
                f"QUESTION_SCORE_MIN ({self.QUESTION_SCORE_MIN}) must be below "
                f"QUESTION_SCORE_MAX ({self.QUESTION_SCORE_MAX})"
            )
        return self

    @model_validator(mode="after")
    def validate_production_settings(self):
        """Ensure production has required security settings."""
        if self.APP_ENV == "production":
            if self.DEBUG:
                raise ValueError("DEBUG must be False in production")
            if len(self.SECRET_KEY.get_secret_value()) < 32:
                raise ValueError("SECRET_KEY must be ≥32 characters in production")
            if not self.SNOWFLAKE_ACCOUNT or not self.SNOWFLAKE_USER:
                raise ValueError("Snowflake credentials required in production")
        return self

    @property
    def rubric_weights(self) -> Dict[str, float]:
        """Get rubric dimension weights keyed by dimension value."""
        return {
            "relevance": self.W_RELEVANCE,
            "impact": self.W_IMPACT,
            "inclusivity": self.W_INCLUSIVITY,
            "sustainability": self.W_SUSTAINABILITY,
            "innovation": self.W_INNOVATION,
            "presentation": self.W_PRESENTATION,
        }

@lru_cache
def get_settings() -> Settings:
    return Settings()

settings = get_settings()
