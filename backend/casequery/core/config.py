"""
Configuration management using Pydantic Settings
"""
import os
from functools import lru_cache
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Load .env from project root
# config.py is at: backend/casequery/core/config.py
# Project root is: backend/casequery/core/../../../
_current_file = Path(__file__).resolve()
_backend_dir = _current_file.parent.parent.parent
_project_root = _backend_dir.parent
ENV_FILE = _project_root / ".env"
# Fallback: try in backend/ directory if not found in project root
if not ENV_FILE.exists():
    ENV_FILE = _backend_dir / ".env"
if ENV_FILE.exists():
    load_dotenv(ENV_FILE, override=False)


class Settings(BaseSettings):
    """Application settings"""

    # Logging
    log_level: str = Field(default="INFO", description="Logging level")
    log_format: str = Field(
        default="json",
        description="Log format: 'json' for structured logging, 'text' for plain text"
    )
    log_module_levels: Optional[str] = Field(
        default=None,
        description='Module-specific log levels (JSON string, e.g., {"casequery.services": "DEBUG"})'
    )
    log_file_enabled: bool = Field(default=False, description="Enable file logging")
    log_file_path: str = Field(
        default="logs/casequery.log",
        description="Path to log file (relative to project root)"
    )
    log_file_retention: int = Field(default=30, ge=1, description="Number of days to keep log files")
    log_sensitive_data: bool = Field(
        default=False,
        description="Enable logging of sensitive data (passwords, tokens) - NOT RECOMMENDED"
    )
    log_sqlalchemy: bool = Field(default=False, description="Enable SQLAlchemy query logging")

    # Database
    database_url: str = Field(
        default="sqlite:///./arbitration_cases.db",
        description="SQLAlchemy URL of the case store"
    )
    database_pool_size: int = Field(default=10, ge=1, description="Database pool size")
    database_max_overflow: int = Field(default=10, ge=0, description="Database max overflow")
    database_statement_timeout_ms: int = Field(
        default=5000,
        ge=100,
        description="Statement timeout for PostgreSQL connections (milliseconds)"
    )

    # LLM collaborator (Ollama chat API)
    ollama_url: str = Field(default="", description="Ollama API URL; empty disables AI escalation")
    ollama_model: str = Field(default="", description="Ollama model used for escalation")
    enable_ai_escalation: bool = Field(default=True, description="Route unclassified queries to the LLM")
    llm_timeout_seconds: int = Field(
        default=30,
        ge=1,
        le=300,
        description="Maximum time to wait for one LLM response (seconds)"
    )
    llm_temperature: float = Field(default=0.2, ge=0.0, le=1.0, description="LLM temperature")
    llm_num_ctx: int = Field(default=4096, ge=512, le=32768, description="LLM context size")

    # Query engine policy
    escalation_confidence_threshold: float = Field(
        default=0.5,
        ge=0.0,
        le=1.0,
        description="Rule-based confidence below which a query is escalated to the LLM"
    )
    ai_trust_confidence: float = Field(
        default=0.7,
        ge=0.0,
        le=1.0,
        description="Minimum LLM classification confidence to re-enter deterministic execution"
    )
    case_listing_limit: int = Field(default=50, ge=1, description="Maximum cases rendered in a listing")
    ranking_min_award_cases: int = Field(
        default=5,
        ge=1,
        description="Minimum numeric award rows for an arbitrator to be ranked"
    )
    ranking_limit: int = Field(default=10, ge=1, description="Number of arbitrators in a ranking")
    respondent_variant_display_limit: int = Field(
        default=5,
        ge=1,
        description="Respondent name variants listed before the '+N more' tail"
    )
    ai_query_row_limit: int = Field(default=200, ge=1, description="Rows returned by a generated query")
    exclude_duplicate_cases: bool = Field(
        default=True,
        description="Exclude rows marked duplicate_of from every aggregate"
    )
    timeframe_timezone: str = Field(
        default="UTC",
        description="Timezone used to resolve 'this year' / 'last year'"
    )

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        if v.lower() not in ("json", "text"):
            raise ValueError("log_format must be 'json' or 'text'")
        return v.lower()

    @property
    def ai_configured(self) -> bool:
        """True when an LLM endpoint and model are available for escalation"""
        return bool(self.enable_ai_escalation and self.ollama_url and self.ollama_model)

    model_config = SettingsConfigDict(
        env_file=str(ENV_FILE) if ENV_FILE.exists() else None,
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        env_ignore_empty=True
    )


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()
