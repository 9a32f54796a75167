"""Application settings using Pydantic BaseSettings for environment variable management."""

from typing import Literal, Optional

from pydantic_settings import BaseSettings
from pydantic import Field


class Settings(BaseSettings):
    """
    Global application settings loaded from environment variables.

    Attributes:
        gemini_api_key: Google Gemini API key (classifier and term generator)
        gemini_model: Default Gemini model to use
        max_rpm: Maximum requests per minute (free tier default)
        max_tpm: Maximum tokens per minute
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_format: Log output format (json for production, console for dev)
        compute_fingerprints: Hash asset bytes; when off, identity falls back to name
        local_store_path: JSON file backing the local durable store
        remote_store_url: Base URL of the shared HTTP record store
        remote_store_sqlite_path: SQLite file used as shared store when no URL is set
        context_mismatch_policy: lenient keeps mismatched matches, strict discards them
    """

    gemini_api_key: Optional[str] = Field(
        default=None,
        description="Google Gemini API key"
    )
    gemini_model: str = Field(
        default="gemini-1.5-flash",
        description="Default Gemini model identifier"
    )
    max_rpm: int = Field(
        default=15,
        description="Maximum requests per minute (free tier limit)"
    )
    max_tpm: int = Field(
        default=1_000_000,
        description="Maximum tokens per minute"
    )
    log_level: str = Field(
        default="INFO",
        description="Logging level"
    )
    log_format: str = Field(
        default="json",
        description="Log output format: json or console"
    )

    # Identity
    compute_fingerprints: bool = Field(
        default=True,
        description="Compute SHA-256 fingerprints of asset bytes"
    )
    hash_chunk_size: int = Field(
        default=1024 * 1024,
        description="Read size in bytes when streaming files through the hasher"
    )

    # Stores
    local_store_path: Optional[str] = Field(
        default="data/local_records.json",
        description="Local durable store persistence file (None = memory only)"
    )
    remote_store_url: Optional[str] = Field(
        default=None,
        description="Base URL of the shared record store HTTP API"
    )
    remote_store_sqlite_path: str = Field(
        default="data/records.sqlite3",
        description="SQLite database used as the shared store when no URL is configured"
    )
    candidate_queue_path: Optional[str] = Field(
        default="data/candidate_terms.json",
        description="Persistence file for the candidate term review queue"
    )
    vocabulary_path: Optional[str] = Field(
        default=None,
        description="JSON vocabulary file; built-in seed vocabulary when unset"
    )

    # Timeouts (seconds)
    remote_timeout_seconds: float = Field(default=5.0, gt=0)
    classifier_timeout_seconds: float = Field(default=60.0, gt=0)
    generator_timeout_seconds: float = Field(default=20.0, gt=0)
    commit_timeout_seconds: float = Field(default=10.0, gt=0)

    # Pipeline
    pipeline_concurrency: int = Field(
        default=8,
        ge=1,
        description="Maximum assets analyzed at once in a batch"
    )
    pipeline_max_per_second: Optional[float] = Field(
        default=None,
        description="Optional cap on assets dispatched per second"
    )
    warm_local_on_remote_hit: bool = Field(
        default=True,
        description="Copy remote fingerprint hits into the local store"
    )

    # Standardization
    alias_substring_matching: bool = Field(
        default=True,
        description="Match aliases by bidirectional substring, not only equality"
    )
    min_alias_match_length: int = Field(
        default=2,
        ge=1,
        description="Shortest alias/label allowed to participate in substring matching"
    )
    context_mismatch_policy: Literal["lenient", "strict"] = Field(
        default="lenient",
        description="What to do when a matched term is incompatible with the film type"
    )
    context_mismatch_confidence: float = Field(default=0.75, ge=0.0, le=1.0)
    linkage_confidence: float = Field(default=0.85, ge=0.0, le=1.0)
    catch_all_term: Optional[str] = Field(
        default="其他",
        description="Term assigned when every resolution strategy fails"
    )
    placeholder_terms: list[str] = Field(
        default_factory=lambda: [
            "未识别", "未分类", "未识别场景", "未知", "无",
            "unknown", "n/a", "na", "none", "null", "-", "?",
        ],
        description="Labels treated as the classifier saying 'nothing'"
    )
    placeholder_markers: list[str] = Field(
        default_factory=lambda: ["未识别", "未分类"],
        description="Substrings that mark a label as a placeholder"
    )
    candidate_min_length: int = Field(default=2, ge=1)
    candidate_max_length: int = Field(default=16, ge=1)

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
        "extra": "ignore",
    }


# Singleton instance - import this throughout the application
settings = Settings()
