"""Pydantic configuration models for factfusion."""

import os
from dataclasses import fields
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from approval.retention import DEFAULT_RETENTION_DAYS, RETENTION_ENV_VAR, RetentionPolicy
from fusion.policy import FusionPolicy

VALID_LLM_PROVIDERS = {"auto", "claude", "openai", "gemini"}


class LLMConfig(BaseModel):
    """LLM provider configuration for the reasoning oracle."""

    provider: str = "auto"
    model: Optional[str] = None  # None = fusion.oracle_model tier
    api_key: Optional[str] = None

    @field_validator("provider")
    @classmethod
    def validate_provider(cls, v: str) -> str:
        if v not in VALID_LLM_PROVIDERS:
            raise ValueError(f"Invalid LLM provider: {v}. Must be one of {VALID_LLM_PROVIDERS}")
        return v


class PathsConfig(BaseModel):
    """File paths configuration."""

    db_path: Path = Path("~/.factfusion/factfusion.db")
    chroma_dir: Optional[Path] = Path("~/.factfusion/chroma")  # None disables semantic search
    log_file: Optional[Path] = None

    @model_validator(mode="after")
    def expand_paths(self):
        """Expand ~ in all paths."""
        self.db_path = self.db_path.expanduser()
        if self.chroma_dir:
            self.chroma_dir = self.chroma_dir.expanduser()
        if self.log_file:
            self.log_file = self.log_file.expanduser()
        return self


class FusionConfig(BaseModel):
    """Fusion thresholds. Unset fields keep the FusionPolicy defaults."""

    fusion_confidence_threshold: Optional[float] = None
    oracle_timeout: Optional[float] = None
    oracle_model: Optional[str] = None
    context_max_chars: Optional[int] = None
    confirm_boost: Optional[float] = None
    confirm_default_confidence: Optional[float] = None
    enrich_boost: Optional[float] = None
    enrich_base_confidence: Optional[float] = None
    lexical_duplicate_threshold: Optional[float] = None
    fuzzy_match_threshold: Optional[float] = None
    temporal_min_similarity: Optional[float] = None
    semantic_similarity_threshold: Optional[float] = None
    semantic_top_k: Optional[int] = None
    semantic_duplicate_threshold: Optional[float] = None
    auto_merge_threshold: Optional[float] = None
    approval_threshold: Optional[float] = None
    auto_resolve_threshold: Optional[float] = None
    cache_ttl_seconds: Optional[float] = None
    cache_max_size: Optional[int] = None
    cache_enabled: bool = True

    @field_validator(
        "fusion_confidence_threshold",
        "confirm_default_confidence",
        "enrich_base_confidence",
        "lexical_duplicate_threshold",
        "fuzzy_match_threshold",
        "temporal_min_similarity",
        "semantic_similarity_threshold",
        "semantic_duplicate_threshold",
        "auto_merge_threshold",
        "approval_threshold",
        "auto_resolve_threshold",
    )
    @classmethod
    def validate_unit_interval(cls, v: Optional[float]) -> Optional[float]:
        if v is not None and not 0.0 <= v <= 1.0:
            raise ValueError(f"threshold must be 0-1, got {v}")
        return v

    def to_policy(self) -> FusionPolicy:
        policy_fields = {f.name for f in fields(FusionPolicy)}
        overrides = {
            k: v for k, v in self.model_dump().items() if k in policy_fields and v is not None
        }
        return FusionPolicy(**overrides)


class ApprovalConfig(BaseModel):
    """Pending approval retention."""

    retention_days: Optional[int] = None  # None = env var, then 30

    @field_validator("retention_days")
    @classmethod
    def validate_retention(cls, v: Optional[int]) -> Optional[int]:
        if v is not None and v < 0:
            raise ValueError(f"retention_days must be >= 0, got {v}")
        return v

    def to_policy(self) -> RetentionPolicy:
        if os.getenv(RETENTION_ENV_VAR):
            return RetentionPolicy.from_env()
        if self.retention_days is not None:
            return RetentionPolicy(self.retention_days)
        return RetentionPolicy(DEFAULT_RETENTION_DAYS)


class RetryConfig(BaseModel):
    """Retry/backoff configuration for oracle calls."""

    max_attempts: int = 3
    min_wait: float = 2.0
    max_wait: float = 30.0


VALID_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = "INFO"
    json_mode: bool = False

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        v_upper = v.upper()
        if v_upper not in VALID_LOG_LEVELS:
            raise ValueError(f"Invalid log level: {v}. Must be one of {VALID_LOG_LEVELS}")
        return v_upper


class FactFusionConfig(BaseModel):
    """Main configuration model."""

    llm: LLMConfig = Field(default_factory=LLMConfig)
    paths: PathsConfig = Field(default_factory=PathsConfig)
    fusion: FusionConfig = Field(default_factory=FusionConfig)
    approval: ApprovalConfig = Field(default_factory=ApprovalConfig)
    retry: RetryConfig = Field(default_factory=RetryConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @model_validator(mode="after")
    def expand_env_vars(self):
        """Expand ${VAR} patterns in the API key."""
        key = self.llm.api_key
        if key and key.startswith("${") and key.endswith("}"):
            self.llm.api_key = os.getenv(key[2:-1], "")
        return self

    @classmethod
    def from_dict(cls, data: dict) -> "FactFusionConfig":
        return cls.model_validate(data or {})

    def to_dict(self) -> dict:
        return self.model_dump(mode="python")
