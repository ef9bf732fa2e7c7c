"""Configuration management for the recall engine."""

from pathlib import Path
from typing import Optional, List
import yaml
from loguru import logger
from pydantic import BaseModel, Field, ValidationError, field_validator

from .error_handling import ConfigError


class RecencyBucket(BaseModel):
    max_age_hours: float
    boost: float


class SourcePool(BaseModel):
    """How many candidates to pull from a store before scoring."""
    recent: int = 20
    per_keyword: int = 10


class SectionLimits(BaseModel):
    """Maximum items shown per context section (None = no limit)."""
    memories: Optional[int] = None
    activities: int = 5
    clipboard: int = 3
    searches: int = 3


class ProfileConfig(BaseModel):
    """Constants that differ between lexical-only and semantic retrieval."""
    recency: List[RecencyBucket]
    pinned_boost: float = 0.3
    memory_pool: SourcePool = Field(default_factory=lambda: SourcePool(recent=50, per_keyword=0))
    clipboard_pool: SourcePool = Field(default_factory=SourcePool)
    activity_pool: SourcePool = Field(default_factory=lambda: SourcePool(recent=30, per_keyword=20))
    search_pool: SourcePool = Field(default_factory=SourcePool)
    sections: SectionLimits = Field(default_factory=SectionLimits)
    max_context_chars: int = 3000

    @field_validator('recency')
    @classmethod
    def validate_recency(cls, v: List[RecencyBucket]) -> List[RecencyBucket]:
        ages = [bucket.max_age_hours for bucket in v]
        if ages != sorted(ages):
            raise ValueError("recency buckets must be ordered by max_age_hours")
        for bucket in v:
            if not 0 <= bucket.boost <= 1:
                raise ValueError("recency boost must be between 0 and 1")
        return v


def _lexical_profile() -> ProfileConfig:
    return ProfileConfig(
        recency=[
            RecencyBucket(max_age_hours=1, boost=0.20),
            RecencyBucket(max_age_hours=4, boost=0.15),
            RecencyBucket(max_age_hours=24, boost=0.10),
            RecencyBucket(max_age_hours=168, boost=0.05),
        ],
        pinned_boost=0.3,
        max_context_chars=3000,
    )


def _semantic_profile() -> ProfileConfig:
    return ProfileConfig(
        recency=[
            RecencyBucket(max_age_hours=1, boost=0.15),
            RecencyBucket(max_age_hours=4, boost=0.12),
            RecencyBucket(max_age_hours=24, boost=0.08),
            RecencyBucket(max_age_hours=168, boost=0.04),
        ],
        pinned_boost=0.2,
        clipboard_pool=SourcePool(recent=30, per_keyword=15),
        activity_pool=SourcePool(recent=50, per_keyword=30),
        search_pool=SourcePool(recent=30, per_keyword=15),
        sections=SectionLimits(activities=8, clipboard=5, searches=5),
        max_context_chars=4000,
    )


class ScoringConfig(BaseModel):
    semantic_weight: float = 0.8
    hybrid_lexical_weight: float = 0.2
    exact_match_bonus: float = 0.5
    coverage_weight: float = 0.3
    tf_weight: float = 0.1
    idf_numerator: float = 1000.0
    min_token_length: int = 3
    min_semantic_score: float = 0.3
    min_lexical_score: float = 0.1

    @field_validator('min_semantic_score', 'min_lexical_score', 'semantic_weight', 'hybrid_lexical_weight')
    @classmethod
    def validate_unit(cls, v: float) -> float:
        if not 0 <= v <= 1:
            raise ValueError("weights and thresholds must be between 0 and 1")
        return v


class CacheConfig(BaseModel):
    max_size: int = 500
    max_key_chars: int = 512
    probe_text: str = "test"

    @field_validator('max_size', 'max_key_chars')
    @classmethod
    def validate_positive(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("cache sizes must be positive")
        return v


class LimitsConfig(BaseModel):
    """Per-source caps on ranked list length."""
    memories: int = 15
    clipboard: int = 10
    activities: int = 15
    searches: int = 10


class AssemblerConfig(BaseModel):
    section_min_remaining: int = 200
    last_section_min_remaining: int = 100
    safety_margin: int = 50
    last_section_margin: int = 30
    max_line_text: int = 150


class RecallConfig(BaseModel):
    answer_limit: int = 10
    recent_clips: int = 10
    recent_searches: int = 10
    recent_snapshots: int = 20
    most_used_apps: int = 10
    similar_activity_pool: int = 100
    similar_clipboard_pool: int = 50
    similar_threshold: float = 0.3
    summary_memories: int = 3
    summary_activities: int = 3
    summary_clipboard: int = 2
    summary_searches: int = 2


class EngineConfig(BaseModel):
    """Main configuration for the recall engine."""

    cache: CacheConfig = Field(default_factory=CacheConfig)
    scoring: ScoringConfig = Field(default_factory=ScoringConfig)
    limits: LimitsConfig = Field(default_factory=LimitsConfig)
    lexical: ProfileConfig = Field(default_factory=_lexical_profile)
    semantic: ProfileConfig = Field(default_factory=_semantic_profile)
    assembler: AssemblerConfig = Field(default_factory=AssemblerConfig)
    recall: RecallConfig = Field(default_factory=RecallConfig)

    def profile(self, semantic: bool) -> ProfileConfig:
        return self.semantic if semantic else self.lexical

    @classmethod
    def load(cls, config_path: Optional[Path] = None) -> "EngineConfig":
        """Load configuration from YAML file."""
        if config_path is None:
            candidates = [
                Path("contextrecall.yaml"),
                Path.home() / ".config" / "contextrecall" / "config.yaml",
            ]
            for candidate in candidates:
                if candidate.exists():
                    config_path = candidate
                    break
            else:
                logger.debug("No config file found, using defaults")
                return cls()

        logger.info(f"Loading config from: {config_path}")
        try:
            with open(config_path, 'r') as f:
                data = yaml.safe_load(f) or {}
            if not isinstance(data, dict):
                raise ConfigError(f"Invalid config {config_path}: expected a mapping, got {type(data).__name__}")
            return cls(**data)
        except (OSError, yaml.YAMLError, ValidationError) as e:
            raise ConfigError(f"Invalid config {config_path}: {e}") from e

    def save(self, config_path: Path) -> None:
        """Save configuration to YAML file."""
        config_path.parent.mkdir(parents=True, exist_ok=True)
        with open(config_path, 'w') as f:
            yaml.safe_dump(self.model_dump(), f, default_flow_style=False)
