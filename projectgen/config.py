"""Project generation configuration.

Centralised, typed configuration for the whole pipeline. All settings use
Pydantic v2 models so they can be validated at construction time and serialised
to/from JSON or environment variables without boiler-plate.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Optional

from pydantic import BaseModel, Field

from projectgen.models import ModelTier


class LLMConfig(BaseModel):
    """Configuration for the LLM completion service."""

    url: str = Field(default="http://localhost:11434")
    planner_model: str = Field(default="qwen3:8b")
    code_model: str = Field(default="qwen3-coder:30b")
    quality_model: str = Field(default="qwen3-coder:30b")
    timeout: int = Field(default=120, ge=10, description="Per-request timeout in seconds")
    temperature: float = Field(default=0.0, ge=0.0, le=2.0)

    def models_for(self, tier: ModelTier) -> dict[str, str]:
        """Return the ``{"planner": ..., "code": ...}`` models for a tier."""
        if tier == ModelTier.FAST:
            return {"planner": self.planner_model, "code": self.planner_model}
        if tier == ModelTier.QUALITY:
            return {"planner": self.quality_model, "code": self.quality_model}
        return {"planner": self.planner_model, "code": self.code_model}


class CacheConfig(BaseModel):
    """Result cache settings."""

    ttl_seconds: int = Field(default=30 * 60, ge=1)
    max_entries: int = Field(default=100, ge=1, description="In-process entry ceiling")
    redis_url: Optional[str] = Field(default=None, description="Distributed tier; off when unset")
    key_prefix: str = Field(default="project:")


class RateLimitConfig(BaseModel):
    """Per-session quota for uncredentialed callers."""

    max_requests: int = Field(default=3, ge=0)
    window_seconds: int = Field(default=24 * 60 * 60, ge=1)
    max_sessions: int = Field(
        default=10_000, ge=1, description="In-process windows held before expired ones are purged"
    )
    redis_url: Optional[str] = Field(default=None)
    key_prefix: str = Field(default="ratelimit:")


class BatchConfig(BaseModel):
    """Bounds on a single code-generation call."""

    batch_size: int = Field(default=5, ge=1, description="Maximum units per batch")
    token_budget: int = Field(default=4096, ge=256, description="Estimated tokens per batch")
    chars_per_token: int = Field(default=4, ge=1)


class GenerationConfig(BaseModel):
    """Request validation and planning knobs."""

    max_description_length: int = Field(default=10_000, ge=1)
    planning_attempts: int = Field(
        default=2, ge=1, le=5, description="Total planner calls before giving up"
    )
    default_template: str = Field(default="saas")
    required_integrations: dict[str, list[str]] = Field(
        default_factory=dict, description="Template id -> categories it cannot work without"
    )
    templates_dir: Optional[Path] = Field(
        default=None, description="Extra integration manifests on disk"
    )


class Config(BaseModel):
    """Global project-generation configuration.

    Instances are typically created once by the hosting service and passed to
    ``GenerationOrchestrator.from_config``.
    """

    llm: LLMConfig = Field(default_factory=LLMConfig)
    cache: CacheConfig = Field(default_factory=CacheConfig)
    rate_limit: RateLimitConfig = Field(default_factory=RateLimitConfig)
    batch: BatchConfig = Field(default_factory=BatchConfig)
    generation: GenerationConfig = Field(default_factory=GenerationConfig)

    # ------------------------------------------------------------------
    # Serialisation helpers
    # ------------------------------------------------------------------

    def save(self, path: Path) -> Path:
        """Persist the configuration to a JSON file.

        Args:
            path: Destination file.

        Returns:
            The path where the file was written.
        """
        target = Path(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(self.model_dump_json(indent=2), encoding="utf-8")
        return target

    @classmethod
    def load(cls, path: Path) -> "Config":
        """Load a previously-saved configuration from JSON."""
        raw = Path(path).read_text(encoding="utf-8")
        return cls.model_validate_json(raw)

    @classmethod
    def from_env(cls) -> "Config":
        """Build a ``Config`` from environment variables.

        Recognised variables (all optional):
            PG_LLM_URL, PG_PLANNER_MODEL, PG_CODE_MODEL, PG_LLM_TIMEOUT,
            PG_CACHE_TTL, PG_CACHE_MAX_ENTRIES, PG_REDIS_URL,
            PG_RATE_LIMIT_MAX, PG_RATE_LIMIT_WINDOW,
            PG_BATCH_SIZE, PG_BATCH_TOKEN_BUDGET,
            PG_MAX_DESCRIPTION_LENGTH, PG_PLANNING_ATTEMPTS, PG_TEMPLATES_DIR.
        """
        llm_kwargs: dict[str, Any] = {}
        if os.environ.get("PG_LLM_URL"):
            llm_kwargs["url"] = os.environ["PG_LLM_URL"]
        if os.environ.get("PG_PLANNER_MODEL"):
            llm_kwargs["planner_model"] = os.environ["PG_PLANNER_MODEL"]
        if os.environ.get("PG_CODE_MODEL"):
            llm_kwargs["code_model"] = os.environ["PG_CODE_MODEL"]
        if os.environ.get("PG_LLM_TIMEOUT"):
            llm_kwargs["timeout"] = int(os.environ["PG_LLM_TIMEOUT"])

        redis_url = os.environ.get("PG_REDIS_URL") or None

        cache_kwargs: dict[str, Any] = {"redis_url": redis_url}
        if os.environ.get("PG_CACHE_TTL"):
            cache_kwargs["ttl_seconds"] = int(os.environ["PG_CACHE_TTL"])
        if os.environ.get("PG_CACHE_MAX_ENTRIES"):
            cache_kwargs["max_entries"] = int(os.environ["PG_CACHE_MAX_ENTRIES"])

        rate_kwargs: dict[str, Any] = {"redis_url": redis_url}
        if os.environ.get("PG_RATE_LIMIT_MAX"):
            rate_kwargs["max_requests"] = int(os.environ["PG_RATE_LIMIT_MAX"])
        if os.environ.get("PG_RATE_LIMIT_WINDOW"):
            rate_kwargs["window_seconds"] = int(os.environ["PG_RATE_LIMIT_WINDOW"])

        batch_kwargs: dict[str, Any] = {}
        if os.environ.get("PG_BATCH_SIZE"):
            batch_kwargs["batch_size"] = int(os.environ["PG_BATCH_SIZE"])
        if os.environ.get("PG_BATCH_TOKEN_BUDGET"):
            batch_kwargs["token_budget"] = int(os.environ["PG_BATCH_TOKEN_BUDGET"])

        generation_kwargs: dict[str, Any] = {}
        if os.environ.get("PG_MAX_DESCRIPTION_LENGTH"):
            generation_kwargs["max_description_length"] = int(
                os.environ["PG_MAX_DESCRIPTION_LENGTH"]
            )
        if os.environ.get("PG_PLANNING_ATTEMPTS"):
            generation_kwargs["planning_attempts"] = int(os.environ["PG_PLANNING_ATTEMPTS"])
        if os.environ.get("PG_TEMPLATES_DIR"):
            generation_kwargs["templates_dir"] = Path(os.environ["PG_TEMPLATES_DIR"])

        return cls(
            llm=LLMConfig(**llm_kwargs),
            cache=CacheConfig(**cache_kwargs),
            rate_limit=RateLimitConfig(**rate_kwargs),
            batch=BatchConfig(**batch_kwargs),
            generation=GenerationConfig(**generation_kwargs),
        )
