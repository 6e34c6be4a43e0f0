"""Pydantic v2 models for the project-generation pipeline.

Defines the inbound request, the planned architecture, the units and batches
the scheduler works with, generated files, integration bundles, and the
outbound result. Models that cross the wire accept both ``snake_case`` and
``camelCase`` keys and serialise to ``camelCase``.
"""

from __future__ import annotations

import hashlib
import math
from enum import Enum
from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class WireModel(BaseModel):
    """Base for models exchanged with callers or the model service."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------

class ModelTier(str, Enum):
    """Cost/quality trade-off used to pick planner and code models."""
    FAST = "fast"
    BALANCED = "balanced"
    QUALITY = "quality"


class ComponentTemplate(str, Enum):
    """Whether a component is taken from the template or written fresh."""
    REUSED = "reused"
    CREATE_NEW = "create-new"


class UnitKind(str, Enum):
    """The kinds of thing a single generation unit produces."""
    PAGE = "page"
    COMPONENT = "component"
    API_ROUTE = "api_route"


# ---------------------------------------------------------------------------
# Request & Project Config
# ---------------------------------------------------------------------------

class Inspiration(WireModel):
    """A reference the user wants the design to draw from."""
    type: str = Field(..., description="'url', 'image' or 'figma'")
    value: str = Field(..., description="URL or identifier of the inspiration")


class Branding(WireModel):
    """Brand colours and typography substituted into generated files."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    primary_color: str = Field(default="#2563eb")
    secondary_color: Optional[str] = None
    background_color: Optional[str] = None
    text_color: Optional[str] = None
    font_family: Optional[str] = None


class GenerationRequest(WireModel):
    """Inbound generation request."""
    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, frozen=True, extra="ignore"
    )

    description: str = Field(..., description="Natural-language project description")
    session_id: str = Field(..., min_length=1, description="Rate-limit accounting scope")
    project_name: Optional[str] = None
    template: Optional[str] = None
    vision: Optional[str] = None
    mission: Optional[str] = None
    inspirations: list[Inspiration] = Field(default_factory=list)
    integrations: dict[str, str] = Field(
        default_factory=dict, description="Integration category -> provider"
    )
    branding: Branding = Field(default_factory=Branding)
    user_credential: Optional[str] = Field(
        default=None, description="Caller-supplied access token that exempts quota"
    )
    seed: Optional[Union[int, float]] = Field(
        default=None, description="Any finite number; whole floats collapse to int"
    )
    model_tier: ModelTier = ModelTier.BALANCED

    @field_validator("description")
    @classmethod
    def _description_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("Description is required")
        return value

    @field_validator("seed")
    @classmethod
    def _normalise_seed(cls, value: Optional[Union[int, float]]) -> Optional[Union[int, float]]:
        if isinstance(value, float):
            if not math.isfinite(value):
                raise ValueError("Seed must be a finite number")
            if value.is_integer():
                return int(value)
        return value

    @property
    def sampling_seed(self) -> Optional[int]:
        """Integer seed for the completion service.

        Fractional seeds are hashed to a stable 31-bit integer.
        """
        if self.seed is None or isinstance(self.seed, int):
            return self.seed
        digest = hashlib.sha256(repr(self.seed).encode("utf-8")).digest()
        return int.from_bytes(digest[:4], "big") & 0x7FFFFFFF

    def project_config(self, default_template: str) -> "ProjectConfig":
        """Derive the immutable per-request project configuration."""
        return ProjectConfig(
            template=self.template or default_template,
            project_name=self.project_name or "MyApp",
            branding=self.branding,
            integrations=dict(self.integrations),
        )


class ProjectConfig(BaseModel):
    """Template, name, branding and integrations for one request."""
    model_config = ConfigDict(frozen=True)

    template: str
    project_name: str
    branding: Branding = Field(default_factory=Branding)
    integrations: dict[str, str] = Field(default_factory=dict)


# ---------------------------------------------------------------------------
# Architecture
# ---------------------------------------------------------------------------

class PageSpec(WireModel):
    """A page of the generated application."""
    path: str = Field(..., description="URL path, e.g. '/pricing'")
    name: str = Field(..., description="Page name")
    description: str = Field(default="")
    components: list[str] = Field(default_factory=list, description="Component names used")
    layout: str = Field(default="default")


class ComponentSpec(WireModel):
    """A UI component, either reused from the template or created new."""
    name: str
    type: str = Field(default="ui")
    description: str = Field(default="")
    props: dict[str, Any] = Field(default_factory=dict)
    template: ComponentTemplate = Field(default=ComponentTemplate.CREATE_NEW)


class RouteSpec(WireModel):
    """A route; ``type == 'api'`` marks a server handler to generate."""
    path: str
    type: str = Field(default="page")
    method: Optional[str] = None
    description: str = Field(default="")


class Architecture(WireModel):
    """Structured plan of pages, components and routes for one request."""
    template: str = Field(default="")
    pages: list[PageSpec] = Field(..., min_length=1)
    components: list[ComponentSpec] = Field(default_factory=list)
    routes: list[RouteSpec] = Field(default_factory=list)
    integrations: dict[str, Optional[str]] = Field(default_factory=dict)


# ---------------------------------------------------------------------------
# Units, Batches & Files
# ---------------------------------------------------------------------------

class GenerationUnit(BaseModel):
    """One page, one create-new component or one api route."""
    model_config = ConfigDict(frozen=True)

    kind: UnitKind
    name: str
    spec: dict[str, Any] = Field(default_factory=dict)

    def describe(self) -> str:
        return f"{self.kind.value}: {self.name}"


class FileDescriptor(BaseModel):
    """Path plus a one-line description of a file generated earlier."""
    model_config = ConfigDict(frozen=True)

    path: str
    description: str


class Batch(BaseModel):
    """An ordered group of units plus the context from all prior batches."""
    model_config = ConfigDict(frozen=True)

    index: int = Field(..., ge=1, description="1-based batch number")
    total: int = Field(..., ge=1)
    units: tuple[GenerationUnit, ...]
    previous_files: tuple[FileDescriptor, ...] = ()

    @property
    def is_first(self) -> bool:
        return self.index == 1

    def summary(self) -> str:
        """Human-readable description, e.g. ``'2 pages, 3 components'``."""
        counts = {kind: 0 for kind in UnitKind}
        for unit in self.units:
            counts[unit.kind] += 1
        labels = {
            UnitKind.PAGE: "pages",
            UnitKind.COMPONENT: "components",
            UnitKind.API_ROUTE: "API routes",
        }
        return ", ".join(f"{n} {labels[k]}" for k, n in counts.items() if n)


class GeneratedFile(WireModel):
    """A single output file. ``path`` is unique within a result set."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    path: str = Field(..., min_length=1)
    content: str
    overwrite: bool = False


class IntegrationSnippet(WireModel):
    """Integration-specific code the model produced alongside a batch."""
    integration: str
    files: list[GeneratedFile] = Field(default_factory=list)


class BatchOutput(WireModel):
    """Decoded model output for one batch."""
    files: list[GeneratedFile]
    integration_code: list[IntegrationSnippet] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Rate limiting
# ---------------------------------------------------------------------------

class RateLimitDecision(BaseModel):
    """Quota decision for a session. ``remaining`` is ``None`` when exempt."""
    allowed: bool
    remaining: Optional[int] = None
    reset_at: float = 0.0


# ---------------------------------------------------------------------------
# Integrations
# ---------------------------------------------------------------------------

class EnvVar(WireModel):
    """An environment variable an integration needs."""
    name: str
    description: str = ""
    required: bool = True
    example: str = ""
    provider: str = ""

    @property
    def public(self) -> bool:
        """Variables with the ``NEXT_PUBLIC_`` prefix are exposed to the browser."""
        return self.name.startswith("NEXT_PUBLIC_")


class IntegrationManifest(WireModel):
    """Metadata and files for one provider of one integration category."""
    provider: str = Field(..., min_length=1)
    category: str = Field(..., min_length=1)
    version: str = Field(..., pattern=r"^\d+\.\d+\.\d+$")
    description: str = ""
    dependencies: dict[str, str] = Field(default_factory=dict)
    dev_dependencies: dict[str, str] = Field(default_factory=dict)
    env_vars: list[EnvVar] = Field(default_factory=list)
    files: list[GeneratedFile] = Field(default_factory=list)
    requires: list[str] = Field(default_factory=list, description="Recommended categories")
    conflicts: list[str] = Field(
        default_factory=list, description="'category/provider' pairs that clash with this one"
    )
    post_install: str = ""


class AppliedIntegration(WireModel):
    category: str
    provider: str
    version: str


class IntegrationBundle(WireModel):
    """Everything the selected integrations contribute to a project."""
    files: list[GeneratedFile] = Field(default_factory=list)
    dependencies: dict[str, str] = Field(default_factory=dict)
    dev_dependencies: dict[str, str] = Field(default_factory=dict)
    env_vars: list[EnvVar] = Field(default_factory=list)
    post_install: list[str] = Field(default_factory=list)
    applied: list[AppliedIntegration] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Result
# ---------------------------------------------------------------------------

class GenerationResult(WireModel):
    """Complete, internally consistent output of one generation request."""
    architecture: Architecture
    files: list[GeneratedFile] = Field(default_factory=list)
    integration_files: list[GeneratedFile] = Field(default_factory=list)
    integration_code: list[IntegrationSnippet] = Field(default_factory=list)
    dependencies: dict[str, str] = Field(default_factory=dict)
    dev_dependencies: dict[str, str] = Field(default_factory=dict)
    env_vars: list[EnvVar] = Field(default_factory=list)
    setup_instructions: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    generated_at: str
    cached: bool = False
    remaining_quota: Optional[int] = None
    cache_key: str = ""

    def to_response(self) -> dict[str, Any]:
        """Serialise to the outbound success body."""
        body = self.model_dump(mode="json", by_alias=True)
        body["files"] = [{"path": f.path, "content": f.content} for f in self.files]
        return body
