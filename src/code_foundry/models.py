"""Pydantic models shared across classification, parsing, and the pipeline."""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class ScopeKind(str, Enum):
    SINGLE_UNIT = "single_unit"
    FEATURE = "feature"
    PAGE = "page"
    BACKEND = "backend"
    FULLSTACK = "fullstack"
    DATABASE = "database"


class Complexity(str, Enum):
    SIMPLE = "simple"
    MODERATE = "moderate"
    COMPLEX = "complex"


class ExtractionStrategy(str, Enum):
    """Identifier of the parser strategy that produced a candidate."""

    TAGGED_BLOCK = "tagged_block"
    PATH_COMMENT = "path_comment"
    FENCED_BLOCK = "fenced_block"
    JSON_MANIFEST = "json_manifest"
    SYMBOL_BOUNDARY = "symbol_boundary"
    WHOLE_BLOB = "whole_blob"
    SYNTHETIC = "synthetic"


class ErrorKind(str, Enum):
    INPUT = "input"
    GENERATION = "generation"
    CANCELLED = "cancelled"


class RequestContext(BaseModel):
    """Optional structured hints that travel with a request."""

    model_config = ConfigDict(frozen=True)

    domain: str | None = None
    complexity: str | None = None
    style: str | None = None


class IntentHint(BaseModel):
    """Upstream intent classification, when one is available."""

    model_config = ConfigDict(frozen=True)

    name: str
    confidence: float = Field(ge=0.0, le=1.0)


class GenerationRequest(BaseModel):
    """Immutable input for one pipeline invocation."""

    model_config = ConfigDict(frozen=True)

    prompt: str = ""
    framework: str | None = None
    context: RequestContext | None = None
    entities: list[str] = Field(default_factory=list)
    actions: list[str] = Field(default_factory=list)
    intent: IntentHint | None = None
    include_tests: bool = True


class ArtifactRange(BaseModel):
    model_config = ConfigDict(frozen=True)

    min: int = Field(ge=0)
    max: int = Field(ge=0)

    def contains(self, count: int) -> bool:
        return self.min <= count <= self.max


class ScopeDecision(BaseModel):
    """Classified size and shape of a generation request."""

    model_config = ConfigDict(frozen=True)

    kind: ScopeKind
    complexity: Complexity
    confidence: float = Field(ge=0.0, le=1.0)
    expected_artifact_range: ArtifactRange
    include_frontend: bool
    include_backend: bool
    include_database: bool
    cues: list[str] = Field(default_factory=list)


class RawModelOutput(BaseModel):
    """Opaque provider text plus the prompt metadata used to obtain it."""

    model_config = ConfigDict(frozen=True)

    text: str
    prompt_text: str
    model_name: str = ""
    max_tokens: int = 0
    temperature: float = 0.0


class CandidateArtifact(BaseModel):
    """Pre-normalization extraction result. Candidates may collide on path."""

    model_config = ConfigDict(frozen=True)

    name: str
    path: str = ""
    content: str
    language: str = "typescript"
    strategy: ExtractionStrategy
    is_root: bool = False
    renamed_from: str | None = None


class ArtifactMetadata(BaseModel):
    model_config = ConfigDict(frozen=True)

    lines_of_code: int = 0
    complexity: int = 1
    quality_score: float | None = None
    validated: bool | None = None
    optimized: bool | None = None
    validation_issues: list[str] = Field(default_factory=list)
    optimizations: list[str] = Field(default_factory=list)
    renamed_from: str | None = None


class Artifact(BaseModel):
    """Canonical, uniquely-pathed unit of generated content."""

    model_config = ConfigDict(frozen=True)

    path: str
    name: str
    content: str
    language: str
    dependencies: frozenset[str] = frozenset()
    metadata: ArtifactMetadata = Field(default_factory=ArtifactMetadata)

    @property
    def filename(self) -> str:
        return self.path.rsplit("/", 1)[-1]


class StageResult(BaseModel):
    """Outcome of one pipeline stage. Internal to the orchestrator."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    stage: str
    success: bool
    payload: Any = None
    error_message: str | None = None


class GenerationResult(BaseModel):
    """Final pipeline output. Either a populated artifact set or one failure."""

    model_config = ConfigDict(frozen=True)

    success: bool
    artifacts: list[Artifact] = Field(default_factory=list)
    quality_score: float = 0.0
    dependencies: frozenset[str] = frozenset()
    error: str | None = None
    error_kind: ErrorKind | None = None
    scope: ScopeDecision | None = None
    warnings: list[str] = Field(default_factory=list)
    raw_output: RawModelOutput | None = None
    run_id: str = ""


class ValidationReport(BaseModel):
    is_valid: bool
    issues: list[str] = Field(default_factory=list)


class QualityReport(BaseModel):
    overall_score: float = Field(ge=0.0, le=100.0)
    metrics: dict[str, float] = Field(default_factory=dict)


class OptimizationReport(BaseModel):
    optimized_code: str
    changes: list[str] = Field(default_factory=list)


class TemplateMatch(BaseModel):
    name: str
    category: str = "react"
    tags: list[str] = Field(default_factory=list)
    description: str = ""
