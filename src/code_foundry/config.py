"""Pipeline configuration with environment overrides."""

from __future__ import annotations

import os
from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel, Field

ENV_PREFIX = "CODE_FOUNDRY_"
DEFAULT_MODEL_NAME = "gemini-3-flash-preview"


class PipelineConfig(BaseModel):
    """Knobs consulted by the orchestrator and its stages.

    ``fallback_artifact_on_provider_error`` turns a provider failure into a
    single synthetic placeholder artifact instead of a fatal Generate stage.
    """

    model_name: str = DEFAULT_MODEL_NAME
    max_tokens: int = Field(8000, gt=0)
    fullstack_max_tokens: int = Field(32000, gt=0)
    temperature: float = Field(0.7, ge=0.0, le=2.0)
    provider_timeout: float = Field(300.0, gt=0.0)
    max_concurrency: int = Field(4, ge=1)
    min_content_length: int = Field(10, ge=0)
    enable_validation: bool = True
    enable_optimization: bool = True
    enable_quality_analysis: bool = True
    fallback_artifact_on_provider_error: bool = False
    optimization_kinds: list[str] = Field(
        default_factory=lambda: ["whitespace", "best_practices"],
    )

    @classmethod
    def from_env(
        cls,
        environ: Mapping[str, str] | None = None,
        **overrides: Any,
    ) -> PipelineConfig:
        """Build a config from ``CODE_FOUNDRY_<FIELD>`` variables.

        Explicit ``overrides`` win over the environment. List fields accept a
        comma-separated value.
        """
        env = os.environ if environ is None else environ
        data: dict[str, Any] = {}
        for name, field in cls.model_fields.items():
            raw = env.get(f"{ENV_PREFIX}{name.upper()}")
            if raw is None or not raw.strip():
                continue
            if field.annotation == list[str]:
                data[name] = [item.strip() for item in raw.split(",") if item.strip()]
            else:
                data[name] = raw.strip()
        data.update({key: value for key, value in overrides.items() if value is not None})
        return cls.model_validate(data)

    def tokens_for(self, fullstack: bool) -> int:
        return self.fullstack_max_tokens if fullstack else self.max_tokens
