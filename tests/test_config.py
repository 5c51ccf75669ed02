from __future__ import annotations

import pytest
from pydantic import ValidationError

from code_foundry.config import DEFAULT_MODEL_NAME, PipelineConfig


def test_from_env_given_empty_environment_when_built_then_defaults_are_used() -> None:
    # Given
    environ: dict[str, str] = {}

    # When
    config = PipelineConfig.from_env(environ)

    # Then
    assert config.model_name == DEFAULT_MODEL_NAME
    assert config.max_tokens == 8000
    assert config.fullstack_max_tokens == 32000
    assert config.provider_timeout == 300.0
    assert config.min_content_length == 10
    assert config.fallback_artifact_on_provider_error is False
    assert config.optimization_kinds == ["whitespace", "best_practices"]


def test_from_env_given_prefixed_variables_when_built_then_values_are_coerced() -> None:
    # Given
    environ = {
        "CODE_FOUNDRY_MAX_CONCURRENCY": "8",
        "CODE_FOUNDRY_TEMPERATURE": "0.2",
        "CODE_FOUNDRY_ENABLE_VALIDATION": "false",
        "CODE_FOUNDRY_OPTIMIZATION_KINDS": "whitespace, ",
        "UNRELATED": "ignored",
    }

    # When
    config = PipelineConfig.from_env(environ)

    # Then
    assert config.max_concurrency == 8
    assert config.temperature == pytest.approx(0.2)
    assert config.enable_validation is False
    assert config.optimization_kinds == ["whitespace"]


def test_from_env_given_overrides_when_built_then_overrides_win_and_none_is_ignored() -> None:
    # Given
    environ = {"CODE_FOUNDRY_MODEL_NAME": "from-env", "CODE_FOUNDRY_MAX_TOKENS": "100"}

    # When
    config = PipelineConfig.from_env(environ, model_name="from-cli", max_tokens=None)

    # Then
    assert config.model_name == "from-cli"
    assert config.max_tokens == 100


def test_from_env_given_out_of_range_value_when_built_then_validation_error_is_raised() -> None:
    # Given
    environ = {"CODE_FOUNDRY_MAX_CONCURRENCY": "0"}

    # When
    with pytest.raises(ValidationError):
        PipelineConfig.from_env(environ)

    # Then
    # The error is raised before any pipeline is built.


def test_tokens_for_given_fullstack_flag_when_called_then_matching_limit_is_returned() -> None:
    # Given
    config = PipelineConfig(max_tokens=1000, fullstack_max_tokens=5000)

    # When
    regular = config.tokens_for(False)
    fullstack = config.tokens_for(True)

    # Then
    assert (regular, fullstack) == (1000, 5000)
