from __future__ import annotations

import sys
import types

import pytest

from code_foundry.generator import (
    GeminiGenerator,
    LocalGenerator,
    fallback_artifact,
    resolve_gemini_api_key,
)
from code_foundry.models import ExtractionStrategy, GenerationRequest
from code_foundry.normalizer import normalize
from code_foundry.parser import ParseHint, parse
from code_foundry.prompting import compose
from code_foundry.scope import classify


def test_resolve_gemini_api_key_given_env_and_file_when_resolved_then_env_wins(
    monkeypatch: pytest.MonkeyPatch,
    tmp_path,
) -> None:
    # Given
    key_file = tmp_path / "Gemini.md"
    key_file.write_text("file-key", encoding="utf-8")
    monkeypatch.setenv("GEMINI_API_KEY", "env-key")

    # When
    value = resolve_gemini_api_key(key_file=key_file)

    # Then
    assert value == "env-key"


def test_resolve_gemini_api_key_given_only_file_when_resolved_then_file_value_is_used(
    monkeypatch: pytest.MonkeyPatch,
    tmp_path,
) -> None:
    # Given
    key_file = tmp_path / "Gemini.md"
    key_file.write_text("file-key\n", encoding="utf-8")
    monkeypatch.delenv("GEMINI_API_KEY", raising=False)

    # When
    value = resolve_gemini_api_key(key_file=key_file)

    # Then
    assert value == "file-key"


def test_resolve_gemini_api_key_given_no_sources_when_resolved_then_none_is_returned(
    monkeypatch: pytest.MonkeyPatch,
    tmp_path,
) -> None:
    # Given
    monkeypatch.delenv("GEMINI_API_KEY", raising=False)
    missing_file = tmp_path / "missing.md"

    # When
    value = resolve_gemini_api_key(key_file=missing_file)

    # Then
    assert value is None


def test_gemini_generator_given_mocked_sdk_when_completed_then_limits_are_forwarded(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    # Given
    monkeypatch.delenv("GEMINI_API_KEY", raising=False)
    monkeypatch.setattr("code_foundry.generator.resolve_gemini_api_key", lambda: "fake-key")

    captured: dict[str, object] = {}

    class FakeGenerateContentConfig:
        def __init__(self, **kwargs: object) -> None:
            self.kwargs = kwargs

    class FakeModels:
        def generate_content(self, **kwargs: object):
            captured["request"] = kwargs
            return types.SimpleNamespace(text="  ```tsx:src/App.tsx\nexport const App = 1;\n```  ")

    class FakeClient:
        def __init__(self, api_key: str) -> None:
            captured["api_key"] = api_key
            self.models = FakeModels()

    fake_google_genai = types.ModuleType("google.genai")
    fake_google_genai.Client = FakeClient
    fake_google_genai.types = types.SimpleNamespace(GenerateContentConfig=FakeGenerateContentConfig)

    fake_google = types.ModuleType("google")
    fake_google.genai = fake_google_genai

    monkeypatch.setitem(sys.modules, "google", fake_google)
    monkeypatch.setitem(sys.modules, "google.genai", fake_google_genai)

    # When
    generator = GeminiGenerator(model_name="gemini-test", system_prompt="system prompt")
    result = generator.complete("user prompt", max_tokens=1234, temperature=0.3)

    # Then
    assert result.startswith("```tsx:src/App.tsx")
    assert captured["api_key"] == "fake-key"
    request = captured["request"]
    assert isinstance(request, dict)
    assert request["model"] == "gemini-test"
    assert request["contents"] == "user prompt"
    config = request["config"].kwargs
    assert config["max_output_tokens"] == 1234
    assert config["temperature"] == 0.3
    assert config["system_instruction"] == "system prompt"


def test_gemini_generator_given_missing_key_when_completed_then_runtime_error_is_raised(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    # Given
    monkeypatch.delenv("GEMINI_API_KEY", raising=False)
    monkeypatch.setattr("code_foundry.generator.resolve_gemini_api_key", lambda: None)
    generator = GeminiGenerator(model_name="gemini-test")

    # When
    with pytest.raises(RuntimeError, match="Missing GEMINI_API_KEY"):
        generator.complete("user prompt", max_tokens=10, temperature=0.5)

    # Then
    # No SDK call is attempted without credentials.


def test_gemini_generator_given_blank_prompt_when_completed_then_value_error_is_raised() -> None:
    # Given
    generator = GeminiGenerator(model_name="gemini-test")

    # When
    with pytest.raises(ValueError):
        generator.complete("   ", max_tokens=10, temperature=0.5)

    # Then
    # Validation happens before key resolution.


def test_local_generator_given_single_unit_prompt_when_completed_then_tagged_component_files_are_emitted(
    card_request,
) -> None:
    # Given
    prompt = compose(card_request, classify(card_request))

    # When
    raw = LocalGenerator(seed=3).complete(prompt, 100, 0.0)
    artifacts = normalize(parse(raw, ParseHint(entity="Card")))

    # Then
    assert [artifact.path for artifact in artifacts] == [
        "src/components/Card/Card.tsx",
        "src/components/Card/Card.types.ts",
        "src/components/Card/Card.mock.ts",
        "src/components/Card/Card.styles.css",
    ]
    assert "react" in artifacts[0].dependencies


def test_local_generator_given_same_seed_when_completed_twice_then_output_is_deterministic(card_request) -> None:
    # Given
    prompt = compose(card_request, classify(card_request))

    # When
    first = LocalGenerator(seed=7).complete(prompt)
    second = LocalGenerator(seed=7).complete(prompt)

    # Then
    assert first == second


def test_local_generator_given_backend_prompt_when_completed_then_express_files_are_emitted() -> None:
    # Given
    request = GenerationRequest(prompt="REST api endpoints with express routes", entities=["order"])
    prompt = compose(request, classify(request))

    # When
    raw = LocalGenerator().complete(prompt)
    paths = [candidate.path for candidate in parse(raw)]

    # Then
    assert paths == [
        "src/server.ts",
        "src/app.ts",
        "src/routes/order.routes.ts",
        "src/controllers/order.controller.ts",
        "src/services/order.service.ts",
    ]


def test_fallback_artifact_given_request_when_built_then_placeholder_app_component_is_returned() -> None:
    # Given
    request = GenerationRequest(prompt="a pricing table")

    # When
    candidate = fallback_artifact(request)

    # Then
    assert candidate.path == "src/App.tsx"
    assert candidate.strategy is ExtractionStrategy.SYNTHETIC
    assert "<h1>Table</h1>" in candidate.content
