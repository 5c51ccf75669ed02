"""Typer-based CLI for classifying, generating, and parsing code artifacts."""

from __future__ import annotations

import logging
from pathlib import Path

import typer

from code_foundry.collaborators import (
    HeuristicQualityAnalyzer,
    StaticTemplateCatalog,
    StructuralValidator,
    WhitespaceOptimizer,
)
from code_foundry.config import PipelineConfig
from code_foundry.generator import GeminiGenerator, LocalGenerator, resolve_gemini_api_key
from code_foundry.models import GenerationRequest, GenerationResult, RequestContext
from code_foundry.normalizer import normalize
from code_foundry.parser import ParseHint, parse
from code_foundry.pipeline import Pipeline, Stage
from code_foundry.renderer import render_result
from code_foundry.scope import classify, extract_main_entity

app = typer.Typer(add_completion=False, help="code-foundry: turn a prompt into a set of generated source files")

DEFAULT_OUTPUT_ROOT = Path("artifacts")
STAGE_MESSAGES = {
    Stage.PREPARE: "Classifying request and composing prompt",
    Stage.GENERATE: "Calling provider and extracting files",
    Stage.VALIDATE: "Validating files",
    Stage.OPTIMIZE: "Scoring and optimizing files",
}


def _echo_step(step: int, total: int, message: str) -> None:
    """Print a normalized progress step line."""
    typer.echo(f"[{step}/{total}] {message}")


def _echo_stage(stage: Stage) -> None:
    stages = list(Stage)
    _echo_step(stages.index(stage) + 1, len(stages) + 1, STAGE_MESSAGES[stage])


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _build_request(
    prompt: str,
    framework: str | None,
    entities: list[str] | None,
    actions: list[str] | None,
    domain: str | None,
    style: str | None,
    include_tests: bool,
) -> GenerationRequest:
    context = RequestContext(domain=domain, style=style) if domain or style else None
    return GenerationRequest(
        prompt=prompt,
        framework=framework,
        context=context,
        entities=entities or [],
        actions=actions or [],
        include_tests=include_tests,
    )


def _echo_result(result: GenerationResult) -> None:
    for artifact in result.artifacts:
        typer.echo(f"    {artifact.path} ({artifact.language}, {artifact.metadata.lines_of_code} lines)")
    for warning in result.warnings:
        typer.echo(f"    warning: {warning}")


@app.command("generate")
def generate(
    prompt: str = typer.Argument(..., help="Free-text description of what to build"),
    framework: str | None = typer.Option(None, help="Target framework (default react)"),
    entity: list[str] | None = typer.Option(None, "--entity", help="Domain entity, repeatable"),
    action: list[str] | None = typer.Option(None, "--action", help="Required action, repeatable"),
    domain: str | None = typer.Option(None, help="Application domain hint"),
    style: str | None = typer.Option(None, help="Visual style hint"),
    include_tests: bool = typer.Option(True, "--tests/--no-tests", help="Ask for test files"),
    model_name: str | None = typer.Option(None, help="Gemini model name"),
    max_tokens: int | None = typer.Option(None, min=1, help="Output token ceiling"),
    temperature: float | None = typer.Option(None, min=0.0, max=2.0, help="Sampling temperature"),
    timeout: float | None = typer.Option(None, min=0.1, help="Provider timeout in seconds"),
    concurrency: int | None = typer.Option(None, min=1, help="Parallel per-file collaborator calls"),
    validate: bool = typer.Option(True, "--validate/--no-validate", help="Run the structural validator"),
    optimize: bool = typer.Option(True, "--optimize/--no-optimize", help="Run quality analysis and optimizer"),
    fallback: bool = typer.Option(
        False, "--fallback", help="Emit a placeholder file when the provider fails"
    ),
    seed: int = typer.Option(0, help="Seed for the local generator"),
    output_root: Path = typer.Option(DEFAULT_OUTPUT_ROOT, help="Artifact output directory"),
    local_only: bool = typer.Option(False, help="Skip Gemini and use the local generator"),
) -> None:
    """Run the full pipeline for PROMPT and write the files to disk."""
    if not prompt.strip():
        raise typer.BadParameter("Prompt must not be blank.")

    config = PipelineConfig.from_env(
        model_name=model_name,
        max_tokens=max_tokens,
        temperature=temperature,
        provider_timeout=timeout,
        max_concurrency=concurrency,
        enable_validation=validate,
        enable_optimization=optimize,
        fallback_artifact_on_provider_error=fallback or None,
    )
    provider = LocalGenerator(seed=seed) if local_only else GeminiGenerator(model_name=config.model_name)

    request = _build_request(prompt, framework, entity, action, domain, style, include_tests)
    pipeline = Pipeline(
        provider=provider,
        config=config,
        validator=StructuralValidator(),
        quality_analyzer=HeuristicQualityAnalyzer(),
        optimizer=WhitespaceOptimizer(),
        template_search=StaticTemplateCatalog(),
        on_stage=_echo_stage,
    )
    result = pipeline.run_sync(request)

    total = len(Stage) + 1
    _echo_step(total, total, "Rendering files")
    try:
        out_dir = render_result(result, output_root=output_root)
    except ValueError as exc:
        typer.echo(f"Rendering failed: {exc}", err=True)
        raise typer.Exit(code=1) from exc
    _echo_result(result)

    if not result.success:
        typer.echo(f"Generation failed ({result.error_kind.value}): {result.error} path={out_dir}", err=True)
        raise typer.Exit(code=1)

    typer.echo(
        "Generation complete. "
        f"id={result.run_id} files={len(result.artifacts)} quality={result.quality_score:.1f} path={out_dir}"
    )


@app.command("classify")
def classify_command(
    prompt: str = typer.Argument(..., help="Free-text description of what to build"),
    intent: str | None = typer.Option(None, help="Upstream intent name, e.g. create_api"),
    intent_confidence: float = typer.Option(1.0, min=0.0, max=1.0, help="Confidence of --intent"),
) -> None:
    """Print the scope decision for PROMPT without calling a provider."""
    payload: dict[str, object] = {"prompt": prompt}
    if intent:
        payload["intent"] = {"name": intent, "confidence": intent_confidence}
    decision = classify(GenerationRequest.model_validate(payload))

    typer.echo(f"scope={decision.kind.value} complexity={decision.complexity.value} confidence={decision.confidence:.2f}")
    typer.echo(
        f"files={decision.expected_artifact_range.min}-{decision.expected_artifact_range.max} "
        f"frontend={decision.include_frontend} backend={decision.include_backend} "
        f"database={decision.include_database}"
    )
    typer.echo(f"entity={extract_main_entity(prompt)} cues={', '.join(decision.cues)}")


@app.command("parse")
def parse_command(
    response_file: Path = typer.Argument(..., help="Saved raw provider response"),
    entity: str | None = typer.Option(None, help="Main entity used for naming"),
    min_content_length: int = typer.Option(10, min=0, help="Drop extracted bodies shorter than this"),
) -> None:
    """Run the extraction cascade and normalizer over a saved response."""
    if not response_file.exists():
        raise typer.BadParameter(f"File not found: {response_file}")

    text = response_file.read_text(encoding="utf-8")
    candidates = parse(text, ParseHint(entity=entity, min_content_length=min_content_length))
    artifacts = normalize(candidates)

    strategy = candidates[0].strategy.value if candidates else "none"
    typer.echo(f"strategy={strategy} candidates={len(candidates)} files={len(artifacts)}")
    for artifact in artifacts:
        deps = ", ".join(sorted(artifact.dependencies)) or "-"
        typer.echo(f"    {artifact.path} ({artifact.language}) deps: {deps}")


@app.command("doctor")
def doctor() -> None:
    """Print local environment diagnostics used by the CLI."""
    api_key = resolve_gemini_api_key()
    config = PipelineConfig.from_env()
    typer.echo(f"GEMINI_API_KEY set: {bool(api_key)}")
    typer.echo(f"Model: {config.model_name}")
    typer.echo(f"Provider timeout: {config.provider_timeout}s concurrency={config.max_concurrency}")


if __name__ == "__main__":
    app()
