"""Staged generation pipeline: Prepare -> Generate -> Validate -> Optimize.

Each stage returns a ``StageResult``. Whether a failed stage ends the run or
is absorbed is decided by ``STAGE_POLICIES`` alone; the handlers never make
that call themselves.
"""

from __future__ import annotations

import asyncio
import logging
import threading
import uuid
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from code_foundry.analysis import (
    aggregate_dependencies,
    aggregate_quality,
    complexity,
    extract_dependencies,
    lines_of_code,
)
from code_foundry.collaborators import (
    ArtifactValidator,
    CodeOptimizer,
    CompletionProvider,
    QualityAnalyzer,
    TemplateSearch,
)
from code_foundry.config import PipelineConfig
from code_foundry.generator import fallback_artifact
from code_foundry.models import (
    Artifact,
    ErrorKind,
    GenerationRequest,
    GenerationResult,
    RawModelOutput,
    ScopeDecision,
    ScopeKind,
    StageResult,
    TemplateMatch,
)
from code_foundry.normalizer import normalize
from code_foundry.parser import NameSequence, ParseHint, parse
from code_foundry.prompting import compose
from code_foundry.scope import classify, main_entity

logger = logging.getLogger(__name__)


class Stage(str, Enum):
    PREPARE = "prepare"
    GENERATE = "generate"
    VALIDATE = "validate"
    OPTIMIZE = "optimize"


class FailurePolicy(str, Enum):
    FATAL = "fatal"
    RECOVERABLE = "recoverable"


STAGE_POLICIES: dict[Stage, FailurePolicy] = {
    Stage.PREPARE: FailurePolicy.FATAL,
    Stage.GENERATE: FailurePolicy.FATAL,
    Stage.VALIDATE: FailurePolicy.RECOVERABLE,
    Stage.OPTIMIZE: FailurePolicy.RECOVERABLE,
}

FATAL_ERROR_KINDS = {
    Stage.PREPARE: ErrorKind.INPUT,
    Stage.GENERATE: ErrorKind.GENERATION,
}

BACKEND_SCOPES = {ScopeKind.BACKEND, ScopeKind.DATABASE}


def _in_daemon_thread(func: Callable[..., Any], *args: Any) -> asyncio.Future:
    """Run ``func`` on a daemon thread and expose its outcome as a loop future.

    Unlike ``asyncio.to_thread``, an abandoned call is never joined, so a timed
    out provider neither blocks ``asyncio.run`` shutdown nor interpreter exit.
    """
    loop = asyncio.get_running_loop()
    future = loop.create_future()

    def settle(result: Any, error: BaseException | None) -> None:
        if future.done():
            return
        if error is not None:
            future.set_exception(error)
        else:
            future.set_result(result)

    def target() -> None:
        try:
            outcome = (func(*args), None)
        except Exception as exc:
            outcome = (None, exc)
        try:
            loop.call_soon_threadsafe(settle, *outcome)
        except RuntimeError:
            logger.debug("event loop closed before %s returned", getattr(func, "__qualname__", func))

    threading.Thread(target=target, name="provider-call", daemon=True).start()
    return future


@dataclass
class RunContext:
    """State owned by a single ``Pipeline.run`` call."""

    request: GenerationRequest
    run_id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])
    names: NameSequence = field(default_factory=NameSequence)
    decision: ScopeDecision | None = None
    prompt_text: str = ""
    templates: list[TemplateMatch] = field(default_factory=list)
    raw_output: RawModelOutput | None = None
    provider_error: str | None = None
    warnings: list[str] = field(default_factory=list)


class Pipeline:
    """Runs one generation request through the four stages.

    Usage:
        pipeline = Pipeline(provider=LocalGenerator(), config=PipelineConfig())
        result = pipeline.run_sync(GenerationRequest(prompt="a task card component"))
    """

    def __init__(
        self,
        provider: CompletionProvider,
        config: PipelineConfig | None = None,
        validator: ArtifactValidator | None = None,
        quality_analyzer: QualityAnalyzer | None = None,
        optimizer: CodeOptimizer | None = None,
        template_search: TemplateSearch | None = None,
        on_stage: Callable[[Stage], None] | None = None,
    ):
        self.provider = provider
        self.config = config or PipelineConfig()
        self.validator = validator
        self.quality_analyzer = quality_analyzer
        self.optimizer = optimizer
        self.template_search = template_search
        self.on_stage = on_stage

    def run_sync(self, request: GenerationRequest) -> GenerationResult:
        return asyncio.run(self.run(request))

    async def run(self, request: GenerationRequest) -> GenerationResult:
        context = RunContext(request=request)
        try:
            return await self._run_stages(context)
        except asyncio.CancelledError:
            logger.warning("run %s cancelled", context.run_id)
            return GenerationResult(
                success=False,
                error="generation cancelled",
                error_kind=ErrorKind.CANCELLED,
                scope=context.decision,
                run_id=context.run_id,
            )

    async def _run_stages(self, context: RunContext) -> GenerationResult:
        handlers: list[tuple[Stage, Callable[[RunContext, list[Artifact]], Awaitable[StageResult]]]] = [
            (Stage.PREPARE, self._prepare),
            (Stage.GENERATE, self._generate),
            (Stage.VALIDATE, self._validate),
            (Stage.OPTIMIZE, self._optimize),
        ]

        artifacts: list[Artifact] = []
        for stage, handler in handlers:
            if self.on_stage:
                self.on_stage(stage)
            try:
                outcome = await handler(context, artifacts)
            except Exception as exc:
                logger.exception("stage %s raised", stage.value)
                outcome = StageResult(stage=stage.value, success=False, error_message=str(exc))

            if outcome.success:
                if outcome.payload is not None:
                    artifacts = outcome.payload
                continue

            if STAGE_POLICIES[stage] is FailurePolicy.FATAL:
                logger.error("run %s failed at %s: %s", context.run_id, stage.value, outcome.error_message)
                return GenerationResult(
                    success=False,
                    error=outcome.error_message,
                    error_kind=FATAL_ERROR_KINDS[stage],
                    scope=context.decision,
                    warnings=context.warnings,
                    raw_output=context.raw_output,
                    run_id=context.run_id,
                )
            logger.warning("stage %s degraded, keeping previous artifacts: %s", stage.value, outcome.error_message)
            context.warnings.append(f"{stage.value} skipped: {outcome.error_message}")

        return GenerationResult(
            success=True,
            artifacts=artifacts,
            quality_score=aggregate_quality(artifacts),
            dependencies=aggregate_dependencies(artifacts),
            scope=context.decision,
            warnings=context.warnings,
            raw_output=context.raw_output,
            run_id=context.run_id,
        )

    async def _prepare(self, context: RunContext, artifacts: list[Artifact]) -> StageResult:
        request = context.request
        if not request.prompt or not request.prompt.strip():
            return StageResult(stage=Stage.PREPARE.value, success=False, error_message="prompt is required")

        context.decision = classify(request)
        context.prompt_text = compose(request, context.decision)

        if self.template_search is not None:
            try:
                context.templates = await asyncio.to_thread(
                    self.template_search.search,
                    main_entity(request),
                    None,
                    context.decision.cues,
                )
            except Exception as exc:
                logger.warning("template search failed: %s", exc)
                context.templates = []

        logger.info(
            "run %s prepared: scope=%s templates=%d",
            context.run_id,
            context.decision.kind.value,
            len(context.templates),
        )
        return StageResult(stage=Stage.PREPARE.value, success=True)

    async def _call_provider(self, context: RunContext) -> str | None:
        decision = context.decision
        max_tokens = self.config.tokens_for(decision.kind is ScopeKind.FULLSTACK)
        try:
            text = await asyncio.wait_for(
                _in_daemon_thread(
                    self.provider.complete,
                    context.prompt_text,
                    max_tokens,
                    self.config.temperature,
                ),
                timeout=self.config.provider_timeout,
            )
        except asyncio.TimeoutError:
            context.provider_error = f"provider timed out after {self.config.provider_timeout:g}s"
            logger.error(context.provider_error)
            return None
        except Exception as exc:
            context.provider_error = f"provider call failed: {exc}"
            logger.error(context.provider_error)
            return None

        context.raw_output = RawModelOutput(
            text=text or "",
            prompt_text=context.prompt_text,
            model_name=getattr(self.provider, "model_name", ""),
            max_tokens=max_tokens,
            temperature=self.config.temperature,
        )
        logger.debug("provider returned %d chars", len(text or ""))
        if not text:
            context.provider_error = "provider returned no text"
            return None
        return text

    async def _generate(self, context: RunContext, artifacts: list[Artifact]) -> StageResult:
        request = context.request
        decision = context.decision
        text = await self._call_provider(context)

        if text is None:
            if self.config.fallback_artifact_on_provider_error:
                logger.warning("using synthetic fallback artifact for run %s", context.run_id)
                context.warnings.append("provider failed; synthetic fallback artifact used")
                candidates = [fallback_artifact(request)]
            else:
                candidates = []
        else:
            hint = ParseHint(
                prompt=request.prompt,
                entity=main_entity(request),
                language="typescript" if decision.kind in BACKEND_SCOPES else "tsx",
                min_content_length=self.config.min_content_length,
            )
            candidates = parse(text, hint, context.names)

        produced = normalize(candidates)
        if not produced:
            message = "no components generated"
            if context.provider_error:
                message = f"{message}: {context.provider_error}"
            return StageResult(stage=Stage.GENERATE.value, success=False, error_message=message)

        expected = decision.expected_artifact_range
        if not expected.contains(len(produced)):
            message = f"generated {len(produced)} artifact(s), expected {expected.min}-{expected.max}"
            logger.warning(message)
            context.warnings.append(message)

        return StageResult(stage=Stage.GENERATE.value, success=True, payload=produced)

    async def _each(self, artifacts: list[Artifact], step: Callable[[Artifact], Artifact], label: str) -> list[Artifact]:
        """Apply ``step`` to every artifact in worker threads, keeping input order.

        An artifact whose step raises is returned unchanged.
        """
        semaphore = asyncio.Semaphore(self.config.max_concurrency)

        async def run_one(artifact: Artifact) -> Artifact:
            async with semaphore:
                try:
                    return await asyncio.to_thread(step, artifact)
                except Exception as exc:
                    logger.warning("%s failed for %s: %s", label, artifact.path, exc)
                    return artifact

        return list(await asyncio.gather(*(run_one(artifact) for artifact in artifacts)))

    async def _validate(self, context: RunContext, artifacts: list[Artifact]) -> StageResult:
        if not self.config.enable_validation or self.validator is None:
            logger.debug("validation skipped")
            return StageResult(stage=Stage.VALIDATE.value, success=True)

        validator = self.validator

        def check(artifact: Artifact) -> Artifact:
            report = validator.validate(artifact.content, artifact.language)
            metadata = artifact.metadata.model_copy(
                update={"validated": report.is_valid, "validation_issues": list(report.issues)}
            )
            return artifact.model_copy(update={"metadata": metadata})

        validated = await self._each(artifacts, check, "validation")
        return StageResult(stage=Stage.VALIDATE.value, success=True, payload=validated)

    async def _optimize(self, context: RunContext, artifacts: list[Artifact]) -> StageResult:
        analyzer = self.quality_analyzer if self.config.enable_quality_analysis else None
        optimizer = self.optimizer
        if not self.config.enable_optimization or (analyzer is None and optimizer is None):
            logger.debug("optimization skipped")
            return StageResult(stage=Stage.OPTIMIZE.value, success=True)

        kinds = list(self.config.optimization_kinds)

        def improve(artifact: Artifact) -> Artifact:
            update: dict[str, Any] = {}
            if analyzer is not None:
                update["quality_score"] = analyzer.analyze(artifact.content, artifact.language).overall_score

            content = artifact.content
            if optimizer is not None:
                report = optimizer.optimize(content, artifact.language, kinds)
                content = report.optimized_code
                update["optimized"] = True
                update["optimizations"] = list(report.changes)
                update["lines_of_code"] = lines_of_code(content)
                update["complexity"] = complexity(content)

            return artifact.model_copy(
                update={
                    "content": content,
                    "dependencies": frozenset(extract_dependencies(content)),
                    "metadata": artifact.metadata.model_copy(update=update),
                }
            )

        optimized = await self._each(artifacts, improve, "optimization")
        return StageResult(stage=Stage.OPTIMIZE.value, success=True, payload=optimized)
