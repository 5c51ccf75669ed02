"""Render a generation result into a directory of source files plus summaries."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from code_foundry.models import GenerationResult


def render_result(result: GenerationResult, output_root: Path) -> Path:
    """Write a result package to disk and return the output directory.

    Args:
        result: Successful or failed pipeline result.
        output_root: Root directory where run folders are created.

    Returns:
        The run-specific directory containing the rendered files.

    Raises:
        ValueError: If an artifact path would land outside the run directory.
    """
    target_dir = output_root / (result.run_id or "unnamed")
    resolved_root = target_dir.resolve()

    destinations: list[tuple[Path, str]] = []
    for artifact in result.artifacts:
        destination = (target_dir / artifact.path).resolve()
        if not destination.is_relative_to(resolved_root):
            raise ValueError(f"Artifact path escapes output directory: {artifact.path}")
        destinations.append((destination, artifact.content))

    target_dir.mkdir(parents=True, exist_ok=True)
    for destination, content in destinations:
        destination.parent.mkdir(parents=True, exist_ok=True)
        destination.write_text(content, encoding="utf-8")

    manifest_path = target_dir / "manifest.json"
    manifest_path.write_text(
        json.dumps(_manifest(result), indent=2, ensure_ascii=False),
        encoding="utf-8",
    )

    summary_path = target_dir / "summary.md"
    summary_path.write_text(_render_markdown(result), encoding="utf-8")

    if result.raw_output is not None:
        (target_dir / "raw_response.txt").write_text(result.raw_output.text, encoding="utf-8")

    return target_dir


def _manifest(result: GenerationResult) -> dict[str, Any]:
    """JSON-serializable result description without artifact bodies."""
    payload = result.model_dump(mode="json", exclude={"raw_output"})
    for artifact in payload["artifacts"]:
        artifact.pop("content", None)
        artifact["dependencies"] = sorted(artifact["dependencies"])
    payload["dependencies"] = sorted(payload["dependencies"])
    return payload


def _render_markdown(result: GenerationResult) -> str:
    """Render a human-readable Markdown summary of a run."""
    scope = result.scope
    lines = [
        f"# Generation {result.run_id or 'unnamed'}",
        "",
        f"- Success: `{result.success}`",
        f"- Scope: `{scope.kind.value if scope else 'unknown'}`",
        f"- Artifacts: `{len(result.artifacts)}`",
        f"- Quality score: `{result.quality_score:.1f}`",
    ]
    if result.error:
        lines.append(f"- Error: `{result.error}` ({result.error_kind.value if result.error_kind else 'unknown'})")
    lines.append("")

    if result.warnings:
        lines.extend(["## Warnings", ""])
        lines.extend(f"- {warning}" for warning in result.warnings)
        lines.append("")

    if result.artifacts:
        lines.extend(["## Files", "", "| Path | Language | Lines | Quality | Valid |", "| --- | --- | --- | --- | --- |"])
        for artifact in result.artifacts:
            meta = artifact.metadata
            quality = "-" if meta.quality_score is None else f"{meta.quality_score:.1f}"
            valid = "-" if meta.validated is None else str(meta.validated)
            lines.append(f"| `{artifact.path}` | {artifact.language} | {meta.lines_of_code} | {quality} | {valid} |")
        lines.append("")

    if result.dependencies:
        lines.extend(["## Dependencies", ""])
        lines.extend(f"- `{dependency}`" for dependency in sorted(result.dependencies))
        lines.append("")

    return "\n".join(lines)
