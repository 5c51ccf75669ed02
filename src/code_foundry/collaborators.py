"""Collaborator interfaces and the heuristic defaults shipped with the CLI.

The pipeline only depends on the protocols below. The default
implementations are intentionally small; they exist so a run can complete
end to end without any external service besides the completion provider.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable
from typing import Protocol, runtime_checkable

from code_foundry.analysis import complexity
from code_foundry.models import (
    OptimizationReport,
    QualityReport,
    TemplateMatch,
    ValidationReport,
)

logger = logging.getLogger(__name__)


@runtime_checkable
class CompletionProvider(Protocol):
    def complete(self, prompt_text: str, max_tokens: int, temperature: float) -> str: ...


@runtime_checkable
class ArtifactValidator(Protocol):
    def validate(self, content: str, language: str) -> ValidationReport: ...


@runtime_checkable
class QualityAnalyzer(Protocol):
    def analyze(self, content: str, language: str) -> QualityReport: ...


@runtime_checkable
class CodeOptimizer(Protocol):
    def optimize(self, content: str, language: str, kinds: list[str]) -> OptimizationReport: ...


@runtime_checkable
class TemplateSearch(Protocol):
    def search(self, keyword: str, category: str | None = None, tags: list[str] | None = None) -> list[TemplateMatch]: ...


BRACKET_PAIRS = {")": "(", "]": "[", "}": "{"}
STRING_OR_COMMENT_RE = re.compile(
    r"//[^\n]*|/\*.*?\*/|`(?:\\.|[^`\\])*`|'(?:\\.|[^'\\\n])*'|\"(?:\\.|[^\"\\\n])*\"",
    re.DOTALL,
)
PYTHON_STRING_OR_COMMENT_RE = re.compile(
    r"#[^\n]*|\"\"\".*?\"\"\"|'''.*?'''|'(?:\\.|[^'\\\n])*'|\"(?:\\.|[^\"\\\n])*\"",
    re.DOTALL,
)
PLACEHOLDER_MARKERS = (
    re.compile(r"\bTODO\b"),
    re.compile(r"\bFIXME\b"),
    re.compile(r"implement (?:this )?later", re.IGNORECASE),
    re.compile(r"your code here", re.IGNORECASE),
)
BRACKETLESS_LANGUAGES = {"markdown", "css", "scss", "html", "dotenv", "yaml", "prisma", "sql"}


class StructuralValidator:
    """Flags empty content, unbalanced brackets, and leftover placeholders."""

    def validate(self, content: str, language: str) -> ValidationReport:
        issues: list[str] = []
        if not content or not content.strip():
            return ValidationReport(is_valid=False, issues=["empty content"])

        if language not in BRACKETLESS_LANGUAGES:
            issues.extend(self._bracket_issues(content, language))

        for marker in PLACEHOLDER_MARKERS:
            if marker.search(content):
                issues.append(f"placeholder marker: {marker.pattern}")

        return ValidationReport(is_valid=not issues, issues=issues)

    @staticmethod
    def _bracket_issues(content: str, language: str) -> list[str]:
        pattern = PYTHON_STRING_OR_COMMENT_RE if language == "python" else STRING_OR_COMMENT_RE
        stripped = pattern.sub("", content)

        stack: list[str] = []
        for char in stripped:
            if char in "([{":
                stack.append(char)
            elif char in BRACKET_PAIRS:
                if not stack or stack[-1] != BRACKET_PAIRS[char]:
                    return [f"unexpected closing bracket {char!r}"]
                stack.pop()
        if stack:
            return [f"{len(stack)} unclosed bracket(s)"]
        return []


# sub-score -> weight
QUALITY_WEIGHTS = {
    "complexity": 0.3,
    "maintainability": 0.3,
    "type_safety": 0.25,
    "documentation": 0.15,
}


class HeuristicQualityAnalyzer:
    """Weighted 0-100 score over four lexical sub-scores."""

    def analyze(self, content: str, language: str) -> QualityReport:
        if not content or not content.strip():
            return QualityReport(overall_score=0.0, metrics={name: 0.0 for name in QUALITY_WEIGHTS})

        metrics = {
            "complexity": self._complexity(content),
            "maintainability": self._maintainability(content),
            "type_safety": self._type_safety(content, language),
            "documentation": self._documentation(content),
        }
        overall = sum(metrics[name] * weight for name, weight in QUALITY_WEIGHTS.items())
        return QualityReport(overall_score=round(_clamp(overall), 1), metrics=metrics)

    @staticmethod
    def _complexity(content: str) -> float:
        return _clamp(100 - max(complexity(content) - 10, 0) * 2)

    @staticmethod
    def _maintainability(content: str) -> float:
        lines = content.split("\n")
        score = 100.0
        score -= sum(1 for line in lines if len(line) > 120) * 2
        if len(lines) > 300:
            score -= 15
        if len(re.findall(r"\b\d{2,}\b", content)) > 10:
            score -= 10
        if re.search(r"\bconsole\.log\(", content):
            score -= 5
        return _clamp(score)

    @staticmethod
    def _type_safety(content: str, language: str) -> float:
        if language not in {"typescript", "tsx"}:
            return 100.0
        score = 100.0
        score -= len(re.findall(r":\s*any\b", content)) * 5
        score -= len(re.findall(r"@ts-ignore", content)) * 10
        return _clamp(score)

    @staticmethod
    def _documentation(content: str) -> float:
        comments = len(re.findall(r"/\*\*.*?\*/|//[^\n]*|#[^\n]*|\"\"\"", content, re.DOTALL))
        if comments == 0:
            return 60.0
        return _clamp(70 + comments * 5)


def _clamp(value: float) -> float:
    return max(0.0, min(100.0, float(value)))


TRAILING_WHITESPACE_RE = re.compile(r"[ \t]+$", re.MULTILINE)
BLANK_RUN_RE = re.compile(r"\n{3,}")
VAR_DECLARATION_RE = re.compile(r"^(\s*)var\s+", re.MULTILINE)
JS_LANGUAGES = {"typescript", "tsx", "javascript", "jsx"}


class WhitespaceOptimizer:
    """Conservative textual clean-ups that never change program structure."""

    def optimize(self, content: str, language: str, kinds: Iterable[str] = ("whitespace",)) -> OptimizationReport:
        kinds = set(kinds)
        code = content
        changes: list[str] = []

        if "whitespace" in kinds:
            trimmed = TRAILING_WHITESPACE_RE.sub("", code)
            if trimmed != code:
                changes.append("removed trailing whitespace")
            collapsed = BLANK_RUN_RE.sub("\n\n", trimmed)
            if collapsed != trimmed:
                changes.append("collapsed blank lines")
            code = collapsed

        if "best_practices" in kinds and language in JS_LANGUAGES:
            rewritten, count = VAR_DECLARATION_RE.subn(r"\1let ", code)
            if count:
                changes.append(f"replaced {count} var declaration(s) with let")
            code = rewritten

        if code and not code.endswith("\n"):
            code += "\n"
            changes.append("added final newline")

        return OptimizationReport(optimized_code=code, changes=changes)


class StaticTemplateCatalog:
    """In-memory template lookup matched on name, description, and tags."""

    DEFAULT_TEMPLATES = (
        TemplateMatch(name="card", tags=["ui", "card", "component"], description="Content card with title and body"),
        TemplateMatch(name="form", tags=["ui", "form", "input"], description="Validated input form"),
        TemplateMatch(name="dashboard", tags=["page", "dashboard", "charts"], description="Admin dashboard layout"),
        TemplateMatch(name="landing-page", tags=["page", "hero"], description="Marketing landing page"),
        TemplateMatch(
            name="rest-api",
            category="express",
            tags=["backend", "api", "crud"],
            description="Express REST API with controllers and services",
        ),
        TemplateMatch(
            name="prisma-schema",
            category="database",
            tags=["database", "prisma"],
            description="Prisma schema with a seed script",
        ),
    )

    def __init__(self, templates: Iterable[TemplateMatch] | None = None):
        self.templates = list(self.DEFAULT_TEMPLATES if templates is None else templates)

    def search(self, keyword: str, category: str | None = None, tags: list[str] | None = None) -> list[TemplateMatch]:
        words = {word for word in re.findall(r"[a-z0-9]+", (keyword or "").lower()) if len(word) > 2}
        wanted_tags = {tag.lower() for tag in tags or []}
        matches = []
        for template in self.templates:
            if category and template.category != category:
                continue
            haystack = set(re.findall(r"[a-z0-9]+", f"{template.name} {template.description}".lower()))
            haystack.update(tag.lower() for tag in template.tags)
            if words & haystack or wanted_tags & set(template.tags):
                matches.append(template)
        logger.debug("template search %r matched %d template(s)", keyword, len(matches))
        return matches
