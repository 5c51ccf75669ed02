"""Dependency extraction, complexity counting and quality aggregation."""

from __future__ import annotations

import re
from collections.abc import Iterable

from code_foundry.models import Artifact

IMPORT_PATTERNS = (
    re.compile(r"""^\s*import\s+[^'";]+?\s+from\s+['"]([^'"]+)['"]""", re.MULTILINE),
    re.compile(r"""^\s*import\s+['"]([^'"]+)['"]""", re.MULTILINE),
    re.compile(r"""^\s*export\s+[^'"\n;]*?\s+from\s+['"]([^'"]+)['"]""", re.MULTILINE),
    re.compile(r"""\brequire\(\s*['"]([^'"]+)['"]\s*\)"""),
    re.compile(r"^\s*from\s+([\w.]+)\s+import\b", re.MULTILINE),
    re.compile(r"^\s*import\s+([\w.]+)(?:\s+as\s+\w+)?\s*$", re.MULTILINE),
)

BRANCH_KEYWORDS_RE = re.compile(r"\b(?:if|else|for|while|switch|case)\b")
LOGICAL_OPERATORS = ("&&", "||")


def extract_dependencies(content: str) -> list[str]:
    """Return non-relative import specifiers in first-seen order."""
    found: list[tuple[int, str]] = []
    for pattern in IMPORT_PATTERNS:
        for match in pattern.finditer(content or ""):
            found.append((match.start(1), match.group(1)))

    dependencies: list[str] = []
    for _, specifier in sorted(found):
        if specifier.startswith((".", "/")) or specifier in dependencies:
            continue
        dependencies.append(specifier)
    return dependencies


def complexity(content: str) -> int:
    # Flat keyword and operator counts; nesting is not considered.
    text = content or ""
    branches = len(BRANCH_KEYWORDS_RE.findall(text))
    operators = sum(text.count(operator) for operator in LOGICAL_OPERATORS)
    return 1 + branches + operators


def lines_of_code(content: str) -> int:
    return len((content or "").split("\n"))


def aggregate_quality(artifacts: Iterable[Artifact]) -> float:
    """Mean quality score; unscored artifacts count as 0."""
    items = list(artifacts)
    total = sum(artifact.metadata.quality_score or 0.0 for artifact in items)
    return total / max(len(items), 1)


def aggregate_dependencies(artifacts: Iterable[Artifact]) -> frozenset[str]:
    return frozenset(dependency for artifact in artifacts for dependency in artifact.dependencies)
