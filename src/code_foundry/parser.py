"""Recover file artifacts from raw completion text.

The parser walks an ordered cascade of extraction strategies and stops at the
first one that yields a candidate. Each strategy produces its own match type;
``to_candidate`` is the single place where a match becomes a
``CandidateArtifact``.
"""

from __future__ import annotations

import itertools
import json
import logging
import re
from collections.abc import Callable
from typing import Any, Union

from pydantic import BaseModel, ConfigDict

from code_foundry.models import CandidateArtifact, ExtractionStrategy

logger = logging.getLogger(__name__)

GENERIC_NAMES = frozenset({"Item", "Component", "Element", "Widget"})
DEFAULT_BLOB_NAME = "App"

LANGUAGE_BY_EXT = {
    ".py": "python",
    ".js": "javascript",
    ".ts": "typescript",
    ".tsx": "tsx",
    ".jsx": "jsx",
    ".go": "go",
    ".java": "java",
    ".rb": "ruby",
    ".php": "php",
    ".sh": "bash",
    ".sql": "sql",
    ".prisma": "prisma",
    ".html": "html",
    ".css": "css",
    ".scss": "scss",
    ".md": "markdown",
    ".json": "json",
    ".yml": "yaml",
    ".yaml": "yaml",
    ".env": "dotenv",
    ".example": "dotenv",
}

LANGUAGE_ALIASES = {
    "ts": "typescript",
    "js": "javascript",
    "py": "python",
    "sh": "bash",
    "shell": "bash",
    "md": "markdown",
    "yml": "yaml",
}

EXTENSION_BY_LANGUAGE = {
    "tsx": "tsx",
    "typescript": "ts",
    "jsx": "jsx",
    "javascript": "js",
    "python": "py",
    "css": "css",
    "scss": "scss",
    "html": "html",
    "json": "json",
    "sql": "sql",
    "prisma": "prisma",
    "markdown": "md",
    "yaml": "yml",
    "bash": "sh",
}

TAGGED_BLOCK_RE = re.compile(
    r"^```[ \t]*(?:component:(?P<name>\w+):)?(?P<lang>[\w+#.-]+):(?P<path>[^\s`]+)[ \t]*\r?\n"
    r"(?P<body>.*?)^[ \t]*```[ \t]*$",
    re.MULTILINE | re.DOTALL,
)

GENERIC_FENCE_RE = re.compile(
    r"^```[ \t]*(?P<lang>[\w+#.-]*)[^\n]*\r?\n(?P<body>.*?)^[ \t]*```[ \t]*$",
    re.MULTILINE | re.DOTALL,
)

FENCE_LINE_RE = re.compile(r"^[ \t]*```.*$\n?", re.MULTILINE)

PATH_MARKER_RE = re.compile(
    r"^[ \t]*(?://|#|--)[ \t]*"
    r"(?:(?:file|path)[ \t]*:[ \t]*(?P<labeled>[\w./-]+\.[A-Za-z]\w*)"
    r"|(?P<bare>(?:[\w.-]+/)+[\w.-]+\.[A-Za-z]\w*))"
    r"[ \t]*$",
    re.MULTILINE | re.IGNORECASE,
)

FIRST_LINE_PATH_RE = re.compile(
    r"^[ \t]*(?://|#|--)[ \t]*(?:(?:file|path)[ \t]*:[ \t]*)?(?P<path>[\w./-]*[\w-]\.[A-Za-z]\w*)[ \t]*$",
    re.IGNORECASE,
)

DECLARATION_RE = re.compile(
    r"^(?:export\s+default\s+function\s+(?P<default_fn>\w+)"
    r"|export\s+(?:async\s+)?function\s+(?P<fn>\w+)"
    r"|export\s+const\s+(?P<const>\w+)"
    r"|export\s+(?:default\s+)?class\s+(?P<cls>\w+)"
    r"|const\s+(?P<fc>\w+)\s*:\s*React\.FC)",
    re.MULTILINE,
)

NAME_PATTERNS = (
    re.compile(r"export\s+default\s+(?:async\s+)?function\s+(\w+)"),
    re.compile(r"export\s+(?:async\s+)?(?:function|const|class)\s+(\w+)"),
    re.compile(r"^(?:const|let)\s+(\w+)\s*:\s*React\.FC", re.MULTILINE),
    re.compile(r"^class\s+(\w+)", re.MULTILINE),
    re.compile(r"^def\s+(\w+)", re.MULTILINE),
)

JSX_SIGNALS = (
    re.compile(r"\bimport\s+React\b"),
    re.compile(r"from\s+['\"]react['\"]"),
    re.compile(r"<div[^>]*>"),
    re.compile(r"return\s*\(\s*<"),
)

JSON_FENCE_RE = re.compile(r"^```(?:json)?\s*(.*?)\s*```$", re.DOTALL)

JSON_SINGLE_KEYS = {"server": "src/server.ts", "app": "src/app.ts"}
JSON_ARRAY_KEYS = (
    "files",
    "controllers",
    "services",
    "middleware",
    "models",
    "routes",
    "config",
    "utils",
    "validators",
)


class ParseHint(BaseModel):
    """Request-derived context the parser uses for naming and thresholds."""

    model_config = ConfigDict(frozen=True)

    prompt: str = ""
    entity: str | None = None
    language: str = "tsx"
    min_content_length: int = 10


class NameSequence:
    """Request-scoped generator of fallback names: Component, Component2, ..."""

    def __init__(self, base: str = "Component") -> None:
        self.base = base
        self._counter = itertools.count(1)

    def next(self) -> str:
        index = next(self._counter)
        return self.base if index == 1 else f"{self.base}{index}"


class TaggedBlockMatch(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str | None
    language: str
    path: str
    body: str


class PathCommentMatch(BaseModel):
    model_config = ConfigDict(frozen=True)

    path: str
    body: str


class FencedBlockMatch(BaseModel):
    model_config = ConfigDict(frozen=True)

    language: str | None
    path: str | None
    body: str


class JsonManifestMatch(BaseModel):
    model_config = ConfigDict(frozen=True)

    path: str
    name: str | None
    body: str
    is_root: bool = False


class SymbolBoundaryMatch(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    body: str
    whole_text: bool


class WholeBlobMatch(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    body: str


StrategyMatch = Union[
    TaggedBlockMatch,
    PathCommentMatch,
    FencedBlockMatch,
    JsonManifestMatch,
    SymbolBoundaryMatch,
    WholeBlobMatch,
]


def strip_fences(text: str) -> str:
    """Drop every Markdown fence line, keeping the code between them."""
    return FENCE_LINE_RE.sub("", text).strip()


def _strip_json_fence(text: str) -> str:
    """Remove a surrounding Markdown JSON code fence when present."""
    fenced = JSON_FENCE_RE.match(text)
    if fenced:
        return fenced.group(1).strip()
    return text.strip()


def language_for_path(path: str) -> str | None:
    filename = path.rsplit("/", 1)[-1]
    if "." not in filename:
        return None
    suffix = "." + filename.rsplit(".", 1)[-1].lower()
    return LANGUAGE_BY_EXT.get(suffix)


def _normalize_language(tag: str | None) -> str | None:
    if not tag:
        return None
    lowered = tag.strip().lower()
    return LANGUAGE_ALIASES.get(lowered, lowered) or None


def _looks_like_jsx(code: str) -> bool:
    return any(pattern.search(code) for pattern in JSX_SIGNALS)


def _extension_for(language: str | None, body: str) -> str:
    extension = EXTENSION_BY_LANGUAGE.get(language or "", "tsx")
    if extension == "ts" and _looks_like_jsx(body):
        return "tsx"
    if extension == "js" and _looks_like_jsx(body):
        return "jsx"
    return extension


def infer_name(path: str, content: str, names: NameSequence) -> str:
    """Filename stem, then declaration headers, then the next generic name."""
    filename = path.rsplit("/", 1)[-1] if path else ""
    stem = filename.split(".", 1)[0] if filename else ""
    if stem:
        return stem

    for pattern in NAME_PATTERNS:
        found = pattern.search(content)
        if found:
            return found.group(1)

    return names.next()


def _tagged_blocks(text: str) -> list[TaggedBlockMatch]:
    return [
        TaggedBlockMatch(
            name=match.group("name"),
            language=match.group("lang"),
            path=match.group("path").strip(),
            body=match.group("body"),
        )
        for match in TAGGED_BLOCK_RE.finditer(text)
    ]


def _path_comments(text: str) -> list[PathCommentMatch]:
    markers = list(PATH_MARKER_RE.finditer(text))
    matches: list[PathCommentMatch] = []
    for current, following in itertools.zip_longest(markers, markers[1:]):
        end = following.start() if following else len(text)
        path = current.group("labeled") or current.group("bare")
        matches.append(PathCommentMatch(path=path, body=strip_fences(text[current.end():end])))
    return matches


def _load_manifest(text: str) -> dict[str, Any] | None:
    """Parse ``text`` as a JSON object that lists files, else ``None``."""
    candidate = _strip_json_fence(text)
    if not (candidate.startswith("{") and candidate.endswith("}")):
        return None
    try:
        data = json.loads(candidate)
    except json.JSONDecodeError:
        return None
    if not isinstance(data, dict):
        return None
    if not any(key in data for key in (*JSON_SINGLE_KEYS, *JSON_ARRAY_KEYS)):
        return None
    return data


def _fenced_blocks(text: str) -> list[FencedBlockMatch]:
    matches: list[FencedBlockMatch] = []
    for match in GENERIC_FENCE_RE.finditer(text):
        body = match.group("body")
        if _load_manifest(body) is not None:
            continue
        first_line, _, rest = body.partition("\n")
        path_comment = FIRST_LINE_PATH_RE.match(first_line)
        if path_comment:
            matches.append(
                FencedBlockMatch(language=match.group("lang") or None, path=path_comment.group("path"), body=rest)
            )
        else:
            matches.append(FencedBlockMatch(language=match.group("lang") or None, path=None, body=body))
    return matches


def _json_item(item: Any, default_dir: str) -> JsonManifestMatch | None:
    if not isinstance(item, dict):
        return None
    content = item.get("content") or item.get("code")
    if not isinstance(content, str):
        return None
    name = item.get("name") or item.get("filename")
    directory = str(item.get("path") or item.get("directory") or "")
    if directory and name and not directory.endswith(str(name)):
        path = f"{directory.rstrip('/')}/{name}"
    elif directory:
        path = directory
    elif name:
        path = f"{default_dir}/{name}" if default_dir else str(name)
    else:
        return None
    metadata = item.get("metadata") if isinstance(item.get("metadata"), dict) else {}
    is_root = bool(item.get("isRoot") or item.get("is_root") or metadata.get("isRoot"))
    stem = str(name).split(".", 1)[0] if name else None
    return JsonManifestMatch(path=path, name=stem, body=content, is_root=is_root)


def _find_manifest(text: str) -> dict[str, Any] | None:
    data = _load_manifest(text)
    if data is not None:
        return data
    for fence in GENERIC_FENCE_RE.finditer(text):
        data = _load_manifest(fence.group("body"))
        if data is not None:
            return data
    return None


def _json_manifest(text: str) -> list[JsonManifestMatch]:
    data = _find_manifest(text)
    if data is None:
        return []

    matches: list[JsonManifestMatch] = []
    for key, path in JSON_SINGLE_KEYS.items():
        value = data.get(key)
        if isinstance(value, str):
            matches.append(JsonManifestMatch(path=path, name=key.capitalize(), body=value))
    for key in JSON_ARRAY_KEYS:
        items = data.get(key)
        if not isinstance(items, list):
            continue
        default_dir = "" if key == "files" else f"src/{key}"
        for item in items:
            match = _json_item(item, default_dir)
            if match is not None:
                matches.append(match)
    return matches


def _declaration_name(match: re.Match[str]) -> str:
    return next(value for value in match.groupdict().values() if value)


def _symbol_boundaries(text: str) -> list[SymbolBoundaryMatch]:
    if "```" in text:
        return []
    boundaries = list(DECLARATION_RE.finditer(text))
    if len(boundaries) == 1:
        return [SymbolBoundaryMatch(name=_declaration_name(boundaries[0]), body=text.strip(), whole_text=True)]

    matches: list[SymbolBoundaryMatch] = []
    for current, following in itertools.zip_longest(boundaries, boundaries[1:]):
        end = following.start() if following else len(text)
        matches.append(
            SymbolBoundaryMatch(name=_declaration_name(current), body=text[current.start():end].strip(), whole_text=False)
        )
    return matches


def _whole_blob(text: str, hint: ParseHint) -> list[WholeBlobMatch]:
    body = strip_fences(text) or text.strip()
    name = hint.entity if hint.entity and hint.entity not in GENERIC_NAMES else DEFAULT_BLOB_NAME
    return [WholeBlobMatch(name=name, body=body)]


def to_candidate(match: StrategyMatch, hint: ParseHint, names: NameSequence) -> CandidateArtifact:
    """Map any strategy match onto a ``CandidateArtifact``."""
    if isinstance(match, TaggedBlockMatch):
        body = match.body.strip("\n")
        name = match.name or infer_name(match.path, body, names)
        language = language_for_path(match.path) or _normalize_language(match.language) or hint.language
        return CandidateArtifact(
            name=name, path=match.path, content=body, language=language, strategy=ExtractionStrategy.TAGGED_BLOCK
        )

    if isinstance(match, PathCommentMatch):
        return CandidateArtifact(
            name=infer_name(match.path, match.body, names),
            path=match.path,
            content=match.body,
            language=language_for_path(match.path) or hint.language,
            strategy=ExtractionStrategy.PATH_COMMENT,
        )

    if isinstance(match, FencedBlockMatch):
        body = match.body.strip("\n")
        fence_language = _normalize_language(match.language)
        if match.path:
            name = infer_name(match.path, body, names)
            path = match.path
        else:
            name = infer_name("", body, names)
            extension = _extension_for(fence_language or hint.language, body)
            directory = "src/components" if extension in {"tsx", "jsx"} else "src"
            path = f"{directory}/{name}.{extension}"
        return CandidateArtifact(
            name=name,
            path=path,
            content=body,
            language=language_for_path(path) or fence_language or hint.language,
            strategy=ExtractionStrategy.FENCED_BLOCK,
        )

    if isinstance(match, JsonManifestMatch):
        return CandidateArtifact(
            name=match.name or infer_name(match.path, match.body, names),
            path=match.path,
            content=match.body,
            language=language_for_path(match.path) or hint.language,
            strategy=ExtractionStrategy.JSON_MANIFEST,
            is_root=match.is_root,
        )

    if isinstance(match, SymbolBoundaryMatch):
        directory = "src" if match.whole_text else "src/components"
        extension = _extension_for(hint.language, match.body)
        path = f"{directory}/{match.name}.{extension}"
        return CandidateArtifact(
            name=match.name,
            path=path,
            content=match.body,
            language=language_for_path(path) or hint.language,
            strategy=ExtractionStrategy.SYMBOL_BOUNDARY,
        )

    path = f"src/{match.name}.{_extension_for(hint.language, match.body)}"
    return CandidateArtifact(
        name=match.name,
        path=path,
        content=match.body,
        language=language_for_path(path) or hint.language,
        strategy=ExtractionStrategy.WHOLE_BLOB,
    )


STRATEGIES: list[tuple[ExtractionStrategy, Callable[[str], list[Any]]]] = [
    (ExtractionStrategy.TAGGED_BLOCK, _tagged_blocks),
    (ExtractionStrategy.PATH_COMMENT, _path_comments),
    (ExtractionStrategy.FENCED_BLOCK, _fenced_blocks),
    (ExtractionStrategy.JSON_MANIFEST, _json_manifest),
    (ExtractionStrategy.SYMBOL_BOUNDARY, _symbol_boundaries),
]


def _rename_generic(candidates: list[CandidateArtifact], entity: str | None) -> list[CandidateArtifact]:
    """Give generically named candidates the request's main entity name.

    A rename is skipped when it would land on a path another candidate holds.
    """
    if not entity or entity in GENERIC_NAMES:
        return candidates

    taken = {candidate.path for candidate in candidates}
    renamed: list[CandidateArtifact] = []
    for candidate in candidates:
        if candidate.name not in GENERIC_NAMES or candidate.name == entity:
            renamed.append(candidate)
            continue

        old = re.escape(candidate.name)
        new_path = re.sub(rf"(?<![\w.]){old}(?=\b|Props\b)", entity, candidate.path)
        if new_path != candidate.path and new_path in taken:
            renamed.append(candidate)
            continue

        taken.discard(candidate.path)
        taken.add(new_path)
        logger.debug("renamed generic candidate %s -> %s", candidate.name, entity)
        renamed.append(
            candidate.model_copy(
                update={
                    "name": entity,
                    "path": new_path,
                    "content": re.sub(rf"(?<![\w.]){old}(?=\b|Props\b)", entity, candidate.content),
                    "renamed_from": candidate.name,
                }
            )
        )
    return renamed


def parse(raw_text: str, hint: ParseHint | None = None, names: NameSequence | None = None) -> list[CandidateArtifact]:
    """Extract candidate artifacts from raw completion text.

    Strategies run in order and the cascade stops at the first one that yields
    at least one candidate above the minimum content length. When none does,
    the whole text becomes a single candidate, so the result is never empty.

    Args:
        raw_text: Untrusted provider response.
        hint: Naming and threshold context derived from the request.
        names: Request-scoped fallback name generator.

    Returns:
        One or more candidates in source order.
    """
    hint = hint or ParseHint()
    names = names or NameSequence()
    text = (raw_text or "").replace("\r\n", "\n")

    for strategy, extract in STRATEGIES:
        matches = [
            match for match in extract(text) if len(match.body.strip()) >= hint.min_content_length
        ]
        if not matches:
            logger.debug("strategy %s found nothing", strategy.value)
            continue
        candidates = [to_candidate(match, hint, names) for match in matches]
        logger.info("strategy %s extracted %d candidate(s)", strategy.value, len(candidates))
        return _rename_generic(candidates, hint.entity)

    logger.info("no strategy matched; using the whole response as one candidate")
    return [to_candidate(match, hint, names) for match in _whole_blob(text, hint)]
