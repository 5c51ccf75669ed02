from __future__ import annotations

import logging
import posixpath
from collections.abc import Iterable

from code_foundry.analysis import complexity, extract_dependencies, lines_of_code
from code_foundry.models import Artifact, ArtifactMetadata, CandidateArtifact
from code_foundry.parser import language_for_path

logger = logging.getLogger(__name__)

UI_DIRECTORY_HINTS = ("frontend", "component", "page", "view", "widget")
UI_DIRECTORY_NAMES = {"ui"}


def _clean(path: str) -> str:
    """Canonical relative form: no leading ``/``, no ``.`` or ``..`` segments."""
    cleaned = (path or "").strip().replace("\\", "/")
    if not cleaned:
        return ""
    segments = posixpath.normpath(cleaned).split("/")
    return "/".join(segment for segment in segments if segment not in ("", ".", ".."))


def _has_extension(filename: str) -> bool:
    return "." in filename and not filename.endswith(".")


def _stem(filename: str) -> str:
    return filename.split(".", 1)[0]


def _is_ui_directory(directory: str) -> bool:
    segments = [segment for segment in directory.lower().split("/") if segment]
    if any(segment in UI_DIRECTORY_NAMES for segment in segments):
        return True
    return any(hint in segment for segment in segments for hint in UI_DIRECTORY_HINTS)


def normalize_path(path: str, name: str = "", is_root: bool = False) -> str:
    """Return the canonical ``dir/filename.ext`` form of a candidate path.

    ``path`` may be a full path, a bare directory, or empty. A last segment
    that carries a dot or matches ``name`` is the filename; otherwise the path
    is a directory and ``name`` supplies the filename.
    """
    cleaned = _clean(path)
    directory, _, last = cleaned.rpartition("/")
    name = name.strip()

    if "." in last or not name or last == _stem(name):
        filename = last or name
    else:
        directory = cleaned
        filename = name

    if not filename:
        filename = "index"

    if is_root:
        return filename if _has_extension(filename) else f"{filename}.ts"

    if not _has_extension(filename):
        extension = ".tsx" if _is_ui_directory(directory) else ".ts"
        filename = f"{filename}{extension}"

    return f"{directory}/{filename}" if directory else filename


def _to_artifact(candidate: CandidateArtifact) -> Artifact:
    path = normalize_path(candidate.path, candidate.name, candidate.is_root)
    content = candidate.content
    return Artifact(
        path=path,
        name=candidate.name,
        content=content,
        language=language_for_path(path) or candidate.language,
        dependencies=frozenset(extract_dependencies(content)),
        metadata=ArtifactMetadata(
            lines_of_code=lines_of_code(content),
            complexity=complexity(content),
            renamed_from=candidate.renamed_from,
        ),
    )


def deduplicate(artifacts: Iterable[Artifact]) -> list[Artifact]:
    """Keep one artifact per path, preferring the longest stripped content.

    Ties keep the first-seen artifact. Output follows first-seen path order.
    """
    winners: dict[str, Artifact] = {}
    for artifact in artifacts:
        current = winners.get(artifact.path)
        if current is None:
            winners[artifact.path] = artifact
            continue
        if len(artifact.content.strip()) > len(current.content.strip()):
            logger.debug("duplicate %s: keeping the longer copy", artifact.path)
            winners[artifact.path] = artifact
        else:
            logger.debug("duplicate %s: discarding shorter or equal copy", artifact.path)
    return list(winners.values())


def normalize(candidates: Iterable[CandidateArtifact | Artifact]) -> list[Artifact]:
    """Canonicalize paths, attach analysis metadata, and remove duplicates.

    Already-normalized ``Artifact`` inputs only pass through path cleanup and
    deduplication, so normalizing twice yields the same list.
    """
    artifacts: list[Artifact] = []
    for item in candidates:
        if isinstance(item, Artifact):
            path = normalize_path(item.path, item.name)
            artifacts.append(item if path == item.path else item.model_copy(update={"path": path}))
        else:
            artifacts.append(_to_artifact(item))

    unique = deduplicate(artifacts)
    if len(unique) != len(artifacts):
        logger.info("deduplicated %d artifact(s) down to %d", len(artifacts), len(unique))
    return unique
