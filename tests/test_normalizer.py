from __future__ import annotations

import pytest

from code_foundry.models import CandidateArtifact, ExtractionStrategy
from code_foundry.normalizer import deduplicate, normalize, normalize_path
from code_foundry.parser import parse


def _candidate(path: str, content: str, name: str = "", is_root: bool = False) -> CandidateArtifact:
    return CandidateArtifact(
        name=name or path.rsplit("/", 1)[-1].split(".", 1)[0],
        path=path,
        content=content,
        strategy=ExtractionStrategy.TAGGED_BLOCK,
        is_root=is_root,
    )


@pytest.mark.parametrize(
    ("path", "name", "is_root", "expected"),
    [
        ("src/widgets/Foo", "Foo", False, "src/widgets/Foo.tsx"),
        ("src/services/api", "api", False, "src/services/api.ts"),
        ("src/components", "Button", False, "src/components/Button.tsx"),
        ("src/utils/helpers.ts/", "helpers", False, "src/utils/helpers.ts"),
        ("./src\\App.tsx", "App", False, "src/App.tsx"),
        ("frontend/package.json", "package", True, "package.json"),
        ("", "Foo", False, "Foo.ts"),
        ("backend/.env", "", False, "backend/.env"),
        ("../../escape.ts", "escape", False, "escape.ts"),
        ("/etc/app/config.ts", "config", False, "etc/app/config.ts"),
        ("src/../lib/util.ts", "util", False, "lib/util.ts"),
    ],
)
def test_normalize_path_given_partial_paths_when_normalized_then_canonical_path_is_returned(
    path: str,
    name: str,
    is_root: bool,
    expected: str,
) -> None:
    # Given
    # Parametrized candidate path pieces.

    # When
    normalized = normalize_path(path, name, is_root)

    # Then
    assert normalized == expected


def test_normalize_given_two_distinct_tagged_blocks_when_normalized_then_two_artifacts_are_returned(
    two_file_response,
) -> None:
    # Given
    candidates = parse(two_file_response)

    # When
    artifacts = normalize(candidates)

    # Then
    assert [artifact.path for artifact in artifacts] == ["src/components/Foo.tsx", "src/components/Bar.tsx"]
    assert artifacts[1].dependencies == frozenset({"react", "date-fns"})
    assert artifacts[0].metadata.lines_of_code == 2


def test_normalize_given_same_path_twice_when_normalized_then_longer_content_wins() -> None:
    # Given
    short = "export const App = () => null;".ljust(120)
    long = "export const App = () => <main>hello</main>;" + "\n// padding" * 30
    candidates = [_candidate("src/App.tsx", short), _candidate("src/App.tsx", long)]

    # When
    artifacts = normalize(candidates)

    # Then
    assert len(artifacts) == 1
    assert artifacts[0].content == long


def test_normalize_given_paths_differing_only_before_cleanup_when_normalized_then_they_collapse() -> None:
    # Given
    candidates = [
        _candidate("./src/App.tsx", "export const App = () => null;"),
        _candidate("src/App.tsx", "export const App = () => <div />;"),
    ]

    # When
    artifacts = normalize(candidates)

    # Then
    assert [artifact.path for artifact in artifacts] == ["src/App.tsx"]
    assert artifacts[0].content == "export const App = () => <div />;"


def test_deduplicate_given_equal_length_duplicates_when_deduplicated_then_first_seen_is_kept(
    make_artifact,
) -> None:
    # Given
    first = make_artifact("src/a.ts", "const a = 1;")
    second = make_artifact("src/a.ts", "const b = 2;")
    other = make_artifact("src/b.ts", "const c = 3;")

    # When
    unique = deduplicate([first, other, second])

    # Then
    assert unique == [first, other]


def test_deduplicate_given_whitespace_padding_when_deduplicated_then_stripped_length_is_compared(
    make_artifact,
) -> None:
    # Given
    padded = make_artifact("src/a.ts", "const a = 1;\n\n\n\n\n\n")
    longer = make_artifact("src/a.ts", "const abc = 1;")

    # When
    unique = deduplicate([padded, longer])

    # Then
    assert unique == [longer]


def test_normalize_given_normalized_artifacts_when_normalized_again_then_nothing_changes(
    two_file_response,
) -> None:
    # Given
    candidates = parse(two_file_response) + [_candidate("src/widgets/Foo", "export const Foo = 1;", name="Foo")]
    once = normalize(candidates)

    # When
    twice = normalize(once)

    # Then
    assert twice == once


def test_normalize_given_many_collisions_when_normalized_then_paths_are_unique_and_first_seen_ordered() -> None:
    # Given
    candidates = [
        _candidate("src/b.ts", "const b = 1;"),
        _candidate("src/a.ts", "const a = 1;"),
        _candidate("src/b.ts", "const bb = 22;"),
        _candidate("src/c.ts", "const c = 1;"),
        _candidate("src/a.ts", "const a = 1"),
    ]

    # When
    artifacts = normalize(candidates)

    # Then
    paths = [artifact.path for artifact in artifacts]
    assert paths == ["src/b.ts", "src/a.ts", "src/c.ts"]
    assert len(paths) == len(set(paths))
    assert artifacts[0].content == "const bb = 22;"
    assert artifacts[1].content == "const a = 1;"


def test_normalize_given_renamed_candidate_when_normalized_then_renamed_from_is_kept_in_metadata() -> None:
    # Given
    candidate = _candidate("src/components/Task.tsx", "export const Task = () => null;").model_copy(
        update={"renamed_from": "Item"}
    )

    # When
    artifacts = normalize([candidate])

    # Then
    assert artifacts[0].metadata.renamed_from == "Item"
    assert artifacts[0].language == "tsx"


def test_normalize_given_traversing_tagged_header_when_normalized_then_path_stays_relative() -> None:
    # Given
    raw = (
        "```ts:src/ok.ts\nexport const ok = true;\n```\n"
        "```ts:../../escape.ts\nexport const escape = true;\n```\n"
    )

    # When
    artifacts = normalize(parse(raw))

    # Then
    assert [artifact.path for artifact in artifacts] == ["src/ok.ts", "escape.ts"]
