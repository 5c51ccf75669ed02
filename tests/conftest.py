from __future__ import annotations

import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from code_foundry.models import Artifact, ArtifactMetadata, GenerationRequest


class StaticProvider:
    """Completion provider returning a fixed response."""

    model_name = "static"

    def __init__(self, text: str) -> None:
        self.text = text
        self.calls: list[tuple[str, int, float]] = []

    def complete(self, prompt_text: str, max_tokens: int, temperature: float) -> str:
        self.calls.append((prompt_text, max_tokens, temperature))
        return self.text


class FailingProvider:
    model_name = "failing"

    def complete(self, prompt_text: str, max_tokens: int, temperature: float) -> str:
        raise RuntimeError("provider unavailable")


@pytest.fixture
def two_file_response() -> str:
    return (
        "Here are the files.\n\n"
        "```tsx:src/components/Foo.tsx\n"
        "import React from 'react';\n"
        "export const Foo = () => <div>Foo</div>;\n"
        "```\n\n"
        "```tsx:src/components/Bar.tsx\n"
        "import React from 'react';\n"
        "import { format } from 'date-fns';\n"
        "export const Bar = () => <div>{format(new Date(), 'P')}</div>;\n"
        "```\n"
    )


@pytest.fixture
def card_request() -> GenerationRequest:
    return GenerationRequest(prompt="create a single task card component")


@pytest.fixture
def static_provider(two_file_response: str) -> StaticProvider:
    return StaticProvider(two_file_response)


@pytest.fixture
def make_artifact():
    def _make(path: str, content: str = "export const x = 1;\n", **metadata: object) -> Artifact:
        return Artifact(
            path=path,
            name=path.rsplit("/", 1)[-1].split(".", 1)[0],
            content=content,
            language="typescript",
            metadata=ArtifactMetadata(**metadata),
        )

    return _make
