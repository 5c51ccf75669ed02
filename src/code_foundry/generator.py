"""Completion providers: the Gemini adapter and an offline deterministic one."""

from __future__ import annotations

import os
import random
import re
from pathlib import Path

from code_foundry.models import CandidateArtifact, ExtractionStrategy, GenerationRequest
from code_foundry.prompting import build_system_prompt
from code_foundry.scope import main_entity

DEFAULT_GEMINI_KEY_FILE = Path(".api_keys/Gemini.md")

MAIN_ENTITY_RE = re.compile(r"^MAIN ENTITY:\s*(\w+)", re.MULTILINE)
SCOPE_LINE_RE = re.compile(r"^SCOPE:\s*(.+)$", re.MULTILINE)


def resolve_gemini_api_key(key_file: Path = DEFAULT_GEMINI_KEY_FILE) -> str | None:
    """Resolve the Gemini API key from environment or fallback file.

    Resolution order:
    1. ``GEMINI_API_KEY`` environment variable.
    2. ``key_file`` plaintext contents.

    Args:
        key_file: Optional fallback file containing only the API key.

    Returns:
        The non-empty API key when found, otherwise ``None``.
    """
    api_key = (os.getenv("GEMINI_API_KEY") or "").strip()
    if api_key:
        return api_key

    if key_file.exists():
        fallback_key = key_file.read_text(encoding="utf-8").strip()
        if fallback_key:
            return fallback_key

    return None


class GeminiGenerator:
    """Thin adapter around Google GenAI content generation."""

    def __init__(self, model_name: str, system_prompt: str | None = None):
        """Create a generator bound to a model name."""
        self.model_name = model_name
        self.system_prompt = system_prompt or build_system_prompt()

    def complete(self, prompt_text: str, max_tokens: int, temperature: float) -> str:
        """Generate source files for a composed prompt.

        Args:
            prompt_text: Instruction payload from the prompt composer.
            max_tokens: Output token ceiling for this call.
            temperature: Sampling temperature.

        Returns:
            Raw text response from Gemini.

        Raises:
            ValueError: If the prompt is blank.
            RuntimeError: If credentials are missing or response text is empty.
        """
        if not isinstance(prompt_text, str) or not prompt_text.strip():
            raise ValueError("Prompt must be a non-empty string.")

        api_key = resolve_gemini_api_key()
        if not api_key:
            raise RuntimeError("Missing GEMINI_API_KEY (set env var or .api_keys/Gemini.md)")

        from google import genai
        from google.genai import types

        client = genai.Client(api_key=api_key)
        response = client.models.generate_content(
            model=self.model_name,
            contents=prompt_text,
            config=types.GenerateContentConfig(
                system_instruction=self.system_prompt,
                temperature=temperature,
                top_p=0.95,
                max_output_tokens=max_tokens,
            ),
        )

        text = (response.text or "").strip()
        if not text:
            raise RuntimeError("Gemini returned an empty response")
        return text


class LocalGenerator:
    """Produce tagged blocks deterministically without external model calls.

    The entity and scope are read back out of the composed prompt, so the
    output follows the same file layout the prompt asks for.
    """

    model_name = "local"

    ACCENTS = ("#2563eb", "#16a34a", "#db2777", "#ea580c", "#7c3aed")

    def __init__(self, seed: int = 0):
        self.seed = seed

    def complete(self, prompt_text: str, max_tokens: int = 0, temperature: float = 0.0) -> str:
        if not isinstance(prompt_text, str) or not prompt_text.strip():
            raise ValueError("Prompt must be a non-empty string.")

        entity_match = MAIN_ENTITY_RE.search(prompt_text)
        entity = entity_match.group(1) if entity_match else "App"
        scope_match = SCOPE_LINE_RE.search(prompt_text)
        scope_line = scope_match.group(1) if scope_match else ""

        if "BACKEND" in scope_line:
            return _backend_blocks(entity)

        rng = random.Random(self.seed)
        accent = rng.choice(self.ACCENTS)
        blocks = _component_blocks(entity, accent)
        if "SINGLE COMPONENT" not in scope_line:
            blocks += _feature_blocks(entity)
        return blocks


def _block(language: str, path: str, body: str) -> str:
    return f"```{language}:{path}\n{body.strip()}\n```\n"


def _component_blocks(entity: str, accent: str) -> str:
    base = f"src/components/{entity}/{entity}"
    lower = entity[:1].lower() + entity[1:]
    return "\n".join(
        [
            _block(
                "tsx",
                f"{base}.tsx",
                f"""
import React from 'react';
import {{ {entity}Props }} from './{entity}.types';
import './{entity}.styles.css';

export const {entity}: React.FC<{entity}Props> = ({{ title, description, onSelect }}) => {{
  return (
    <div className="{lower}" onClick={{() => onSelect && onSelect(title)}}>
      <h3 className="{lower}__title">{{title}}</h3>
      {{description && <p className="{lower}__description">{{description}}</p>}}
    </div>
  );
}};

export default {entity};
""",
            ),
            _block(
                "typescript",
                f"{base}.types.ts",
                f"""
export interface {entity}Props {{
  title: string;
  description?: string;
  onSelect?: (title: string) => void;
}}
""",
            ),
            _block(
                "typescript",
                f"{base}.mock.ts",
                f"""
import {{ {entity}Props }} from './{entity}.types';

export const mock{entity}: {entity}Props = {{
  title: 'Sample {entity}',
  description: 'Generated offline for preview.',
}};
""",
            ),
            _block(
                "css",
                f"{base}.styles.css",
                f"""
.{lower} {{
  border: 1px solid {accent};
  border-radius: 8px;
  padding: 16px;
}}

.{lower}__title {{
  margin: 0 0 8px;
}}
""",
            ),
        ]
    )


def _feature_blocks(entity: str) -> str:
    lower = entity[:1].lower() + entity[1:]
    return "\n" + "\n".join(
        [
            _block(
                "typescript",
                f"src/hooks/use{entity}List.ts",
                f"""
import {{ useState }} from 'react';
import {{ {entity}Props }} from '../components/{entity}/{entity}.types';

export function use{entity}List(initial: {entity}Props[] = []) {{
  const [items, setItems] = useState<{entity}Props[]>(initial);
  const add = (item: {entity}Props) => setItems((current) => [...current, item]);
  const remove = (title: string) => setItems((current) => current.filter((entry) => entry.title !== title));
  return {{ items, add, remove }};
}}
""",
            ),
            _block(
                "tsx",
                f"src/components/{entity}/{entity}List.tsx",
                f"""
import React from 'react';
import {{ {entity} }} from './{entity}';
import {{ use{entity}List }} from '../../hooks/use{entity}List';
import {{ mock{entity} }} from './{entity}.mock';

export const {entity}List: React.FC = () => {{
  const {{ items }} = use{entity}List([mock{entity}]);
  return (
    <div className="{lower}-list">
      {{items.map((item) => (
        <{entity} key={{item.title}} {{...item}} />
      ))}}
    </div>
  );
}};
""",
            ),
            _block(
                "tsx",
                f"src/components/{entity}/{entity}.test.tsx",
                f"""
import React from 'react';
import {{ render, screen }} from '@testing-library/react';
import {{ {entity} }} from './{entity}';

test('renders the {lower} title', () => {{
  render(<{entity} title="Hello" />);
  expect(screen.getByText('Hello')).toBeTruthy();
}});
""",
            ),
        ]
    )


def _backend_blocks(entity: str) -> str:
    lower = entity.lower()
    return "\n".join(
        [
            _block(
                "typescript",
                "src/server.ts",
                """
import app from './app';

const port = Number(process.env.PORT || 3000);
app.listen(port, () => console.log(`listening on ${port}`));
""",
            ),
            _block(
                "typescript",
                "src/app.ts",
                f"""
import express from 'express';
import {lower}Router from './routes/{lower}.routes';

const app = express();
app.use(express.json());
app.use('/api/{lower}s', {lower}Router);

export default app;
""",
            ),
            _block(
                "typescript",
                f"src/routes/{lower}.routes.ts",
                f"""
import {{ Router }} from 'express';
import {{ list{entity}s, create{entity} }} from '../controllers/{lower}.controller';

const router = Router();
router.get('/', list{entity}s);
router.post('/', create{entity});

export default router;
""",
            ),
            _block(
                "typescript",
                f"src/controllers/{lower}.controller.ts",
                f"""
import {{ Request, Response }} from 'express';
import {{ {lower}Service }} from '../services/{lower}.service';

export function list{entity}s(req: Request, res: Response) {{
  res.json({lower}Service.list());
}}

export function create{entity}(req: Request, res: Response) {{
  if (!req.body || !req.body.name) {{
    res.status(400).json({{ error: 'name is required' }});
    return;
  }}
  res.status(201).json({lower}Service.create(req.body.name));
}}
""",
            ),
            _block(
                "typescript",
                f"src/services/{lower}.service.ts",
                f"""
export interface {entity}Record {{
  id: number;
  name: string;
}}

const records: {entity}Record[] = [];

export const {lower}Service = {{
  list: () => records,
  create: (name: string) => {{
    const record = {{ id: records.length + 1, name }};
    records.push(record);
    return record;
  }},
}};
""",
            ),
        ]
    )


def fallback_artifact(request: GenerationRequest) -> CandidateArtifact:
    """Single placeholder component used when the provider call fails."""
    entity = main_entity(request)
    content = f"""import React from 'react';

export const App: React.FC = () => {{
  return (
    <div className="app">
      <h1>{entity}</h1>
      <p>Generation failed. This placeholder was produced locally.</p>
    </div>
  );
}};

export default App;
"""
    return CandidateArtifact(
        name="App",
        path="src/App.tsx",
        content=content,
        language="tsx",
        strategy=ExtractionStrategy.SYNTHETIC,
    )
