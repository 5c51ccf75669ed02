from __future__ import annotations

from code_foundry.models import Complexity, GenerationRequest, ScopeDecision, ScopeKind
from code_foundry.scope import main_entity

PLACEHOLDER = "unspecified"


def build_system_prompt() -> str:
    return ("""
## Code Generation Protocol

**Role**

You are a senior TypeScript engineer generating complete, compilable source files for a web application.

**Principles**

1. Zero compilation errors: every import resolves to a generated file or a declared package.
2. Types first: define interfaces before implementation, export them as named exports.
3. Functional code only: no TODOs, no placeholders, no "implement later" comments.
4. Named exports for components (`export const Name: React.FC = ...`), `export default router` for routers.
5. Close every brace for every function, component and class.

**Output Convention**

Emit every file as its own fenced block whose header carries the language and the destination path:

```tsx:src/components/Example.tsx
export const Example = () => null;
```

Never merge two files into one block. Never omit the path.
"""
    )


def _join(values: list[str], default: str) -> str:
    cleaned = [value.strip() for value in values if value and value.strip()]
    return ", ".join(cleaned) if cleaned else default


def _scope_block(decision: ScopeDecision, entity: str) -> list[str]:
    low = decision.expected_artifact_range.min
    high = decision.expected_artifact_range.max
    lower = entity.lower()

    if decision.kind is ScopeKind.SINGLE_UNIT:
        return [
            "SCOPE: SINGLE COMPONENT (MINIMAL)",
            f"FILE COUNT: generate between {low} and {high} files, no more.",
            "Required files:",
            f"  1. src/components/{entity}/{entity}.tsx (the component)",
            f"  2. src/components/{entity}/{entity}.types.ts (props interface)",
            f"  3. src/components/{entity}/{entity}.mock.ts (mock data, optional)",
            f"  4. src/components/{entity}/{entity}.styles.css (styles, optional)",
            "Do NOT generate: App.tsx, index.tsx, routing, API services, backend code, other components.",
        ]
    if decision.kind is ScopeKind.BACKEND:
        return [
            "SCOPE: BACKEND API ONLY (NO FRONTEND)",
            f"FILE COUNT: generate between {low} and {high} backend files.",
            "Required structure:",
            "  src/server.ts (entry point), src/app.ts (express app, middleware, routes)",
            f"  src/routes/{lower}.routes.ts, src/controllers/{lower}.controller.ts",
            f"  src/services/{lower}.service.ts, src/middleware/error.middleware.ts",
            f"  src/types/{lower}.types.ts, src/validators/{lower}.validator.ts",
            "Do NOT generate: React components, .tsx files, pages, any UI code.",
        ]
    if decision.kind is ScopeKind.DATABASE:
        return [
            "SCOPE: DATABASE LAYER",
            f"FILE COUNT: generate between {low} and {high} files.",
            "Required files: prisma/schema.prisma, src/db/client.ts, one repository module per entity,",
            "seed data script, shared type definitions.",
            "Do NOT generate: UI code, HTTP routing.",
        ]
    if decision.kind is ScopeKind.FULLSTACK:
        return [
            "SCOPE: FULL-STACK APPLICATION (COMPLEX)",
            f"FILE COUNT: generate between {low} and {high} files (MINIMUM {low}).",
            "Required areas:",
            "  frontend/src/index.tsx, frontend/src/App.tsx, pages, components, hooks, services/api.ts",
            f"  backend/src/server.ts, backend/src/app.ts, routes/{lower}.routes.ts, controllers, middleware",
            "  types/index.ts shared between frontend and backend",
            "  prisma/schema.prisma for the database models",
            "  frontend/package.json and backend/package.json",
            "Every file referenced by an import MUST be generated.",
        ]
    if decision.kind is ScopeKind.PAGE:
        return [
            "SCOPE: PAGE (MODERATE COMPLEXITY)",
            f"FILE COUNT: generate between {low} and {high} files.",
            f"Required files: src/pages/{entity}Page.tsx plus its section components under src/components/,",
            "shared types, mock data, styles.",
            "Do NOT generate: backend code, API servers, database schemas.",
        ]
    return [
        "SCOPE: FEATURE (MODERATE COMPLEXITY)",
        f"FILE COUNT: generate between {low} and {high} files.",
        f"Required files: src/components/{entity}/ with the main component, list/form/detail",
        "sub-components, a types file, a hook for state, mock data and styles.",
        "Do NOT generate: backend code, API servers, database schemas.",
    ]


def _mandatory_files(decision: ScopeDecision, entity: str, include_tests: bool) -> list[str]:
    if decision.complexity is Complexity.SIMPLE:
        return [
            f"1. {entity}.tsx - main component file",
            f"2. {entity}.types.ts - TypeScript interfaces",
            f"3. {entity}.mock.ts - mock data for preview",
        ]
    if decision.complexity is Complexity.MODERATE:
        tests = "(REQUIRED)" if include_tests else "(optional)"
        return [
            f"1. {entity}.tsx - main component file",
            f"2. {entity}.types.ts - TypeScript interfaces",
            f"3. {entity}.styles.css - component styles",
            f"4. {entity}.mock.ts - mock data for preview",
            f"5. {entity}.test.tsx - unit tests {tests}",
        ]
    lines = [
        "- multiple component or module files",
        "- shared types and interfaces",
        "- utilities and helpers",
        "- mock or seed data",
    ]
    if include_tests:
        lines.append("- tests for every service and component")
    return lines


def compose(request: GenerationRequest, decision: ScopeDecision) -> str:
    """Build the instruction payload sent to the completion provider.

    Pure and deterministic: the same request and decision always produce the
    same text. Missing fields render as a placeholder.
    """
    entity = main_entity(request) or PLACEHOLDER
    context = request.context
    low = decision.expected_artifact_range.min
    high = decision.expected_artifact_range.max

    lines = [
        f'USER REQUEST: "{request.prompt or PLACEHOLDER}"',
        "",
        *_scope_block(decision, entity),
        "",
        f"MAIN ENTITY: {entity}",
        f"ENTITIES: {_join(request.entities, 'general entities')}",
        f"ACTIONS: {_join(request.actions, 'standard actions')}",
        f"FRAMEWORK: {request.framework or 'react'}",
        f"DOMAIN: {(context.domain if context else None) or PLACEHOLDER}",
        f"STYLE: {(context.style if context else None) or PLACEHOLDER}",
        f"COMPLEXITY: {decision.complexity.value}",
        "",
        f"YOU MUST GENERATE BETWEEN {low} AND {high} FILES.",
        "Mandatory files:",
        *_mandatory_files(decision, entity, request.include_tests),
        "",
        "OUTPUT FORMAT: one fenced block per file, header `<language>:<path>`, for example",
        f"```tsx:src/components/{entity}.tsx",
        "Do not add prose between blocks.",
    ]
    return "\n".join(lines) + "\n"
