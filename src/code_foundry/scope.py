"""Lexical scope classification for generation requests.

Rules are evaluated in priority order and the first match wins. An upstream
intent hint can override the lexical result when it is more confident.
"""

from __future__ import annotations

import logging
import re

from code_foundry.models import (
    ArtifactRange,
    Complexity,
    GenerationRequest,
    ScopeDecision,
    ScopeKind,
)

logger = logging.getLogger(__name__)

DEFAULT_CONFIDENCE = 0.6

# kind -> (complexity, range, frontend, backend, database)
SCOPE_PROFILES: dict[ScopeKind, tuple[Complexity, tuple[int, int], bool, bool, bool]] = {
    ScopeKind.SINGLE_UNIT: (Complexity.SIMPLE, (2, 4), True, False, False),
    ScopeKind.FEATURE: (Complexity.MODERATE, (6, 12), True, False, False),
    ScopeKind.PAGE: (Complexity.MODERATE, (6, 12), True, False, False),
    ScopeKind.BACKEND: (Complexity.COMPLEX, (8, 15), False, True, False),
    ScopeKind.FULLSTACK: (Complexity.COMPLEX, (25, 40), True, True, True),
    ScopeKind.DATABASE: (Complexity.COMPLEX, (4, 10), False, True, True),
}

INTENT_SCOPES = {
    "create_component": ScopeKind.SINGLE_UNIT,
    "create_api": ScopeKind.BACKEND,
    "create_database": ScopeKind.DATABASE,
    "create_app": ScopeKind.FULLSTACK,
    "create_ui": ScopeKind.PAGE,
}


def _patterns(*pairs: tuple[str, str]) -> list[tuple[str, re.Pattern[str]]]:
    return [(label, re.compile(pattern, re.IGNORECASE)) for label, pattern in pairs]


SINGLE_UNIT_PATTERNS = _patterns(
    ("single component", r"\bsingle\b(?:\s+[\w-]+){0,3}\s+component\b"),
    ("just a", r"\bjust (?:a|an|one)\b"),
    ("only one", r"\bonly (?:a|an|one)\b"),
    ("a component", r"\b(?:a|an|one)\s+(?:[\w-]+\s+){0,3}component\b"),
    ("ui element", r"\b(?:button|card|modal|tooltip|badge|avatar|dropdown|toggle|spinner|input field)\b"),
)

APP_LEVEL_PATTERN = re.compile(
    r"\b(?:app|application|api|backend|database|full[- ]?stack|system|server|website|site|dashboard|page)\b",
    re.IGNORECASE,
)

BACKEND_PATTERNS = _patterns(
    ("api", r"\bapis?\b"),
    ("rest", r"\brest(?:ful)?\b"),
    ("endpoint", r"\bendpoints?\b"),
    ("route", r"\broutes?\b"),
    ("controller", r"\bcontrollers?\b"),
    ("middleware", r"\bmiddlewares?\b"),
    ("express", r"\bexpress\b"),
    ("server", r"\bserver\b"),
    ("backend", r"\bback[- ]?end\b"),
    ("crud", r"\bcrud\b"),
    ("jwt", r"\bjwt\b"),
)

FRONTEND_PATTERNS = _patterns(
    ("frontend", r"\bfront[- ]?end\b"),
    ("ui", r"\bui\b"),
    ("react", r"\breact\b"),
    ("component", r"\bcomponents?\b"),
    ("page", r"\bpages?\b"),
    ("dashboard", r"\bdashboard\b"),
    ("interface", r"\binterface\b"),
    ("screen", r"\bscreens?\b"),
    ("form", r"\bforms?\b"),
)

NO_FRONTEND_PATTERNS = _patterns(
    ("no frontend", r"\b(?:no|without)\s+(?:a\s+)?(?:front[- ]?end|ui)\b"),
    ("backend only", r"\b(?:back[- ]?end|api)[- ]only\b"),
    ("headless", r"\bheadless\b"),
)

DATABASE_PATTERN = re.compile(
    r"\b(?:database|db|prisma|postgres(?:ql)?|mongo(?:db)?|mysql|sqlite)\b",
    re.IGNORECASE,
)

FULLSTACK_PATTERNS = _patterns(
    ("full stack", r"\bfull[- ]?stack\b"),
    ("complete app", r"\bcomplete\s+(?:web\s+)?app(?:lication)?\b"),
    ("database", r"\bdatabase\b"),
    ("frontend and backend", r"\bfront[- ]?end\s*(?:and|\+|&)\s*back[- ]?end\b"),
    ("e-commerce", r"\be-?commerce\b"),
)

PAGE_PATTERNS = _patterns(
    ("landing page", r"\blanding[- ]page\b"),
    ("dashboard", r"\bdashboard\b"),
    ("admin panel", r"\badmin panel\b"),
    ("hero section", r"\bhero section\b"),
    ("homepage", r"\bhome ?page\b"),
    ("page", r"\bpage\b"),
    ("charts", r"\b(?:charts?|analytics)\b"),
)

ENTITY_KEYWORDS = {
    "button": "Button",
    "card": "Card",
    "modal": "Modal",
    "dialog": "Dialog",
    "form": "Form",
    "list": "List",
    "table": "Table",
    "menu": "Menu",
    "navbar": "Navbar",
    "sidebar": "Sidebar",
    "footer": "Footer",
    "header": "Header",
    "input": "Input",
    "textarea": "Textarea",
    "select": "Select",
    "checkbox": "Checkbox",
    "toggle": "Toggle",
    "slider": "Slider",
    "dropdown": "Dropdown",
    "tooltip": "Tooltip",
    "alert": "Alert",
    "notification": "Notification",
    "badge": "Badge",
    "avatar": "Avatar",
    "spinner": "Spinner",
    "progress": "Progress",
    "tabs": "Tabs",
    "accordion": "Accordion",
    "carousel": "Carousel",
    "pagination": "Pagination",
    "breadcrumb": "Breadcrumb",
}

CAPITALIZED_WORD_RE = re.compile(r"\b([A-Z][a-z]+)\b")


def _matches(patterns: list[tuple[str, re.Pattern[str]]], text: str) -> list[str]:
    return [label for label, pattern in patterns if pattern.search(text)]


def _decision(
    kind: ScopeKind,
    confidence: float,
    cues: list[str],
    *,
    include_database: bool | None = None,
) -> ScopeDecision:
    complexity, (low, high), frontend, backend, database = SCOPE_PROFILES[kind]
    return ScopeDecision(
        kind=kind,
        complexity=complexity,
        confidence=confidence,
        expected_artifact_range=ArtifactRange(min=low, max=high),
        include_frontend=frontend,
        include_backend=backend,
        include_database=database if include_database is None else include_database,
        cues=cues,
    )


def _lexical(prompt: str) -> ScopeDecision | None:
    single = _matches(SINGLE_UNIT_PATTERNS, prompt)
    if single and not APP_LEVEL_PATTERN.search(prompt):
        return _decision(ScopeKind.SINGLE_UNIT, 0.9, single)

    backend = _matches(BACKEND_PATTERNS, prompt)
    frontend = _matches(FRONTEND_PATTERNS, prompt)
    no_frontend = _matches(NO_FRONTEND_PATTERNS, prompt)
    if len(backend) >= 2 and (not frontend or no_frontend):
        has_database = bool(DATABASE_PATTERN.search(prompt))
        return _decision(ScopeKind.BACKEND, 0.9, backend + no_frontend, include_database=has_database)

    fullstack = _matches(FULLSTACK_PATTERNS, prompt)
    if not fullstack and len(backend) >= 2 and frontend:
        fullstack = ["frontend+backend"]
    if fullstack:
        return _decision(ScopeKind.FULLSTACK, 0.95, fullstack)

    page = _matches(PAGE_PATTERNS, prompt)
    if page:
        return _decision(ScopeKind.PAGE, 0.85, page)

    return None


def _from_intent(request: GenerationRequest, floor: float) -> ScopeDecision | None:
    intent = request.intent
    if intent is None:
        return None
    kind = INTENT_SCOPES.get(intent.name.strip().lower())
    if kind is None or intent.confidence <= floor:
        return None
    return _decision(kind, intent.confidence, [f"intent:{intent.name}"])


def classify(request: GenerationRequest) -> ScopeDecision:
    """Map a request to a ``ScopeDecision``. Never raises."""
    prompt = request.prompt or ""
    lexical = _lexical(prompt)
    floor = lexical.confidence if lexical else DEFAULT_CONFIDENCE

    decision = _from_intent(request, floor) or lexical
    if decision is None:
        decision = _decision(ScopeKind.FEATURE, DEFAULT_CONFIDENCE, ["default"])

    logger.debug(
        "scope=%s confidence=%.2f range=%d-%d cues=%s",
        decision.kind.value,
        decision.confidence,
        decision.expected_artifact_range.min,
        decision.expected_artifact_range.max,
        decision.cues,
    )
    return decision


def extract_main_entity(prompt: str) -> str:
    """Return a PascalCase entity name mentioned in ``prompt``.

    Known UI keywords win, then the first capitalized word, then ``Component``.
    """
    lowered = (prompt or "").lower()
    for keyword, entity in ENTITY_KEYWORDS.items():
        if re.search(rf"\b{keyword}\b", lowered):
            return entity

    capitalized = CAPITALIZED_WORD_RE.search(prompt or "")
    if capitalized:
        return capitalized.group(1)
    return "Component"


def main_entity(request: GenerationRequest) -> str:
    """Prefer the first upstream entity, falling back to lexical extraction."""
    for entity in request.entities:
        words = re.findall(r"[A-Za-z0-9]+", entity)
        if words:
            return "".join(word[:1].upper() + word[1:] for word in words)
    return extract_main_entity(request.prompt)
