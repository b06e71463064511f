"""Built-in priority templates for common kinds of work."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Iterable, Optional

from .errors import InvalidInput
from .model import clamp_priority

FALLBACK_TEMPLATE = "feature"


@dataclass(frozen=True)
class PriorityTemplate:
    name: str
    priority: int
    description: str
    keywords: tuple[str, ...]

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "priority": self.priority,
            "description": self.description,
            "keywords": list(self.keywords),
        }


TEMPLATES: tuple[PriorityTemplate, ...] = (
    PriorityTemplate(
        "critical_bug", 900, "Production outage, data loss or crash",
        ("crash", "outage", "data loss", "production", "down", "corrupt", "hotfix"),
    ),
    PriorityTemplate(
        "security", 850, "Security vulnerability or hardening work",
        ("security", "vulnerability", "cve", "xss", "injection", "auth", "exploit", "leak"),
    ),
    PriorityTemplate(
        "bug", 700, "Defect in existing behavior",
        ("bug", "fix", "broken", "error", "fails", "regression", "incorrect", "issue"),
    ),
    PriorityTemplate(
        "feature", 500, "New user-facing capability",
        ("feature", "add", "implement", "support", "new", "create", "introduce"),
    ),
    PriorityTemplate(
        "enhancement", 450, "Improvement to an existing capability",
        ("improve", "enhance", "optimize", "performance", "speed", "better", "polish"),
    ),
    PriorityTemplate(
        "testing", 450, "Test coverage and test infrastructure",
        ("test", "tests", "coverage", "unit", "integration", "e2e", "pytest"),
    ),
    PriorityTemplate(
        "refactor", 400, "Internal restructuring without behavior change",
        ("refactor", "cleanup", "clean up", "restructure", "simplify", "rename", "extract"),
    ),
    PriorityTemplate(
        "research", 350, "Investigation, spike or prototype",
        ("research", "investigate", "spike", "explore", "evaluate", "prototype", "poc"),
    ),
    PriorityTemplate(
        "documentation", 300, "Docs, guides and comments",
        ("docs", "documentation", "readme", "guide", "docstring", "tutorial", "changelog"),
    ),
    PriorityTemplate(
        "maintenance", 300, "Dependency bumps, tooling and chores",
        ("upgrade", "bump", "dependency", "dependencies", "chore", "maintenance", "ci", "lint"),
    ),
)

_BY_NAME = {t.name: t for t in TEMPLATES}

# Modifiers applied on top of a template's base priority.
KEYWORD_MODIFIERS: dict[str, int] = {
    "urgent": 100,
    "asap": 100,
    "blocker": 100,
    "blocking": 75,
    "critical": 75,
    "important": 50,
    "customer": 50,
    "minor": -50,
    "trivial": -75,
    "someday": -100,
    "nice to have": -75,
}

TAG_MODIFIERS: dict[str, int] = {
    "urgent": 100,
    "security": 50,
    "customer": 50,
    "regression": 50,
    "tech-debt": -25,
    "docs": -25,
    "low-priority": -100,
}


def _contains(text: str, phrase: str) -> bool:
    return re.search(rf"(?<![\w-]){re.escape(phrase)}(?![\w-])", text) is not None


def get_template(name: str) -> PriorityTemplate:
    """Look up a template by name.

    Raises:
        InvalidInput: for an unknown template name.
    """
    template = _BY_NAME.get((name or "").strip().lower())
    if template is None:
        raise InvalidInput(
            f"Unknown priority template '{name}'. Available: {', '.join(_BY_NAME)}"
        )
    return template


def list_templates() -> list[dict[str, Any]]:
    return [t.to_dict() for t in TEMPLATES]


def suggest_template(title: str, description: str = "") -> dict[str, Any]:
    """Pick the template whose keywords best match *title* and *description*.

    Title matches count double. With no match at all the ``feature`` template
    is returned with a score of 0.
    """
    title_lc = (title or "").lower()
    body_lc = (description or "").lower()
    best: Optional[PriorityTemplate] = None
    best_score = 0
    best_matches: list[str] = []
    for template in TEMPLATES:
        score = 0
        matches = []
        for keyword in template.keywords:
            hit = False
            if _contains(title_lc, keyword):
                score += 2
                hit = True
            if _contains(body_lc, keyword):
                score += 1
                hit = True
            if hit:
                matches.append(keyword)
        if score > best_score:
            best, best_score, best_matches = template, score, matches
    if best is None:
        best = _BY_NAME[FALLBACK_TEMPLATE]
    return {
        "template": best.to_dict(),
        "score": best_score,
        "matchedKeywords": best_matches,
    }


def calculate_priority(
    template_name: str,
    title: str,
    description: str = "",
    tags: Optional[Iterable[str]] = None,
) -> dict[str, Any]:
    """Template base priority plus keyword and tag modifiers, clamped to 1-1000."""
    template = get_template(template_name)
    text = f"{title or ''} {description or ''}".lower()
    adjustments = []
    for keyword, delta in KEYWORD_MODIFIERS.items():
        if _contains(text, keyword):
            adjustments.append({"reason": f"keyword '{keyword}'", "delta": delta})
    for tag in sorted({str(t).strip().lower() for t in (tags or []) if str(t).strip()}):
        delta = TAG_MODIFIERS.get(tag)
        if delta:
            adjustments.append({"reason": f"tag '{tag}'", "delta": delta})
    priority = clamp_priority(template.priority + sum(a["delta"] for a in adjustments))
    return {
        "template": template.name,
        "basePriority": template.priority,
        "adjustments": adjustments,
        "priority": priority,
    }
