"""Relevance scoring of test cases against a change.

A score is an additive point model clamped to [0, 100]. Each signal is a
function of the test case, the change context and the running score state,
and returns the points it contributes; ``score`` folds the signals in order
into an immutable ``ScoreState``. Nothing here mutates its inputs.
"""
from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from functools import reduce
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Tuple

import structlog

from testscope.models.schemas import (
    ChangeRequest,
    ScoredTestCase,
    TestCase,
    Ticket,
    TraceabilityTable,
    UNKNOWN_PATH,
)
from testscope.services import component_matcher
from testscope.services.change_classifier import size_for
from testscope.services.keyword_extractor import extract_from_paths, file_stem, split_section_path

logger = structlog.get_logger()

MIN_SCORE = 0
MAX_SCORE = 100
SHARED_IMPACT_MARKERS = ("shared", "core", "common", "utils", "service", "api")

# Progressive relevance thresholds for regression ranking, highest first
REGRESSION_THRESHOLDS = (60, 40, 25)
REGRESSION_FALLBACK_COUNT = 10


@dataclass(frozen=True)
class ScoringVocabulary:
    """Word lists behind the heuristic signals. Defaults are a seed, not a contract."""

    ui_elements: Tuple[str, ...] = (
        "button", "submit", "dropdown", "checkbox", "radio", "input", "field",
        "form", "modal", "dialog", "popup", "menu", "tab", "panel", "table",
        "grid", "list", "card", "link", "icon", "image", "tooltip", "notification",
    )
    behaviors: Tuple[str, ...] = (
        "always available", "always visible", "always enabled", "disabled", "enabled",
        "hidden", "visible", "validation", "required", "optional", "mandatory",
        "editable", "readonly", "clickable", "selectable", "expandable", "collapsible",
        "loading", "error", "success", "warning", "submitted", "saved", "deleted",
    )
    negative_scenario_terms: Tuple[str, ...] = (
        "should not", "prevent", "disable", "block", "reject",
        "invalid", "error", "validation", "verify", "edge case",
    )
    api_patterns: Tuple[str, ...] = ("api", "endpoint", "service", "rest", "graphql")
    ui_patterns: Tuple[str, ...] = ("screen", "page", "view", "component", "modal", "dialog")
    ui_path_markers: Tuple[str, ...] = ("component", "view", ".html")
    specific_action_words: Tuple[str, ...] = (
        "form", "button", "field", "page", "screen", "api", "endpoint",
        "submit", "save", "delete", "update", "create", "validate",
        "search", "filter", "sort", "export", "import", "upload", "download",
    )
    ui_test_words: Tuple[str, ...] = ("display", "render", "visible", "shown", "appear", "ui", "layout", "screen")
    logic_test_words: Tuple[str, ...] = (
        "validate", "calculate", "process", "save", "submit", "api", "service", "logic", "function",
    )
    integration_test_words: Tuple[str, ...] = ("integration", "end-to-end", "e2e", "workflow", "complete", "full")
    critical_markers: Tuple[str, ...] = ("smoke", "critical", "p0", "p1")
    critical_priority_max: int = 2
    bug_fix_pattern: str = r"^fix\(|\bfix:|\bbug\b|\bbugfix\b|\bissue\b"
    generic_title_max_words: int = 8


DEFAULT_VOCABULARY = ScoringVocabulary()


@dataclass(frozen=True)
class FileTypeCounts:
    html: int = 0
    ts: int = 0
    js: int = 0
    css: int = 0
    java: int = 0

    @classmethod
    def from_paths(cls, paths: Iterable[str]) -> "FileTypeCounts":
        counts = dict(html=0, ts=0, js=0, css=0, java=0)
        for path in paths:
            p = path.lower()
            if p.endswith((".html", ".htm")):
                counts["html"] += 1
            if p.endswith(".ts"):
                counts["ts"] += 1
            if p.endswith((".js", ".jsx")):
                counts["js"] += 1
            if p.endswith((".css", ".scss", ".sass")):
                counts["css"] += 1
            if p.endswith(".java"):
                counts["java"] += 1
        return cls(**counts)

    @property
    def logic(self) -> int:
        return self.ts + self.js + self.java

    @property
    def mixed(self) -> bool:
        return self.html > 0 and self.logic > 0


@dataclass(frozen=True)
class ChangeContext:
    """Everything a signal may know about the change, derived once per run."""

    ticket_id: str = ""
    components: Tuple[str, ...] = ()
    functional_areas: Tuple[str, ...] = ()
    keywords: Tuple[str, ...] = ()
    changed_paths: Tuple[str, ...] = ()
    file_stems: Tuple[str, ...] = ()
    shared_impact: bool = False
    ui_elements: Tuple[str, ...] = ()
    behaviors: Tuple[str, ...] = ()
    is_bug_fix: bool = False
    file_types: FileTypeCounts = field(default_factory=FileTypeCounts)
    vocabulary: ScoringVocabulary = DEFAULT_VOCABULARY

    @classmethod
    def build(
        cls,
        change: ChangeRequest,
        ticket: Optional[Ticket] = None,
        table: Optional[TraceabilityTable] = None,
        component_mapping: Optional[Dict[str, str]] = None,
        vocabulary: ScoringVocabulary = DEFAULT_VOCABULARY,
    ) -> "ChangeContext":
        table = table or TraceabilityTable()
        paths = tuple(p for p in change.paths if p and p != UNKNOWN_PATH)

        components: List[str] = []
        if ticket:
            for label in ticket.components:
                components.extend(component_matcher.resolve(label, table).tags)
        components.extend(component_matcher.map_paths_to_components(paths, component_mapping or {}))

        title = (change.title or "").lower()
        combined = f"{title} {(change.description or '').lower()}"

        return cls(
            ticket_id=(ticket.id if ticket else "") or "",
            components=tuple(dict.fromkeys(c for c in components if c)),
            functional_areas=tuple(component_matcher.functional_areas(paths, table)),
            keywords=tuple(sorted(extract_from_paths(paths))),
            changed_paths=paths,
            file_stems=tuple(dict.fromkeys(file_stem(p) for p in paths)),
            shared_impact=any(m in p.lower() for p in paths for m in SHARED_IMPACT_MARKERS),
            ui_elements=tuple(e for e in vocabulary.ui_elements if e in combined),
            behaviors=tuple(b for b in vocabulary.behaviors if b in combined),
            is_bug_fix=bool(re.search(vocabulary.bug_fix_pattern, title)),
            file_types=FileTypeCounts.from_paths(paths),
            vocabulary=vocabulary,
        )


@dataclass(frozen=True)
class CaseView:
    """Lowercased, never-missing projections of a test case's fields."""

    title: str
    refs: str
    fields: str
    folders: Tuple[str, ...]
    priority: Optional[int]

    @property
    def search_text(self) -> str:
        return f"{self.title} {self.refs} {self.fields}"

    @property
    def depth(self) -> int:
        return len(self.folders)

    def in_folders(self, term: str) -> bool:
        term = term.lower()
        return any(term in folder for folder in self.folders)

    @classmethod
    def of(cls, test_case: TestCase) -> "CaseView":
        fields = json.dumps(test_case.custom_fields or {}, sort_keys=True, default=str).lower()
        return cls(
            title=(test_case.title or "").lower(),
            refs=(test_case.refs or "").lower(),
            fields=fields,
            folders=tuple(f.lower() for f in split_section_path(test_case.section_path or "")),
            priority=test_case.priority,
        )


@dataclass(frozen=True)
class ScoreState:
    points: int = 0
    reasons: Tuple[str, ...] = ()

    def plus(self, contributions: Iterable[Tuple[int, str]]) -> "ScoreState":
        points, reasons = self.points, self.reasons
        for delta, reason in contributions:
            points += delta
            reasons += (f"{reason} ({delta:+d})",)
        return ScoreState(points, reasons)


Contribution = Tuple[int, str]
Signal = Callable[[CaseView, ChangeContext, ScoreState], List[Contribution]]


def _component_words(components: Sequence[str]) -> List[str]:
    words = []
    for comp in components:
        words.extend(w for w in re.split(r"[-_\s]+", comp.lower()) if len(w) > 3)
    return list(dict.fromkeys(words))


def is_generic_test(title: str, components: Sequence[str], vocabulary: ScoringVocabulary = DEFAULT_VOCABULARY) -> bool:
    """Short titles naming only a bare component with no actionable word."""
    title = title.lower()
    if any(word in title for word in vocabulary.specific_action_words):
        return False
    short = len(title.split()) < vocabulary.generic_title_max_words
    return short and any(comp.lower() in title for comp in components if comp)


def direct_reference(view: CaseView, ctx: ChangeContext, state: ScoreState) -> List[Contribution]:
    if ctx.ticket_id and ctx.ticket_id.lower() in view.refs:
        return [(100, f"Direct ticket reference: {ctx.ticket_id}")]
    return []


def section_path_terms(view: CaseView, ctx: ChangeContext, state: ScoreState) -> List[Contribution]:
    if not view.folders:
        return []
    out = [(35, f"Section has component: {c}") for c in ctx.components if view.in_folders(c)]
    out += [(30, f"Section has area: {a}") for a in ctx.functional_areas if view.in_folders(a)]
    out += [(25, f"Section has file: {s}") for s in ctx.file_stems if len(s) > 3 and view.in_folders(s)]
    out += [(20, f"Section has keyword: {k}") for k in ctx.keywords if view.in_folders(k)]
    return out


def title_terms(view: CaseView, ctx: ChangeContext, state: ScoreState) -> List[Contribution]:
    out = [(40, f"Title has feature: {a}") for a in ctx.functional_areas if a.lower() in view.title]
    out += [(30, f"Title has component word: {w}") for w in _component_words(ctx.components) if w in view.title]
    out += [(20, f"Title has keyword: {k}") for k in ctx.keywords if k in view.title]
    out += [(35, f"Title has file: {s}") for s in ctx.file_stems if len(s) > 3 and s in view.title]
    return out


def api_and_ui_patterns(view: CaseView, ctx: ChangeContext, state: ScoreState) -> List[Contribution]:
    vocab = ctx.vocabulary
    paths = [p.lower() for p in ctx.changed_paths]
    text = view.search_text
    out = []
    # The same pattern must name a changed path, unless the path is under "api"
    if any(
        p in text and any(p in path or "api" in path for path in paths)
        for p in vocab.api_patterns
    ):
        out.append((20, "API/Service match"))
    if any(p in text for p in vocab.ui_patterns) and any(
        marker in path for path in paths for marker in vocab.ui_path_markers
    ):
        out.append((20, "UI/Component match"))
    return out


def critical_tests(view: CaseView, ctx: ChangeContext, state: ScoreState) -> List[Contribution]:
    vocab = ctx.vocabulary
    critical = any(m in view.title for m in vocab.critical_markers) or (
        view.priority is not None and 0 < view.priority <= vocab.critical_priority_max
    )
    if not critical:
        return []
    if ctx.shared_impact:
        return [(50, "Critical/Smoke test (shared component impacted)")]
    return [(10, "Critical/Smoke test")]


def field_keywords(view: CaseView, ctx: ChangeContext, state: ScoreState) -> List[Contribution]:
    return [
        (5, f"Keyword in fields: {k}")
        for k in ctx.keywords
        if k not in view.title and k in view.search_text
    ]


def pr_context_terms(view: CaseView, ctx: ChangeContext, state: ScoreState) -> List[Contribution]:
    matches = [(20, f"UI element: {e}") for e in ctx.ui_elements if e in view.title]
    matches += [(15, f"Behavior: {b}") for b in ctx.behaviors if b in view.title]
    if not matches:
        return []
    points = sum(p for p, _ in matches)
    label = ", ".join(reason for _, reason in matches)
    if len(matches) >= 2:
        points += 20
        label += " (+bonus)"
    return [(min(points, 40), f"PR context match: {label}")]


def bug_fix_scenarios(view: CaseView, ctx: ChangeContext, state: ScoreState) -> List[Contribution]:
    if not ctx.is_bug_fix:
        return []
    out = []
    if any(term in view.title for term in ctx.vocabulary.negative_scenario_terms):
        out.append((25, "Bug fix: negative scenario test"))
    same_component = any(c.lower() in view.title for c in ctx.components if c)
    if same_component and "regression" in view.title:
        out.append((30, "Bug fix: regression test for same component"))
    return out


def file_type_relevance(view: CaseView, ctx: ChangeContext, state: ScoreState) -> List[Contribution]:
    types, vocab, title = ctx.file_types, ctx.vocabulary, view.title
    bonus = 0
    if types.mixed:
        if any(w in title for w in vocab.integration_test_words):
            bonus = 30
        elif "verify" in title or "test" in title:
            bonus = 15
    elif types.html > 0:
        if any(w in title for w in vocab.ui_test_words):
            bonus = 20
    elif types.logic > 0:
        if any(w in title for w in vocab.logic_test_words):
            bonus = 20
    return [(bonus, "File type relevance")] if bonus else []


def section_depth(view: CaseView, ctx: ChangeContext, state: ScoreState) -> List[Contribution]:
    if view.depth >= 2:
        if any(view.in_folders(c) for c in ctx.components if c):
            return [(30, f"Section path match (depth {view.depth})")]
        if any(view.in_folders(a) for a in ctx.functional_areas):
            return [(25, f"Section functional area match (depth {view.depth})")]
    elif view.depth == 1 and is_generic_test(view.title, ctx.components, ctx.vocabulary):
        return [(-20, "Generic test (shallow section) penalty")]
    return []


def generic_penalty(view: CaseView, ctx: ChangeContext, state: ScoreState) -> List[Contribution]:
    if state.points < 50 and is_generic_test(view.title, ctx.components, ctx.vocabulary):
        return [(-20, "Generic test penalty")]
    return []


SIGNALS: Tuple[Signal, ...] = (
    direct_reference,
    section_path_terms,
    title_terms,
    api_and_ui_patterns,
    critical_tests,
    field_keywords,
    pr_context_terms,
    bug_fix_scenarios,
    file_type_relevance,
    section_depth,
    generic_penalty,
)


def clamp(points: int) -> int:
    return max(MIN_SCORE, min(MAX_SCORE, points))


def score(test_case: TestCase, context: ChangeContext, signals: Sequence[Signal] = SIGNALS) -> ScoredTestCase:
    view = CaseView.of(test_case)
    state = reduce(lambda acc, signal: acc.plus(signal(view, context, acc)), signals, ScoreState())
    return ScoredTestCase(test_case=test_case, score=clamp(state.points), match_reasons=list(state.reasons))


def score_for_relevance(
    test_case: TestCase,
    change: ChangeRequest,
    ticket: Optional[Ticket] = None,
    table: Optional[TraceabilityTable] = None,
    component_mapping: Optional[Dict[str, str]] = None,
) -> ScoredTestCase:
    return score(test_case, ChangeContext.build(change, ticket, table, component_mapping))


def rank_regression_candidates(
    test_cases: Iterable[TestCase],
    context: ChangeContext,
    files_changed: int,
) -> List[ScoredTestCase]:
    """Most relevant regression tests for a change, bounded by its size.

    Cases scoring zero are dropped. The highest threshold that keeps at least
    one case wins; if none does, the top cases by score are returned.
    """
    scored = [s for s in (score(tc, context) for tc in test_cases) if s.score > 0]
    scored.sort(key=lambda s: s.score, reverse=True)

    relevant: List[ScoredTestCase] = []
    used_threshold = None
    for threshold in REGRESSION_THRESHOLDS:
        relevant = [s for s in scored if s.score >= threshold]
        if relevant:
            used_threshold = threshold
            break
    if not relevant:
        relevant = scored[:REGRESSION_FALLBACK_COUNT]

    size = size_for(files_changed)
    top = relevant[: size.max_tests_to_show]
    logger.info(
        "Ranked regression candidates",
        scored=len(scored),
        threshold=used_threshold,
        size=size.value,
        returned=len(top),
    )
    return top
