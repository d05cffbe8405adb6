"""Select the test cases impacted by a ticket and its change.

The pipeline is staged. Direct ticket references are found over the whole
inventory and bypass every filter; component matches are narrowed by ticket
title keywords and then by changed-file name keywords. A refinement stage
that has no keywords to work with passes its input through unchanged.
"""
from typing import Dict, Iterable, List, Optional, Sequence, Set

import structlog

from testscope.models.schemas import (
    ChangeCategory,
    ChangeRequest,
    ImpactResult,
    MatchedTestCase,
    MatchType,
    TestCase,
    Ticket,
    TraceabilityTable,
    UNKNOWN_PATH,
)
from testscope.services import component_matcher, keyword_extractor
from testscope.services.relevance_scorer import ChangeContext, score

logger = structlog.get_logger()

UNKNOWN_SECTION = "Unknown Section"


def find_direct_matches(ticket_id: str, inventory: Iterable[TestCase]) -> List[MatchedTestCase]:
    if not ticket_id:
        return []
    needle = ticket_id.lower()
    return [
        MatchedTestCase(
            test_case=tc,
            match_type=MatchType.JIRA_REFERENCE,
            match_reason=f"References {ticket_id}",
        )
        for tc in inventory
        if needle in (tc.refs or "").lower()
    ]


def _folders(test_case: TestCase) -> List[str]:
    return [f.lower() for f in keyword_extractor.split_section_path(test_case.section_path)]


def find_component_matches(
    components: Sequence[str],
    inventory: Sequence[TestCase],
    table: TraceabilityTable,
) -> List[MatchedTestCase]:
    matches: Dict[int, MatchedTestCase] = {}
    for component in components:
        resolution = component_matcher.resolve(component, table)
        terms = component_matcher.search_terms(resolution.tags)
        if not terms:
            continue
        for tc in inventory:
            if tc.id in matches:
                continue
            folders = _folders(tc)
            term = next((t for t in terms if any(t in folder for folder in folders)), None)
            if term is None:
                continue
            matches[tc.id] = MatchedTestCase(
                test_case=tc,
                match_type=MatchType.COMPONENT,
                match_reason=f"Section matches component {component} ({term})",
                matched_component=resolution.matched_name or component,
            )
    return list(matches.values())


def _matching_keywords(test_case: TestCase, keywords: Iterable[str]) -> List[str]:
    haystack = f"{test_case.section_path or ''} {test_case.title or ''}".lower()
    return [k for k in keywords if k in haystack]


def refine_by_keywords(matches: List[MatchedTestCase], keywords: Set[str]) -> List[MatchedTestCase]:
    """Keep matches naming any keyword in their section path or title."""
    if not keywords:
        return matches
    ordered = sorted(keywords)
    kept = []
    for match in matches:
        found = _matching_keywords(match.test_case, ordered)
        if found:
            kept.append(match.model_copy(update={
                "match_type": MatchType.COMPONENT_WITH_KEYWORDS,
                "matched_keywords": found,
            }))
    return kept


def refine_by_file_keywords(matches: List[MatchedTestCase], keywords: Set[str]) -> List[MatchedTestCase]:
    if not keywords:
        return matches
    ordered = sorted(keywords)
    kept = []
    for match in matches:
        found = _matching_keywords(match.test_case, ordered)
        if found:
            kept.append(match.model_copy(update={"matched_file_keywords": found}))
    return kept


def group_by_section(matches: Iterable[MatchedTestCase]) -> Dict[str, List[TestCase]]:
    grouped: Dict[str, List[TestCase]] = {}
    for match in matches:
        key = match.test_case.section_path or UNKNOWN_SECTION
        grouped.setdefault(key, []).append(match.test_case)
    return grouped


def _scored(matches: List[MatchedTestCase], context: ChangeContext) -> List[MatchedTestCase]:
    out = []
    for match in matches:
        result = score(match.test_case, context)
        out.append(match.model_copy(update={"score": result.score, "match_reasons": result.match_reasons}))
    return out


def compute_impact(
    ticket: Ticket,
    change: ChangeRequest,
    inventory: Sequence[TestCase],
    table: TraceabilityTable,
    context: Optional[ChangeContext] = None,
    category: Optional[ChangeCategory] = None,
) -> ImpactResult:
    inventory = list(inventory or [])
    context = context or ChangeContext.build(change, ticket, table)

    direct = _scored(find_direct_matches(ticket.id, inventory), context)
    component = _scored(find_component_matches(ticket.components, inventory, table), context)

    title_keywords = keyword_extractor.extract(ticket.title)
    file_keywords: Set[str] = set()
    for path in change.paths:
        if path == UNKNOWN_PATH:
            continue
        file_keywords |= keyword_extractor.extract_from_filename(path)

    refined = refine_by_file_keywords(refine_by_keywords(component, title_keywords), file_keywords)

    direct_ids = {m.test_case.id for m in direct}
    all_cases = direct + [m for m in refined if m.test_case.id not in direct_ids]

    category = category or change.category
    logger.info(
        "Impact computed",
        ticket_id=ticket.id,
        inventory=len(inventory),
        direct=len(direct),
        component=len(component),
        refined=len(refined),
        total=len(all_cases),
        category=category.value,
    )
    return ImpactResult(
        direct_matches=direct,
        component_matches=component,
        refined_matches=refined,
        all_cases=all_cases,
        grouped_by_section=group_by_section(refined),
        max_test_cases=category.max_test_cases,
    )


select = compute_impact
