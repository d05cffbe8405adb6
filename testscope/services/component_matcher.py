"""Resolve free-text ticket components to traceability tags.

Ticket components ("Applicant-Webform", "Admin_phsTemplates") and the
component names of the traceability table rarely agree on granularity, so
matching is a bidirectional substring test on their words. Role names denote
actors rather than functional areas and never count as match signal.
"""
import re
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Tuple

import structlog

from testscope.models.schemas import TraceabilityTable
from testscope.services.keyword_extractor import split_camel_case

logger = structlog.get_logger()

ROLE_TOKENS = frozenset({"admin", "investigator", "reviewer", "applicant"})
MIN_SEARCH_TERM_LENGTH = 3

_LABEL_SPLIT = re.compile(r"[-_\s]+")


@dataclass(frozen=True)
class ComponentResolution:
    component: str
    matched_name: Optional[str]
    tags: Tuple[str, ...]
    parts: Tuple[str, ...]

    @property
    def matched(self) -> bool:
        return self.matched_name is not None


def _unique(items: Iterable[str]) -> List[str]:
    seen = set()
    out = []
    for item in items:
        if item and item not in seen:
            seen.add(item)
            out.append(item)
    return out


def _words(label: str) -> List[str]:
    """Lowercased label parts plus their camel-case sub-words."""
    words: List[str] = []
    for part in _LABEL_SPLIT.split(label.strip()):
        if not part:
            continue
        words.append(part.lower())
        words.extend(w.lower() for w in split_camel_case(part))
    return _unique(words)


def component_parts(component: str) -> List[str]:
    return [w for w in _words(component) if w not in ROLE_TOKENS]


def resolve(component: str, table: TraceabilityTable) -> ComponentResolution:
    parts = component_parts(component)

    for name, entry in table.components.items():
        name_words = _words(name)
        if any(part in word or word in part for part in parts for word in name_words):
            if entry.tags:
                logger.debug("Component resolved", component=component, matched=name, tags=entry.tags)
                return ComponentResolution(component, name, tuple(entry.tags), tuple(parts))
            logger.warning("Traceability entry has no tags", component=component, matched=name)
            break

    # No mapping: the cleaned parts are the tags; a role-only label yields none
    logger.debug("No traceability entry matched", component=component, tags=parts)
    return ComponentResolution(component, None, tuple(parts), tuple(parts))


def search_terms(tags: Iterable[str]) -> List[str]:
    """Folder search terms: tag parts longer than two characters, first occurrence order."""
    terms: List[str] = []
    for tag in tags:
        terms.extend(
            p.strip().lower()
            for p in _LABEL_SPLIT.split(tag)
            if len(p.strip()) >= MIN_SEARCH_TERM_LENGTH
        )
    return _unique(terms)


def functional_areas(paths: Iterable[str], table: TraceabilityTable) -> List[str]:
    """Traceability component names whose tags appear in any changed path."""
    lowered = [p.lower() for p in paths if p]
    areas = []
    for name, entry in table.components.items():
        if any(tag.lower() in path for tag in entry.tags if tag for path in lowered):
            areas.append(name)
    return areas


def map_paths_to_components(paths: Iterable[str], component_mapping: Dict[str, str]) -> List[str]:
    """Apply the configured path-fragment -> component mapping to changed paths."""
    found = []
    for path in paths:
        lowered = (path or "").lower()
        for fragment, component in component_mapping.items():
            if fragment and fragment.lower() in lowered:
                found.append(component)
    return _unique(found)
