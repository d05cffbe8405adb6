"""Build the test case inventory from TestRail sections and cases."""
import asyncio
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

import structlog

from testscope.models.schemas import SECTION_SEPARATOR, TestCase, TestSection
from testscope.repositories.interfaces.test_repository_service import ITestRepositoryService

logger = structlog.get_logger()

REGRESSION_BY_FOLDER = "folder"
REGRESSION_BY_FIELD = "field"


def build_section_paths(sections: Iterable[TestSection]) -> Dict[int, str]:
    """Breadcrumb path for every section, root first.

    Parent links pointing at unknown sections end the walk, and a cycle is
    cut at the first repeated section.
    """
    by_id = {s.id: s for s in sections}
    paths: Dict[int, str] = {}
    for section in by_id.values():
        names: List[str] = []
        seen = set()
        current: Optional[TestSection] = section
        while current is not None and current.id not in seen:
            seen.add(current.id)
            names.append(current.name)
            current = by_id.get(current.parent_id) if current.parent_id else None
        if current is not None:
            logger.warning("Section hierarchy has a cycle", section_id=section.id)
        paths[section.id] = SECTION_SEPARATOR.join(reversed(names))
    return paths


def _custom_fields(raw: Dict[str, Any]) -> Dict[str, Any]:
    fields = dict(raw.get("custom_fields") or {})
    fields.update({k: v for k, v in raw.items() if k.startswith("custom_") and v is not None})
    return fields


def to_test_case(
    raw: Dict[str, Any],
    section_paths: Dict[int, str],
    case_url: Optional[Callable[[int], str]] = None,
    section_url: Optional[Callable[[int, int], str]] = None,
) -> TestCase:
    section_id = raw.get("section_id")
    suite_id = raw.get("suite_id")
    return TestCase(
        id=raw["id"],
        title=raw.get("title") or "",
        section_id=section_id,
        section_path=section_paths.get(section_id, ""),
        refs=raw.get("refs") or "",
        priority=raw.get("priority_id"),
        custom_fields=_custom_fields(raw),
        url=case_url(raw["id"]) if case_url else None,
        section_url=section_url(suite_id, section_id) if section_url and suite_id and section_id else None,
    )


def to_test_cases(
    raw_cases: Iterable[Dict[str, Any]],
    sections: Iterable[TestSection],
    case_url: Optional[Callable[[int], str]] = None,
    section_url: Optional[Callable[[int, int], str]] = None,
) -> List[TestCase]:
    section_paths = build_section_paths(sections)
    cases = []
    for raw in raw_cases:
        if "id" not in raw:
            logger.warning("Skipping test case without id", keys=sorted(raw.keys()))
            continue
        cases.append(to_test_case(raw, section_paths, case_url, section_url))
    return cases


async def fetch_inventory(test_repo: ITestRepositoryService, suite_id: int) -> List[TestCase]:
    """All test cases of a suite with their section paths resolved."""
    sections, raw_cases = await asyncio.gather(
        test_repo.get_all_sections(suite_id),
        test_repo.get_all_test_cases(suite_id),
    )
    cases = to_test_cases(
        raw_cases,
        sections,
        case_url=test_repo.build_test_case_url,
        section_url=test_repo.build_section_url,
    )
    logger.info("Inventory loaded", suite_id=suite_id, sections=len(sections), test_cases=len(cases))
    return cases


def _field_key(field_name: str) -> str:
    return "custom_" + field_name.strip().lower().replace(" ", "_")


def _field_matches(value: Any, expected: str) -> bool:
    if isinstance(value, (list, tuple)):
        return any(_field_matches(v, expected) for v in value)
    return str(value).strip().lower() == expected.strip().lower()


def select_regression_suite(
    cases: List[TestCase],
    method: str = REGRESSION_BY_FOLDER,
    keyword: str = "Regression",
    field_name: str = "Test Type",
    field_value: str = "Regression",
) -> Tuple[List[TestCase], bool]:
    """Regression candidates and whether the whole inventory was used instead.

    By folder, a case qualifies when its section path names the keyword; when
    no section does, every case is a candidate. By field, a case qualifies when
    the named custom field holds the value.
    """
    if method == REGRESSION_BY_FIELD:
        key = _field_key(field_name)
        selected = [tc for tc in cases if key in tc.custom_fields and _field_matches(tc.custom_fields[key], field_value)]
        logger.info("Regression tests selected by field", field=key, selected=len(selected))
        return selected, False

    needle = keyword.lower()
    selected = [tc for tc in cases if needle in (tc.section_path or "").lower()]
    if not selected:
        logger.info("No regression sections found, using full inventory", keyword=keyword, total=len(cases))
        return list(cases), True
    logger.info("Regression tests selected by folder", keyword=keyword, selected=len(selected))
    return selected, False
