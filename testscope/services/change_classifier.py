"""Classify a change by magnitude and risk.

The category parametrizes how many impacted test cases a report should show;
the size class drives display limits and time estimation.
"""
import math
from typing import Iterable, Optional, Sequence

from testscope.models.schemas import (
    ChangeCategory,
    ChangeClassification,
    ChangeMetrics,
    ChangeSize,
    FileDelta,
    RiskLevel,
)

SHARED_PATH_MARKERS = ("shared", "core", "common", "utils")
STYLE_EXTENSIONS = (".css", ".scss", ".less")
MINOR_TITLE_WORDS = ("minor", "quick", "small", "fix")

# (upper bound on files changed, size)
_SIZE_TIERS = (
    (2, ChangeSize.SMALL),
    (5, ChangeSize.MODERATE),
    (10, ChangeSize.STANDARD),
    (20, ChangeSize.LARGE),
)


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def is_shared_path(path: str) -> bool:
    lowered = (path or "").lower()
    return any(marker in lowered for marker in SHARED_PATH_MARKERS)


def is_style_path(path: str) -> bool:
    lowered = (path or "").lower()
    return lowered.endswith(STYLE_EXTENSIONS) or "style" in lowered


def only_style_changes(paths: Optional[Sequence[str]]) -> bool:
    return bool(paths) and all(is_style_path(p) for p in paths)


def compute_risk_score(files_changed: int, shared_components_touched: int, total_lines_changed: int) -> float:
    return min(100.0, files_changed * 1 + shared_components_touched * 10 + total_lines_changed * 0.05)


def risk_level_for(risk_score: float) -> RiskLevel:
    if risk_score < 30:
        return RiskLevel.LOW
    if risk_score < 70:
        return RiskLevel.MEDIUM
    return RiskLevel.HIGH


def size_for(files_changed: int) -> ChangeSize:
    for upper, size in _SIZE_TIERS:
        if files_changed <= upper:
            return size
    return ChangeSize.VERY_LARGE


def classify(
    files_changed: int,
    shared_components_touched: int,
    total_lines_changed: int,
    pr_title: str,
    *,
    changed_paths: Optional[Sequence[str]] = None,
) -> ChangeClassification:
    raw_risk = compute_risk_score(files_changed, shared_components_touched, total_lines_changed)
    style_only = only_style_changes(changed_paths)
    title = (pr_title or "").lower()
    claims_minor = any(word in title for word in MINOR_TITLE_WORDS)

    if style_only:
        category = ChangeCategory.SLEEPY
    elif claims_minor and (files_changed > 5 or total_lines_changed > 100):
        category = ChangeCategory.SARCASTIC
    elif shared_components_touched > 3 or raw_risk > 85:
        category = ChangeCategory.OVERLOADED
    elif files_changed > 10 or total_lines_changed > 500:
        category = ChangeCategory.ANGRY
    else:
        category = ChangeCategory.RELAXED

    risk_score = _round_half_up(raw_risk)
    return ChangeClassification(
        category=category,
        risk_score=risk_score,
        risk_level=risk_level_for(raw_risk),
        size=size_for(files_changed),
        metrics=ChangeMetrics(
            files_changed=files_changed,
            shared_components_touched=shared_components_touched,
            total_lines_changed=total_lines_changed,
            only_style_changes=style_only,
        ),
    )


def classify_change(files: Iterable[FileDelta], pr_title: str) -> ChangeClassification:
    """Derive the metrics from changed files, then classify."""
    files = list(files)
    paths = [f.path for f in files]
    return classify(
        files_changed=len(files),
        shared_components_touched=sum(1 for p in paths if is_shared_path(p)),
        total_lines_changed=sum(f.lines_changed for f in files),
        pr_title=pr_title,
        changed_paths=paths,
    )


def estimate_hours(
    impacted_sections: int,
    total_tests: int,
    size: ChangeSize,
    hours_per_section: float = 1.0,
    minutes_per_test: float = 10.0,
) -> float:
    """Section-based estimate scaled by change size, else a per-test fallback."""
    if impacted_sections > 0:
        hours = impacted_sections * hours_per_section * size.time_multiplier
    else:
        hours = total_tests * (minutes_per_test / 60.0)
    return round(hours, 1)
