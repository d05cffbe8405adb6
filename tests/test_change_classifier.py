import pytest

from testscope.models.schemas import ChangeCategory, ChangeSize, FileDelta, RiskLevel
from testscope.services.change_classifier import (
    classify,
    classify_change,
    estimate_hours,
    size_for,
)


def test_many_files_is_angry():
    result = classify(15, 0, 300, "Add new reporting widget")

    assert result.category == ChangeCategory.ANGRY
    assert result.risk_score == 30
    assert result.risk_level == RiskLevel.MEDIUM
    assert result.max_test_cases == 80


def test_quick_fix_with_many_lines_is_sarcastic():
    result = classify(3, 0, 250, "Quick fix for login")

    assert result.category == ChangeCategory.SARCASTIC
    assert result.risk_score == 16
    assert result.risk_level == RiskLevel.LOW


def test_style_only_change_is_sleepy():
    files = [FileDelta(path="src/styles/main.scss", lines_added=400), FileDelta(path="src/app/theme.css")]

    result = classify_change(files, "Quick fix for colors")

    assert result.category == ChangeCategory.SLEEPY
    assert result.metrics.only_style_changes


def test_empty_file_list_is_not_style_only():
    result = classify_change([], "Update")

    assert result.category == ChangeCategory.RELAXED
    assert not result.metrics.only_style_changes


def test_shared_components_overload():
    assert classify(4, 4, 0, "Refactor").category == ChangeCategory.OVERLOADED


def test_sarcastic_takes_precedence_over_overloaded():
    assert classify(6, 5, 0, "small cleanup").category == ChangeCategory.SARCASTIC


def test_risk_score_is_capped_and_rounded_half_up():
    capped = classify(50, 10, 10000, "Big rewrite")
    assert capped.risk_score == 100
    assert capped.risk_level == RiskLevel.HIGH

    assert classify(0, 0, 10, "Tweak").risk_score == 1


def test_classify_is_pure():
    first = classify(7, 2, 120, "Add export")
    second = classify(7, 2, 120, "Add export")

    assert first == second


def test_classify_change_derives_metrics():
    files = [
        FileDelta(path="src/shared/util.ts", lines_added=10, lines_removed=5),
        FileDelta(path="src/core/engine.ts", lines_added=20),
        FileDelta(path="src/app/page.ts", lines_removed=5),
    ]

    result = classify_change(files, "Add page")

    assert result.metrics.files_changed == 3
    assert result.metrics.shared_components_touched == 2
    assert result.metrics.total_lines_changed == 40
    assert result.risk_score == 25
    assert result.size == ChangeSize.MODERATE


@pytest.mark.parametrize("files,size", [
    (0, ChangeSize.SMALL),
    (2, ChangeSize.SMALL),
    (3, ChangeSize.MODERATE),
    (5, ChangeSize.MODERATE),
    (10, ChangeSize.STANDARD),
    (11, ChangeSize.LARGE),
    (20, ChangeSize.LARGE),
    (21, ChangeSize.VERY_LARGE),
])
def test_size_tiers(files, size):
    assert size_for(files) == size


def test_every_category_has_cap_and_emoji():
    for category in ChangeCategory:
        assert category.max_test_cases > 0
        assert category.emoji
        assert category.label.endswith(" PR")


def test_estimate_hours_by_sections_and_size():
    assert estimate_hours(3, 40, ChangeSize.LARGE) == 4.5
    assert estimate_hours(3, 40, ChangeSize.SMALL, hours_per_section=2.0) == 3.0


def test_estimate_hours_falls_back_to_test_count():
    assert estimate_hours(0, 12, ChangeSize.SMALL) == 2.0
    assert estimate_hours(0, 0, ChangeSize.STANDARD) == 0.0
