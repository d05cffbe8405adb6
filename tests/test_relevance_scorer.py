from testscope.models.schemas import ChangeRequest, FileDelta, TestCase, Ticket
from testscope.services.relevance_scorer import (
    CaseView,
    ChangeContext,
    FileTypeCounts,
    ScoreState,
    ScoringVocabulary,
    api_and_ui_patterns,
    bug_fix_scenarios,
    critical_tests,
    file_type_relevance,
    is_generic_test,
    pr_context_terms,
    rank_regression_candidates,
    score,
    score_for_relevance,
    section_depth,
)


def test_webform_case_scores_high(webform_ticket, webform_change, inventory, traceability):
    result = score_for_relevance(inventory[0], webform_change, webform_ticket, traceability)

    assert result.score >= 65
    assert "Section has component: webform (+35)" in result.match_reasons
    assert any(r.startswith("Title has feature: Webform") for r in result.match_reasons)


def test_change_context_build(webform_ticket, webform_change, traceability):
    context = ChangeContext.build(webform_change, webform_ticket, traceability)

    assert context.ticket_id == "WEB-101"
    assert context.components == ("webform", "form-submission")
    assert context.functional_areas == ("Webform",)
    assert context.keywords == ("component", "forms", "submit", "webform")
    assert context.file_stems == ("webform-submit.component",)
    assert not context.shared_impact
    assert "button" in context.ui_elements
    assert context.behaviors == ("disabled", "required")
    assert not context.is_bug_fix
    assert context.file_types.ts == 1


def test_component_mapping_adds_components(webform_change):
    context = ChangeContext.build(webform_change, component_mapping={"forms/webform": "Intake"})

    assert context.components == ("Intake",)


def test_unknown_paths_are_ignored():
    change = ChangeRequest(changed_files=[FileDelta(path="[unknown]")])

    context = ChangeContext.build(change)

    assert context.changed_paths == ()
    assert context.keywords == ()


def test_score_is_clamped_at_the_top(webform_ticket, webform_change, inventory, traceability):
    result = score_for_relevance(inventory[0], webform_change, webform_ticket, traceability)

    assert result.score == 100


def test_generic_test_is_penalized_and_clamped_at_zero():
    context = ChangeContext(components=("abc",))
    case = TestCase(id=1, title="abc", section_path="Misc")

    result = score(case, context)

    assert result.score == 0
    assert "Generic test (shallow section) penalty (-20)" in result.match_reasons
    assert "Generic test penalty (-20)" in result.match_reasons


def test_missing_fields_never_raise(webform_ticket, webform_change, traceability):
    context = ChangeContext.build(webform_change, webform_ticket, traceability)

    result = score(TestCase(id=9), context)

    assert result.score == 0
    assert result.match_reasons == []


def test_direct_reference_adds_100():
    context = ChangeContext(ticket_id="WEB-101")
    case = TestCase(id=1, title="Export report", refs="web-101")

    result = score(case, context)

    assert result.score == 100
    assert result.match_reasons == ["Direct ticket reference: WEB-101 (+100)"]


def test_pr_context_bonus_is_capped():
    context = ChangeContext(ui_elements=("button", "submit", "field"), behaviors=("disabled", "required"))
    view = CaseView.of(TestCase(id=1, title="Submit button disabled until required field is set"))

    contributions = pr_context_terms(view, context, ScoreState())

    assert len(contributions) == 1
    assert contributions[0][0] == 40


def test_single_pr_context_match_has_no_bonus():
    context = ChangeContext(ui_elements=("dropdown",))
    view = CaseView.of(TestCase(id=1, title="Country dropdown lists all countries"))

    assert pr_context_terms(view, context, ScoreState())[0][0] == 20


def test_bug_fix_change_rewards_negative_scenarios():
    change = ChangeRequest(title="fix: reject invalid email addresses")
    context = ChangeContext.build(change)
    view = CaseView.of(TestCase(id=1, title="Verify invalid email is rejected"))

    assert context.is_bug_fix
    assert bug_fix_scenarios(view, context, ScoreState()) == [(25, "Bug fix: negative scenario test")]


def test_critical_test_with_shared_change():
    change = ChangeRequest(changed_files=[FileDelta(path="src/shared/api/client.ts")])
    context = ChangeContext.build(change)
    view = CaseView.of(TestCase(id=1, title="Checkout happy path", priority=1))

    assert critical_tests(view, context, ScoreState())[0][0] == 50

    quiet = ChangeContext()
    assert critical_tests(CaseView.of(TestCase(id=2, title="Smoke: home page")), quiet, ScoreState())[0][0] == 10


def test_vocabulary_is_replaceable():
    vocabulary = ScoringVocabulary(ui_elements=("carousel",))
    change = ChangeRequest(title="Carousel autoplay")

    context = ChangeContext.build(change, vocabulary=vocabulary)

    assert context.ui_elements == ("carousel",)


def test_is_generic_test():
    assert is_generic_test("Dashboard", ["dashboard"])
    assert not is_generic_test("Dashboard export works", ["dashboard"])
    assert not is_generic_test("Dashboard", [])


def test_rank_regression_candidates_uses_highest_threshold(webform_ticket, webform_change, inventory, traceability):
    context = ChangeContext.build(webform_change, webform_ticket, traceability)

    ranked = rank_regression_candidates(inventory, context, files_changed=1)

    assert {s.test_case.id for s in ranked} == {1, 3, 4, 5}
    assert all(s.score >= 60 for s in ranked)
    scores = [s.score for s in ranked]
    assert scores == sorted(scores, reverse=True)


def test_rank_regression_candidates_falls_back_to_top_scores():
    context = ChangeContext(keywords=("csv",))
    cases = [TestCase(id=1, title="Export report as CSV"), TestCase(id=2, title="Unrelated")]

    ranked = rank_regression_candidates(cases, context, files_changed=1)

    assert [s.test_case.id for s in ranked] == [1]
    assert ranked[0].score == 20


def test_rank_regression_candidates_truncates_by_change_size():
    context = ChangeContext(ticket_id="WEB-1")
    cases = [TestCase(id=i, title=f"Case {i}", refs="WEB-1") for i in range(12)]

    assert len(rank_regression_candidates(cases, context, files_changed=1)) == 10
    assert len(rank_regression_candidates(cases, context, files_changed=30)) == 12


def _view(title, section_path=None):
    return CaseView.of(TestCase(id=1, title=title, section_path=section_path or ""))


def test_api_bonus_needs_the_same_pattern_in_a_changed_path():
    context = ChangeContext(changed_paths=("src/billing/invoice.service.ts",))

    assert api_and_ui_patterns(_view("REST payload for invoice"), context, ScoreState()) == []
    assert api_and_ui_patterns(_view("Invoice service returns totals"), context, ScoreState()) == [
        (20, "API/Service match")
    ]


def test_api_bonus_for_paths_under_api():
    context = ChangeContext(changed_paths=("src/api/invoice.ts",))

    assert api_and_ui_patterns(_view("REST payload"), context, ScoreState()) == [(20, "API/Service match")]


def test_ui_bonus_needs_a_component_or_view_path():
    component = ChangeContext(changed_paths=("src/app/invoice/invoice.component.ts",))
    service = ChangeContext(changed_paths=("src/billing/invoice.service.ts",))
    view = _view("Invoice page shows totals")

    assert api_and_ui_patterns(view, component, ScoreState()) == [(20, "UI/Component match")]
    assert api_and_ui_patterns(view, service, ScoreState()) == []


def test_html_only_change_rewards_ui_tests():
    context = ChangeContext(file_types=FileTypeCounts(html=1))

    assert file_type_relevance(_view("Banner is visible"), context, ScoreState()) == [(20, "File type relevance")]
    assert file_type_relevance(_view("Validate totals"), context, ScoreState()) == []


def test_logic_only_change_rewards_logic_tests():
    context = ChangeContext(file_types=FileTypeCounts(ts=1))

    assert file_type_relevance(_view("Validate totals"), context, ScoreState()) == [(20, "File type relevance")]
    assert file_type_relevance(_view("Banner is visible"), context, ScoreState()) == []


def test_mixed_change_rewards_integration_tests():
    context = ChangeContext(file_types=FileTypeCounts(html=1, ts=1))

    assert file_type_relevance(_view("End-to-end checkout workflow"), context, ScoreState()) == [
        (30, "File type relevance")
    ]
    assert file_type_relevance(_view("Verify totals"), context, ScoreState()) == [(15, "File type relevance")]
    assert file_type_relevance(_view("Banner is visible"), context, ScoreState()) == []


def test_deep_section_with_component():
    context = ChangeContext(components=("webform",))

    assert section_depth(_view("Submit", "Forms › Webform"), context, ScoreState()) == [
        (30, "Section path match (depth 2)")
    ]
    assert section_depth(_view("Webform submission saves a draft", "Webform"), context, ScoreState()) == []


def test_deep_section_with_functional_area():
    context = ChangeContext(functional_areas=("Reporting",))

    assert section_depth(_view("Export", "Reports › Reporting"), context, ScoreState()) == [
        (25, "Section functional area match (depth 2)")
    ]


def test_bug_fix_rewards_regression_tests_for_the_same_component():
    context = ChangeContext(is_bug_fix=True, components=("webform",))

    assert bug_fix_scenarios(_view("Webform regression pack"), context, ScoreState()) == [
        (30, "Bug fix: regression test for same component")
    ]
    assert bug_fix_scenarios(_view("Checkout regression pack"), context, ScoreState()) == []
