"""Recomputing marks and totals from question-level data."""
import pytest
from conftest import make_question, make_response

from examgrader.services.reconciler import (
    BLANK_PAPER_FEEDBACK,
    DEFAULT_FEEDBACK,
    reconcile_evaluation,
    round_half_up,
)
from examgrader.services.validator import parse_marks


def test_awarded_marks_are_capped_at_possible():
    result = reconcile_evaluation(make_response([make_question("12/10")]), 10, "O-Level")
    evaluation = result.evaluation

    assert evaluation.questions[0].marks == "10/10"
    assert evaluation.summary.total_awarded == 10
    assert evaluation.summary.total_possible == 10
    assert evaluation.summary.percentage == 100
    assert evaluation.summary.grade.grade == "A*"
    assert any("capped" in w for w in result.warnings)


def test_question_sums_override_model_totals():
    payload = make_response([make_question("3/5"), make_question("4.5/5")])
    payload["summary"].update({"totalAwarded": 10, "totalPossible": 10, "percentage": 100})

    summary = reconcile_evaluation(payload, 10, "O-Level").evaluation.summary

    assert (summary.total_awarded, summary.total_possible) == (7.5, 10)
    assert summary.percentage == 75.0
    assert summary.grade.grade == "B"


def test_summary_totals_used_when_no_question_has_marks():
    payload = make_response([make_question("seven"), make_question(None)])
    payload["summary"].update({"totalAwarded": "7", "totalPossible": 20})

    result = reconcile_evaluation(payload, 10, "O-Level")
    summary = result.evaluation.summary

    assert [q.marks for q in result.evaluation.questions] == ["0/0", "0/0"]
    assert (summary.total_awarded, summary.total_possible) == (7, 20)
    assert summary.percentage == 35.0
    assert summary.grade.grade == "F"
    assert len(result.warnings) == 2


def test_zero_out_of_requested_total_when_nothing_usable():
    summary = reconcile_evaluation(make_response([make_question("n/a")]), 25, "IELTS").evaluation.summary
    assert (summary.total_awarded, summary.total_possible, summary.percentage) == (0, 25, 0)
    assert summary.grade.grade == "0.0"


def test_summary_totals_are_clamped():
    payload = make_response([make_question("bad")])
    payload["summary"].update({"totalAwarded": 30, "totalPossible": 20})

    result = reconcile_evaluation(payload, 20, "A-Level")

    assert result.evaluation.summary.total_awarded == 20
    assert result.evaluation.summary.percentage == 100
    assert any("Total awarded marks" in w for w in result.warnings)


def test_zero_possible_gives_zero_percentage():
    summary = reconcile_evaluation(make_response([make_question("0/0")]), None, "O-Level").evaluation.summary
    assert summary.total_possible == 0
    assert summary.percentage == 0
    assert summary.grade.grade == "U"


def test_rounding_is_half_up():
    assert round_half_up(2.675, 2) == 2.68
    assert round_half_up(66.65, 1) == 66.7
    assert round_half_up(0.125, 2) == 0.13

    payload = make_response([make_question("1/3"), make_question("1.005/3")])
    evaluation = reconcile_evaluation(payload, 6, "Standard").evaluation
    assert evaluation.questions[1].marks == "1.01/3"
    assert evaluation.summary.total_awarded == 2.01
    assert evaluation.summary.percentage == 33.5


def test_missing_questions_get_placeholder():
    result = reconcile_evaluation({"summary": {"feedback": "Looks fine"}}, 40, "O-Level")
    evaluation = result.evaluation

    assert len(evaluation.questions) == 1
    assert evaluation.questions[0].heading == "Overall Assessment"
    assert evaluation.questions[0].marks == "0/40"
    assert evaluation.summary.total_possible == 40
    assert evaluation.summary.feedback == "Looks fine"


def test_non_object_payload_becomes_fallback():
    result = reconcile_evaluation("not json", 10, "O-Level")
    assert "Invalid data object" in result.evaluation.summary.feedback
    assert result.evaluation.questions[0].marks == "0/10"


def test_missing_text_fields_are_filled():
    raw = {"marks": "2/4", "pageNumber": "abc"}
    question = reconcile_evaluation({"questions": [raw]}, 4, "O-Level").evaluation.questions[0]

    assert question.page_number == 1
    assert question.heading == "Question 1"
    assert question.question_text == "N/A"
    assert question.evaluation == "N/A"


def test_default_and_blank_paper_feedback():
    payload = {"questions": [make_question("0/10")]}
    assert reconcile_evaluation(payload, 10, "O-Level").evaluation.summary.feedback == DEFAULT_FEEDBACK
    blank = reconcile_evaluation(payload, 10, "O-Level", is_blank_paper=True)
    assert blank.evaluation.summary.feedback == BLANK_PAPER_FEEDBACK


def test_raw_response_is_kept():
    payload = make_response([make_question("1/2")])
    evaluation = reconcile_evaluation(payload, 2, "O-Level", raw_response='{"questions": []}').evaluation
    assert evaluation.raw_response == '{"questions": []}'


@pytest.mark.parametrize("marks", [["12/10"], ["3/5", "4/5"], ["0.333/1", "2/3", "x"], ["bad"]])
def test_reconciling_twice_changes_nothing(marks):
    payload = make_response([make_question(m) for m in marks])
    payload["summary"].update({"totalAwarded": 4, "totalPossible": 9})

    first = reconcile_evaluation(payload, 10, "IELTS").evaluation
    second = reconcile_evaluation(first.model_dump(mode="json", by_alias=True), 10, "IELTS").evaluation

    assert second == first


@pytest.mark.parametrize("marks", [
    ["5/10", "7/10"], ["11/10", "3/4"], ["-2/5", "1/1"], ["0/0"], ["2.5/2", "junk", "9/9"],
])
def test_bounds_hold_for_every_question_and_total(marks):
    evaluation = reconcile_evaluation(make_response([make_question(m) for m in marks]), 20, "O-Level").evaluation

    for question in evaluation.questions:
        awarded, possible = parse_marks(question.marks)
        assert 0 <= awarded <= possible

    summary = evaluation.summary
    assert 0 <= summary.total_awarded <= summary.total_possible
    assert 0 <= summary.percentage <= 100


def test_very_large_marks_are_reconciled():
    huge = "1" + "0" * 27
    payload = make_response([make_question(f"{huge}/{huge}")])

    evaluation = reconcile_evaluation(payload, None, "O-Level").evaluation

    awarded, possible = parse_marks(evaluation.questions[0].marks)
    assert awarded == possible == float(huge)
    assert evaluation.summary.total_awarded == evaluation.summary.total_possible
    assert evaluation.summary.percentage == 100
    assert evaluation.summary.grade.grade == "A*"


def test_very_large_summary_totals_are_reconciled():
    payload = make_response([make_question("bad")])
    payload["summary"].update({"totalAwarded": 1e30, "totalPossible": 2e30})

    summary = reconcile_evaluation(payload, 10, "O-Level").evaluation.summary

    assert (summary.total_awarded, summary.total_possible) == (1e30, 2e30)
    assert summary.percentage == 50


def test_round_half_up_handles_any_magnitude():
    assert round_half_up(1e300, 2) == 1e300
    assert round_half_up(float("inf"), 2) == float("inf")
