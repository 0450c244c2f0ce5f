"""End-to-end pipeline runs against a scripted chat client."""
import asyncio

import pytest
from conftest import FakeChat, RecordingSleep, as_json, make_question, make_response

from examgrader.config import GradingConfig
from examgrader.models.evaluation import EvaluationRequest
from examgrader.services.evaluation import evaluate_exam_paper
from examgrader.services.reconciler import BLANK_PAPER_FEEDBACK


def evaluate(request, chat, config=None, sleep=None):
    return asyncio.run(evaluate_exam_paper(request, chat, config, sleep=sleep or RecordingSleep()))


def test_successful_evaluation(evaluation_request):
    payload = make_response([make_question("4/5"), make_question("3.5/5", heading="Question 2")])
    chat = FakeChat([as_json(payload)])

    outcome = evaluate(evaluation_request(total=10), chat)

    assert outcome.success
    assert outcome.error is None
    summary = outcome.evaluation.summary
    assert (summary.total_awarded, summary.total_possible, summary.percentage) == (7.5, 10, 75.0)
    assert summary.grade.grade == "B"
    assert summary.feedback == "Solid effort overall."
    assert outcome.evaluation.raw_response == as_json(payload)

    meta = outcome.metadata
    assert meta.validation_passed
    assert not meta.used_fallback
    assert meta.attempts == 1
    assert meta.model == "fake-gemini"
    assert meta.student_paper_pages == 1
    assert meta.mark_scheme_pages == 1
    assert meta.total_possible_marks == 10
    assert meta.student_info.student_name == "Ada"
    assert meta.processing_time_ms >= 0


def test_model_overclaims_are_corrected(evaluation_request):
    payload = make_response([make_question("12/10")])
    payload["summary"].update({"totalAwarded": 14, "totalPossible": 10, "percentage": 140})

    outcome = evaluate(evaluation_request(total=10), FakeChat([as_json(payload)]))

    assert outcome.evaluation.questions[0].marks == "10/10"
    assert outcome.evaluation.summary.percentage == 100
    assert outcome.evaluation.summary.grade.grade == "A*"
    assert outcome.metadata.issues
    assert not outcome.metadata.validation_passed
    assert outcome.metadata.warnings


def test_every_attempt_failing_yields_fallback(evaluation_request):
    chat = FakeChat([RuntimeError("quota exceeded")] * 3)
    sleep = RecordingSleep()

    outcome = evaluate(evaluation_request(total=10), chat, sleep=sleep)

    assert not outcome.success
    assert "All retries failed" in outcome.evaluation.summary.feedback
    assert len(outcome.evaluation.questions) >= 1
    assert outcome.evaluation.questions[0].marks == "0/10"
    assert outcome.evaluation.summary.total_possible == 10
    assert outcome.metadata.used_fallback
    assert outcome.metadata.fallback_reason == "All retries failed"
    assert outcome.metadata.attempts == 3
    assert outcome.error == "quota exceeded"
    assert sleep.delays == [2, 4]


def test_unparseable_response_yields_fallback(evaluation_request):
    outcome = evaluate(evaluation_request(), FakeChat(["The paper is illegible."]))

    assert not outcome.success
    assert "JSON parse failed" in outcome.evaluation.summary.feedback
    assert outcome.metadata.attempts == 1


def test_unusable_responses_yield_fallback(evaluation_request):
    bad = as_json({"questions": [{"marks": "?"}, {"marks": "?"}]})
    outcome = evaluate(evaluation_request(), FakeChat([bad, bad, bad]))

    assert not outcome.success
    assert outcome.metadata.fallback_reason == "Unusable AI response"
    assert outcome.metadata.issues


def test_blank_paper(evaluation_request):
    blank = make_question("0/5", transcription="No answer provided",
                          evaluation="Blank response, nothing to assess.")
    payload = {"questions": [blank, dict(blank, heading="Question 2")]}

    outcome = evaluate(evaluation_request(total=10), FakeChat([as_json(payload)]))

    assert outcome.success
    assert outcome.metadata.is_blank_paper
    summary = outcome.evaluation.summary
    assert (summary.total_awarded, summary.total_possible, summary.percentage) == (0, 10, 0)
    assert summary.feedback == BLANK_PAPER_FEEDBACK
    assert summary.grade.grade == "U"


def test_custom_config_is_honoured(evaluation_request):
    chat = FakeChat([RuntimeError("down")])
    outcome = evaluate(evaluation_request(), chat, config=GradingConfig(max_retries=0))
    assert outcome.metadata.attempts == 1
    assert chat.calls == 1


def test_missing_student_paper_raises_before_calling_model():
    chat = FakeChat([])
    with pytest.raises(ValueError):
        evaluate(EvaluationRequest(student_paper=[]), chat)
    assert chat.calls == 0


def test_unexpected_errors_become_fallback(evaluation_request, monkeypatch):
    async def broken(*args, **kwargs):
        raise KeyError("boom")

    monkeypatch.setattr("examgrader.services.evaluation.request_grading", broken)
    outcome = evaluate(evaluation_request(total=20, exam_type="IELTS"), FakeChat([]))

    assert not outcome.success
    assert "Unexpected evaluation error" in outcome.evaluation.summary.feedback
    assert outcome.evaluation.summary.grade.grade == "0.0"
    assert outcome.evaluation.questions[0].marks == "0/20"


def test_very_large_marks_do_not_trigger_fallback(evaluation_request):
    huge = "1" + "0" * 27
    payload = make_response([make_question(f"{huge}/{huge}")])

    outcome = evaluate(evaluation_request(total=None), FakeChat([as_json(payload)]))

    assert outcome.success
    assert not outcome.metadata.used_fallback
    assert outcome.evaluation.summary.percentage == 100
