"""Grading model calls: JSON extraction, retries and timeouts."""
import asyncio

from conftest import FakeChat, RecordingSleep, as_json, make_question, make_response

from examgrader.config import GradingConfig
from examgrader.services.grading_client import extract_json, request_grading
from examgrader.services.llm import UserMessage
from examgrader.services.retry import RetriesExhausted, RetryPolicy, linear_backoff, retry_async

MESSAGE = UserMessage(["Grade this paper"])
GOOD = make_response([make_question("4/5"), make_question("5/5")])
UNUSABLE = {"questions": [{"marks": "x"}, {"marks": "y"}]}


class SlowChat:
    model_name = "slow"

    async def send_message(self, message):
        await asyncio.sleep(5)
        return as_json(GOOD)


def run(chat, total=10, config=None, sleep=None):
    sleep = sleep or RecordingSleep()
    return asyncio.run(request_grading(chat, MESSAGE, total, config or GradingConfig(), sleep=sleep))


# ============== JSON EXTRACTION ==============

def test_extract_plain_json():
    assert extract_json('{"a": 1}') == {"a": 1}


def test_extract_from_code_fence():
    assert extract_json('```json\n{"questions": [], "b": "x"}\n```') == {"questions": [], "b": "x"}


def test_extract_from_surrounding_prose():
    text = 'Here is the grading:\n{"summary": {"feedback": "ok"}}\nLet me know if you need more.'
    assert extract_json(text) == {"summary": {"feedback": "ok"}}


def test_extract_rejects_garbage():
    assert extract_json("no json here") is None
    assert extract_json("") is None
    assert extract_json(None) is None
    assert extract_json("[1, 2, 3]") is None
    assert extract_json("{broken: json,}") is None


# ============== RETRY POLICY ==============

def test_linear_backoff_delays():
    policy = RetryPolicy()
    assert [policy.delay_for(a) for a in (1, 2)] == [2.0, 4.0]
    assert RetryPolicy(backoff=linear_backoff(0.5)).delay_for(3) == 1.5


def test_retry_async_collects_every_error():
    sleep = RecordingSleep()

    async def always_fails(attempt):
        raise ValueError(f"boom {attempt}")

    try:
        asyncio.run(retry_async(always_fails, RetryPolicy(max_attempts=3), sleep=sleep))
    except RetriesExhausted as exhausted:
        assert [str(e) for e in exhausted.errors] == ["boom 1", "boom 2", "boom 3"]
        assert str(exhausted.last_error) == "boom 3"
    else:
        raise AssertionError("expected RetriesExhausted")
    assert sleep.delays == [2.0, 4.0]


# ============== REQUEST GRADING ==============

def test_first_attempt_success():
    chat = FakeChat([as_json(GOOD)])
    result = run(chat)
    assert result.ok
    assert result.attempts == 1
    assert result.payload == GOOD
    assert result.validation.is_valid
    assert chat.calls == 1


def test_transport_errors_are_retried_with_linear_backoff():
    chat = FakeChat([ConnectionError("reset"), RuntimeError("503"), as_json(GOOD)])
    sleep = RecordingSleep()
    result = run(chat, sleep=sleep)
    assert result.ok
    assert result.attempts == 3
    assert sleep.delays == [2, 4]


def test_all_retries_failed():
    chat = FakeChat([ConnectionError("a"), ConnectionError("b"), ConnectionError("c")])
    sleep = RecordingSleep()
    result = run(chat, sleep=sleep)
    assert not result.ok
    assert result.failure_reason == "All retries failed"
    assert result.attempts == 3
    assert result.errors == ["a", "b", "c"]
    assert chat.calls == 3
    assert sleep.delays == [2, 4]


def test_retry_budget_comes_from_config():
    chat = FakeChat([ConnectionError("a")] * 5)
    config = GradingConfig(max_retries=0)
    result = run(chat, config=config)
    assert not result.ok
    assert chat.calls == 1


def test_timeout_counts_as_failed_attempt():
    config = GradingConfig(timeout_seconds=0.01, max_retries=1)
    sleep = RecordingSleep()
    result = run(SlowChat(), config=config, sleep=sleep)
    assert not result.ok
    assert result.failure_reason == "All retries failed"
    assert result.attempts == 2
    assert "timed out" in result.error
    assert sleep.delays == [2]


def test_unparseable_json_is_not_retried():
    chat = FakeChat(["I could not read the paper, sorry.", as_json(GOOD)])
    result = run(chat)
    assert not result.ok
    assert result.failure_reason == "JSON parse failed"
    assert result.raw_text == "I could not read the paper, sorry."
    assert chat.calls == 1


def test_unusable_response_is_retried():
    chat = FakeChat([as_json(UNUSABLE), as_json(GOOD)])
    sleep = RecordingSleep()
    result = run(chat, sleep=sleep)
    assert result.ok
    assert result.attempts == 2
    assert sleep.delays == [2]


def test_unusable_every_time_keeps_last_payload():
    chat = FakeChat([as_json(UNUSABLE)] * 3)
    result = run(chat)
    assert not result.ok
    assert result.failure_reason == "Unusable AI response"
    assert result.payload == UNUSABLE
    assert not result.validation.is_valid
    assert result.attempts == 3


def test_salvageable_response_is_accepted():
    payload = make_response([make_question("6/5"), make_question("5/5")])
    result = run(FakeChat([as_json(payload)]))
    assert result.ok
    assert result.validation.issues
