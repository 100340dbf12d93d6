"""
Tests for the client-side pieces used by the Streamlit app:
the recognition queue reducer, the settings store and the API client.
"""

import threading

import pytest
import requests

from cashbook.client import (
    AVAILABLE_MODELS,
    DEFAULT_MODEL,
    AddCandidate,
    ApiError,
    CandidateStatus,
    CashbookApiClient,
    DiscardCandidate,
    EditProposal,
    ProposalsConfirmed,
    QueueState,
    RecognitionFailed,
    RecognitionQueue,
    RecognitionSucceeded,
    RemoveProposal,
    RetryCandidate,
    SettingsStore,
    StartRecognition,
    reduce,
)
from cashbook.errors import UpstreamError
from cashbook.models.finance import TransactionProposal


def proposal(description: str, amount="10") -> TransactionProposal:
    return TransactionProposal(
        date="2024-01-15", amount=amount, type="expense", category="food", description=description
    )


def recognized_state(*descriptions) -> QueueState:
    state = reduce(QueueState(), AddCandidate(candidate_id="c1", filename="a.png", image_base64="abc"))
    state = reduce(state, StartRecognition(candidate_id="c1"))
    return reduce(state, RecognitionSucceeded(
        candidate_id="c1", proposals=tuple(proposal(d) for d in descriptions)
    ))


class TestQueueReducer:
    """Tests for queue state transitions."""

    def test_lifecycle(self):
        state = reduce(QueueState(), AddCandidate(candidate_id="c1", filename="a.png", image_base64="abc"))
        assert state.get("c1").status == CandidateStatus.QUEUED

        state = reduce(state, StartRecognition(candidate_id="c1"))
        assert state.get("c1").status == CandidateStatus.PROCESSING

        state = reduce(state, RecognitionFailed(candidate_id="c1", error="timeout"))
        assert state.get("c1").status == CandidateStatus.FAILED
        assert state.get("c1").error == "timeout"

        state = reduce(state, RetryCandidate(candidate_id="c1"))
        assert state.get("c1").status == CandidateStatus.QUEUED
        assert state.get("c1").error is None

    def test_reducer_does_not_mutate(self):
        before = QueueState()
        after = reduce(before, AddCandidate(candidate_id="c1", filename="a.png", image_base64="abc"))
        assert before.candidates == ()
        assert len(after.candidates) == 1

    def test_inapplicable_actions_are_ignored(self):
        state = reduce(QueueState(), AddCandidate(candidate_id="c1", filename="a.png", image_base64="abc"))
        assert reduce(state, RecognitionSucceeded(candidate_id="c1")) == state
        assert reduce(state, RetryCandidate(candidate_id="c1")) == state
        assert reduce(state, StartRecognition(candidate_id="missing")) == state

    def test_processing_candidate_cannot_be_discarded(self):
        state = reduce(QueueState(), AddCandidate(candidate_id="c1", filename="a.png", image_base64="abc"))
        state = reduce(state, StartRecognition(candidate_id="c1"))
        assert reduce(state, DiscardCandidate(candidate_id="c1")) == state

    def test_edit_and_remove_proposals(self):
        state = recognized_state("lunch", "bus", "coffee")

        state = reduce(state, EditProposal(candidate_id="c1", index=1, changes={"amount": "2.5"}))
        assert str(state.get("c1").proposals[1].amount) == "2.5"

        state = reduce(state, RemoveProposal(candidate_id="c1", index=0))
        assert [p.description for p in state.get("c1").proposals] == ["bus", "coffee"]

    def test_invalid_edit_keeps_proposal(self):
        state = recognized_state("lunch")
        edited = reduce(state, EditProposal(candidate_id="c1", index=0, changes={"type": "transfer"}))
        assert edited.get("c1").proposals == state.get("c1").proposals

    def test_partial_confirmation_keeps_unsaved_rows(self):
        state = recognized_state("lunch", "bus", "coffee")

        state = reduce(state, ProposalsConfirmed(candidate_id="c1", count=1))
        assert [p.description for p in state.get("c1").proposals] == ["bus", "coffee"]

        state = reduce(state, ProposalsConfirmed(candidate_id="c1", count=2))
        assert state.get("c1") is None


class TestRecognitionQueue:
    """Tests for draining the queue one candidate at a time."""

    def test_drain_processes_in_order(self):
        queue = RecognitionQueue()
        first = queue.add("a.png", "aaa")
        second = queue.add("b.png", "bbb")
        seen = []

        def recognizer(candidate):
            seen.append(candidate.filename)
            assert queue.state.count(CandidateStatus.PROCESSING) == 1
            return [proposal(candidate.filename)]

        assert queue.drain(recognizer) == 2
        assert seen == ["a.png", "b.png"]
        assert queue.state.get(first).status == CandidateStatus.RECOGNIZED
        assert queue.state.get(second).proposals[0].description == "b.png"

    def test_failure_does_not_stop_the_queue(self):
        queue = RecognitionQueue()
        failing = queue.add("a.png", "aaa")
        ok = queue.add("b.png", "bbb")

        def recognizer(candidate):
            if candidate.id == failing:
                raise UpstreamError("Vision API call failed: 500")
            return []

        queue.drain(recognizer)
        assert queue.state.get(failing).status == CandidateStatus.FAILED
        assert "Vision API call failed" in queue.state.get(failing).error
        assert queue.state.get(ok).status == CandidateStatus.RECOGNIZED

    def test_unexpected_error_marks_failed_and_propagates(self):
        queue = RecognitionQueue()
        candidate_id = queue.add("a.png", "aaa")

        def recognizer(candidate):
            raise RuntimeError("bug")

        with pytest.raises(RuntimeError):
            queue.drain(recognizer)
        assert queue.state.get(candidate_id).status == CandidateStatus.FAILED
        assert not queue.is_draining

    def test_only_one_drain_at_a_time(self):
        queue = RecognitionQueue()
        queue.add("a.png", "aaa")
        started = threading.Event()
        release = threading.Event()
        results = []

        def slow_recognizer(candidate):
            started.set()
            release.wait(timeout=5)
            return []

        worker = threading.Thread(target=lambda: results.append(queue.drain(slow_recognizer)))
        worker.start()
        started.wait(timeout=5)

        assert queue.is_draining
        assert queue.drain(slow_recognizer) == 0

        release.set()
        worker.join(timeout=5)
        assert results == [1]


class TestSettingsStore:
    """Tests for client settings persistence."""

    def test_defaults_when_missing(self, tmp_path):
        settings = SettingsStore(tmp_path / "settings.json").load()
        assert settings.api_key == ""
        assert settings.model == DEFAULT_MODEL
        assert DEFAULT_MODEL in [model_id for model_id, _, _ in AVAILABLE_MODELS]

    def test_save_merges_and_persists(self, tmp_path):
        store = SettingsStore(tmp_path / "nested" / "settings.json")
        store.save(api_key="k-123")
        store.save(model="gemini-1.5-pro")

        reloaded = SettingsStore(tmp_path / "nested" / "settings.json").load()
        assert (reloaded.api_key, reloaded.model) == ("k-123", "gemini-1.5-pro")

    def test_saved_file_is_private(self, tmp_path):
        store = SettingsStore(tmp_path / "settings.json")
        store.save(api_key="secret")
        assert store.path.stat().st_mode & 0o777 == 0o600

    def test_malformed_file_falls_back_to_defaults(self, tmp_path):
        path = tmp_path / "settings.json"
        path.write_text("{not json", encoding="utf-8")
        assert SettingsStore(path).load().model == DEFAULT_MODEL

    def test_reset(self, tmp_path):
        store = SettingsStore(tmp_path / "settings.json")
        store.save(api_key="k")
        assert store.reset().api_key == ""
        assert not store.path.exists()
        store.reset()


class FakeResponse:
    def __init__(self, status_code, body):
        self.status_code = status_code
        self._body = body

    @property
    def ok(self):
        return self.status_code < 400

    def json(self):
        if isinstance(self._body, Exception):
            raise self._body
        return self._body


class FakeSession:
    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls = []
        self.cookies = requests.cookies.RequestsCookieJar()

    def request(self, method, url, json=None, params=None, timeout=None):
        self.calls.append({"method": method, "url": url, "json": json, "params": params, "timeout": timeout})
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


class TestApiClient:
    """Tests for the HTTP client wrapper."""

    def test_builds_urls_and_unwraps(self):
        session = FakeSession(FakeResponse(200, {"success": True, "categories": [{"id": "food"}]}))
        client = CashbookApiClient("http://api.local/", session=session)

        assert client.list_categories("expense") == [{"id": "food"}]
        assert session.calls[0]["url"] == "http://api.local/api/categories"
        assert session.calls[0]["params"] == {"type": "expense"}

    def test_recognize_sends_camel_case_and_long_timeout(self):
        session = FakeSession(FakeResponse(200, {"success": True, "transactions": []}))
        client = CashbookApiClient("http://api.local", session=session)

        client.recognize("abc", api_key="k", model="gemini-1.5-pro")
        call = session.calls[0]
        assert call["json"] == {"imageBase64": "abc", "apiKey": "k", "model": "gemini-1.5-pro"}
        assert call["timeout"] > client.timeout

    def test_error_body_raises_api_error(self):
        session = FakeSession(FakeResponse(500, {
            "success": False,
            "error": "Failed to save item 2",
            "failedIndex": 1,
            "transactions": [{"id": "t1"}],
        }))
        client = CashbookApiClient("http://api.local", session=session)

        with pytest.raises(ApiError) as error:
            client.create_transactions([{}, {}])
        assert error.value.status == 500
        assert error.value.failed_index == 1
        assert error.value.saved_transactions == [{"id": "t1"}]

    def test_connection_failure(self):
        session = FakeSession(requests.ConnectionError("refused"))
        client = CashbookApiClient("http://api.local", session=session)

        with pytest.raises(ApiError) as error:
            client.health()
        assert error.value.status == 0

    def test_non_json_response(self):
        session = FakeSession(FakeResponse(502, ValueError("no json")))
        client = CashbookApiClient("http://api.local", session=session)

        with pytest.raises(ApiError, match="Unexpected response"):
            client.me()
