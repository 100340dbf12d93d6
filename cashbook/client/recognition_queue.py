"""
Recognition Queue

Client-side state for statement import. Each uploaded image becomes a
candidate that moves through:

    queued → processing → recognized | failed

DESIGN DECISION: Explicit state container.
- ``QueueState`` is immutable; every change goes through ``reduce``
- ``reduce(state, action)`` is pure, so every transition is testable
  without a UI or a server
- ``RecognitionQueue.drain`` is the only place recognition runs, one
  candidate at a time; a second concurrent drain returns immediately

Actions that do not apply (unknown id, wrong status) leave the state
unchanged. There is no cancellation: a started recognition runs to
completion or failure.
"""

import threading
from enum import Enum
from typing import Callable, Optional, Union
from uuid import uuid4

import structlog
from pydantic import BaseModel, ConfigDict, ValidationError

from cashbook.client.api_client import ApiError
from cashbook.errors import CashbookError
from cashbook.models.finance import TransactionProposal


logger = structlog.get_logger(__name__)


class CandidateStatus(str, Enum):
    QUEUED = "queued"
    PROCESSING = "processing"
    RECOGNIZED = "recognized"
    FAILED = "failed"


class Candidate(BaseModel):
    """One uploaded statement image and what recognition made of it."""

    model_config = ConfigDict(frozen=True)

    id: str
    filename: str
    image_base64: str
    status: CandidateStatus = CandidateStatus.QUEUED
    proposals: tuple[TransactionProposal, ...] = ()
    error: Optional[str] = None


class QueueState(BaseModel):
    model_config = ConfigDict(frozen=True)

    candidates: tuple[Candidate, ...] = ()

    def get(self, candidate_id: str) -> Optional[Candidate]:
        for candidate in self.candidates:
            if candidate.id == candidate_id:
                return candidate
        return None

    def next_queued(self) -> Optional[Candidate]:
        for candidate in self.candidates:
            if candidate.status == CandidateStatus.QUEUED:
                return candidate
        return None

    def count(self, status: CandidateStatus) -> int:
        return sum(1 for c in self.candidates if c.status == status)


# =============================================================================
# ACTIONS
# =============================================================================

class _Action(BaseModel):
    model_config = ConfigDict(frozen=True)

    candidate_id: str


class AddCandidate(_Action):
    filename: str
    image_base64: str


class StartRecognition(_Action):
    pass


class RecognitionSucceeded(_Action):
    proposals: tuple[TransactionProposal, ...] = ()


class RecognitionFailed(_Action):
    error: str


class RetryCandidate(_Action):
    pass


class DiscardCandidate(_Action):
    pass


class EditProposal(_Action):
    index: int
    changes: dict


class RemoveProposal(_Action):
    index: int


class ProposalsConfirmed(_Action):
    """The first ``count`` proposals were saved (all of them, or up to a failure)."""
    count: int


Action = Union[
    AddCandidate,
    StartRecognition,
    RecognitionSucceeded,
    RecognitionFailed,
    RetryCandidate,
    DiscardCandidate,
    EditProposal,
    RemoveProposal,
    ProposalsConfirmed,
]


# =============================================================================
# REDUCER
# =============================================================================

def _replace(state: QueueState, candidate_id: str, **update) -> QueueState:
    return state.model_copy(update={
        "candidates": tuple(
            c.model_copy(update=update) if c.id == candidate_id else c
            for c in state.candidates
        )
    })


def _remove(state: QueueState, candidate_id: str) -> QueueState:
    return state.model_copy(update={
        "candidates": tuple(c for c in state.candidates if c.id != candidate_id)
    })


def _edit(proposal: TransactionProposal, changes: dict) -> TransactionProposal:
    try:
        return TransactionProposal.model_validate({**proposal.model_dump(), **changes})
    except ValidationError as e:
        logger.warning("proposal_edit_rejected", error=str(e))
        return proposal


def reduce(state: QueueState, action: Action) -> QueueState:
    """Pure transition function."""
    if isinstance(action, AddCandidate):
        if state.get(action.candidate_id) is not None:
            return state
        candidate = Candidate(
            id=action.candidate_id,
            filename=action.filename,
            image_base64=action.image_base64,
        )
        return state.model_copy(update={"candidates": (*state.candidates, candidate)})

    candidate = state.get(action.candidate_id)
    if candidate is None:
        return state

    if isinstance(action, StartRecognition):
        if candidate.status != CandidateStatus.QUEUED:
            return state
        return _replace(state, candidate.id, status=CandidateStatus.PROCESSING, error=None)

    if isinstance(action, RecognitionSucceeded):
        if candidate.status != CandidateStatus.PROCESSING:
            return state
        return _replace(state, candidate.id, status=CandidateStatus.RECOGNIZED, proposals=action.proposals)

    if isinstance(action, RecognitionFailed):
        if candidate.status != CandidateStatus.PROCESSING:
            return state
        return _replace(state, candidate.id, status=CandidateStatus.FAILED, error=action.error)

    if isinstance(action, RetryCandidate):
        if candidate.status != CandidateStatus.FAILED:
            return state
        return _replace(state, candidate.id, status=CandidateStatus.QUEUED, error=None)

    if isinstance(action, DiscardCandidate):
        # A running recognition cannot be cancelled
        if candidate.status == CandidateStatus.PROCESSING:
            return state
        return _remove(state, candidate.id)

    if candidate.status != CandidateStatus.RECOGNIZED:
        return state

    if isinstance(action, EditProposal):
        if not 0 <= action.index < len(candidate.proposals):
            return state
        proposals = list(candidate.proposals)
        proposals[action.index] = _edit(proposals[action.index], action.changes)
        return _replace(state, candidate.id, proposals=tuple(proposals))

    if isinstance(action, RemoveProposal):
        if not 0 <= action.index < len(candidate.proposals):
            return state
        proposals = candidate.proposals[:action.index] + candidate.proposals[action.index + 1:]
        return _replace(state, candidate.id, proposals=proposals)

    if isinstance(action, ProposalsConfirmed):
        remaining = candidate.proposals[max(action.count, 0):]
        if not remaining:
            return _remove(state, candidate.id)
        return _replace(state, candidate.id, proposals=remaining)

    return state


# =============================================================================
# CONTAINER
# =============================================================================

Recognizer = Callable[[Candidate], list[TransactionProposal]]


class RecognitionQueue:
    """
    Holds the current QueueState and runs recognition.

    Thread-safe: Streamlit may rerun the script while a drain is in
    progress, and the rerun must not start a second recognition.
    """

    def __init__(self, state: Optional[QueueState] = None):
        self._state = state or QueueState()
        self._state_lock = threading.Lock()
        self._drain_lock = threading.Lock()

    @property
    def state(self) -> QueueState:
        return self._state

    @property
    def is_draining(self) -> bool:
        return self._drain_lock.locked()

    def dispatch(self, action: Action) -> QueueState:
        with self._state_lock:
            self._state = reduce(self._state, action)
            return self._state

    def add(self, filename: str, image_base64: str) -> str:
        candidate_id = str(uuid4())
        self.dispatch(AddCandidate(candidate_id=candidate_id, filename=filename, image_base64=image_base64))
        return candidate_id

    def drain(self, recognizer: Recognizer) -> int:
        """
        Recognize queued candidates one at a time until none are left.

        Returns how many candidates were processed; 0 if another drain
        is already running.
        """
        if not self._drain_lock.acquire(blocking=False):
            return 0

        processed = 0
        try:
            while True:
                candidate = self._state.next_queued()
                if candidate is None:
                    break

                self.dispatch(StartRecognition(candidate_id=candidate.id))
                try:
                    proposals = recognizer(candidate)
                except (ApiError, CashbookError) as e:
                    self.dispatch(RecognitionFailed(candidate_id=candidate.id, error=str(e)))
                except Exception as e:
                    self.dispatch(RecognitionFailed(candidate_id=candidate.id, error=f"Unexpected error: {e}"))
                    raise
                else:
                    self.dispatch(RecognitionSucceeded(candidate_id=candidate.id, proposals=tuple(proposals)))
                processed += 1
        finally:
            self._drain_lock.release()

        return processed
