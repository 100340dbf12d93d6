"""Client-side helpers used by the Streamlit app."""

from cashbook.client.api_client import ApiError, CashbookApiClient
from cashbook.client.recognition_queue import (
    AddCandidate,
    Candidate,
    CandidateStatus,
    DiscardCandidate,
    EditProposal,
    ProposalsConfirmed,
    QueueState,
    RecognitionFailed,
    RecognitionQueue,
    RecognitionSucceeded,
    RemoveProposal,
    RetryCandidate,
    StartRecognition,
    reduce,
)
from cashbook.client.settings_store import (
    AVAILABLE_MODELS,
    DEFAULT_MODEL,
    ClientSettings,
    SettingsStore,
)

__all__ = [
    "ApiError",
    "CashbookApiClient",
    "AddCandidate",
    "Candidate",
    "CandidateStatus",
    "DiscardCandidate",
    "EditProposal",
    "ProposalsConfirmed",
    "QueueState",
    "RecognitionFailed",
    "RecognitionQueue",
    "RecognitionSucceeded",
    "RemoveProposal",
    "RetryCandidate",
    "StartRecognition",
    "reduce",
    "AVAILABLE_MODELS",
    "DEFAULT_MODEL",
    "ClientSettings",
    "SettingsStore",
]
