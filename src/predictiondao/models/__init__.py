from __future__ import annotations

from predictiondao.models.events import PredictionApproved, PredictionCreated
from predictiondao.models.lifecycle import VALID_TRANSITIONS, validate_transition
from predictiondao.models.prediction import (
    Prediction,
    PredictionDraft,
    PredictionStatus,
    StatusMutation,
    UpdatedTally,
    Vote,
    VoteMutation,
    VoteTally,
)
from predictiondao.models.profile import CreatorProfile, short_wallet_name

__all__ = [
    # prediction
    "Prediction",
    "PredictionDraft",
    "PredictionStatus",
    "Vote",
    "VoteTally",
    "VoteMutation",
    "StatusMutation",
    "UpdatedTally",
    # lifecycle
    "VALID_TRANSITIONS",
    "validate_transition",
    # profile
    "CreatorProfile",
    "short_wallet_name",
    # events
    "PredictionCreated",
    "PredictionApproved",
]
