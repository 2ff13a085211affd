from __future__ import annotations

from predictiondao.models.prediction import PredictionStatus

VALID_TRANSITIONS: dict[PredictionStatus, set[PredictionStatus]] = {
    PredictionStatus.ACTIVE: {PredictionStatus.APPROVED, PredictionStatus.CLOSED},
    PredictionStatus.APPROVED: set(),
    PredictionStatus.CLOSED: set(),
}


def validate_transition(current: PredictionStatus, target: PredictionStatus) -> bool:
    if current == target:
        return True
    allowed = VALID_TRANSITIONS.get(current, set())
    return target in allowed
