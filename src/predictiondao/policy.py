"""Approval policy: pure decisions over a tally and a deadline.

All threshold comparisons use integer arithmetic so that boundary tallies
(7 yes / 3 no against 70%) decide the same way on every call.
"""

from __future__ import annotations

from datetime import datetime

from predictiondao.models.prediction import PredictionStatus

APPROVAL_THRESHOLD_PCT = 70


def threshold_met(
    yes_votes: int, no_votes: int, threshold_pct: int = APPROVAL_THRESHOLD_PCT,
) -> bool:
    """True when there is at least one vote and yes/total >= threshold."""
    total = yes_votes + no_votes
    if total <= 0:
        return False
    return yes_votes * 100 >= total * threshold_pct


def voting_open(now: datetime, end_time: datetime) -> bool:
    return now < end_time


def decide_status(
    yes_votes: int,
    no_votes: int,
    now: datetime,
    end_time: datetime,
    current_status: PredictionStatus,
    threshold_pct: int = APPROVAL_THRESHOLD_PCT,
) -> PredictionStatus:
    """Status a prediction must hold given its tally and the clock.

    Terminal states are sticky. Otherwise approval is checked before the
    deadline, then the deadline, else the prediction stays active.
    """
    if current_status.is_terminal:
        return current_status
    if threshold_met(yes_votes, no_votes, threshold_pct):
        return PredictionStatus.APPROVED
    if not voting_open(now, end_time):
        return PredictionStatus.CLOSED
    return PredictionStatus.ACTIVE


def approval_percentage(yes_votes: int, no_votes: int) -> int:
    """Whole-number yes percentage (floor), 0 when no votes were cast."""
    total = yes_votes + no_votes
    if total <= 0:
        return 0
    return (yes_votes * 100) // total
