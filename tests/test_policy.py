from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest

from predictiondao.models.prediction import PredictionStatus
from predictiondao.policy import (
    approval_percentage,
    decide_status,
    threshold_met,
    voting_open,
)

NOW = datetime(2025, 3, 1, 12, 0, tzinfo=UTC)
LATER = NOW + timedelta(days=3)


class TestThresholdMet:
    def test_seven_of_ten_meets_seventy(self) -> None:
        assert threshold_met(7, 3) is True

    def test_six_of_nine_does_not(self) -> None:
        assert threshold_met(6, 3) is False

    def test_no_votes_never_meets(self) -> None:
        assert threshold_met(0, 0) is False

    def test_unanimous_single_vote(self) -> None:
        assert threshold_met(1, 0) is True

    def test_single_no_vote(self) -> None:
        assert threshold_met(0, 1) is False

    @pytest.mark.parametrize(
        ("yes", "no", "expected"),
        [(70, 30, True), (69, 31, False), (14, 6, True), (13, 6, False)],
    )
    def test_exact_boundaries(self, yes: int, no: int, expected: bool) -> None:
        assert threshold_met(yes, no) is expected

    def test_custom_threshold(self) -> None:
        assert threshold_met(1, 1, threshold_pct=50) is True
        assert threshold_met(1, 2, threshold_pct=50) is False


class TestVotingOpen:
    def test_open_before_deadline(self) -> None:
        assert voting_open(NOW, LATER) is True

    def test_closed_at_deadline(self) -> None:
        assert voting_open(LATER, LATER) is False


class TestDecideStatus:
    def test_stays_active_below_threshold(self) -> None:
        status = decide_status(6, 3, NOW, LATER, PredictionStatus.ACTIVE)
        assert status is PredictionStatus.ACTIVE

    def test_approves_at_threshold(self) -> None:
        status = decide_status(7, 3, NOW, LATER, PredictionStatus.ACTIVE)
        assert status is PredictionStatus.APPROVED

    def test_closes_after_deadline(self) -> None:
        status = decide_status(3, 10, LATER, LATER, PredictionStatus.ACTIVE)
        assert status is PredictionStatus.CLOSED

    def test_no_votes_after_deadline_closes(self) -> None:
        status = decide_status(0, 0, LATER + timedelta(seconds=1), LATER, PredictionStatus.ACTIVE)
        assert status is PredictionStatus.CLOSED

    def test_approval_checked_before_deadline(self) -> None:
        status = decide_status(7, 3, LATER, LATER, PredictionStatus.ACTIVE)
        assert status is PredictionStatus.APPROVED

    def test_approved_is_sticky(self) -> None:
        status = decide_status(7, 30, LATER, LATER, PredictionStatus.APPROVED)
        assert status is PredictionStatus.APPROVED

    def test_closed_is_sticky(self) -> None:
        status = decide_status(100, 0, NOW, LATER, PredictionStatus.CLOSED)
        assert status is PredictionStatus.CLOSED


class TestApprovalPercentage:
    def test_no_votes(self) -> None:
        assert approval_percentage(0, 0) == 0

    def test_floors(self) -> None:
        assert approval_percentage(2, 1) == 66

    def test_exact(self) -> None:
        assert approval_percentage(7, 3) == 70
