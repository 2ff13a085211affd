from __future__ import annotations

from datetime import UTC, datetime

import pytest

from predictiondao.ledger import PredictionLedger
from predictiondao.models.events import PredictionApproved, PredictionCreated
from predictiondao.models.prediction import PredictionDraft
from predictiondao.registry.memory import MemoryRegistry
from predictiondao.reputation import ReputationService

WALLET = "0x1234567890abcdef1234567890abcdef12345678"
WHEN = datetime(2025, 3, 1, 12, 0, tzinfo=UTC)


def _approved(prediction_id: int = 1) -> PredictionApproved:
    return PredictionApproved(
        prediction_id=prediction_id, creator=WALLET, yes_votes=7, no_votes=3, approved_at=WHEN,
    )


class TestReputationService:
    def test_created_builds_profile(self, memory_registry: MemoryRegistry) -> None:
        service = ReputationService(memory_registry)
        service.on_prediction_created(PredictionCreated(1, WALLET, "crypto", WHEN))
        profile = service.on_prediction_created(PredictionCreated(2, WALLET, "crypto", WHEN))

        assert profile.total_created == 2
        assert profile.display_name == "0x1234...5678"
        assert profile.last_prediction_at == WHEN
        assert profile.reputation == 0

    def test_repeated_created_event_counts_once(self, memory_registry: MemoryRegistry) -> None:
        service = ReputationService(memory_registry)
        event = PredictionCreated(1, WALLET, "crypto", WHEN)
        service.on_prediction_created(event)
        profile = service.on_prediction_created(event)
        assert profile.total_created == 1

    def test_approval_credits_once(self, memory_registry: MemoryRegistry) -> None:
        service = ReputationService(memory_registry, approval_bonus=5)
        assert service.on_prediction_approved(_approved()) is True
        assert service.on_prediction_approved(_approved()) is False

        profile = service.get_profile(WALLET)
        assert profile is not None
        assert profile.reputation == 5
        assert profile.total_approved == 1

    def test_distinct_predictions_each_credit(self, memory_registry: MemoryRegistry) -> None:
        service = ReputationService(memory_registry, approval_bonus=3)
        service.on_prediction_approved(_approved(1))
        service.on_prediction_approved(_approved(2))
        assert service.get_profile(WALLET).reputation == 6

    def test_unknown_profile(self, memory_registry: MemoryRegistry) -> None:
        assert ReputationService(memory_registry).get_profile("0xnobody") is None


class TestLedgerWiring:
    @pytest.mark.asyncio
    async def test_redelivered_events_count_once(
        self, memory_registry: MemoryRegistry, ledger: PredictionLedger,
    ) -> None:
        service = ReputationService(memory_registry)
        ledger.subscribe(PredictionCreated, service.on_prediction_created)
        ledger.subscribe(PredictionApproved, service.on_prediction_approved)
        # Second subscriptions simulate at-least-once redelivery.
        ledger.subscribe(PredictionCreated, service.on_prediction_created)
        ledger.subscribe(PredictionApproved, service.on_prediction_approved)

        p = await ledger.create(PredictionDraft(
            creator=WALLET, title="t", description="d", category="c",
            end_time=datetime(2025, 4, 1, tzinfo=UTC),
        ))
        await ledger.apply_vote(p.id, "0xvoter", True)

        profile = service.get_profile(WALLET)
        assert profile.total_created == 1
        assert profile.total_approved == 1
        assert profile.reputation == 5
