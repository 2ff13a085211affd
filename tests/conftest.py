from __future__ import annotations

import asyncio
from datetime import UTC, datetime, timedelta

import pytest

from predictiondao.chain.client import ChainPrediction
from predictiondao.errors import UpstreamUnavailable
from predictiondao.ledger import PredictionLedger
from predictiondao.registry.memory import MemoryRegistry

START = datetime(2025, 3, 1, 12, 0, tzinfo=UTC)


class FakeClock:
    """Settable clock handed to the ledger in place of wall time."""

    def __init__(self, start: datetime = START) -> None:
        self.current = start

    def __call__(self) -> datetime:
        return self.current

    def advance(self, **kwargs: float) -> None:
        self.current += timedelta(**kwargs)


class FakeChain:
    """In-memory stand-in for the contract client.

    ``fail`` makes every call raise UpstreamUnavailable; ``hang`` makes every
    call sleep past any reasonable timeout.
    """

    def __init__(self, *, fail: bool = False, hang: bool = False) -> None:
        self.fail = fail
        self.hang = hang
        self.created: list[tuple[str, str, str, int]] = []
        self.votes: list[tuple[int, bool]] = []
        self.active: list[ChainPrediction] = []
        self.approved: list[ChainPrediction] = []
        self.count = 0
        self._next_id = 100

    async def _gate(self, operation: str) -> None:
        if self.hang:
            await asyncio.sleep(30)
        if self.fail:
            raise UpstreamUnavailable(operation, "connection refused")

    async def create_prediction(
        self, title: str, description: str, category: str, voting_period_seconds: int,
    ) -> int | None:
        await self._gate("createPrediction")
        self.created.append((title, description, category, voting_period_seconds))
        chain_id = self._next_id
        self._next_id += 1
        return chain_id

    async def vote(self, prediction_id: int, support: bool) -> str:
        await self._gate("vote")
        self.votes.append((prediction_id, support))
        return "0xabc"

    async def get_active_predictions(self) -> list[ChainPrediction]:
        await self._gate("getActivePredictions")
        return list(self.active)

    async def get_approved_predictions(self) -> list[ChainPrediction]:
        await self._gate("getApprovedPredictions")
        return list(self.approved)

    async def get_prediction_count(self) -> int:
        await self._gate("getPredictionCount")
        return self.count

    async def is_available(self) -> bool:
        await self._gate("isAvailable")
        return True


def chain_record(chain_id: int = 7, *, approved: bool = False) -> ChainPrediction:
    return ChainPrediction(
        id=chain_id,
        creator="0x1111111111111111111111111111111111111111",
        title="On-chain title",
        description="From the contract",
        category="crypto",
        end_time=int((START + timedelta(days=7)).timestamp()),
        is_active=not approved,
        is_approved=approved,
        yes_votes=7 if approved else 1,
        no_votes=3 if approved else 0,
        created_at=int(START.timestamp()),
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def memory_registry() -> MemoryRegistry:
    return MemoryRegistry()


@pytest.fixture
def ledger(memory_registry: MemoryRegistry, clock: FakeClock) -> PredictionLedger:
    return PredictionLedger(memory_registry, clock=clock)
