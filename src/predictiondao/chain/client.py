"""Interface of the authoritative ledger (the on-chain PredictionDAO mirror)."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Protocol

from predictiondao.models.prediction import Prediction, PredictionStatus


@dataclass(frozen=True)
class ChainPrediction:
    """A prediction as the contract reports it."""

    id: int
    creator: str
    title: str
    description: str
    category: str
    end_time: int
    is_active: bool
    is_approved: bool
    yes_votes: int
    no_votes: int
    created_at: int

    @property
    def status(self) -> PredictionStatus:
        if self.is_approved:
            return PredictionStatus.APPROVED
        if self.is_active:
            return PredictionStatus.ACTIVE
        return PredictionStatus.CLOSED

    def to_prediction(self, ledger_id: int | None = None) -> Prediction:
        """Map to a Prediction whose ``id`` is the ledger id, not the contract id.

        ``ledger_id`` is None for contract records the ledger has no twin for.
        """
        return Prediction(
            id=ledger_id,
            creator=self.creator,
            title=self.title,
            description=self.description,
            category=self.category,
            end_time=datetime.fromtimestamp(self.end_time, UTC),
            status=self.status,
            yes_votes=self.yes_votes,
            no_votes=self.no_votes,
            chain_prediction_id=self.id,
            chain_synced=True,
            created_at=datetime.fromtimestamp(self.created_at, UTC),
        )


class ChainClient(Protocol):
    """Every method may raise; callers treat any failure as 'unavailable'."""

    async def create_prediction(
        self, title: str, description: str, category: str, voting_period_seconds: int,
    ) -> int | None: ...

    async def vote(self, prediction_id: int, support: bool) -> str: ...

    async def get_active_predictions(self) -> list[ChainPrediction]: ...

    async def get_approved_predictions(self) -> list[ChainPrediction]: ...

    async def get_prediction_count(self) -> int: ...

    async def is_available(self) -> bool: ...
