from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum


class PredictionStatus(StrEnum):
    ACTIVE = "ACTIVE"
    APPROVED = "APPROVED"
    CLOSED = "CLOSED"

    @property
    def is_terminal(self) -> bool:
        return self is not PredictionStatus.ACTIVE


@dataclass(frozen=True)
class Vote:
    voter: str
    support: bool
    voted_at: datetime


@dataclass(frozen=True)
class VoteTally:
    yes_votes: int = 0
    no_votes: int = 0

    @property
    def total_votes(self) -> int:
        return self.yes_votes + self.no_votes

    def add(self, support: bool) -> VoteTally:
        if support:
            return VoteTally(self.yes_votes + 1, self.no_votes)
        return VoteTally(self.yes_votes, self.no_votes + 1)


@dataclass
class PredictionDraft:
    """A validated create request, before the store assigns an id."""

    creator: str
    title: str
    description: str
    category: str
    end_time: datetime
    chain_prediction_id: int | None = None


@dataclass
class Prediction:
    creator: str
    title: str
    description: str
    category: str
    end_time: datetime
    status: PredictionStatus = PredictionStatus.ACTIVE
    yes_votes: int = 0
    no_votes: int = 0
    votes: dict[str, Vote] = field(default_factory=dict)
    chain_prediction_id: int | None = None
    chain_synced: bool = False
    approved_at: datetime | None = None
    id: int | None = None
    created_at: datetime | None = None

    @property
    def total_votes(self) -> int:
        return self.yes_votes + self.no_votes

    @property
    def tally(self) -> VoteTally:
        return VoteTally(self.yes_votes, self.no_votes)

    @property
    def is_approved(self) -> bool:
        return self.status is PredictionStatus.APPROVED

    def has_voted(self, voter: str) -> bool:
        return voter in self.votes


@dataclass(frozen=True)
class VoteMutation:
    """What a successful vote writes back: the vote row, new counters, new status."""

    vote: Vote
    tally: VoteTally
    status: PredictionStatus
    approved_at: datetime | None = None


@dataclass(frozen=True)
class StatusMutation:
    """A vote-less status change (deadline closure, stale approval)."""

    status: PredictionStatus
    approved_at: datetime | None = None


@dataclass(frozen=True)
class UpdatedTally:
    prediction_id: int
    voter: str
    support: bool
    yes_votes: int
    no_votes: int
    status: PredictionStatus

    @property
    def total_votes(self) -> int:
        return self.yes_votes + self.no_votes

    @property
    def is_approved(self) -> bool:
        return self.status is PredictionStatus.APPROVED
