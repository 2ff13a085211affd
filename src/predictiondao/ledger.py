"""Canonical keeper of predictions and their vote tallies.

Every mutation of a prediction goes through ``PredictionLedger``. Votes on
one prediction are serialized by a per-prediction ``asyncio.Lock`` inside
the process and by the registry's row-level transaction across processes;
votes on different predictions never wait on each other.
"""

from __future__ import annotations

import asyncio
import logging
import weakref
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any

from predictiondao.errors import DuplicateVote, PredictionNotFound, ValidationError, VotingClosed
from predictiondao.models.events import PredictionApproved, PredictionCreated
from predictiondao.models.prediction import (
    Prediction,
    PredictionDraft,
    PredictionStatus,
    StatusMutation,
    UpdatedTally,
    Vote,
    VoteMutation,
)
from predictiondao.policy import (
    APPROVAL_THRESHOLD_PCT,
    approval_percentage,
    decide_status,
    voting_open,
)
from predictiondao.registry.queries import Mutation, Registry
from predictiondao.registry.memory import MemoryRegistry

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]
Handler = Callable[[Any], None]


def utc_now() -> datetime:
    return datetime.now(UTC)


class PredictionLedger:
    """Owns predictions, enforces one-vote-per-voter and status transitions."""

    def __init__(
        self,
        registry: Registry | MemoryRegistry,
        *,
        threshold_pct: int = APPROVAL_THRESHOLD_PCT,
        clock: Clock = utc_now,
        event_max_attempts: int = 3,
    ) -> None:
        if not 0 < threshold_pct <= 100:
            raise ValueError(f"threshold_pct must be in (0, 100], got {threshold_pct}")
        self._registry = registry
        self._threshold_pct = threshold_pct
        self._clock = clock
        self._event_max_attempts = max(1, event_max_attempts)
        self._locks: weakref.WeakValueDictionary[int, asyncio.Lock] = weakref.WeakValueDictionary()
        self._subscribers: dict[type, list[Handler]] = {}

    @property
    def threshold_pct(self) -> int:
        return self._threshold_pct

    def now(self) -> datetime:
        return self._clock()

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    def subscribe(self, event_type: type, handler: Handler) -> None:
        """Register a handler for PredictionCreated or PredictionApproved."""
        self._subscribers.setdefault(event_type, []).append(handler)

    async def _publish(self, event: object) -> None:
        """Deliver an event to every handler, retrying failures (at-least-once).

        Handlers must tolerate duplicate delivery. A handler that still fails
        after the last attempt is logged and skipped.
        """
        for handler in self._subscribers.get(type(event), []):
            for attempt in range(1, self._event_max_attempts + 1):
                try:
                    await asyncio.to_thread(handler, event)
                    break
                except Exception:
                    if attempt == self._event_max_attempts:
                        logger.exception(
                            "Handler %r gave up on %s after %d attempts",
                            handler, type(event).__name__, attempt,
                        )
                    else:
                        logger.warning(
                            "Handler %r failed on %s (attempt %d/%d), retrying",
                            handler, type(event).__name__, attempt, self._event_max_attempts,
                        )

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def _lock_for(self, prediction_id: int) -> asyncio.Lock:
        lock = self._locks.get(prediction_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[prediction_id] = lock
        return lock

    async def create(self, draft: PredictionDraft) -> Prediction:
        """Store a validated prediction draft as a new ACTIVE prediction."""
        if draft.end_time <= self.now():
            raise ValidationError("endTime must be in the future")
        prediction = await asyncio.to_thread(self._registry.create_prediction, draft)
        logger.info(
            "Created prediction %s by %s (ends %s, chain id %s)",
            prediction.id, prediction.creator, prediction.end_time.isoformat(),
            prediction.chain_prediction_id,
        )
        await self._publish(PredictionCreated(
            prediction_id=prediction.id,  # type: ignore[arg-type]
            creator=prediction.creator,
            category=prediction.category,
            created_at=prediction.created_at or self.now(),
        ))
        return prediction

    async def apply_vote(self, prediction_id: int, voter: str, support: bool) -> UpdatedTally:
        """Record one vote and re-evaluate the prediction's status.

        Raises PredictionNotFound, VotingClosed (terminal status or deadline
        reached) or DuplicateVote. A vote arriving after the deadline also
        persists the pending CLOSED transition before failing.
        """
        voter = voter.strip() if isinstance(voter, str) else ""
        if not voter:
            raise ValidationError("voter is required")
        if not isinstance(support, bool):
            raise ValidationError("support must be a boolean")

        async with self._lock_for(prediction_id):
            now = self.now()

            def _decide(prediction: Prediction) -> Mutation:
                if prediction.status.is_terminal:
                    raise VotingClosed(prediction_id, f"prediction is {prediction.status.value.lower()}")
                if not voting_open(now, prediction.end_time):
                    closing = decide_status(
                        prediction.yes_votes, prediction.no_votes, now,
                        prediction.end_time, prediction.status, self._threshold_pct,
                    )
                    return StatusMutation(
                        status=closing,
                        approved_at=now if closing is PredictionStatus.APPROVED else None,
                    )
                if prediction.has_voted(voter):
                    raise DuplicateVote(prediction_id, voter)

                tally = prediction.tally.add(support)
                status = decide_status(
                    tally.yes_votes, tally.no_votes, now,
                    prediction.end_time, prediction.status, self._threshold_pct,
                )
                return VoteMutation(
                    vote=Vote(voter=voter, support=support, voted_at=now),
                    tally=tally,
                    status=status,
                    approved_at=now if status is PredictionStatus.APPROVED else None,
                )

            prediction, mutation = await asyncio.to_thread(
                self._registry.update_prediction, prediction_id, _decide,
            )

        if isinstance(mutation, StatusMutation):
            await self._after_status_change(prediction, mutation, now)
            raise VotingClosed(prediction_id, "voting period has ended")

        logger.info(
            "Vote on prediction %s by %s (%s): %d yes / %d no -> %s",
            prediction_id, voter, "yes" if support else "no",
            prediction.yes_votes, prediction.no_votes, prediction.status.value,
        )
        if prediction.status is PredictionStatus.APPROVED:
            await self._announce_approval(prediction, now)

        return UpdatedTally(
            prediction_id=prediction_id,
            voter=voter,
            support=support,
            yes_votes=prediction.yes_votes,
            no_votes=prediction.no_votes,
            status=prediction.status,
        )

    async def refresh_status(self, prediction_id: int) -> Prediction:
        """Re-evaluate one prediction against the clock and persist any transition."""
        async with self._lock_for(prediction_id):
            now = self.now()

            def _decide(prediction: Prediction) -> StatusMutation | None:
                status = decide_status(
                    prediction.yes_votes, prediction.no_votes, now,
                    prediction.end_time, prediction.status, self._threshold_pct,
                )
                if status == prediction.status:
                    return None
                return StatusMutation(
                    status=status,
                    approved_at=now if status is PredictionStatus.APPROVED else None,
                )

            prediction, mutation = await asyncio.to_thread(
                self._registry.update_prediction, prediction_id, _decide,
            )

        if isinstance(mutation, StatusMutation):
            await self._after_status_change(prediction, mutation, now)
        return prediction

    async def close_expired(self) -> list[Prediction]:
        """Settle every ACTIVE prediction whose deadline has passed.

        Returns the predictions whose status changed.
        """
        ids = await asyncio.to_thread(self._registry.get_expired_active_ids, self.now())
        changed: list[Prediction] = []
        for prediction_id in ids:
            prediction = await self.refresh_status(prediction_id)
            if prediction.status.is_terminal:
                changed.append(prediction)
        if changed:
            logger.info("Closed %d expired predictions", len(changed))
        await self.redeliver_approvals()
        return changed

    async def redeliver_approvals(self) -> list[int]:
        """Re-announce APPROVED predictions whose approval was never credited.

        Covers handlers that gave up and processes that died between the
        status commit and the announcement. Returns the re-announced ids.
        """
        ids = await asyncio.to_thread(self._registry.get_uncredited_approved_ids)
        for prediction_id in ids:
            prediction = await self.get(prediction_id)
            logger.info("Re-announcing approval of prediction %s", prediction_id)
            await self._announce_approval(prediction, self.now())
        return ids

    async def _after_status_change(
        self, prediction: Prediction, mutation: StatusMutation, now: datetime,
    ) -> None:
        logger.info(
            "Prediction %s moved to %s (%d yes / %d no)",
            prediction.id, mutation.status.value, prediction.yes_votes, prediction.no_votes,
        )
        if mutation.status is PredictionStatus.APPROVED:
            await self._announce_approval(prediction, now)

    async def _announce_approval(self, prediction: Prediction, now: datetime) -> None:
        await self._publish(PredictionApproved(
            prediction_id=prediction.id,  # type: ignore[arg-type]
            creator=prediction.creator,
            yes_votes=prediction.yes_votes,
            no_votes=prediction.no_votes,
            approved_at=prediction.approved_at or now,
        ))

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def find(self, prediction_id: int) -> Prediction | None:
        return await asyncio.to_thread(self._registry.get_prediction, prediction_id)

    async def get(self, prediction_id: int) -> Prediction:
        prediction = await self.find(prediction_id)
        if prediction is None:
            raise PredictionNotFound(prediction_id)
        return prediction

    async def get_active(self) -> list[Prediction]:
        return await asyncio.to_thread(self._registry.get_active_predictions, self.now())

    async def get_approved(self) -> list[Prediction]:
        return await asyncio.to_thread(self._registry.get_approved_predictions)

    async def ledger_ids_for_chain(self, chain_prediction_ids: list[int]) -> dict[int, int]:
        return await asyncio.to_thread(self._registry.ledger_ids_for_chain, chain_prediction_ids)

    async def count(self) -> int:
        return await asyncio.to_thread(self._registry.count_predictions)

    async def count_by_status(self) -> dict[str, int]:
        return await asyncio.to_thread(self._registry.count_by_status)

    async def has_voted(self, prediction_id: int, voter: str) -> bool:
        await self.get(prediction_id)
        return await asyncio.to_thread(self._registry.has_voted, prediction_id, voter)

    async def voting_stats(self, prediction_id: int) -> dict:
        prediction = await self.get(prediction_id)
        return voting_stats(prediction)


def voting_stats(prediction: Prediction) -> dict:
    return {
        "yesVotes": prediction.yes_votes,
        "noVotes": prediction.no_votes,
        "totalVotes": prediction.total_votes,
        "approvalPercentage": approval_percentage(prediction.yes_votes, prediction.no_votes),
    }
