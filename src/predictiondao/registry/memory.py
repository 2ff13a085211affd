"""In-process registry with the same interface as the SQL Registry.

Used when no DATABASE_URL is configured and by the test suite. One store
lock guards the dicts and is held only for in-memory work, never across I/O,
so it serializes every write briefly rather than per prediction. Writes on
different predictions still never wait on each other in the ledger, whose
per-prediction asyncio locks sit in front of this store.
"""

from __future__ import annotations

import copy
import logging
import threading
from datetime import UTC, datetime

from predictiondao.errors import DuplicateVote, PredictionNotFound
from predictiondao.models.lifecycle import validate_transition
from predictiondao.models.prediction import (
    Prediction,
    PredictionDraft,
    PredictionStatus,
    VoteMutation,
)
from predictiondao.models.profile import CreatorProfile
from predictiondao.registry.queries import ApplyFn, Mutation

logger = logging.getLogger(__name__)


class MemoryRegistry:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._predictions: dict[int, Prediction] = {}
        self._profiles: dict[str, CreatorProfile] = {}
        self._credits: dict[int, int] = {}
        self._counted: set[int] = set()
        self._next_id = 1

    def create_prediction(self, draft: PredictionDraft) -> Prediction:
        with self._lock:
            prediction = Prediction(
                id=self._next_id,
                creator=draft.creator,
                title=draft.title,
                description=draft.description,
                category=draft.category,
                end_time=draft.end_time,
                chain_prediction_id=draft.chain_prediction_id,
                chain_synced=draft.chain_prediction_id is not None,
                created_at=datetime.now(UTC),
            )
            self._predictions[prediction.id] = prediction
            self._next_id += 1
            return copy.deepcopy(prediction)

    def get_prediction(self, prediction_id: int, with_votes: bool = True) -> Prediction | None:
        with self._lock:
            prediction = self._predictions.get(prediction_id)
            if prediction is None:
                return None
            found = copy.deepcopy(prediction)
        if not with_votes:
            found.votes = {}
        return found

    def get_active_predictions(self, now: datetime) -> list[Prediction]:
        return self._select(
            lambda p: p.status is PredictionStatus.ACTIVE and p.end_time > now
        )

    def get_approved_predictions(self) -> list[Prediction]:
        return self._select(lambda p: p.status is PredictionStatus.APPROVED)

    def get_expired_active_ids(self, now: datetime) -> list[int]:
        with self._lock:
            return sorted(
                p.id for p in self._predictions.values()
                if p.status is PredictionStatus.ACTIVE and p.end_time <= now
            )

    def count_predictions(self) -> int:
        with self._lock:
            return len(self._predictions)

    def count_by_status(self) -> dict[str, int]:
        counts = {s.value: 0 for s in PredictionStatus}
        with self._lock:
            for p in self._predictions.values():
                counts[p.status.value] += 1
        return counts

    def has_voted(self, prediction_id: int, voter: str) -> bool:
        with self._lock:
            prediction = self._predictions.get(prediction_id)
            return prediction is not None and prediction.has_voted(voter)

    def update_prediction(self, prediction_id: int, apply: ApplyFn) -> tuple[Prediction, Mutation | None]:
        with self._lock:
            stored = self._predictions.get(prediction_id)
            if stored is None:
                raise PredictionNotFound(prediction_id)

            mutation = apply(copy.deepcopy(stored))
            if mutation is None:
                return copy.deepcopy(stored), None
            if not validate_transition(stored.status, mutation.status):
                raise ValueError(
                    f"Invalid transition: {stored.status.value} -> {mutation.status.value}"
                )

            if isinstance(mutation, VoteMutation):
                if stored.has_voted(mutation.vote.voter):
                    raise DuplicateVote(prediction_id, mutation.vote.voter)
                stored.votes[mutation.vote.voter] = mutation.vote
                stored.yes_votes = mutation.tally.yes_votes
                stored.no_votes = mutation.tally.no_votes
            stored.status = mutation.status
            if mutation.approved_at is not None and stored.approved_at is None:
                stored.approved_at = mutation.approved_at
            return copy.deepcopy(stored), mutation

    def ledger_ids_for_chain(self, chain_prediction_ids: list[int]) -> dict[int, int]:
        wanted = set(chain_prediction_ids)
        with self._lock:
            return {
                p.chain_prediction_id: p.id for p in self._predictions.values()
                if p.chain_prediction_id in wanted
            }

    def get_uncredited_approved_ids(self) -> list[int]:
        with self._lock:
            return sorted(
                p.id for p in self._predictions.values()
                if p.status is PredictionStatus.APPROVED and p.id not in self._credits
            )

    def get_profile(self, wallet_address: str) -> CreatorProfile | None:
        with self._lock:
            profile = self._profiles.get(wallet_address)
            return copy.copy(profile) if profile else None

    def record_prediction_created(
        self, prediction_id: int, wallet_address: str, display_name: str, created_at: datetime,
    ) -> CreatorProfile:
        with self._lock:
            profile = self._profiles.setdefault(
                wallet_address,
                CreatorProfile(wallet_address=wallet_address, display_name=display_name),
            )
            if prediction_id in self._counted:
                return copy.copy(profile)
            self._counted.add(prediction_id)
            profile.total_created += 1
            profile.last_prediction_at = created_at
            profile.updated_at = datetime.now(UTC)
            return copy.copy(profile)

    def credit_approval(
        self, prediction_id: int, wallet_address: str, display_name: str, amount: int,
    ) -> bool:
        with self._lock:
            if prediction_id in self._credits:
                return False
            self._credits[prediction_id] = amount
            profile = self._profiles.setdefault(
                wallet_address,
                CreatorProfile(wallet_address=wallet_address, display_name=display_name),
            )
            profile.reputation += amount
            profile.total_approved += 1
            profile.updated_at = datetime.now(UTC)
            return True

    def _select(self, keep) -> list[Prediction]:
        with self._lock:
            matched = [p for p in self._predictions.values() if keep(p)]
            matched.sort(key=lambda p: (p.created_at or datetime.min.replace(tzinfo=UTC), p.id), reverse=True)
            result = []
            for p in matched:
                listed = copy.copy(p)
                listed.votes = {}
                result.append(listed)
            return result
