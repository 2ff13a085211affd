from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime

from predictiondao.errors import DuplicateVote, PredictionNotFound
from predictiondao.models.lifecycle import validate_transition
from predictiondao.models.prediction import (
    Prediction,
    PredictionDraft,
    PredictionStatus,
    StatusMutation,
    Vote,
    VoteMutation,
)
from predictiondao.models.profile import CreatorProfile
from predictiondao.registry.db import Database

logger = logging.getLogger(__name__)

Mutation = VoteMutation | StatusMutation
ApplyFn = Callable[[Prediction], Mutation | None]

_PREDICTION_COLUMNS = (
    "id, creator, title, description, category, end_time, status, yes_votes, "
    "no_votes, chain_prediction_id, chain_synced, approved_at, created_at"
)


class Registry:
    """Query layer bridging Python models and the dao schema."""

    def __init__(self, db: Database) -> None:
        self._db = db

    # ------------------------------------------------------------------
    # Predictions
    # ------------------------------------------------------------------

    def create_prediction(self, draft: PredictionDraft) -> Prediction:
        """Insert a new ACTIVE prediction. Returns it with its assigned id."""
        rows = self._db.execute(
            "INSERT INTO dao.predictions "
            "(creator, title, description, category, end_time, status, "
            "chain_prediction_id, chain_synced) "
            "VALUES (%s, %s, %s, %s, %s, %s, %s, %s) "
            f"RETURNING {_PREDICTION_COLUMNS}",
            (
                draft.creator,
                draft.title,
                draft.description,
                draft.category,
                draft.end_time,
                PredictionStatus.ACTIVE.value,
                draft.chain_prediction_id,
                draft.chain_prediction_id is not None,
            ),
        )
        return self._row_to_prediction(rows[0])

    def get_prediction(self, prediction_id: int, with_votes: bool = True) -> Prediction | None:
        rows = self._db.execute(
            f"SELECT {_PREDICTION_COLUMNS} FROM dao.predictions WHERE id = %s",
            (prediction_id,),
        )
        if not rows:
            return None
        votes: list[dict] = []
        if with_votes:
            votes = self._db.execute(
                "SELECT voter, support, voted_at FROM dao.votes "
                "WHERE prediction_id = %s ORDER BY voted_at",
                (prediction_id,),
            )
        return self._row_to_prediction(rows[0], votes)

    def get_active_predictions(self, now: datetime) -> list[Prediction]:
        """ACTIVE predictions whose voting window is still open, newest first."""
        rows = self._db.execute(
            f"SELECT {_PREDICTION_COLUMNS} FROM dao.predictions "
            "WHERE status = %s AND end_time > %s ORDER BY created_at DESC",
            (PredictionStatus.ACTIVE.value, now),
        )
        return [self._row_to_prediction(r) for r in rows]

    def get_approved_predictions(self) -> list[Prediction]:
        rows = self._db.execute(
            f"SELECT {_PREDICTION_COLUMNS} FROM dao.predictions "
            "WHERE status = %s ORDER BY created_at DESC",
            (PredictionStatus.APPROVED.value,),
        )
        return [self._row_to_prediction(r) for r in rows]

    def get_expired_active_ids(self, now: datetime) -> list[int]:
        """Ids of predictions still marked ACTIVE although their deadline passed."""
        rows = self._db.execute(
            "SELECT id FROM dao.predictions "
            "WHERE status = %s AND end_time <= %s ORDER BY id",
            (PredictionStatus.ACTIVE.value, now),
        )
        return [r["id"] for r in rows]

    def count_predictions(self) -> int:
        rows = self._db.execute("SELECT COUNT(*) AS n FROM dao.predictions")
        return rows[0]["n"] if rows else 0

    def count_by_status(self) -> dict[str, int]:
        rows = self._db.execute(
            "SELECT status, COUNT(*) AS n FROM dao.predictions GROUP BY status"
        )
        counts = {s.value: 0 for s in PredictionStatus}
        for r in rows:
            counts[r["status"]] = r["n"]
        return counts

    def has_voted(self, prediction_id: int, voter: str) -> bool:
        rows = self._db.execute(
            "SELECT 1 AS voted FROM dao.votes WHERE prediction_id = %s AND voter = %s",
            (prediction_id, voter),
        )
        return bool(rows)

    def update_prediction(self, prediction_id: int, apply: ApplyFn) -> tuple[Prediction, Mutation | None]:
        """Run ``apply`` against a locked prediction row and persist its result.

        The row is read with ``SELECT ... FOR UPDATE`` so concurrent writers
        on the same prediction (from any process) are serialized. Whatever
        ``apply`` raises rolls the transaction back. A vote that hits the
        (prediction_id, voter) primary key raises DuplicateVote.
        """
        with self._db.transaction() as cur:
            cur.execute(
                f"SELECT {_PREDICTION_COLUMNS} FROM dao.predictions WHERE id = %s FOR UPDATE",
                (prediction_id,),
            )
            row = cur.fetchone()
            if row is None:
                raise PredictionNotFound(prediction_id)
            cur.execute(
                "SELECT voter, support, voted_at FROM dao.votes "
                "WHERE prediction_id = %s ORDER BY voted_at",
                (prediction_id,),
            )
            prediction = self._row_to_prediction(row, cur.fetchall())

            mutation = apply(prediction)
            if mutation is None:
                return prediction, None
            if not validate_transition(prediction.status, mutation.status):
                raise ValueError(
                    f"Invalid transition: {prediction.status.value} -> {mutation.status.value}"
                )

            if isinstance(mutation, VoteMutation):
                vote = mutation.vote
                cur.execute(
                    "INSERT INTO dao.votes (prediction_id, voter, support, voted_at) "
                    "VALUES (%s, %s, %s, %s) "
                    "ON CONFLICT (prediction_id, voter) DO NOTHING RETURNING voter",
                    (prediction_id, vote.voter, vote.support, vote.voted_at),
                )
                if cur.fetchone() is None:
                    raise DuplicateVote(prediction_id, vote.voter)
                cur.execute(
                    "UPDATE dao.predictions SET yes_votes = %s, no_votes = %s, "
                    "status = %s, approved_at = COALESCE(%s, approved_at) WHERE id = %s",
                    (
                        mutation.tally.yes_votes,
                        mutation.tally.no_votes,
                        mutation.status.value,
                        mutation.approved_at,
                        prediction_id,
                    ),
                )
                prediction.votes[vote.voter] = vote
                prediction.yes_votes = mutation.tally.yes_votes
                prediction.no_votes = mutation.tally.no_votes
            else:
                cur.execute(
                    "UPDATE dao.predictions SET status = %s, "
                    "approved_at = COALESCE(%s, approved_at) WHERE id = %s",
                    (mutation.status.value, mutation.approved_at, prediction_id),
                )

            prediction.status = mutation.status
            if mutation.approved_at is not None:
                prediction.approved_at = mutation.approved_at
            return prediction, mutation

    def ledger_ids_for_chain(self, chain_prediction_ids: list[int]) -> dict[int, int]:
        """Map contract prediction ids to ledger ids. Unknown ids are omitted."""
        if not chain_prediction_ids:
            return {}
        rows = self._db.execute(
            "SELECT id, chain_prediction_id FROM dao.predictions "
            "WHERE chain_prediction_id = ANY(%s)",
            (list(chain_prediction_ids),),
        )
        return {r["chain_prediction_id"]: r["id"] for r in rows}

    def get_uncredited_approved_ids(self) -> list[int]:
        """APPROVED predictions whose approval was never credited to the creator."""
        rows = self._db.execute(
            "SELECT p.id FROM dao.predictions p "
            "LEFT JOIN dao.reputation_credits c ON c.prediction_id = p.id "
            "WHERE p.status = %s AND c.prediction_id IS NULL ORDER BY p.id",
            (PredictionStatus.APPROVED.value,),
        )
        return [r["id"] for r in rows]

    # ------------------------------------------------------------------
    # Creator profiles & reputation
    # ------------------------------------------------------------------

    def get_profile(self, wallet_address: str) -> CreatorProfile | None:
        rows = self._db.execute(
            "SELECT * FROM dao.creator_profiles WHERE wallet_address = %s",
            (wallet_address,),
        )
        if not rows:
            return None
        return self._row_to_profile(rows[0])

    def record_prediction_created(
        self, prediction_id: int, wallet_address: str, display_name: str, created_at: datetime,
    ) -> CreatorProfile:
        """Create the creator's profile or bump its created counter.

        Counted at most once per prediction; a repeated call returns the
        profile unchanged.
        """
        with self._db.transaction() as cur:
            cur.execute(
                "INSERT INTO dao.created_predictions (prediction_id, wallet_address) "
                "VALUES (%s, %s) ON CONFLICT (prediction_id) DO NOTHING "
                "RETURNING prediction_id",
                (prediction_id, wallet_address),
            )
            if cur.fetchone() is None:
                cur.execute(
                    "SELECT * FROM dao.creator_profiles WHERE wallet_address = %s",
                    (wallet_address,),
                )
                return self._row_to_profile(cur.fetchone())
            cur.execute(
                "INSERT INTO dao.creator_profiles "
                "(wallet_address, display_name, total_created, last_prediction_at, updated_at) "
                "VALUES (%s, %s, 1, %s, NOW()) "
                "ON CONFLICT (wallet_address) DO UPDATE SET "
                "total_created = dao.creator_profiles.total_created + 1, "
                "last_prediction_at = EXCLUDED.last_prediction_at, "
                "updated_at = NOW() "
                "RETURNING *",
                (wallet_address, display_name, created_at),
            )
            return self._row_to_profile(cur.fetchone())

    def credit_approval(
        self, prediction_id: int, wallet_address: str, display_name: str, amount: int,
    ) -> bool:
        """Credit reputation for an approved prediction, at most once.

        Returns False when this prediction was already credited.
        """
        with self._db.transaction() as cur:
            cur.execute(
                "INSERT INTO dao.reputation_credits (prediction_id, wallet_address, amount) "
                "VALUES (%s, %s, %s) ON CONFLICT (prediction_id) DO NOTHING "
                "RETURNING prediction_id",
                (prediction_id, wallet_address, amount),
            )
            if cur.fetchone() is None:
                return False
            cur.execute(
                "INSERT INTO dao.creator_profiles "
                "(wallet_address, display_name, reputation, total_approved, updated_at) "
                "VALUES (%s, %s, %s, 1, NOW()) "
                "ON CONFLICT (wallet_address) DO UPDATE SET "
                "reputation = dao.creator_profiles.reputation + EXCLUDED.reputation, "
                "total_approved = dao.creator_profiles.total_approved + 1, "
                "updated_at = NOW()",
                (wallet_address, display_name, amount),
            )
            return True

    # ------------------------------------------------------------------
    # Row mappers
    # ------------------------------------------------------------------

    @staticmethod
    def _row_to_prediction(r: dict, vote_rows: list[dict] | None = None) -> Prediction:
        votes = {
            v["voter"]: Vote(voter=v["voter"], support=v["support"], voted_at=v["voted_at"])
            for v in vote_rows or []
        }
        return Prediction(
            id=r["id"],
            creator=r["creator"],
            title=r["title"],
            description=r["description"] or "",
            category=r["category"] or "",
            end_time=r["end_time"],
            status=PredictionStatus(r["status"]),
            yes_votes=r["yes_votes"],
            no_votes=r["no_votes"],
            votes=votes,
            chain_prediction_id=r["chain_prediction_id"],
            chain_synced=r["chain_synced"],
            approved_at=r["approved_at"],
            created_at=r["created_at"],
        )

    @staticmethod
    def _row_to_profile(r: dict) -> CreatorProfile:
        return CreatorProfile(
            wallet_address=r["wallet_address"],
            display_name=r["display_name"],
            reputation=r["reputation"],
            total_created=r["total_created"],
            total_approved=r["total_approved"],
            last_prediction_at=r.get("last_prediction_at"),
            updated_at=r.get("updated_at"),
        )
