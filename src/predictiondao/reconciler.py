"""Primary/secondary write and read paths over the chain mirror and the ledger.

The on-chain contract is tried first for every operation, but it is only a
best-effort mirror: any failure (error, revert, timeout, missing
configuration) is logged and the ledger answers instead. Only ledger errors
reach callers.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Generic, TypeVar

from predictiondao.chain.client import ChainClient, ChainPrediction
from predictiondao.errors import DaoError, UpstreamUnavailable, ValidationError
from predictiondao.ledger import PredictionLedger
from predictiondao.models.prediction import Prediction, PredictionDraft, UpdatedTally

logger = logging.getLogger(__name__)

T = TypeVar("T")

SECONDS_PER_DAY = 86_400

SOURCE_CHAIN = "chain"
SOURCE_LEDGER = "database"


@dataclass(frozen=True)
class Sourced(Generic[T]):
    """A read result and the store that produced it."""

    value: T
    source: str


@dataclass(frozen=True)
class CreationReceipt:
    prediction: Prediction
    chain_prediction_id: int | None

    @property
    def message(self) -> str:
        if self.chain_prediction_id is not None:
            return "Prediction created in both contract and database"
        return "Prediction created in database (contract unavailable)"


@dataclass(frozen=True)
class VoteReceipt:
    tally: UpdatedTally
    mirrored: bool


class DualSourceReconciler:
    def __init__(
        self,
        ledger: PredictionLedger,
        chain: ChainClient | None = None,
        *,
        timeout_seconds: float = 10.0,
    ) -> None:
        self._ledger = ledger
        self._chain = chain
        self._timeout = timeout_seconds

    @property
    def chain_configured(self) -> bool:
        return self._chain is not None

    async def _attempt(
        self, operation: str, call: Callable[[ChainClient], Awaitable[T]],
    ) -> tuple[bool, T | None]:
        """Run one bounded call against the chain. Never raises."""
        if self._chain is None:
            logger.debug("%s: no chain client configured", operation)
            return False, None
        try:
            result = await asyncio.wait_for(call(self._chain), timeout=self._timeout)
        except TimeoutError:
            logger.warning("%s: chain call timed out after %.1fs", operation, self._timeout)
            return False, None
        except UpstreamUnavailable as exc:
            logger.warning("%s: chain unavailable (%s)", operation, exc.reason)
            return False, None
        except Exception as exc:
            logger.warning("%s: chain call failed (%s: %s)", operation, type(exc).__name__, exc)
            return False, None
        return True, result

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def create_prediction(
        self,
        *,
        title: str,
        description: str,
        category: str,
        voting_period_days: int,
        creator: str,
    ) -> CreationReceipt:
        fields = {
            "title": title, "description": description,
            "category": category, "creator": creator,
        }
        missing = [name for name, value in fields.items() if not (value or "").strip()]
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")
        if voting_period_days <= 0:
            raise ValidationError(f"votingPeriodDays must be > 0, got {voting_period_days}")

        now = self._ledger.now()
        voting_period_seconds = voting_period_days * SECONDS_PER_DAY
        end_time: datetime = now + timedelta(seconds=voting_period_seconds)

        ok, chain_id = await self._attempt(
            "createPrediction",
            lambda chain: chain.create_prediction(
                title, description, category, voting_period_seconds,
            ),
        )
        chain_prediction_id = chain_id if ok else None

        prediction = await self._ledger.create(PredictionDraft(
            creator=creator.strip(),
            title=title.strip(),
            description=description.strip(),
            category=category.strip(),
            end_time=end_time,
            chain_prediction_id=chain_prediction_id,
        ))
        return CreationReceipt(prediction=prediction, chain_prediction_id=chain_prediction_id)

    async def submit_vote(self, prediction_id: int, voter: str, support: bool) -> VoteReceipt:
        """Mirror the vote to the chain when possible, then apply it to the ledger.

        The ledger result is returned regardless of the chain outcome. A vote
        the chain accepted but the ledger rejects is not rolled back on-chain.
        """
        if not isinstance(voter, str) or not voter.strip():
            raise ValidationError("Missing voter address")
        if not isinstance(support, bool):
            raise ValidationError("support must be a boolean")

        mirrored = False
        existing = await self._ledger.find(prediction_id)
        if existing is not None and existing.chain_prediction_id is not None:
            chain_id = existing.chain_prediction_id
            mirrored, _ = await self._attempt(
                "vote", lambda chain: chain.vote(chain_id, support),
            )
        elif existing is not None:
            logger.debug("Prediction %s has no on-chain twin; vote not mirrored", prediction_id)

        try:
            tally = await self._ledger.apply_vote(prediction_id, voter, support)
        except DaoError as exc:
            if mirrored:
                logger.warning(
                    "Chain accepted a vote on %s by %s that the ledger rejected: %s",
                    prediction_id, voter, exc.detail,
                )
            raise
        return VoteReceipt(tally=tally, mirrored=mirrored)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def _from_chain(self, records: list[ChainPrediction]) -> list[Prediction]:
        """Chain records with ``id`` resolved to the ledger id.

        Records the ledger has no twin for keep ``id`` None; the contract id
        stays in ``chain_prediction_id``.
        """
        ledger_ids = await self._ledger.ledger_ids_for_chain([r.id for r in records])
        unmatched = [r.id for r in records if r.id not in ledger_ids]
        if unmatched:
            logger.warning("Contract predictions with no ledger record: %s", unmatched)
        return [r.to_prediction(ledger_ids.get(r.id)) for r in records]

    async def get_active_predictions(self) -> Sourced[list[Prediction]]:
        ok, records = await self._attempt(
            "getActivePredictions", lambda chain: chain.get_active_predictions(),
        )
        if ok and records is not None:
            return Sourced(await self._from_chain(records), SOURCE_CHAIN)
        return Sourced(await self._ledger.get_active(), SOURCE_LEDGER)

    async def get_approved_predictions(self) -> Sourced[list[Prediction]]:
        ok, records = await self._attempt(
            "getApprovedPredictions", lambda chain: chain.get_approved_predictions(),
        )
        if ok and records is not None:
            return Sourced(await self._from_chain(records), SOURCE_CHAIN)
        return Sourced(await self._ledger.get_approved(), SOURCE_LEDGER)

    async def get_prediction_count(self) -> Sourced[int]:
        ok, count = await self._attempt(
            "getPredictionCount", lambda chain: chain.get_prediction_count(),
        )
        if ok and count is not None:
            return Sourced(int(count), SOURCE_CHAIN)
        return Sourced(await self._ledger.count(), SOURCE_LEDGER)

    async def contract_available(self) -> bool:
        ok, available = await self._attempt("isAvailable", lambda chain: chain.is_available())
        return bool(ok and available)
