from __future__ import annotations

import logging

from predictiondao.models.events import PredictionApproved, PredictionCreated
from predictiondao.models.profile import CreatorProfile, short_wallet_name
from predictiondao.registry.memory import MemoryRegistry
from predictiondao.registry.queries import Registry

logger = logging.getLogger(__name__)

DEFAULT_APPROVAL_BONUS = 5


class ReputationService:
    """Keeps creator profiles in step with the ledger's events.

    Approval crediting is idempotent per prediction: the ledger delivers
    PredictionApproved at least once, and a repeated delivery is a no-op.
    """

    def __init__(
        self, registry: Registry | MemoryRegistry, *, approval_bonus: int = DEFAULT_APPROVAL_BONUS,
    ) -> None:
        self._registry = registry
        self._approval_bonus = approval_bonus

    def on_prediction_created(self, event: PredictionCreated) -> CreatorProfile:
        """Count the prediction towards its creator, once per prediction."""
        profile = self._registry.record_prediction_created(
            event.prediction_id, event.creator, short_wallet_name(event.creator), event.created_at,
        )
        logger.info(
            "Profile %s now has %d predictions", profile.wallet_address, profile.total_created,
        )
        return profile

    def on_prediction_approved(self, event: PredictionApproved) -> bool:
        """Credit the creator once for an approved prediction.

        Returns True when this call credited, False for a repeated delivery.
        """
        credited = self._registry.credit_approval(
            event.prediction_id,
            event.creator,
            short_wallet_name(event.creator),
            self._approval_bonus,
        )
        if credited:
            logger.info(
                "Credited %s with %d reputation for approved prediction %s",
                event.creator, self._approval_bonus, event.prediction_id,
            )
        else:
            logger.info("Prediction %s already credited; skipping", event.prediction_id)
        return credited

    def get_profile(self, wallet_address: str) -> CreatorProfile | None:
        return self._registry.get_profile(wallet_address)
