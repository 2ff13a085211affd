"""Creator profile endpoints."""

from __future__ import annotations

import asyncio

from fastapi import APIRouter, Depends

from predictiondao.api.deps import get_reputation
from predictiondao.errors import ProfileNotFound
from predictiondao.reputation import ReputationService

router = APIRouter()


@router.get("/profiles/{wallet_address}")
async def get_profile(
    wallet_address: str,
    reputation: ReputationService = Depends(get_reputation),
) -> dict:
    profile = await asyncio.to_thread(reputation.get_profile, wallet_address)
    if profile is None:
        raise ProfileNotFound(f"No profile for {wallet_address}")
    return {
        "success": True,
        "data": {
            "walletAddress": profile.wallet_address,
            "name": profile.display_name,
            "reputation": profile.reputation,
            "totalCreated": profile.total_created,
            "totalApproved": profile.total_approved,
            "lastPredictionDate": (
                profile.last_prediction_at.isoformat() if profile.last_prediction_at else None
            ),
        },
    }
