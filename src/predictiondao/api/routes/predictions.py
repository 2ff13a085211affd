"""Prediction endpoints: create, vote, and the active/approved/count reads."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field, StrictBool

from predictiondao.api.deps import get_ledger, get_reconciler
from predictiondao.ledger import PredictionLedger, voting_stats
from predictiondao.models.prediction import Prediction
from predictiondao.reconciler import DualSourceReconciler

router = APIRouter()


class CreatePredictionRequest(BaseModel):
    title: str
    description: str
    category: str
    votingPeriodDays: int = Field(gt=0, le=3650)
    creator: str


class VoteRequest(BaseModel):
    voter: str
    support: StrictBool


def _format_prediction(p: Prediction, include_votes: bool = False) -> dict:
    item = {
        "id": p.id,
        "creator": p.creator,
        "title": p.title,
        "description": p.description,
        "category": p.category,
        "endTime": p.end_time.isoformat(),
        "status": p.status.value,
        "isActive": not p.status.is_terminal,
        "isApproved": p.is_approved,
        "totalVotes": p.total_votes,
        "yesVotes": p.yes_votes,
        "noVotes": p.no_votes,
        "createdAt": p.created_at.isoformat() if p.created_at else None,
        "approvedAt": p.approved_at.isoformat() if p.approved_at else None,
        "contractPredictionId": p.chain_prediction_id,
        "contractSynced": p.chain_synced,
    }
    if include_votes:
        item["votes"] = [
            {"voter": v.voter, "support": v.support, "timestamp": v.voted_at.isoformat()}
            for v in sorted(p.votes.values(), key=lambda v: v.voted_at)
        ]
    return item


@router.post("/predictions/create")
async def create_prediction(
    body: CreatePredictionRequest,
    reconciler: DualSourceReconciler = Depends(get_reconciler),
) -> dict:
    receipt = await reconciler.create_prediction(
        title=body.title,
        description=body.description,
        category=body.category,
        voting_period_days=body.votingPeriodDays,
        creator=body.creator,
    )
    return {
        "success": True,
        "data": {
            "id": receipt.prediction.id,
            "contractPredictionId": receipt.chain_prediction_id,
            "endTime": receipt.prediction.end_time.isoformat(),
            "message": receipt.message,
        },
    }


@router.post("/predictions/{prediction_id}/vote")
async def vote(
    prediction_id: int,
    body: VoteRequest,
    reconciler: DualSourceReconciler = Depends(get_reconciler),
) -> dict:
    receipt = await reconciler.submit_vote(prediction_id, body.voter, body.support)
    tally = receipt.tally
    return {
        "success": True,
        "data": {
            "predictionId": prediction_id,
            "voter": tally.voter,
            "support": tally.support,
            "totalVotes": tally.total_votes,
            "yesVotes": tally.yes_votes,
            "noVotes": tally.no_votes,
            "isApproved": tally.is_approved,
            "status": tally.status.value,
            "contractRecorded": receipt.mirrored,
            "message": "Vote recorded successfully",
        },
    }


@router.get("/predictions/active")
async def active_predictions(
    reconciler: DualSourceReconciler = Depends(get_reconciler),
) -> dict:
    result = await reconciler.get_active_predictions()
    return {
        "success": True,
        "data": [_format_prediction(p) for p in result.value],
        "count": len(result.value),
        "source": result.source,
    }


@router.get("/predictions/approved")
async def approved_predictions(
    reconciler: DualSourceReconciler = Depends(get_reconciler),
) -> dict:
    result = await reconciler.get_approved_predictions()
    return {
        "success": True,
        "data": [_format_prediction(p) for p in result.value],
        "count": len(result.value),
        "source": result.source,
    }


# Must stay above /predictions/{prediction_id}
@router.get("/predictions/count")
async def prediction_count(
    reconciler: DualSourceReconciler = Depends(get_reconciler),
) -> dict:
    result = await reconciler.get_prediction_count()
    return {
        "success": True,
        "data": {"totalPredictions": result.value},
        "source": result.source,
    }


@router.get("/predictions/{prediction_id}")
async def get_prediction(
    prediction_id: int,
    ledger: PredictionLedger = Depends(get_ledger),
) -> dict:
    """Served from the ledger, the only store holding per-voter records."""
    prediction = await ledger.get(prediction_id)
    data = _format_prediction(prediction, include_votes=True)
    data["votingStats"] = voting_stats(prediction)
    return {"success": True, "data": data}


@router.get("/predictions/{prediction_id}/voting-stats")
async def get_voting_stats(
    prediction_id: int,
    ledger: PredictionLedger = Depends(get_ledger),
) -> dict:
    return {"success": True, "data": await ledger.voting_stats(prediction_id)}


@router.get("/predictions/{prediction_id}/has-voted/{user_address}")
async def has_voted(
    prediction_id: int,
    user_address: str,
    ledger: PredictionLedger = Depends(get_ledger),
) -> dict:
    voted = await ledger.has_voted(prediction_id, user_address)
    return {
        "success": True,
        "data": {
            "hasVoted": voted,
            "predictionId": prediction_id,
            "userAddress": user_address,
        },
    }
