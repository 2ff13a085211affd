"""Service health endpoints."""

from __future__ import annotations

import asyncio
import time
from datetime import UTC, datetime

from fastapi import APIRouter, Depends

from predictiondao.api.deps import app_state, get_config, get_reconciler
from predictiondao.config import AppConfig
from predictiondao.reconciler import DualSourceReconciler

router = APIRouter()

_start_time = time.time()


@router.get("/api/health")
def health() -> dict:
    return {
        "status": "OK",
        "message": "Server is healthy",
        "uptime": round(time.time() - _start_time, 1),
        "timestamp": datetime.now(UTC).isoformat(),
    }


@router.get("/api/dao/health")
async def dao_health(
    reconciler: DualSourceReconciler = Depends(get_reconciler),
) -> dict:
    db = app_state.db
    database_ok = True if db is None else await asyncio.to_thread(db.health_check)
    return {
        "success": True,
        "data": {
            "contractConfigured": reconciler.chain_configured,
            "storage": "memory" if db is None else "postgres",
            "databaseConnected": database_ok,
            "timestamp": datetime.now(UTC).isoformat(),
        },
    }


@router.get("/api/dao/contract-status")
async def contract_status(
    reconciler: DualSourceReconciler = Depends(get_reconciler),
    config: AppConfig = Depends(get_config),
) -> dict:
    return {
        "success": True,
        "data": {
            "contractAvailable": await reconciler.contract_available(),
            "chainId": config.chain_id,
            "contractAddress": config.dao_contract_address or None,
        },
    }
