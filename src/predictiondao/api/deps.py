"""Dependency injection for the FastAPI application."""

from __future__ import annotations

from predictiondao.chain.client import ChainClient
from predictiondao.config import AppConfig
from predictiondao.ledger import PredictionLedger
from predictiondao.reconciler import DualSourceReconciler
from predictiondao.registry.db import Database
from predictiondao.registry.memory import MemoryRegistry
from predictiondao.registry.queries import Registry
from predictiondao.reputation import ReputationService


class AppState:
    """Holds shared application state initialised during lifespan."""

    def __init__(self) -> None:
        self.config: AppConfig | None = None
        self.db: Database | None = None
        self.registry: Registry | MemoryRegistry | None = None
        self.chain: ChainClient | None = None
        self.ledger: PredictionLedger | None = None
        self.reconciler: DualSourceReconciler | None = None
        self.reputation: ReputationService | None = None

    def reset(self) -> None:
        self.__init__()


# Singleton shared across the app
app_state = AppState()


def get_config() -> AppConfig:
    if app_state.config is None:
        raise RuntimeError("Config not initialised")
    return app_state.config


def get_ledger() -> PredictionLedger:
    if app_state.ledger is None:
        raise RuntimeError("PredictionLedger not initialised")
    return app_state.ledger


def get_reconciler() -> DualSourceReconciler:
    if app_state.reconciler is None:
        raise RuntimeError("DualSourceReconciler not initialised")
    return app_state.reconciler


def get_reputation() -> ReputationService:
    if app_state.reputation is None:
        raise RuntimeError("ReputationService not initialised")
    return app_state.reputation
