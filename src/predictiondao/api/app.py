"""FastAPI application factory with CORS, error envelopes, and lifespan management."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from predictiondao.api.deps import app_state
from predictiondao.chain.client import ChainClient
from predictiondao.chain.contract import build_chain_client
from predictiondao.config import AppConfig, load_config
from predictiondao.errors import DaoError
from predictiondao.ledger import PredictionLedger
from predictiondao.models.events import PredictionApproved, PredictionCreated
from predictiondao.reconciler import DualSourceReconciler
from predictiondao.registry.db import Database
from predictiondao.registry.memory import MemoryRegistry
from predictiondao.registry.queries import Registry
from predictiondao.reputation import ReputationService

logger = logging.getLogger(__name__)

API_PREFIX = "/api/dao"


def configure_services(
    config: AppConfig,
    registry: Registry | MemoryRegistry,
    chain: ChainClient | None = None,
    db: Database | None = None,
) -> None:
    """Wire ledger, reconciler and reputation into the shared app state."""
    ledger = PredictionLedger(
        registry,
        threshold_pct=config.approval_threshold_pct,
        event_max_attempts=config.event_max_attempts,
    )
    reputation = ReputationService(registry, approval_bonus=config.approval_reputation_bonus)
    ledger.subscribe(PredictionCreated, reputation.on_prediction_created)
    ledger.subscribe(PredictionApproved, reputation.on_prediction_approved)

    app_state.config = config
    app_state.db = db
    app_state.registry = registry
    app_state.chain = chain
    app_state.ledger = ledger
    app_state.reputation = reputation
    app_state.reconciler = DualSourceReconciler(
        ledger, chain, timeout_seconds=config.chain_timeout_seconds,
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Manage startup/shutdown of the database and chain client."""
    config: AppConfig = app.state.config

    db: Database | None = None
    registry: Registry | MemoryRegistry
    if config.db_dsn:
        db = Database(config.db_dsn)
        db.connect()
        registry = Registry(db)
    else:
        logger.warning("DATABASE_URL not set; predictions are kept in memory only")
        registry = MemoryRegistry()

    configure_services(config, registry, build_chain_client(config), db)
    logger.info("API started with %s storage", "postgres" if db else "in-memory")
    yield

    if db is not None:
        db.close()
    app_state.reset()
    logger.info("API shutdown complete")


def _error_body(message: str, error: str | None = None) -> dict:
    body: dict = {"success": False, "message": message}
    if error is not None:
        body["error"] = error
    return body


def _register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(DaoError)
    async def dao_error(request: Request, exc: DaoError) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code, content=_error_body(exc.message, exc.detail),
        )

    @app.exception_handler(RequestValidationError)
    async def invalid_request(request: Request, exc: RequestValidationError) -> JSONResponse:
        problems = []
        for err in exc.errors():
            location = ".".join(str(part) for part in err.get("loc", ()) if part != "body")
            problems.append(f"{location}: {err.get('msg', 'invalid')}" if location else err.get("msg", "invalid"))
        return JSONResponse(
            status_code=400,
            content=_error_body("Missing or invalid fields", "; ".join(problems)),
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        message = "Route not found" if exc.status_code == 404 else str(exc.detail)
        return JSONResponse(status_code=exc.status_code, content=_error_body(message))

    @app.exception_handler(Exception)
    async def internal_error(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        expose = app_state.config is not None and app_state.config.expose_errors
        return JSONResponse(
            status_code=500,
            content=_error_body("Internal server error", str(exc) if expose else None),
        )


def create_app(*, use_lifespan: bool = True, config: AppConfig | None = None) -> FastAPI:
    """Build and return the FastAPI application.

    Args:
        use_lifespan: If False, skip the production lifespan (useful for testing
            where deps are injected via app_state directly).
        config: Overrides the environment config (CORS origins are read from it).
    """
    cfg = config or load_config()
    app = FastAPI(
        title="Prediction DAO API",
        version="0.1.0",
        lifespan=lifespan if use_lifespan else None,
    )
    app.state.config = cfg

    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(cfg.cors_origins),
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization", "X-Requested-With"],
    )
    _register_error_handlers(app)

    from predictiondao.api.routes import predictions, profiles, system

    app.include_router(predictions.router, prefix=API_PREFIX, tags=["predictions"])
    app.include_router(profiles.router, prefix=API_PREFIX, tags=["profiles"])
    app.include_router(system.router, tags=["system"])

    return app
