"""CLI entry point for the prediction DAO service.

Commands:
  - serve: Run the HTTP API
  - migrate: Apply database migrations
  - status: Show prediction counts and chain configuration
  - close-expired: Close predictions whose voting window has ended
"""

from __future__ import annotations

import argparse
import asyncio
import logging

from predictiondao.config import AppConfig, load_config
from predictiondao.ledger import PredictionLedger
from predictiondao.registry.db import Database
from predictiondao.registry.queries import Registry


def setup_logging(verbose: bool = False) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)-8s %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def _database(config: AppConfig) -> Database:
    """An unconnected single-connection Database; use it as a context manager."""
    if not config.db_dsn:
        raise SystemExit("DATABASE_URL is not set")
    return Database(config.db_dsn, pooled=False)


def cmd_serve(args: argparse.Namespace) -> None:
    """Run the HTTP API with uvicorn."""
    import uvicorn

    from predictiondao.api.app import create_app

    uvicorn.run(create_app(use_lifespan=True), host=args.host, port=args.port)


def cmd_migrate(args: argparse.Namespace) -> None:
    """Run database migrations."""
    with _database(load_config()) as db:
        applied = db.run_migrations()
    if applied:
        print(f"Applied: {', '.join(applied)}")
    print("Migrations complete.")


def cmd_status(args: argparse.Namespace) -> None:
    """Show prediction counts per status and chain configuration."""
    config = load_config()
    with _database(config) as db:
        registry = Registry(db)
        counts = registry.count_by_status()
        total = registry.count_predictions()

    print("Predictions:")
    for status, count in sorted(counts.items()):
        print(f"  {status}: {count}")
    print(f"  TOTAL: {total}")
    print(f"\nApproval threshold: {config.approval_threshold_pct}%")
    if config.chain_configured:
        writes = "enabled" if config.chain_private_key else "read-only"
        print(f"Chain: {config.dao_contract_address} on chain {config.chain_id} ({writes})")
    else:
        print("Chain: not configured (database only)")


def cmd_close_expired(args: argparse.Namespace) -> None:
    """Move ACTIVE predictions past their deadline to a terminal status.

    Also re-announces approvals whose reputation credit never landed.
    """
    from predictiondao.models.events import PredictionApproved
    from predictiondao.reputation import ReputationService

    config = load_config()
    with _database(config) as db:
        registry = Registry(db)
        ledger = PredictionLedger(
            registry,
            threshold_pct=config.approval_threshold_pct,
            event_max_attempts=config.event_max_attempts,
        )
        reputation = ReputationService(registry, approval_bonus=config.approval_reputation_bonus)
        ledger.subscribe(PredictionApproved, reputation.on_prediction_approved)
        changed = asyncio.run(ledger.close_expired())

    if not changed:
        print("No expired predictions.")
        return
    for p in changed:
        print(f"  #{p.id} {p.title[:50]}: {p.status.value} ({p.yes_votes} yes / {p.no_votes} no)")


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(
        prog="predictiondao",
        description="Community-voted prediction approval service",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Verbose output")

    subs = parser.add_subparsers(dest="command", required=True)

    p_serve = subs.add_parser("serve", help="Run the HTTP API")
    p_serve.add_argument("--host", default="0.0.0.0", help="Bind address")
    p_serve.add_argument("--port", type=int, default=5008, help="Bind port")

    subs.add_parser("migrate", help="Run database migrations")
    subs.add_parser("status", help="Show prediction counts and chain configuration")
    subs.add_parser("close-expired", help="Close predictions whose voting period ended and re-announce uncredited approvals")

    args = parser.parse_args(argv)
    setup_logging(args.verbose)

    commands = {
        "serve": cmd_serve,
        "migrate": cmd_migrate,
        "status": cmd_status,
        "close-expired": cmd_close_expired,
    }
    commands[args.command](args)


if __name__ == "__main__":
    main()
