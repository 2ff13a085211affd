from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

_TRUE = ("1", "true", "yes")


@dataclass(frozen=True)
class DatabaseConfig:
    host: str
    port: int
    database: str
    user: str
    password: str

    @property
    def dsn(self) -> str:
        return f"postgresql://{self.user}:{self.password}@{self.host}:{self.port}/{self.database}"


@dataclass(frozen=True)
class AppConfig:
    db_dsn: str = ""
    chain_rpc_url: str = ""
    dao_contract_address: str = ""
    chain_private_key: str = ""
    chain_id: int = 16
    chain_timeout_seconds: float = 10.0
    approval_threshold_pct: int = 70
    approval_reputation_bonus: int = 5
    event_max_attempts: int = 3
    cors_origins: tuple[str, ...] = field(
        default=("http://localhost:3000", "http://localhost:3001"),
    )
    expose_errors: bool = False

    @property
    def chain_configured(self) -> bool:
        return bool(self.chain_rpc_url and self.dao_contract_address)


def _split_origins(raw: str) -> tuple[str, ...]:
    return tuple(o.strip() for o in raw.split(",") if o.strip())


def _database_dsn() -> str:
    """DATABASE_URL, or a DSN assembled from DB_* variables when only those are set."""
    dsn = os.environ.get("DATABASE_URL", "")
    if dsn or not os.environ.get("DB_HOST"):
        return dsn
    return DatabaseConfig(
        host=os.environ["DB_HOST"],
        port=int(os.environ.get("DB_PORT", "5432")),
        database=os.environ.get("DB_NAME", "dao"),
        user=os.environ.get("DB_USER", "postgres"),
        password=os.environ.get("DB_PASSWORD", ""),
    ).dsn


def load_config() -> AppConfig:
    """Load application config from environment variables.

    Loads .env file if present in the current directory.
    """
    env_path = Path(".env")
    if env_path.exists():
        load_dotenv(env_path)

    threshold = int(os.environ.get("APPROVAL_THRESHOLD_PCT", "70"))
    if not 0 < threshold <= 100:
        raise ValueError(f"APPROVAL_THRESHOLD_PCT must be in 1..100, got {threshold}")

    return AppConfig(
        db_dsn=_database_dsn(),
        chain_rpc_url=os.environ.get("CHAIN_RPC_URL", ""),
        dao_contract_address=os.environ.get("DAO_CONTRACT_ADDRESS", ""),
        chain_private_key=os.environ.get("CHAIN_PRIVATE_KEY", ""),
        chain_id=int(os.environ.get("CHAIN_ID", "16")),
        chain_timeout_seconds=float(os.environ.get("CHAIN_TIMEOUT_SECONDS", "10")),
        approval_threshold_pct=threshold,
        approval_reputation_bonus=int(os.environ.get("APPROVAL_REPUTATION_BONUS", "5")),
        event_max_attempts=int(os.environ.get("EVENT_MAX_ATTEMPTS", "3")),
        cors_origins=_split_origins(
            os.environ.get("CORS_ORIGINS", "http://localhost:3000,http://localhost:3001")
        ),
        expose_errors=os.environ.get("EXPOSE_ERRORS", "").lower() in _TRUE,
    )
