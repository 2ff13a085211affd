from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


def short_wallet_name(wallet_address: str) -> str:
    """Default display name for a wallet: ``0x1234...abcd``."""
    if len(wallet_address) <= 10:
        return wallet_address
    return f"{wallet_address[:6]}...{wallet_address[-4:]}"


@dataclass
class CreatorProfile:
    wallet_address: str
    display_name: str
    reputation: int = 0
    total_created: int = 0
    total_approved: int = 0
    last_prediction_at: datetime | None = None
    updated_at: datetime | None = None
