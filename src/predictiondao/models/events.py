from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True)
class PredictionCreated:
    prediction_id: int
    creator: str
    category: str
    created_at: datetime


@dataclass(frozen=True)
class PredictionApproved:
    prediction_id: int
    creator: str
    yes_votes: int
    no_votes: int
    approved_at: datetime
