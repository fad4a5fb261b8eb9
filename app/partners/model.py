from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional


@dataclass(frozen=True)
class Partner:
    id: str
    email: str
    name: str
    referral_code: str
    status: str = "ACTIVE"
    created_at: Optional[datetime] = None
