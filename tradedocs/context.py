from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class BusinessContext:
    """The business a request acts for. Passed explicitly to every service call."""

    business_id: str
    user_id: Optional[str] = None

    def __post_init__(self) -> None:
        if not (self.business_id or "").strip():
            raise ValueError("business_id is required")
