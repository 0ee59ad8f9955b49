from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from obfuscation import IdObfuscator, TokenMode


class PayoutResponse(BaseModel):
    """Public representation of a payout. The ID is always an obfuscated token."""
    id: str
    amount: str
    amount_cents: int
    currency: str
    status: str
    created_at: datetime

    @classmethod
    def from_record(cls, record: Dict[str, Any], obfuscator: IdObfuscator) -> "PayoutResponse":
        cents = record["amount_cents"]
        sign = "-" if cents < 0 else ""
        return cls(
            id=obfuscator.encode(record["id"], TokenMode.GENERAL),
            amount=f"{sign}{abs(cents) // 100}.{abs(cents) % 100:02d}",
            amount_cents=cents,
            currency=record["currency"],
            status=record["state"],
            created_at=record["created_at"],
        )


class PayoutPageResponse(BaseModel):
    """A page of payouts. The next page fields are present only when more rows remain."""
    items: List[PayoutResponse] = Field(default_factory=list)
    next_page_key: Optional[str] = None
    next_page_url: Optional[str] = None


class PayoutDetailResponse(BaseModel):
    payout: PayoutResponse


class ErrorResponse(BaseModel):
    status: int
    error: str
