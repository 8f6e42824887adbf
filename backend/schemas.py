from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, validator
from web3 import Web3


class EntryRequest(BaseModel):
    identity: str = Field(..., description="Hex address of the participant.")
    amount: int = Field(..., description="Paid amount in wei.")

    @validator("identity")
    def validate_identity(cls, value: str) -> str:
        if not Web3.is_address(value):
            raise ValueError("identity must be a 20-byte hex address.")
        return Web3.to_checksum_address(value)

    @validator("amount")
    def validate_amount(cls, value: int) -> int:
        if value < 0:
            raise ValueError("amount must not be negative.")
        return value


class EntryResponse(BaseModel):
    identity: str
    player_count: int
    pool_balance: str


class FulfillmentRequest(BaseModel):
    request_id: int
    random_words: List[int]


class MockFulfillmentRequest(BaseModel):
    random_words: Optional[List[int]] = None


class FulfillmentResponse(BaseModel):
    request_id: str
    winner: str
    state: str


class UpkeepResponse(BaseModel):
    upkeep_needed: bool
    diagnostics: Dict[str, Any]


class UpkeepPerformedResponse(BaseModel):
    request_id: str
    state: str


class RaffleStatusResponse(BaseModel):
    state: str
    players: List[str]
    player_count: int
    pool_balance: str
    last_draw_timestamp: float
    outstanding_request_id: Optional[str] = None
    requested_at: Optional[float] = None
    recent_winner: Optional[str] = None
    settling_request_id: Optional[str] = None
    settling_winner: Optional[str] = None


class PayoutResolutionRequest(BaseModel):
    paid: bool = Field(..., description="Whether the in-flight payout reached the winner.")


class PayoutResolutionResponse(BaseModel):
    winner: Optional[str] = None
    state: str
