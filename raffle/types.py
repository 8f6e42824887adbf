from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any, Dict, List, Optional, Tuple


class RaffleState(IntEnum):
    OPEN = 0
    CALCULATING = 1


@dataclass
class Round:
    """Mutable record of the current round. Owned by a single ``Raffle``."""

    last_draw_timestamp: float
    state: RaffleState = RaffleState.OPEN
    players: List[str] = field(default_factory=list)
    pool_balance: int = 0
    outstanding_request_id: Optional[int] = None
    requested_at: Optional[float] = None
    recent_winner: Optional[str] = None
    # Set while the payout for this request is in flight.
    settling_request_id: Optional[int] = None
    settling_winner: Optional[str] = None


@dataclass(frozen=True)
class UpkeepDiagnostics:
    balance: int
    player_count: int
    state: RaffleState
    elapsed_seconds: float
    interval_seconds: int
    reasons: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "balance": str(self.balance),
            "player_count": self.player_count,
            "state": self.state.name,
            "elapsed_seconds": self.elapsed_seconds,
            "interval_seconds": self.interval_seconds,
            "reasons": list(self.reasons),
        }


@dataclass(frozen=True)
class RoundSnapshot:
    state: RaffleState
    players: Tuple[str, ...]
    pool_balance: int
    last_draw_timestamp: float
    outstanding_request_id: Optional[int]
    requested_at: Optional[float]
    recent_winner: Optional[str]
    settling_request_id: Optional[int] = None
    settling_winner: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "state": self.state.name,
            "players": list(self.players),
            "player_count": len(self.players),
            "pool_balance": str(self.pool_balance),
            "last_draw_timestamp": self.last_draw_timestamp,
            "outstanding_request_id": (
                str(self.outstanding_request_id) if self.outstanding_request_id is not None else None
            ),
            "requested_at": self.requested_at,
            "recent_winner": self.recent_winner,
            "settling_request_id": (
                str(self.settling_request_id) if self.settling_request_id is not None else None
            ),
            "settling_winner": self.settling_winner,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RoundSnapshot":
        request_id = data.get("outstanding_request_id")
        settling_id = data.get("settling_request_id")
        return cls(
            state=RaffleState[data["state"]],
            players=tuple(data.get("players") or ()),
            pool_balance=int(data.get("pool_balance") or 0),
            last_draw_timestamp=float(data["last_draw_timestamp"]),
            outstanding_request_id=int(request_id) if request_id is not None else None,
            requested_at=data.get("requested_at"),
            recent_winner=data.get("recent_winner"),
            settling_request_id=int(settling_id) if settling_id is not None else None,
            settling_winner=data.get("settling_winner"),
        )
