from __future__ import annotations

import datetime as dt
import json
from typing import List

from sqlalchemy import Column, DateTime, Float, Integer, String, Text
from sqlalchemy.orm import declarative_base

from raffle.types import RaffleState, RoundSnapshot

Base = declarative_base()


class RoundRecord(Base):
    """The single current round. Only row id=1 is ever used."""

    __tablename__ = "current_round"

    id = Column(Integer, primary_key=True, default=1)
    state = Column(String(16), nullable=False, default=RaffleState.OPEN.name)
    players = Column(Text, nullable=False, default="[]")
    # Amounts and request ids exceed 64-bit integers; kept as decimal strings.
    pool_balance = Column(String(80), nullable=False, default="0")
    last_draw_timestamp = Column(Float, nullable=False)
    outstanding_request_id = Column(String(80), nullable=True)
    requested_at = Column(Float, nullable=True)
    recent_winner = Column(String(64), nullable=True)
    settling_request_id = Column(String(80), nullable=True)
    settling_winner = Column(String(64), nullable=True)
    updated_at = Column(DateTime, default=dt.datetime.utcnow, onupdate=dt.datetime.utcnow, nullable=False)

    def set_players(self, players: List[str]) -> None:
        self.players = json.dumps(list(players))

    def get_players(self) -> List[str]:
        return json.loads(self.players)

    def apply_snapshot(self, snapshot: RoundSnapshot) -> None:
        self.state = snapshot.state.name
        self.set_players(list(snapshot.players))
        self.pool_balance = str(snapshot.pool_balance)
        self.last_draw_timestamp = snapshot.last_draw_timestamp
        self.outstanding_request_id = (
            str(snapshot.outstanding_request_id) if snapshot.outstanding_request_id is not None else None
        )
        self.requested_at = snapshot.requested_at
        self.recent_winner = snapshot.recent_winner
        self.settling_request_id = (
            str(snapshot.settling_request_id) if snapshot.settling_request_id is not None else None
        )
        self.settling_winner = snapshot.settling_winner

    def to_snapshot(self) -> RoundSnapshot:
        return RoundSnapshot(
            state=RaffleState[self.state],
            players=tuple(self.get_players()),
            pool_balance=int(self.pool_balance),
            last_draw_timestamp=float(self.last_draw_timestamp),
            outstanding_request_id=int(self.outstanding_request_id) if self.outstanding_request_id else None,
            requested_at=self.requested_at,
            recent_winner=self.recent_winner,
            settling_request_id=int(self.settling_request_id) if self.settling_request_id else None,
            settling_winner=self.settling_winner,
        )
