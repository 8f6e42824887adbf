from __future__ import annotations

from typing import Optional

from raffle.types import RoundSnapshot

from ..db import session_scope
from ..models import RoundRecord

CURRENT_ROUND_ID = 1


class RoundRepository:
    def load(self) -> Optional[RoundSnapshot]:
        with session_scope() as session:
            record = session.get(RoundRecord, CURRENT_ROUND_ID)
            if record is None:
                return None
            snapshot = record.to_snapshot()
            session.expunge(record)
            return snapshot

    def save(self, snapshot: RoundSnapshot) -> None:
        with session_scope() as session:
            record = session.get(RoundRecord, CURRENT_ROUND_ID)
            if record is None:
                record = RoundRecord(id=CURRENT_ROUND_ID)
                session.add(record)
            record.apply_snapshot(snapshot)
            session.flush()
