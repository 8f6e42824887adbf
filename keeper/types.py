from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Sequence


@dataclass(frozen=True)
class UpkeepStatus:
    upkeep_needed: bool
    reasons: Sequence[str] = ()
    player_count: int = 0
    state: str = "OPEN"
    raw: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class UpkeepOutcome:
    """Result of asking the raffle to perform upkeep.

    ``request_id`` is None when the raffle refused because upkeep was no
    longer needed (another driver got there first).
    """

    request_id: Optional[int]
    reasons: Sequence[str] = ()
