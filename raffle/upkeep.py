from __future__ import annotations

from typing import List, Tuple

from .types import RaffleState, Round, UpkeepDiagnostics


def check_upkeep(round_: Round, interval_seconds: int, now: float) -> Tuple[bool, UpkeepDiagnostics]:
    """Decide whether a draw is due at ``now``.

    A draw is due only when the round is open, the interval since the last
    draw has fully elapsed, and there is at least one player with a
    non-empty pool. The diagnostics list every unmet condition by name so a
    caller can tell "too early" from "no entrants" from "already calculating".
    """
    elapsed = now - round_.last_draw_timestamp
    reasons: List[str] = []
    if round_.state != RaffleState.OPEN:
        reasons.append("not_open")
    if elapsed < interval_seconds:
        reasons.append("interval_not_elapsed")
    if not round_.players:
        reasons.append("no_players")
    if round_.pool_balance <= 0:
        reasons.append("empty_pool")

    diagnostics = UpkeepDiagnostics(
        balance=round_.pool_balance,
        player_count=len(round_.players),
        state=round_.state,
        elapsed_seconds=elapsed,
        interval_seconds=interval_seconds,
        reasons=tuple(reasons),
    )
    return not reasons, diagnostics
