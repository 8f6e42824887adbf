"""
Raffle errors.

Four families mirror what can go wrong around a round:

* ``InputRejected``      - a participant call was refused (bad payment, round not open).
* ``PreconditionFailed`` - a draw was asked for when none is due, or a
                         previous payout is still unresolved.
* ``AuthenticityFailed`` - a randomness callback could not be trusted.
* ``TransferFailed``     - the winner could not be paid.

None of them leave partial state behind: the round is exactly as it was
before the failing call.
"""

from __future__ import annotations

from typing import Optional

from .types import UpkeepDiagnostics


class RaffleError(Exception):
    """Base class for all raffle errors."""


class InputRejected(RaffleError, ValueError):
    pass


class InsufficientPayment(InputRejected):
    def __init__(self, paid: int, required: int) -> None:
        super().__init__(f"Insufficient payment: paid {paid}, entry fee is {required}")
        self.paid = paid
        self.required = required


class RaffleNotOpen(InputRejected):
    def __init__(self, state_name: str) -> None:
        super().__init__(f"Raffle not open (state={state_name})")
        self.state_name = state_name


class PreconditionFailed(RaffleError):
    pass


class UpkeepNotNeeded(PreconditionFailed):
    """Raised by ``perform_upkeep`` with the diagnostics explaining why."""

    def __init__(self, diagnostics: UpkeepDiagnostics) -> None:
        reasons = ", ".join(diagnostics.reasons) or "unknown"
        super().__init__(f"Upkeep not needed: {reasons}")
        self.diagnostics = diagnostics


class RerequestNotAllowed(PreconditionFailed):
    pass


class PayoutInDoubt(PreconditionFailed):
    """A payout was started but its outcome was never recorded.

    The round refuses to draw again until an operator says whether the
    winner was paid.
    """

    def __init__(self, request_id: int) -> None:
        super().__init__(f"Payout for request {request_id} may already have been made; resolve it first")
        self.request_id = request_id


class ReentrantCall(RaffleError):
    pass


class AuthenticityFailed(RaffleError):
    pass


class UnauthorizedCaller(AuthenticityFailed):
    def __init__(self, caller: Optional[str]) -> None:
        super().__init__(f"Caller {caller!r} is not the randomness coordinator")
        self.caller = caller


class RequestMismatch(AuthenticityFailed):
    def __init__(self, request_id: int, outstanding: Optional[int]) -> None:
        if outstanding is None:
            message = f"No randomness request outstanding; got request id {request_id}"
        else:
            message = f"Request id {request_id} does not match outstanding request {outstanding}"
        super().__init__(message)
        self.request_id = request_id
        self.outstanding = outstanding


class InvalidRandomWords(AuthenticityFailed):
    pass


class TransferFailed(RaffleError):
    def __init__(self, recipient: str, amount: int, reason: Optional[str] = None) -> None:
        message = f"Transfer of {amount} to {recipient} failed"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)
        self.recipient = recipient
        self.amount = amount
