from .config import RaffleSettings, VrfSettings, load_config
from .errors import (
    AuthenticityFailed,
    InputRejected,
    InsufficientPayment,
    InvalidRandomWords,
    PayoutInDoubt,
    PreconditionFailed,
    RaffleError,
    RaffleNotOpen,
    ReentrantCall,
    RequestMismatch,
    RerequestNotAllowed,
    TransferFailed,
    UnauthorizedCaller,
    UpkeepNotNeeded,
)
from .events import Entered, EventLog, RandomnessRequested, WinnerPicked
from .funds import FundsTransfer, InMemoryFunds, Web3FundsTransfer
from .machine import Raffle
from .selection import select_winner
from .types import RaffleState, Round, RoundSnapshot, UpkeepDiagnostics
from .upkeep import check_upkeep
from .vrf import MockVrfCoordinator, RandomnessCoordinator, Web3VrfCoordinator

__all__ = [
    "AuthenticityFailed",
    "Entered",
    "EventLog",
    "FundsTransfer",
    "InMemoryFunds",
    "InputRejected",
    "InsufficientPayment",
    "InvalidRandomWords",
    "MockVrfCoordinator",
    "PayoutInDoubt",
    "PreconditionFailed",
    "Raffle",
    "RaffleError",
    "RaffleNotOpen",
    "RaffleSettings",
    "RaffleState",
    "RandomnessCoordinator",
    "RandomnessRequested",
    "ReentrantCall",
    "RequestMismatch",
    "RerequestNotAllowed",
    "Round",
    "RoundSnapshot",
    "TransferFailed",
    "UnauthorizedCaller",
    "UpkeepDiagnostics",
    "UpkeepNotNeeded",
    "VrfSettings",
    "Web3FundsTransfer",
    "Web3VrfCoordinator",
    "WinnerPicked",
    "check_upkeep",
    "load_config",
    "select_winner",
]
