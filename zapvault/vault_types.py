"""
zapvault - Data Types

Ledger events and zap receipts. Events are appended to ShareVault.events in
the order the operations commit; a reverted call leaves no events behind.
"""

from dataclasses import dataclass, asdict
from enum import Enum


class ZapStage(Enum):
    """Zap pipeline stage (only ever observed inside one call)"""
    IDLE = "idle"
    PULLING_INPUT = "pulling_input"
    CONVERTING = "converting"
    STAKING = "staking"
    UNSTAKING = "unstaking"
    LEDGER_OP = "ledger_op"
    DONE = "done"


class ZapDirection(Enum):
    IN = "in"
    OUT = "out"


@dataclass(frozen=True)
class Transfer:
    """Share movement. Mints come from ZERO_ADDRESS, burns go to it."""
    sender: str
    receiver: str
    value: int

    def to_dict(self) -> dict:
        return {"event": "Transfer", **asdict(self)}


@dataclass(frozen=True)
class Deposit:
    sender: str
    owner: str
    assets: int
    shares: int

    def to_dict(self) -> dict:
        return {"event": "Deposit", **asdict(self)}


@dataclass(frozen=True)
class Withdraw:
    sender: str
    receiver: str
    owner: str
    assets: int
    shares: int

    def to_dict(self) -> dict:
        return {"event": "Withdraw", **asdict(self)}


@dataclass(frozen=True)
class ZapReceipt:
    """
    Amounts observed at each stage of one zap.

    For a zap in:
      - asset/amount: input asset and amount pulled from the caller
      - base_amount: base asset handed to staking (after the swap, if any)
      - reserve_amount: reserve asset deposited into the vault
      - shares: shares credited to the caller

    For a zap out the same fields run backwards: shares redeemed, reserve
    unstaked, base received, and asset/amount paid out to the caller.
    """
    direction: ZapDirection
    account: str
    asset: str
    amount: int
    base_amount: int
    reserve_amount: int
    shares: int
    swapped: bool

    def to_dict(self) -> dict:
        data = asdict(self)
        data["direction"] = self.direction.value
        return data
