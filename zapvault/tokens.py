"""
zapvault - Token Ledger

In-memory multi-asset fungible ledger implementing the Transfer Service:
balances, allowances and supply per asset, with ERC-20 semantics
(transfer, approve, transferFrom). Staking pools and fixtures issue
assets through mint/burn.

Usage:
    tokens = TokenLedger()
    tokens.mint(SUSHI, alice, 100 * 10**18)
    tokens.approve(SUSHI, alice, vault_addr, 100 * 10**18)
    tokens.transfer_from(SUSHI, vault_addr, alice, vault_addr, 100 * 10**18)
"""

import copy
import logging
from typing import Dict, Tuple

from .errors import InsufficientAuthorization, InsufficientBalance
from .evm import MAX_UINT256, normalize_address, require_amount

log = logging.getLogger(__name__)


class TokenLedger:
    """
    Balances and allowances for any number of assets.

    State:
      - balances[asset][holder] -> int
      - allowances[asset][(owner, spender)] -> int
      - supply[asset] -> int

    An allowance of MAX_UINT256 is infinite and is never decremented.
    """

    def __init__(self):
        self.balances: Dict[str, Dict[str, int]] = {}
        self.allowances: Dict[str, Dict[Tuple[str, str], int]] = {}
        self.supply: Dict[str, int] = {}

    # ═══════════════════════════════════════════════════════════════════════
    # VIEWS
    # ═══════════════════════════════════════════════════════════════════════

    def balance_of(self, asset: str, holder: str) -> int:
        asset = normalize_address(asset)
        holder = normalize_address(holder)
        return self.balances.get(asset, {}).get(holder, 0)

    def total_supply(self, asset: str) -> int:
        return self.supply.get(normalize_address(asset), 0)

    def allowance(self, asset: str, owner: str, spender: str) -> int:
        key = (normalize_address(owner), normalize_address(spender))
        return self.allowances.get(normalize_address(asset), {}).get(key, 0)

    # ═══════════════════════════════════════════════════════════════════════
    # ERC-20 OPERATIONS
    # ═══════════════════════════════════════════════════════════════════════

    def approve(self, asset: str, owner: str, spender: str, amount: int) -> bool:
        """Set spender's allowance over owner's balance (replaces, not adds)."""
        require_amount(amount)
        if amount < 0:
            raise ValueError("Allowance must be non-negative")
        asset = normalize_address(asset)
        key = (normalize_address(owner), normalize_address(spender))
        self.allowances.setdefault(asset, {})[key] = amount
        log.debug(f"approve {asset[:10]} {key[0][:10]} -> {key[1][:10]}: {amount}")
        return True

    def transfer(self, asset: str, sender: str, to: str, amount: int) -> bool:
        """Move amount of asset from sender to to."""
        require_amount(amount)
        if amount < 0:
            raise ValueError("Transfer amount must be non-negative")
        asset = normalize_address(asset)
        sender = normalize_address(sender)
        to = normalize_address(to)

        book = self.balances.setdefault(asset, {})
        balance = book.get(sender, 0)
        if balance < amount:
            raise InsufficientBalance(sender, balance, amount)

        book[sender] = balance - amount
        book[to] = book.get(to, 0) + amount
        return True

    def transfer_from(self, asset: str, spender: str, owner: str, to: str, amount: int) -> bool:
        """
        Move amount of asset from owner to to, spending spender's allowance.

        Raises:
            InsufficientAuthorization: allowance is below amount
            InsufficientBalance: owner holds less than amount
        """
        require_amount(amount)
        spender = normalize_address(spender)
        owner = normalize_address(owner)
        if spender != owner:
            self.spend_allowance(asset, owner, spender, amount)
        return self.transfer(asset, owner, to, amount)

    def spend_allowance(self, asset: str, owner: str, spender: str, amount: int) -> None:
        current = self.allowance(asset, owner, spender)
        if current == MAX_UINT256:
            return
        if current < amount:
            raise InsufficientAuthorization(
                normalize_address(spender), normalize_address(owner), current, amount
            )
        self.approve(asset, owner, spender, current - amount)

    # ═══════════════════════════════════════════════════════════════════════
    # ISSUANCE
    # ═══════════════════════════════════════════════════════════════════════

    def mint(self, asset: str, to: str, amount: int) -> None:
        require_amount(amount)
        if amount < 0:
            raise ValueError("Mint amount must be non-negative")
        asset = normalize_address(asset)
        to = normalize_address(to)
        book = self.balances.setdefault(asset, {})
        book[to] = book.get(to, 0) + amount
        self.supply[asset] = self.supply.get(asset, 0) + amount
        log.debug(f"mint {amount} of {asset[:10]} to {to[:10]}")

    def burn(self, asset: str, holder: str, amount: int) -> None:
        require_amount(amount)
        if amount < 0:
            raise ValueError("Burn amount must be non-negative")
        asset = normalize_address(asset)
        holder = normalize_address(holder)
        book = self.balances.setdefault(asset, {})
        balance = book.get(holder, 0)
        if balance < amount:
            raise InsufficientBalance(holder, balance, amount)
        book[holder] = balance - amount
        self.supply[asset] = self.supply.get(asset, 0) - amount
        log.debug(f"burn {amount} of {asset[:10]} from {holder[:10]}")

    # ═══════════════════════════════════════════════════════════════════════
    # ROLLBACK
    # ═══════════════════════════════════════════════════════════════════════

    def snapshot(self) -> dict:
        return copy.deepcopy({
            "balances": self.balances,
            "allowances": self.allowances,
            "supply": self.supply,
        })

    def restore(self, snapshot: dict) -> None:
        state = copy.deepcopy(snapshot)
        self.balances = state["balances"]
        self.allowances = state["allowances"]
        self.supply = state["supply"]
