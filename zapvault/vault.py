"""
zapvault - Share Vault

ERC-4626 style share ledger over one reserve asset.

Shares are issued against the vault's live reserve balance (read from the
token ledger on every conversion, never cached). The first deposit into an
empty vault is 1:1; afterwards:

    deposit:  shares = floor(assets * supply / reserve)
    withdraw: shares = ceil(assets * supply / reserve)

Both directions round in the vault's favour, so a deposit followed by a
withdrawal can never extract more than was put in.

Anyone may transfer reserve directly to the vault address. That raises the
value of every share without minting any; it is not prevented.

Usage:
    vault = ShareVault(tokens, XSUSHI, context)
    tokens.approve(XSUSHI, alice, vault.address, 10 * 10**18)
    shares = vault.deposit(alice, 10 * 10**18, alice)
    vault.withdraw(alice, 10 * 10**18, alice, alice)
"""

import logging
from typing import Dict, List, Optional, Tuple

from .errors import (
    EmptyReserve,
    ExceededMaxRedeem,
    ExceededMaxWithdraw,
    InsufficientAuthorization,
    InsufficientBalance,
    InvalidAmount,
)
from .evm import (
    MAX_UINT256,
    ZERO_ADDRESS,
    derive_address,
    format_amount,
    normalize_address,
    require_amount,
)
from .execution import ExecutionContext, guarded
from .tokens import TokenLedger
from .vault_math import Rounding, mul_div
from .vault_types import Deposit, Transfer, Withdraw

log = logging.getLogger(__name__)


class ShareVault:
    """
    Share ledger for one reserve asset.

    Every mutating public method is one guarded call on the shared
    ExecutionContext: it either applies completely or rolls back with
    the token ledger. apply_deposit / apply_redeem are the same bodies
    without the guard, for components already inside a call.
    """

    def __init__(self, tokens: TokenLedger, asset: str,
                 context: Optional[ExecutionContext] = None,
                 address: str = "",
                 name: str = "Zap Vault Share",
                 symbol: str = "zvSHARE",
                 decimals: int = 18):
        self.tokens = tokens
        self.asset = normalize_address(asset)
        self.address = normalize_address(address) if address else derive_address(f"vault:{self.asset}")
        self.name = name
        self.symbol = symbol
        self.decimals = decimals

        self.context = context or ExecutionContext()
        self.context.enlist(tokens)
        self.context.enlist(self)

        self._total_supply = 0
        self._balances: Dict[str, int] = {}
        self._allowances: Dict[Tuple[str, str], int] = {}
        self.events: List[object] = []

    # ═══════════════════════════════════════════════════════════════════════
    # SHARE TOKEN VIEWS
    # ═══════════════════════════════════════════════════════════════════════

    def total_supply(self) -> int:
        return self._total_supply

    def balance_of(self, holder: str) -> int:
        return self._balances.get(normalize_address(holder), 0)

    def allowance(self, owner: str, spender: str) -> int:
        return self._allowances.get((normalize_address(owner), normalize_address(spender)), 0)

    # ═══════════════════════════════════════════════════════════════════════
    # ACCOUNTING
    # ═══════════════════════════════════════════════════════════════════════

    def total_assets(self) -> int:
        """Live reserve balance held at the vault address."""
        return self.tokens.balance_of(self.asset, self.address)

    def convert_to_shares(self, assets: int, rounding: Rounding = Rounding.FLOOR) -> int:
        require_amount(assets, "assets")
        supply = self._total_supply
        if supply == 0:
            return assets
        reserve = self.total_assets()
        if reserve == 0:
            raise EmptyReserve(f"{supply} shares outstanding against an empty reserve")
        return mul_div(assets, supply, reserve, rounding)

    def convert_to_assets(self, shares: int, rounding: Rounding = Rounding.FLOOR) -> int:
        require_amount(shares, "shares")
        supply = self._total_supply
        if supply == 0:
            return shares
        return mul_div(shares, self.total_assets(), supply, rounding)

    def assets_per_share(self) -> float:
        """Display rate only; conversions always use integer math."""
        if self._total_supply == 0:
            return 1.0
        return self.total_assets() / self._total_supply

    def max_deposit(self, receiver: str) -> int:
        return MAX_UINT256

    def max_mint(self, receiver: str) -> int:
        return MAX_UINT256

    def max_withdraw(self, owner: str) -> int:
        return self.convert_to_assets(self.balance_of(owner), Rounding.FLOOR)

    def max_redeem(self, owner: str) -> int:
        return self.balance_of(owner)

    def preview_deposit(self, assets: int) -> int:
        return self.convert_to_shares(assets, Rounding.FLOOR)

    def preview_mint(self, shares: int) -> int:
        return self.convert_to_assets(shares, Rounding.CEIL)

    def preview_withdraw(self, assets: int) -> int:
        return self.convert_to_shares(assets, Rounding.CEIL)

    def preview_redeem(self, shares: int) -> int:
        return self.convert_to_assets(shares, Rounding.FLOOR)

    # ═══════════════════════════════════════════════════════════════════════
    # VAULT OPERATIONS
    # ═══════════════════════════════════════════════════════════════════════

    @guarded
    def deposit(self, sender: str, assets: int, receiver: str) -> int:
        """
        Deposit reserve asset and mint shares to receiver.

        Args:
            sender: Account paying the assets (must have approved the vault)
            assets: Reserve amount, > 0
            receiver: Account credited with the shares

        Returns:
            Shares minted: assets on an empty vault, else
            floor(assets * supply / reserve)

        Raises:
            InvalidAmount: assets <= 0, or the deposit is worth zero shares
            InsufficientAuthorization / InsufficientBalance: from the pull
        """
        return self.apply_deposit(sender, assets, receiver)

    @guarded
    def mint(self, sender: str, shares: int, receiver: str) -> int:
        """Mint exactly shares to receiver, pulling ceil-rounded assets."""
        require_amount(shares, "shares")
        if shares <= 0:
            raise InvalidAmount(f"Shares must be positive, got {shares}")
        assets = self.preview_mint(shares)
        self._pull_and_mint(sender, receiver, assets, shares)
        return assets

    @guarded
    def withdraw(self, sender: str, assets: int, receiver: str, owner: str) -> int:
        """
        Burn owner's shares and send assets of the reserve to receiver.

        Args:
            sender: Account acting (needs a share allowance if not owner)
            assets: Reserve amount to pay out, > 0
            receiver: Account receiving the reserve asset
            owner: Account whose shares are burned

        Returns:
            Shares burned: ceil(assets * supply / reserve)

        Raises:
            ExceededMaxWithdraw: assets exceed what owner's shares redeem for
            InsufficientAuthorization: sender's share allowance is short
        """
        require_amount(assets, "assets")
        if assets <= 0:
            raise InvalidAmount(f"Assets must be positive, got {assets}")
        max_assets = self.max_withdraw(owner)
        if assets > max_assets:
            raise ExceededMaxWithdraw(normalize_address(owner), assets, max_assets)
        shares = self.preview_withdraw(assets)
        self._burn_and_pay(sender, receiver, owner, assets, shares)
        return shares

    @guarded
    def redeem(self, sender: str, shares: int, receiver: str, owner: str) -> int:
        """Burn exactly shares of owner, paying floor-rounded assets to receiver."""
        return self.apply_redeem(sender, shares, receiver, owner)

    def apply_deposit(self, sender: str, assets: int, receiver: str) -> int:
        """deposit() body for callers already holding the execution guard."""
        self.context.require_call("deposit")
        require_amount(assets, "assets")
        if assets <= 0:
            raise InvalidAmount(f"Assets must be positive, got {assets}")
        shares = self.preview_deposit(assets)
        if shares == 0:
            raise InvalidAmount(f"Deposit of {assets} is worth zero shares")
        self._pull_and_mint(sender, receiver, assets, shares)
        return shares

    def apply_redeem(self, sender: str, shares: int, receiver: str, owner: str) -> int:
        """redeem() body for callers already holding the execution guard."""
        self.context.require_call("redeem")
        require_amount(shares, "shares")
        if shares <= 0:
            raise InvalidAmount(f"Shares must be positive, got {shares}")
        max_shares = self.max_redeem(owner)
        if shares > max_shares:
            raise ExceededMaxRedeem(normalize_address(owner), shares, max_shares)
        assets = self.preview_redeem(shares)
        self._burn_and_pay(sender, receiver, owner, assets, shares)
        return assets

    def _pull_and_mint(self, sender: str, receiver: str, assets: int, shares: int) -> None:
        sender = normalize_address(sender)
        receiver = normalize_address(receiver)
        # Pull first: the share price above was computed on the pre-deposit reserve.
        self.tokens.transfer_from(self.asset, self.address, sender, self.address, assets)
        self._mint(receiver, shares)
        self.events.append(Deposit(sender, receiver, assets, shares))
        log.info(f"Deposit {format_amount(assets, self.decimals)} by {sender[:10]} "
                 f"-> {shares} shares to {receiver[:10]} (supply {self._total_supply})")

    def _burn_and_pay(self, sender: str, receiver: str, owner: str, assets: int, shares: int) -> None:
        sender = normalize_address(sender)
        receiver = normalize_address(receiver)
        owner = normalize_address(owner)
        if sender != owner:
            self._spend_allowance(owner, sender, shares)
        self._burn(owner, shares)
        self.tokens.transfer(self.asset, self.address, receiver, assets)
        self.events.append(Withdraw(sender, receiver, owner, assets, shares))
        log.info(f"Withdraw {format_amount(assets, self.decimals)} for {owner[:10]} "
                 f"-> {receiver[:10]}, burned {shares} shares (supply {self._total_supply})")

    # ═══════════════════════════════════════════════════════════════════════
    # SHARE TOKEN OPERATIONS
    # ═══════════════════════════════════════════════════════════════════════

    @guarded
    def approve(self, owner: str, spender: str, amount: int) -> bool:
        require_amount(amount)
        if amount < 0:
            raise ValueError("Allowance must be non-negative")
        self._allowances[(normalize_address(owner), normalize_address(spender))] = amount
        return True

    @guarded
    def transfer(self, sender: str, to: str, amount: int) -> bool:
        self._move(normalize_address(sender), normalize_address(to), amount)
        return True

    @guarded
    def transfer_from(self, spender: str, owner: str, to: str, amount: int) -> bool:
        owner = normalize_address(owner)
        spender = normalize_address(spender)
        if spender != owner:
            self._spend_allowance(owner, spender, amount)
        self._move(owner, normalize_address(to), amount)
        return True

    def _spend_allowance(self, owner: str, spender: str, amount: int) -> None:
        current = self._allowances.get((owner, spender), 0)
        if current == MAX_UINT256:
            return
        if current < amount:
            raise InsufficientAuthorization(spender, owner, current, amount)
        self._allowances[(owner, spender)] = current - amount

    def _move(self, sender: str, to: str, amount: int) -> None:
        require_amount(amount)
        if amount < 0:
            raise ValueError("Transfer amount must be non-negative")
        balance = self._balances.get(sender, 0)
        if balance < amount:
            raise InsufficientBalance(sender, balance, amount)
        self._balances[sender] = balance - amount
        self._balances[to] = self._balances.get(to, 0) + amount
        self.events.append(Transfer(sender, to, amount))

    def _mint(self, to: str, shares: int) -> None:
        self._balances[to] = self._balances.get(to, 0) + shares
        self._total_supply += shares
        self.events.append(Transfer(ZERO_ADDRESS, to, shares))

    def _burn(self, holder: str, shares: int) -> None:
        balance = self._balances.get(holder, 0)
        if balance < shares:
            raise InsufficientBalance(holder, balance, shares)
        self._balances[holder] = balance - shares
        self._total_supply -= shares
        self.events.append(Transfer(holder, ZERO_ADDRESS, shares))

    # ═══════════════════════════════════════════════════════════════════════
    # ROLLBACK
    # ═══════════════════════════════════════════════════════════════════════

    def snapshot(self) -> dict:
        return {
            "total_supply": self._total_supply,
            "balances": dict(self._balances),
            "allowances": dict(self._allowances),
            "events": len(self.events),
        }

    def restore(self, snapshot: dict) -> None:
        self._total_supply = snapshot["total_supply"]
        self._balances = dict(snapshot["balances"])
        self._allowances = dict(snapshot["allowances"])
        del self.events[snapshot["events"]:]

    def to_dict(self) -> dict:
        """State summary for logs and diagnostics."""
        return {
            "address": self.address,
            "asset": self.asset,
            "name": self.name,
            "symbol": self.symbol,
            "total_supply": self._total_supply,
            "total_assets": self.total_assets(),
            "holders": {k: v for k, v in self._balances.items() if v},
        }
