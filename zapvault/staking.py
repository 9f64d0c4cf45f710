"""
zapvault - Staking Services

The staking service turns the base asset into the yield-bearing reserve
asset and back, at a rate it alone determines. The vault and the zap
pipeline never validate that rate.

Implementations:
  - BarStaking: proportional pool in the style of SushiBar. Reserve is
    minted against the pool's base holdings, so base donated to the pool
    raises the value of every reserve unit.
  - FixedRateStaking: constant reserve-per-base rate, for deterministic
    scenarios.
"""

import logging
from typing import Optional

from .errors import StakingError
from .evm import derive_address, normalize_address, require_amount
from .tokens import TokenLedger

log = logging.getLogger(__name__)


class StakingService:
    """Interface consumed by the zap pipeline."""

    base_asset: str
    reserve_asset: str
    address: str

    def stake(self, sender: str, base_amount: int) -> int:
        """Pull base_amount from sender, credit sender with reserve. Returns reserve credited."""
        raise NotImplementedError

    def unstake(self, sender: str, reserve_amount: int) -> int:
        """Burn reserve_amount of sender, pay sender base. Returns base paid."""
        raise NotImplementedError


def _require_positive(amount: int, name: str) -> int:
    require_amount(amount, name)
    if amount <= 0:
        raise StakingError(f"{name} must be positive, got {amount}")
    return amount


class BarStaking(StakingService):
    """
    Proportional staking pool.

    stake:   reserve = amount                         (empty pool)
             reserve = amount * reserve_supply // base_held
    unstake: base    = amount * base_held // reserve_supply

    The pool's address defaults to the reserve asset address: the pool is
    the issuer of the reserve token.
    """

    def __init__(self, tokens: TokenLedger, base_asset: str, reserve_asset: str,
                 address: str = ""):
        self.tokens = tokens
        self.base_asset = normalize_address(base_asset)
        self.reserve_asset = normalize_address(reserve_asset)
        self.address = normalize_address(address) if address else self.reserve_asset

    def base_held(self) -> int:
        return self.tokens.balance_of(self.base_asset, self.address)

    def reserve_supply(self) -> int:
        return self.tokens.total_supply(self.reserve_asset)

    def quote_stake(self, base_amount: int) -> int:
        supply = self.reserve_supply()
        held = self.base_held()
        if supply == 0 or held == 0:
            return base_amount
        return base_amount * supply // held

    def quote_unstake(self, reserve_amount: int) -> int:
        supply = self.reserve_supply()
        if supply == 0:
            return 0
        return reserve_amount * self.base_held() // supply

    def stake(self, sender: str, base_amount: int) -> int:
        _require_positive(base_amount, "base_amount")
        minted = self.quote_stake(base_amount)
        self.tokens.transfer_from(self.base_asset, self.address, sender, self.address, base_amount)
        self.tokens.mint(self.reserve_asset, sender, minted)
        log.info(f"Staked {base_amount} base -> {minted} reserve")
        return minted

    def unstake(self, sender: str, reserve_amount: int) -> int:
        _require_positive(reserve_amount, "reserve_amount")
        supply = self.reserve_supply()
        if reserve_amount > supply:
            raise StakingError(f"Cannot unstake {reserve_amount}, supply is {supply}")
        paid = self.quote_unstake(reserve_amount)
        self.tokens.burn(self.reserve_asset, sender, reserve_amount)
        self.tokens.transfer(self.base_asset, self.address, sender, paid)
        log.info(f"Unstaked {reserve_amount} reserve -> {paid} base")
        return paid


class FixedRateStaking(StakingService):
    """
    Staking at a constant rate of numerator/denominator reserve per base.

    Base received on stake stays in the pool and backs later unstakes;
    an unstake the pool cannot cover fails with StakingError.
    """

    def __init__(self, tokens: TokenLedger, base_asset: str, reserve_asset: str,
                 numerator: int = 1, denominator: int = 1,
                 address: Optional[str] = None):
        if numerator <= 0 or denominator <= 0:
            raise ValueError("Rate numerator and denominator must be positive")
        self.tokens = tokens
        self.base_asset = normalize_address(base_asset)
        self.reserve_asset = normalize_address(reserve_asset)
        self.numerator = numerator
        self.denominator = denominator
        self.address = normalize_address(address) if address else \
            derive_address(f"staking:{self.base_asset}:{self.reserve_asset}")

    def stake(self, sender: str, base_amount: int) -> int:
        _require_positive(base_amount, "base_amount")
        minted = base_amount * self.numerator // self.denominator
        if minted == 0:
            raise StakingError(f"Stake of {base_amount} is worth zero reserve")
        self.tokens.transfer_from(self.base_asset, self.address, sender, self.address, base_amount)
        self.tokens.mint(self.reserve_asset, sender, minted)
        return minted

    def unstake(self, sender: str, reserve_amount: int) -> int:
        _require_positive(reserve_amount, "reserve_amount")
        paid = reserve_amount * self.denominator // self.numerator
        held = self.tokens.balance_of(self.base_asset, self.address)
        if paid > held:
            raise StakingError(f"Pool holds {held} base, cannot pay {paid}")
        self.tokens.burn(self.reserve_asset, sender, reserve_amount)
        self.tokens.transfer(self.base_asset, self.address, sender, paid)
        return paid
