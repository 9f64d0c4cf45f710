"""
zapvault - Zap Pipeline

Enter or exit the vault with an asset other than the reserve asset.

Zap in (one atomic call):
  1. Pull amount_in of input_asset from the caller into pipeline custody,
     spending the allowance the caller gave the vault
  2. Swap input -> hubs -> base, unless input already is the base asset
  3. Stake base for reserve
  4. Deposit the reserve into the vault, shares credited to the caller

Zap out (one atomic call):
  1. Redeem the caller's shares, reserve paid to pipeline custody
  2. Unstake reserve for base
  3. Pay base to the caller, or swap base -> hubs -> output to the caller

A failure at any step rolls every balance and the vault back to where
they were before the call.

Swaps run with deadline "now" and, by default, no minimum output. Callers
who want protection pass min_shares (zap in) or min_amount_out (zap out).
"""

import logging
from typing import Optional

from .errors import AmountMustBeGreaterThanZero, InvalidAmount, SharesMustBePositive, SlippageExceeded
from .evm import derive_address, normalize_address, require_amount
from .routing import RoutingPolicy
from .staking import StakingService
from .swap import SwapService
from .vault import ShareVault
from .vault_types import ZapDirection, ZapReceipt, ZapStage

log = logging.getLogger(__name__)


class ZapPipeline:
    """
    Swap/stake conversion around ShareVault deposits and redemptions.

    The pipeline holds assets only for the duration of a call and never
    touches vault state except through apply_deposit / apply_redeem.
    Callers approve the vault's address for the asset being pulled, the
    same authorization a plain deposit uses; custody stays with the pipeline.
    """

    def __init__(self, vault: ShareVault, staking: StakingService, router: SwapService,
                 routing: Optional[RoutingPolicy] = None, address: str = ""):
        if normalize_address(staking.reserve_asset) != vault.asset:
            raise ValueError(
                f"Staking issues {staking.reserve_asset}, vault holds {vault.asset}"
            )
        self.vault = vault
        self.tokens = vault.tokens
        self.context = vault.context
        self.staking = staking
        self.router = router
        self.routing = routing if routing is not None else RoutingPolicy.from_config()
        self.address = normalize_address(address) if address else derive_address(f"zap:{vault.address}")
        self._bind_router()
        self.stage = ZapStage.IDLE

    @property
    def base_asset(self) -> str:
        return normalize_address(self.staking.base_asset)

    def _bind_router(self) -> None:
        """Swap deadlines are checked against the same frozen call timestamp."""
        router_context = getattr(self.router, "context", None)
        if router_context is None:
            if hasattr(self.router, "context"):
                self.router.context = self.context
        elif router_context is not self.context:
            raise ValueError("Router and vault must share one ExecutionContext")

    def _enter(self, stage: ZapStage) -> None:
        self.stage = stage
        log.debug(f"zap stage: {stage.value}")

    # ═══════════════════════════════════════════════════════════════════════
    # ZAP IN
    # ═══════════════════════════════════════════════════════════════════════

    def zap_in(self, sender: str, input_asset: str, amount_in: int, fee_tier: int,
               min_shares: int = 0) -> ZapReceipt:
        """
        Convert amount_in of input_asset into vault shares for sender.

        Args:
            sender: Caller; must have approved the vault for input_asset
            input_asset: Any asset with a route to the base asset
            amount_in: Amount to pull, > 0
            fee_tier: Pool fee tier used on every swap hop
            min_shares: Fail unless at least this many shares are credited

        Returns:
            ZapReceipt with the amount seen at each stage

        Raises:
            AmountMustBeGreaterThanZero: amount_in <= 0
            SlippageExceeded: fewer than min_shares credited
            ServiceError, InsufficientAuthorization, InsufficientBalance:
                from the collaborators, after rolling everything back
        """
        require_amount(amount_in, "amount_in")
        if amount_in <= 0:
            raise AmountMustBeGreaterThanZero(amount_in)
        require_amount(min_shares, "min_shares")

        with self.context.call("zap_in"):
            try:
                receipt = self._zap_in(normalize_address(sender), normalize_address(input_asset),
                                       amount_in, fee_tier, min_shares)
            finally:
                self.stage = ZapStage.IDLE
        return receipt

    zap = zap_in

    def _zap_in(self, sender: str, input_asset: str, amount_in: int, fee_tier: int,
                min_shares: int) -> ZapReceipt:
        self._enter(ZapStage.PULLING_INPUT)
        self.tokens.transfer_from(input_asset, self.vault.address, sender, self.address, amount_in)

        swapped = input_asset != self.base_asset
        if swapped:
            self._enter(ZapStage.CONVERTING)
            path = self.routing.entry_path(input_asset, self.base_asset, fee_tier)
            self.tokens.approve(input_asset, self.address, self.router.address, amount_in)
            base_amount = self.router.exact_input(
                self.address, path, amount_in, self.address,
                deadline=self.context.now(), min_amount_out=0,
            )
        else:
            base_amount = amount_in

        self._enter(ZapStage.STAKING)
        self.tokens.approve(self.base_asset, self.address, self.staking.address, base_amount)
        reserve_amount = self.staking.stake(self.address, base_amount)

        self._enter(ZapStage.LEDGER_OP)
        self.tokens.approve(self.vault.asset, self.address, self.vault.address, reserve_amount)
        shares = self.vault.apply_deposit(self.address, reserve_amount, sender)
        if shares < min_shares:
            raise SlippageExceeded(shares, min_shares)

        self._enter(ZapStage.DONE)
        log.info(f"Zap in: {amount_in} of {input_asset[:10]} -> "
                 f"{base_amount} base -> {reserve_amount} reserve "
                 f"-> {shares} shares for {sender[:10]}")
        return ZapReceipt(
            direction=ZapDirection.IN,
            account=sender,
            asset=input_asset,
            amount=amount_in,
            base_amount=base_amount,
            reserve_amount=reserve_amount,
            shares=shares,
            swapped=swapped,
        )

    # ═══════════════════════════════════════════════════════════════════════
    # ZAP OUT
    # ═══════════════════════════════════════════════════════════════════════

    def zap_out(self, sender: str, shares: int, output_asset: str, fee_tier: int,
                min_amount_out: int = 0) -> ZapReceipt:
        """
        Redeem sender's shares and pay out output_asset.

        Args:
            sender: Share owner
            shares: Shares to redeem, > 0
            output_asset: Asset paid to sender
            fee_tier: Pool fee tier used on every swap hop
            min_amount_out: Fail unless sender receives at least this much

        Returns:
            ZapReceipt; receipt.amount is what sender received

        Raises:
            SharesMustBePositive: shares <= 0
            ExceededMaxRedeem: sender holds fewer shares
            SlippageExceeded: output below min_amount_out
        """
        require_amount(shares, "shares")
        if shares <= 0:
            raise SharesMustBePositive(shares)
        require_amount(min_amount_out, "min_amount_out")

        with self.context.call("zap_out"):
            try:
                receipt = self._zap_out(normalize_address(sender), shares,
                                        normalize_address(output_asset), fee_tier, min_amount_out)
            finally:
                self.stage = ZapStage.IDLE
        return receipt

    def _zap_out(self, sender: str, shares: int, output_asset: str, fee_tier: int,
                 min_amount_out: int) -> ZapReceipt:
        self._enter(ZapStage.LEDGER_OP)
        reserve_amount = self.vault.apply_redeem(sender, shares, self.address, sender)
        if reserve_amount == 0:
            raise InvalidAmount(f"{shares} shares redeem for zero reserve")

        self._enter(ZapStage.UNSTAKING)
        base_amount = self.staking.unstake(self.address, reserve_amount)

        swapped = output_asset != self.base_asset
        if swapped:
            self._enter(ZapStage.CONVERTING)
            path = self.routing.exit_path(self.base_asset, output_asset, fee_tier)
            self.tokens.approve(self.base_asset, self.address, self.router.address, base_amount)
            amount_out = self.router.exact_input(
                self.address, path, base_amount, sender,
                deadline=self.context.now(), min_amount_out=min_amount_out,
            )
        else:
            if base_amount < min_amount_out:
                raise SlippageExceeded(base_amount, min_amount_out)
            self.tokens.transfer(self.base_asset, self.address, sender, base_amount)
            amount_out = base_amount

        self._enter(ZapStage.DONE)
        log.info(f"Zap out: {shares} shares of {sender[:10]} -> {reserve_amount} reserve "
                 f"-> {base_amount} base -> {amount_out} of {output_asset[:10]}")
        return ZapReceipt(
            direction=ZapDirection.OUT,
            account=sender,
            asset=output_asset,
            amount=amount_out,
            base_amount=base_amount,
            reserve_amount=reserve_amount,
            shares=shares,
            swapped=swapped,
        )
