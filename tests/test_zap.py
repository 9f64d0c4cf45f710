"""Tests for the zap pipeline."""

import itertools
import logging

import pytest

from zapvault import (
    AmountMustBeGreaterThanZero,
    BarStaking,
    DEFAULT_CONFIG,
    ConstantProductRouter,
    ExceededMaxRedeem,
    ExecutionContext,
    FixedRateStaking,
    InsufficientAuthorization,
    InvalidAmount,
    PoolNotFound,
    ReentrantCall,
    RoutingPolicy,
    SharesMustBePositive,
    ShareVault,
    SlippageExceeded,
    StakingError,
    SwapPath,
    TokenLedger,
    ZapDirection,
    ZapPipeline,
    ZapStage,
)

from conftest import ALICE, BASE, BOB, DAI, FEE, HUB, POOL_DEPTH, RESERVE, USDT, fund


class FailingStaking(FixedRateStaking):
    """Stakes, then reports failure."""

    def stake(self, sender, base_amount):
        super().stake(sender, base_amount)
        raise StakingError("stake reverted")


class ReentrantStaking(FixedRateStaking):
    """Calls back into the vault while the zap is in progress."""

    vault = None

    def stake(self, sender, base_amount):
        minted = super().stake(sender, base_amount)
        self.tokens.approve(self.reserve_asset, sender, self.vault.address, minted)
        self.vault.deposit(sender, minted, sender)
        return minted


def holdings(tokens, holder):
    return {asset: tokens.balance_of(asset, holder) for asset in (RESERVE, BASE, HUB, USDT, DAI)}


class TestZapIn:
    """Entering the vault."""

    def test_base_asset_skips_the_swap(self, tokens, vault, staking, zap) -> None:
        fund(tokens, BASE, ALICE, 100, spender=zap.vault.address)
        receipt = zap.zap_in(ALICE, BASE, 100, FEE)
        assert receipt.direction == ZapDirection.IN
        assert receipt.swapped is False
        assert (receipt.base_amount, receipt.reserve_amount, receipt.shares) == (100, 100, 100)
        assert vault.balance_of(ALICE) == 100
        assert vault.total_assets() == 100
        assert tokens.balance_of(BASE, staking.address) == 100

    def test_caller_authorizes_the_vault(self, tokens, vault, zap) -> None:
        fund(tokens, BASE, ALICE, 100, spender=vault.address)
        assert zap.zap(ALICE, BASE, 100, FEE).shares == 100
        assert tokens.allowance(BASE, ALICE, vault.address) == 0
        assert vault.balance_of(ALICE) == 100

    def test_allowance_to_the_pipeline_is_not_used(self, tokens, vault, zap) -> None:
        fund(tokens, BASE, ALICE, 100, spender=zap.address)
        with pytest.raises(InsufficientAuthorization):
            zap.zap_in(ALICE, BASE, 100, FEE)
        assert tokens.balance_of(BASE, ALICE) == 100
        assert tokens.allowance(BASE, ALICE, zap.address) == 100
        assert vault.total_supply() == 0

    def test_logs_amounts_in_base_units(self, tokens, zap, caplog) -> None:
        caplog.set_level(logging.INFO, logger="zapvault")
        fund(tokens, USDT, ALICE, 10 ** 6, spender=zap.vault.address)
        zap.zap_in(ALICE, USDT, 10 ** 6, FEE)
        messages = [r.getMessage() for r in caplog.records if r.name == "zapvault.zap"]
        assert any(m.startswith(f"Zap in: {10 ** 6} of {USDT[:10]}") for m in messages)

    def test_pipeline_keeps_nothing(self, tokens, zap) -> None:
        fund(tokens, USDT, ALICE, 10 ** 6, spender=zap.vault.address)
        zap.zap_in(ALICE, USDT, 10 ** 6, FEE)
        assert all(v == 0 for v in holdings(tokens, zap.address).values())

    def test_other_asset_is_swapped_through_hub(self, tokens, vault, router, zap) -> None:
        amount = 10 ** 6
        expected = router.quote(zap.routing.entry_path(USDT, BASE, FEE), amount)
        fund(tokens, USDT, ALICE, amount, spender=zap.vault.address)
        receipt = zap.zap_in(ALICE, USDT, amount, FEE)
        assert receipt.swapped is True
        assert receipt.base_amount == expected
        assert receipt.shares == expected
        assert vault.balance_of(ALICE) == expected
        assert tokens.balance_of(USDT, ALICE) == 0

    def test_zap_is_an_alias(self) -> None:
        assert ZapPipeline.zap is ZapPipeline.zap_in

    def test_zero_amount_fails(self, tokens, vault, zap) -> None:
        fund(tokens, BASE, ALICE, 100, spender=zap.vault.address)
        with pytest.raises(AmountMustBeGreaterThanZero) as exc:
            zap.zap_in(ALICE, BASE, 0, FEE)
        assert isinstance(exc.value, InvalidAmount)
        assert tokens.balance_of(BASE, ALICE) == 100
        assert vault.events == []

    def test_second_zapper_gets_proportional_shares(self, tokens, vault, zap) -> None:
        fund(tokens, BASE, ALICE, 100, spender=zap.vault.address)
        fund(tokens, BASE, BOB, 50, spender=zap.vault.address)
        zap.zap_in(ALICE, BASE, 100, FEE)
        assert zap.zap_in(BOB, BASE, 50, FEE).shares == 50
        assert vault.total_supply() == 150

    def test_missing_route_reverts_everything(self, tokens, vault, zap) -> None:
        fund(tokens, DAI, ALICE, 1000, spender=zap.vault.address)
        with pytest.raises(PoolNotFound):
            zap.zap_in(ALICE, DAI, 1000, FEE)
        assert tokens.balance_of(DAI, ALICE) == 1000
        assert tokens.allowance(DAI, ALICE, zap.vault.address) == 1000
        assert all(v == 0 for v in holdings(tokens, zap.address).values())
        assert vault.total_supply() == 0

    def test_staking_failure_unwinds_the_swap(self, tokens, vault, router) -> None:
        zap = ZapPipeline(vault, FailingStaking(tokens, BASE, RESERVE), router, RoutingPolicy((HUB,)))
        pool = router.get_pool(USDT, HUB, FEE)
        fund(tokens, USDT, ALICE, 10 ** 6, spender=zap.vault.address)
        with pytest.raises(StakingError):
            zap.zap_in(ALICE, USDT, 10 ** 6, FEE)
        assert tokens.balance_of(USDT, ALICE) == 10 ** 6
        assert router.reserves(pool, USDT) == (POOL_DEPTH, POOL_DEPTH)
        assert tokens.total_supply(RESERVE) == 0
        assert zap.stage == ZapStage.IDLE

    def test_reentry_from_a_collaborator_is_rejected(self, tokens, vault, router) -> None:
        staking = ReentrantStaking(tokens, BASE, RESERVE)
        staking.vault = vault
        zap = ZapPipeline(vault, staking, router, RoutingPolicy((HUB,)))
        fund(tokens, BASE, ALICE, 100, spender=zap.vault.address)
        with pytest.raises(ReentrantCall):
            zap.zap_in(ALICE, BASE, 100, FEE)
        assert tokens.balance_of(BASE, ALICE) == 100
        assert vault.total_supply() == 0
        assert vault.events == []

    def test_minimum_shares(self, tokens, vault, zap) -> None:
        fund(tokens, BASE, ALICE, 100, spender=zap.vault.address)
        with pytest.raises(SlippageExceeded):
            zap.zap_in(ALICE, BASE, 100, FEE, min_shares=101)
        assert vault.total_supply() == 0
        assert zap.zap_in(ALICE, BASE, 100, FEE, min_shares=100).shares == 100

    def test_stage_returns_to_idle(self, tokens, zap) -> None:
        fund(tokens, BASE, ALICE, 100, spender=zap.vault.address)
        zap.zap_in(ALICE, BASE, 100, FEE)
        assert zap.stage == ZapStage.IDLE


class TestZapOut:
    """Leaving the vault."""

    def test_round_trip_through_base(self, tokens, vault, zap) -> None:
        fund(tokens, BASE, ALICE, 100, spender=zap.vault.address)
        shares = zap.zap_in(ALICE, BASE, 100, FEE).shares
        receipt = zap.zap_out(ALICE, shares, BASE, FEE)
        assert receipt.direction == ZapDirection.OUT
        assert receipt.swapped is False
        assert receipt.amount == 100
        assert tokens.balance_of(BASE, ALICE) == 100
        assert vault.balance_of(ALICE) == 0
        assert vault.total_supply() == 0

    def test_swap_out_to_other_asset(self, tokens, vault, router, zap) -> None:
        amount = 10 ** 6
        fund(tokens, BASE, ALICE, amount, spender=zap.vault.address)
        shares = zap.zap_in(ALICE, BASE, amount, FEE).shares
        expected = router.quote(zap.routing.exit_path(BASE, USDT, FEE), amount)
        receipt = zap.zap_out(ALICE, shares, USDT, FEE)
        assert receipt.swapped is True
        assert receipt.amount == expected
        assert tokens.balance_of(USDT, ALICE) == expected
        assert all(v == 0 for v in holdings(tokens, zap.address).values())

    def test_zero_shares_fails(self, zap) -> None:
        with pytest.raises(SharesMustBePositive):
            zap.zap_out(ALICE, 0, BASE, FEE)

    def test_more_shares_than_owned(self, tokens, vault, zap) -> None:
        fund(tokens, BASE, ALICE, 100, spender=zap.vault.address)
        zap.zap_in(ALICE, BASE, 100, FEE)
        with pytest.raises(ExceededMaxRedeem):
            zap.zap_out(ALICE, 101, BASE, FEE)
        assert vault.balance_of(ALICE) == 100

    def test_minimum_output_on_direct_payout(self, tokens, vault, zap) -> None:
        fund(tokens, BASE, ALICE, 100, spender=zap.vault.address)
        zap.zap_in(ALICE, BASE, 100, FEE)
        with pytest.raises(SlippageExceeded):
            zap.zap_out(ALICE, 100, BASE, FEE, min_amount_out=101)
        assert vault.balance_of(ALICE) == 100
        assert tokens.balance_of(RESERVE, vault.address) == 100

    def test_minimum_output_on_swap(self, tokens, vault, zap) -> None:
        fund(tokens, BASE, ALICE, 1000, spender=zap.vault.address)
        zap.zap_in(ALICE, BASE, 1000, FEE)
        with pytest.raises(SlippageExceeded):
            zap.zap_out(ALICE, 1000, USDT, FEE, min_amount_out=1000)
        assert vault.balance_of(ALICE) == 1000
        assert tokens.balance_of(USDT, ALICE) == 0

    def test_staking_yield_is_paid_out(self, tokens, vault, router) -> None:
        bar = BarStaking(tokens, BASE, RESERVE)
        zap = ZapPipeline(vault, bar, router, RoutingPolicy((HUB,)))
        fund(tokens, BASE, ALICE, 100, spender=zap.vault.address)
        zap.zap_in(ALICE, BASE, 100, FEE)
        tokens.mint(BASE, bar.address, 50)
        assert zap.zap_out(ALICE, 100, BASE, FEE).amount == 150


class TestWiring:
    """Pipeline construction."""

    def test_staking_must_issue_the_vault_asset(self, tokens, vault, router) -> None:
        with pytest.raises(ValueError):
            ZapPipeline(vault, FixedRateStaking(tokens, BASE, DAI), router)

    def test_router_must_share_the_context(self, tokens, vault, staking) -> None:
        router = ConstantProductRouter(tokens, ExecutionContext())
        with pytest.raises(ValueError):
            ZapPipeline(vault, staking, router)

    def test_router_without_context_is_bound(self, tokens, vault, staking) -> None:
        router = ConstantProductRouter(tokens)
        zap = ZapPipeline(vault, staking, router)
        assert router.context is zap.context

    def test_default_routing_uses_the_configured_hub(self, tokens, vault, staking) -> None:
        weth = DEFAULT_CONFIG["assets"]["hubs"][0]
        router = ConstantProductRouter(tokens, vault.context)
        for asset_a, asset_b in ((USDT, weth), (weth, BASE)):
            pool = router.create_pool(asset_a, asset_b, FEE)
            tokens.mint(asset_a, pool.address, POOL_DEPTH)
            tokens.mint(asset_b, pool.address, POOL_DEPTH)
        zap = ZapPipeline(vault, staking, router)
        assert zap.routing.hubs == (weth,)

        amount = 10 ** 6
        expected = router.quote(SwapPath.uniform([USDT, weth, BASE], FEE), amount)
        fund(tokens, USDT, ALICE, amount, spender=vault.address)
        receipt = zap.zap_in(ALICE, USDT, amount, FEE)
        assert receipt.swapped is True
        assert receipt.shares == expected

    def test_deadline_holds_while_the_clock_moves(self) -> None:
        ticks = itertools.count(1_000)
        context = ExecutionContext(clock=lambda: float(next(ticks)))
        tokens = TokenLedger()
        vault = ShareVault(tokens, RESERVE, context)
        router = ConstantProductRouter(tokens, context)
        for asset_a, asset_b in ((USDT, HUB), (HUB, BASE)):
            pool = router.create_pool(asset_a, asset_b, FEE)
            tokens.mint(asset_a, pool.address, POOL_DEPTH)
            tokens.mint(asset_b, pool.address, POOL_DEPTH)
        zap = ZapPipeline(vault, FixedRateStaking(tokens, BASE, RESERVE), router, RoutingPolicy((HUB,)))
        fund(tokens, USDT, ALICE, 10 ** 6, spender=zap.vault.address)
        assert zap.zap_in(ALICE, USDT, 10 ** 6, FEE).shares > 0
