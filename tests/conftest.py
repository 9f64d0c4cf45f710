"""Shared fixtures: one token ledger, one execution context, seeded pools."""

import pytest

from zapvault import (
    ConstantProductRouter,
    ExecutionContext,
    FixedRateStaking,
    RoutingPolicy,
    ShareVault,
    TokenLedger,
    ZapPipeline,
)

# Digit-only addresses are already in checksum form.
ALICE = "0x1000000000000000000000000000000000000001"
BOB = "0x1000000000000000000000000000000000000002"
CAROL = "0x1000000000000000000000000000000000000003"

RESERVE = "0x2000000000000000000000000000000000000001"   # xSUSHI
BASE = "0x2000000000000000000000000000000000000002"      # SUSHI
HUB = "0x2000000000000000000000000000000000000003"       # WETH
USDT = "0x2000000000000000000000000000000000000004"
DAI = "0x2000000000000000000000000000000000000005"

FEE = 3000
NOW = 1_700_000_000.0
POOL_DEPTH = 10 ** 12


def fund(tokens, asset, holder, amount, spender=None):
    """Mint amount to holder and, if given, approve spender for it."""
    tokens.mint(asset, holder, amount)
    if spender is not None:
        tokens.approve(asset, holder, spender, amount)


@pytest.fixture
def tokens():
    return TokenLedger()


@pytest.fixture
def context():
    return ExecutionContext(clock=lambda: NOW)


@pytest.fixture
def vault(tokens, context):
    return ShareVault(tokens, RESERVE, context)


@pytest.fixture
def staking(tokens):
    return FixedRateStaking(tokens, BASE, RESERVE)


@pytest.fixture
def router(tokens, context):
    router = ConstantProductRouter(tokens, context)
    for asset_a, asset_b in ((USDT, HUB), (HUB, BASE)):
        pool = router.create_pool(asset_a, asset_b, FEE)
        tokens.mint(asset_a, pool.address, POOL_DEPTH)
        tokens.mint(asset_b, pool.address, POOL_DEPTH)
    return router


@pytest.fixture
def zap(vault, staking, router):
    return ZapPipeline(vault, staking, router, RoutingPolicy((HUB,)))
