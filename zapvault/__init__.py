"""
zapvault

Share vault over a yield-bearing reserve asset, with zap conversion in and
out through a staking pool and multi-hop swaps.

Architecture:
  - ShareVault: ERC-4626 style share ledger (floor on deposit, ceil on withdraw)
  - ZapPipeline: swap -> stake -> deposit, and redeem -> unstake -> swap
  - ExecutionContext: one call at a time, whole-call rollback on failure
  - TokenLedger / BarStaking / ConstantProductRouter: in-memory transfer,
    staking and swap services

Usage:
    from zapvault import (
        TokenLedger, ExecutionContext, BarStaking, ConstantProductRouter,
        load_config, deploy,
    )

    config = load_config()
    tokens = TokenLedger()
    ctx = ExecutionContext()
    staking = BarStaking(tokens, config["assets"]["base"], config["assets"]["reserve"])
    router = ConstantProductRouter(tokens, ctx)
    dep = deploy(config, tokens, staking, router, ctx)

    tokens.approve(USDT, alice, dep.vault.address, 100 * 10**6)
    receipt = dep.zap.zap_in(alice, USDT, 100 * 10**6, 3000)
    dep.zap.zap_out(alice, receipt.shares, USDT, 3000)
"""

from .errors import (
    VaultError,
    InvalidAmount,
    AmountMustBeGreaterThanZero,
    SharesMustBePositive,
    InsufficientAuthorization,
    InsufficientBalance,
    ExceededMaxWithdraw,
    ExceededMaxRedeem,
    EmptyReserve,
    ReentrantCall,
    ServiceError,
    StakingError,
    SwapError,
    PoolNotFound,
    InsufficientLiquidity,
    DeadlineExpired,
    SlippageExceeded,
)
from .evm import MAX_UINT256, ZERO_ADDRESS, normalize_address, derive_address, format_amount
from .execution import ExecutionContext
from .tokens import TokenLedger
from .vault_math import Rounding, mul_div
from .vault_types import Deposit, Withdraw, Transfer, ZapReceipt, ZapStage, ZapDirection
from .vault import ShareVault
from .staking import StakingService, BarStaking, FixedRateStaking
from .swap import SwapPath, SwapService, ConstantProductRouter, FEE_TIERS
from .routing import RoutingPolicy
from .zap import ZapPipeline
from .config import DEFAULT_CONFIG, load_config, configure_logging
from .deploy import Deployment, deploy

__version__ = "0.1.0"
__all__ = [
    # Errors
    "VaultError", "InvalidAmount", "AmountMustBeGreaterThanZero", "SharesMustBePositive",
    "InsufficientAuthorization", "InsufficientBalance", "ExceededMaxWithdraw",
    "ExceededMaxRedeem", "EmptyReserve", "ReentrantCall", "ServiceError", "StakingError",
    "SwapError", "PoolNotFound", "InsufficientLiquidity", "DeadlineExpired", "SlippageExceeded",
    # EVM helpers
    "MAX_UINT256", "ZERO_ADDRESS", "normalize_address", "derive_address", "format_amount",
    # Core
    "ExecutionContext", "TokenLedger", "ShareVault", "ZapPipeline", "RoutingPolicy",
    "Rounding", "mul_div",
    # Types
    "Deposit", "Withdraw", "Transfer", "ZapReceipt", "ZapStage", "ZapDirection",
    # Services
    "StakingService", "BarStaking", "FixedRateStaking",
    "SwapPath", "SwapService", "ConstantProductRouter", "FEE_TIERS",
    # Config
    "DEFAULT_CONFIG", "load_config", "configure_logging", "Deployment", "deploy",
]
