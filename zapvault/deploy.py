"""
zapvault - Deployment

Wire a token ledger, staking service and swap router into a vault plus
zap pipeline sharing one execution context.

Usage:
    config = load_config()
    tokens = TokenLedger()
    staking = BarStaking(tokens, config["assets"]["base"], config["assets"]["reserve"])
    dep = deploy(config, tokens, staking)
    dep.router.create_pool(USDT, WETH, dep.fee_tier)
    dep.zap.zap_in(alice, USDT, 100 * 10**6, dep.fee_tier)
"""

import logging
from dataclasses import dataclass
from typing import Optional

from .evm import normalize_address
from .execution import ExecutionContext
from .routing import RoutingPolicy
from .staking import StakingService
from .swap import ConstantProductRouter, SwapService
from .tokens import TokenLedger
from .vault import ShareVault
from .zap import ZapPipeline

log = logging.getLogger(__name__)


@dataclass
class Deployment:
    context: ExecutionContext
    vault: ShareVault
    zap: ZapPipeline
    router: SwapService
    fee_tier: int


def deploy(config: dict, tokens: TokenLedger, staking: StakingService,
           router: Optional[SwapService] = None,
           context: Optional[ExecutionContext] = None) -> Deployment:
    """
    Build vault and pipeline from a load_config() dict.

    The staking service must convert config's base asset into config's
    reserve asset. Without a router, a ConstantProductRouter is created at
    config["swap_router"].
    """
    assets = config["assets"]
    if normalize_address(staking.reserve_asset) != assets["reserve"]:
        raise ValueError(f"Staking reserve {staking.reserve_asset} != configured {assets['reserve']}")
    if normalize_address(staking.base_asset) != assets["base"]:
        raise ValueError(f"Staking base {staking.base_asset} != configured {assets['base']}")

    context = context or getattr(router, "context", None) or ExecutionContext()
    if router is None:
        router = ConstantProductRouter(tokens, context, address=config.get("swap_router") or "")

    vault_cfg = config["vault"]
    vault = ShareVault(
        tokens,
        assets["reserve"],
        context,
        address=vault_cfg.get("address", ""),
        name=vault_cfg["name"],
        symbol=vault_cfg["symbol"],
        decimals=vault_cfg.get("decimals", 18),
    )
    zap = ZapPipeline(
        vault,
        staking,
        router,
        RoutingPolicy.from_config(config),
        address=config["zap"].get("address", ""),
    )
    log.info(f"Deployed {vault.symbol} at {vault.address}, zap at {zap.address}, "
             f"router at {router.address}, hubs {[h[:10] for h in zap.routing.hubs]}")
    return Deployment(context=context, vault=vault, zap=zap, router=router,
                      fee_tier=config["zap"]["fee_tier"])
