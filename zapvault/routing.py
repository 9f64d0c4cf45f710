"""
zapvault - Routing Policy

Which intermediate assets a zap routes through. RoutingPolicy.from_config()
takes the configured hub list; the default config has one hub, the
network's canonical wrapped native asset, so a zap in from USDT swaps
USDT -> WETH -> SUSHI. ZapPipeline uses that policy unless given another.
"""

from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from .config import DEFAULT_CONFIG
from .evm import normalize_address
from .swap import SwapPath


@dataclass(frozen=True)
class RoutingPolicy:
    """
    Ordered hub assets inserted between the endpoints of every zap swap.

    An empty hub list swaps directly. Consecutive duplicates are collapsed,
    so a zap in from the hub asset itself takes a single hop.
    """
    hubs: Tuple[str, ...] = field(default_factory=tuple)

    def __post_init__(self):
        object.__setattr__(self, "hubs", tuple(normalize_address(h) for h in self.hubs))

    @classmethod
    def from_config(cls, config: Optional[dict] = None) -> "RoutingPolicy":
        """Policy over config["assets"]["hubs"] (DEFAULT_CONFIG when omitted)."""
        config = config if config is not None else DEFAULT_CONFIG
        return cls(tuple(config["assets"].get("hubs", [])))

    def route(self, asset_in: str, asset_out: str) -> List[str]:
        assets: List[str] = []
        for asset in (normalize_address(asset_in), *self.hubs, normalize_address(asset_out)):
            if not assets or assets[-1] != asset:
                assets.append(asset)
        if len(assets) < 2:
            raise ValueError(f"Nothing to route: {asset_in} -> {asset_out}")
        return assets

    def entry_path(self, input_asset: str, base_asset: str, fee: int) -> SwapPath:
        """input -> hubs -> base, fee tier on every hop."""
        return SwapPath.uniform(self.route(input_asset, base_asset), fee)

    def exit_path(self, base_asset: str, output_asset: str, fee: int) -> SwapPath:
        """base -> hubs -> output, fee tier on every hop."""
        return SwapPath.uniform(self.route(base_asset, output_asset), fee)
