"""
zapvault - Swap Service

Multi-hop swaps along an explicit path of (asset, fee tier) hops.

  - SwapPath: ordered assets plus one fee tier per hop, with the packed
    path encoding used by Uniswap V3 routers (20-byte address, 3-byte fee,
    20-byte address, ...)
  - ConstantProductRouter: in-memory x*y=k pools, one per (pair, fee tier),
    whose reserves are token-ledger balances at the pool's address

Fee tiers are in hundredths of a bip: 500 = 0.05%, 3000 = 0.30%,
10000 = 1.00%.

Usage:
    router = ConstantProductRouter(tokens, context)
    router.create_pool(USDT, WETH, 3000)
    path = SwapPath.uniform([USDT, WETH, SUSHI], 3000)
    out = router.exact_input(alice, path, 100 * 10**6, alice)
"""

import logging
import time
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

from web3 import Web3

from .errors import (
    DeadlineExpired,
    InsufficientLiquidity,
    InvalidAmount,
    PoolNotFound,
    SlippageExceeded,
)
from .evm import derive_address, normalize_address, require_amount
from .execution import ExecutionContext
from .tokens import TokenLedger

log = logging.getLogger(__name__)

FEE_DENOMINATOR = 1_000_000
FEE_TIERS = (100, 500, 3000, 10000)

ADDR_SIZE = 20
FEE_SIZE = 3


# ═══════════════════════════════════════════════════════════════════════════════
# PATHS
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class SwapPath:
    """
    Ordered swap route.

    assets[i] -> assets[i + 1] is swapped in the pool with fee tier fees[i].
    """
    assets: Tuple[str, ...]
    fees: Tuple[int, ...]

    def __post_init__(self):
        assets = tuple(normalize_address(a) for a in self.assets)
        fees = tuple(self.fees)
        if len(assets) < 2:
            raise ValueError("Swap path needs at least two assets")
        if len(fees) != len(assets) - 1:
            raise ValueError(f"Swap path with {len(assets)} assets needs {len(assets) - 1} fee tiers, got {len(fees)}")
        for fee in fees:
            require_amount(fee, "fee")
            if not 0 <= fee < FEE_DENOMINATOR:
                raise ValueError(f"Fee tier out of range: {fee}")
        object.__setattr__(self, "assets", assets)
        object.__setattr__(self, "fees", fees)

    @classmethod
    def uniform(cls, assets: Sequence[str], fee: int) -> "SwapPath":
        """Path using the same fee tier on every hop."""
        return cls(tuple(assets), tuple([fee] * (len(assets) - 1)))

    @property
    def asset_in(self) -> str:
        return self.assets[0]

    @property
    def asset_out(self) -> str:
        return self.assets[-1]

    def hops(self) -> List[Tuple[str, int, str]]:
        """[(asset_in, fee, asset_out), ...]"""
        return [(self.assets[i], self.fees[i], self.assets[i + 1]) for i in range(len(self.fees))]

    def reversed(self) -> "SwapPath":
        return SwapPath(tuple(reversed(self.assets)), tuple(reversed(self.fees)))

    def encode(self) -> bytes:
        """Packed path: address ++ fee(uint24) ++ address ++ ..."""
        data = Web3.to_bytes(hexstr=self.assets[0])
        for fee, asset in zip(self.fees, self.assets[1:]):
            data += fee.to_bytes(FEE_SIZE, "big") + Web3.to_bytes(hexstr=asset)
        return data

    @classmethod
    def decode(cls, data: bytes) -> "SwapPath":
        """Inverse of encode()."""
        step = ADDR_SIZE + FEE_SIZE
        if len(data) < ADDR_SIZE + step or (len(data) - ADDR_SIZE) % step:
            raise ValueError(f"Malformed packed path of {len(data)} bytes")
        assets = [Web3.to_checksum_address(data[:ADDR_SIZE])]
        fees = []
        pos = ADDR_SIZE
        while pos < len(data):
            fees.append(int.from_bytes(data[pos:pos + FEE_SIZE], "big"))
            assets.append(Web3.to_checksum_address(data[pos + FEE_SIZE:pos + step]))
            pos += step
        return cls(tuple(assets), tuple(fees))

    def __str__(self) -> str:
        parts = [self.assets[0][:8]]
        for fee, asset in zip(self.fees, self.assets[1:]):
            parts.append(f"-({fee})-> {asset[:8]}")
        return " ".join(parts)


# ═══════════════════════════════════════════════════════════════════════════════
# SWAP SERVICE
# ═══════════════════════════════════════════════════════════════════════════════

class SwapService:
    """Interface consumed by the zap pipeline."""

    address: str

    def quote(self, path: SwapPath, amount_in: int) -> int:
        raise NotImplementedError

    def exact_input(self, sender: str, path: SwapPath, amount_in: int, recipient: str,
                    deadline: Optional[float] = None, min_amount_out: int = 0) -> int:
        """
        Swap amount_in of path.asset_in (pulled from sender, who must have
        approved the service) and pay the output to recipient.

        Returns:
            Amount of path.asset_out paid to recipient
        """
        raise NotImplementedError


@dataclass(frozen=True)
class Pool:
    token0: str
    token1: str
    fee: int
    address: str

    def other(self, asset: str) -> str:
        return self.token1 if asset == self.token0 else self.token0


def _sort_pair(asset_a: str, asset_b: str) -> Tuple[str, str]:
    a = normalize_address(asset_a)
    b = normalize_address(asset_b)
    if a == b:
        raise ValueError(f"Pool assets must differ: {a}")
    return (a, b) if a.lower() < b.lower() else (b, a)


class ConstantProductRouter(SwapService):
    """
    Constant-product pools with a per-pool fee, routed hop by hop.

    For each hop, with the fee taken on the input:

        in_after_fee = amount_in * (1_000_000 - fee) // 1_000_000
        amount_out   = reserve_out * in_after_fee // (reserve_in + in_after_fee)
    """

    def __init__(self, tokens: TokenLedger, context: Optional[ExecutionContext] = None,
                 address: str = ""):
        self.tokens = tokens
        self.context = context
        self.address = normalize_address(address) if address else derive_address("router")
        self.pools: Dict[Tuple[str, str, int], Pool] = {}

    def now(self) -> float:
        if self.context is not None:
            return self.context.now()
        return time.time()

    # ═══════════════════════════════════════════════════════════════════════
    # POOLS
    # ═══════════════════════════════════════════════════════════════════════

    def create_pool(self, asset_a: str, asset_b: str, fee: int) -> Pool:
        token0, token1 = _sort_pair(asset_a, asset_b)
        if fee not in FEE_TIERS:
            raise ValueError(f"Unsupported fee tier: {fee}. Supported: {FEE_TIERS}")
        key = (token0, token1, fee)
        if key not in self.pools:
            address = derive_address(f"pool:{token0}:{token1}:{fee}")
            self.pools[key] = Pool(token0, token1, fee, address)
            log.info(f"Created pool {token0[:10]}/{token1[:10]} fee {fee}")
        return self.pools[key]

    def get_pool(self, asset_a: str, asset_b: str, fee: int) -> Pool:
        token0, token1 = _sort_pair(asset_a, asset_b)
        pool = self.pools.get((token0, token1, fee))
        if pool is None:
            raise PoolNotFound(normalize_address(asset_a), normalize_address(asset_b), fee)
        return pool

    def reserves(self, pool: Pool, asset_in: str) -> Tuple[int, int]:
        """(reserve_in, reserve_out) for a swap that sells asset_in."""
        asset_in = normalize_address(asset_in)
        reserve_in = self.tokens.balance_of(asset_in, pool.address)
        reserve_out = self.tokens.balance_of(pool.other(asset_in), pool.address)
        return reserve_in, reserve_out

    def add_liquidity(self, provider: str, asset_a: str, amount_a: int,
                      asset_b: str, amount_b: int, fee: int) -> Pool:
        """Fund a pool (created if missing). provider must have approved the router."""
        pool = self.create_pool(asset_a, asset_b, fee)
        self.tokens.transfer_from(asset_a, self.address, provider, pool.address, amount_a)
        self.tokens.transfer_from(asset_b, self.address, provider, pool.address, amount_b)
        return pool

    # ═══════════════════════════════════════════════════════════════════════
    # SWAPS
    # ═══════════════════════════════════════════════════════════════════════

    @staticmethod
    def get_amount_out(amount_in: int, reserve_in: int, reserve_out: int, fee: int) -> int:
        in_after_fee = amount_in * (FEE_DENOMINATOR - fee) // FEE_DENOMINATOR
        if in_after_fee == 0 or reserve_out == 0:
            return 0
        return reserve_out * in_after_fee // (reserve_in + in_after_fee)

    def quote(self, path: SwapPath, amount_in: int) -> int:
        """Output of exact_input at current reserves, without executing."""
        amount = require_amount(amount_in, "amount_in")
        for asset_in, fee, asset_out in path.hops():
            pool = self.get_pool(asset_in, asset_out, fee)
            reserve_in, reserve_out = self.reserves(pool, asset_in)
            amount = self.get_amount_out(amount, reserve_in, reserve_out, fee)
        return amount

    def exact_input(self, sender: str, path: SwapPath, amount_in: int, recipient: str,
                    deadline: Optional[float] = None, min_amount_out: int = 0) -> int:
        """
        Execute a multi-hop swap.

        Raises:
            DeadlineExpired: now is past deadline
            PoolNotFound: a hop has no pool at its fee tier
            InsufficientLiquidity: a hop would output nothing
            SlippageExceeded: final output below min_amount_out
        """
        require_amount(amount_in, "amount_in")
        require_amount(min_amount_out, "min_amount_out")
        if amount_in <= 0:
            raise InvalidAmount(f"Swap amount must be positive, got {amount_in}")
        now = self.now()
        if deadline is not None and now > deadline:
            raise DeadlineExpired(deadline, now)

        sender = normalize_address(sender)
        recipient = normalize_address(recipient)
        hops = path.hops()
        pools = [self.get_pool(a_in, a_out, fee) for a_in, fee, a_out in hops]
        if len(set(pools)) != len(pools):
            raise ValueError(f"Swap path {path} visits the same pool twice")

        # Price every hop before moving anything; pools are distinct, so the
        # reserves read here are the ones each hop will trade against.
        amounts = [amount_in]
        for (asset_in, fee, asset_out), pool in zip(hops, pools):
            reserve_in, reserve_out = self.reserves(pool, asset_in)
            out = self.get_amount_out(amounts[-1], reserve_in, reserve_out, fee)
            if out == 0:
                raise InsufficientLiquidity(
                    f"Pool {asset_in[:10]}/{asset_out[:10]} fee {fee} returns nothing for {amounts[-1]}"
                )
            amounts.append(out)

        amount = amounts[-1]
        if amount < min_amount_out:
            raise SlippageExceeded(amount, min_amount_out)

        for i, ((asset_in, fee, asset_out), pool) in enumerate(zip(hops, pools)):
            if i == 0:
                self.tokens.transfer_from(asset_in, self.address, sender, pool.address, amounts[0])
            else:
                self.tokens.transfer(asset_in, self.address, pool.address, amounts[i])
            last = i == len(hops) - 1
            self.tokens.transfer(asset_out, pool.address, recipient if last else self.address, amounts[i + 1])
            log.debug(f"Hop {i}: {amounts[i]} {asset_in[:10]} -> {amounts[i + 1]} {asset_out[:10]} (fee {fee})")

        log.info(f"Swapped {amount_in} along {path} -> {amount} to {recipient[:10]}")
        return amount
