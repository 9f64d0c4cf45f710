"""
zapvault - Configuration

Defaults mirror the mainnet deployment the vault was written for:
xSUSHI as reserve, SUSHI as base, WETH as the routing hub.

Load order: DEFAULT_CONFIG <- JSON file (optional) <- environment.

Environment:
    ZAPVAULT_LOG_LEVEL   e.g. DEBUG
    ZAPVAULT_FEE_TIER    default fee tier for zaps, e.g. 3000
    ZAPVAULT_HUBS        comma-separated routing hub addresses
"""

import copy
import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional

from .evm import normalize_address

log = logging.getLogger(__name__)

DEFAULT_CONFIG: Dict[str, Any] = {
    "vault": {
        "name": "xSUSHI Zap Vault",
        "symbol": "zvXSUSHI",
        "decimals": 18,
        "address": "",      # derived from the reserve asset when empty
    },
    "zap": {
        "address": "",      # derived from the vault address when empty
        "fee_tier": 3000,   # 0.30%
    },
    "assets": {
        "reserve": "0x8798249c2E607446EfB7Ad49eC89dD1865Ff4272",   # xSUSHI
        "base": "0x6B3595068778DD592e39A122f4f5a5cF09C90fE2",      # SUSHI
        "hubs": ["0xC02aaA39b223FE8D0A0e5C4F27eAD9083C756Cc2"],    # WETH
    },
    "swap_router": "0xE592427A0AEce92De3Edee1F18E0157C05861564",
    "log_level": "INFO",
}

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def _merge(base: dict, override: dict) -> dict:
    """Deep-merge override into a copy of base."""
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def _apply_env(config: dict) -> dict:
    level = os.environ.get("ZAPVAULT_LOG_LEVEL")
    if level:
        config["log_level"] = level.upper()

    fee = os.environ.get("ZAPVAULT_FEE_TIER")
    if fee:
        try:
            config["zap"]["fee_tier"] = int(fee)
        except ValueError:
            raise ValueError(f"ZAPVAULT_FEE_TIER must be an integer, got {fee!r}")

    hubs = os.environ.get("ZAPVAULT_HUBS")
    if hubs is not None:
        config["assets"]["hubs"] = [h.strip() for h in hubs.split(",") if h.strip()]
    return config


def _normalize(config: dict) -> dict:
    assets = config["assets"]
    assets["reserve"] = normalize_address(assets["reserve"])
    assets["base"] = normalize_address(assets["base"])
    assets["hubs"] = [normalize_address(h) for h in assets.get("hubs", [])]
    if assets["reserve"] == assets["base"]:
        raise ValueError("Reserve and base assets must differ")
    for section in ("vault", "zap"):
        if config[section].get("address"):
            config[section]["address"] = normalize_address(config[section]["address"])
    if config.get("swap_router"):
        config["swap_router"] = normalize_address(config["swap_router"])
    return config


def load_config(path: Optional[str] = None) -> dict:
    """
    Build the effective configuration.

    Args:
        path: Optional JSON file overriding any subset of DEFAULT_CONFIG

    Returns:
        Merged config dict with all addresses in checksum form

    Raises:
        FileNotFoundError: path given but missing
        ValueError: malformed address, fee tier or JSON
    """
    config = copy.deepcopy(DEFAULT_CONFIG)
    if path:
        config_path = Path(path)
        try:
            override = json.loads(config_path.read_text())
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid config file {config_path}: {e}")
        config = _merge(config, override)
        log.info(f"Loaded config from {config_path}")
    return _normalize(_apply_env(config))


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, str(level).upper(), logging.INFO),
        format=LOG_FORMAT,
        datefmt="%H:%M:%S",
    )
