"""
zapvault - EVM helpers

Parties and assets are identified by EVM addresses. Everything that enters
the ledger goes through normalize_address so lookups never miss on case.
"""

from decimal import Decimal

from web3 import Web3

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"
MAX_UINT256 = 2 ** 256 - 1


def normalize_address(address: str) -> str:
    """
    Return the checksum form of an address.

    Raises:
        ValueError: If address is not a 20-byte hex address
    """
    if not isinstance(address, str) or not Web3.is_address(address):
        raise ValueError(f"Invalid address: {address!r}")
    return Web3.to_checksum_address(address)


def derive_address(label: str) -> str:
    """Deterministic address for an in-process component (pool, vault, zap)."""
    digest = Web3.keccak(text=label)
    return Web3.to_checksum_address(digest[-20:])


def format_amount(amount: int, decimals: int = 18) -> str:
    """Human-readable amount for logs, e.g. 1500000000000000000 -> '1.5'."""
    if decimals == 18:
        value = Web3.from_wei(amount, "ether")
    else:
        value = Decimal(amount) / (Decimal(10) ** decimals)
    text = f"{value:f}"
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text


def require_amount(amount, name: str = "amount") -> int:
    """Type check for integer base-unit amounts (bool is rejected)."""
    if isinstance(amount, bool) or not isinstance(amount, int):
        raise TypeError(f"{name} must be integer, got {type(amount).__name__}")
    return amount
