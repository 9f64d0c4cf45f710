"""
zapvault - Errors

Every failure raised by the vault, the zap pipeline or the in-memory
collaborators derives from VaultError. Nothing here is retried: an error
unwinds the whole call (see execution.ExecutionContext).
"""


class VaultError(Exception):
    """Base class for vault failures."""


class InvalidAmount(VaultError):
    """Zero, negative or otherwise unusable amount."""


class AmountMustBeGreaterThanZero(InvalidAmount):
    def __init__(self, amount: int = 0):
        self.amount = amount
        super().__init__(f"Amount must be greater than zero, got {amount}")


class SharesMustBePositive(InvalidAmount):
    def __init__(self, shares: int = 0):
        self.shares = shares
        super().__init__(f"Shares must be positive, got {shares}")


class InsufficientAuthorization(VaultError):
    """Spender's allowance over owner's balance is short."""
    def __init__(self, spender: str, owner: str, allowance: int, needed: int):
        self.spender = spender
        self.owner = owner
        self.allowance = allowance
        self.needed = needed
        super().__init__(
            f"Insufficient allowance: {spender} may spend {allowance} "
            f"of {owner}, needs {needed}"
        )


class InsufficientBalance(VaultError):
    def __init__(self, holder: str, balance: int, needed: int):
        self.holder = holder
        self.balance = balance
        self.needed = needed
        super().__init__(
            f"Transfer amount exceeds balance: {holder} holds {balance}, needs {needed}"
        )


class ExceededMaxWithdraw(VaultError):
    """Withdrawal asks for more assets than owner's shares can redeem."""
    def __init__(self, owner: str, assets: int, max_assets: int):
        self.owner = owner
        self.assets = assets
        self.max_assets = max_assets
        super().__init__(
            f"ExceededMaxWithdraw: {owner} tried {assets}, max {max_assets}"
        )


class ExceededMaxRedeem(VaultError):
    def __init__(self, owner: str, shares: int, max_shares: int):
        self.owner = owner
        self.shares = shares
        self.max_shares = max_shares
        super().__init__(
            f"ExceededMaxRedeem: {owner} tried {shares}, max {max_shares}"
        )


class EmptyReserve(VaultError):
    """Shares are outstanding but the vault holds no reserve asset."""


class ReentrantCall(VaultError):
    def __init__(self, operation: str, active: str = ""):
        self.operation = operation
        self.active = active
        super().__init__(
            f"Reentrant call: {operation} while {active or 'another call'} is in progress"
        )


# ═══════════════════════════════════════════════════════════════════════════════
# COLLABORATOR FAILURES
# ═══════════════════════════════════════════════════════════════════════════════

class ServiceError(VaultError):
    """Failure reported by the transfer, staking or swap service."""


class StakingError(ServiceError):
    pass


class SwapError(ServiceError):
    pass


class PoolNotFound(SwapError):
    def __init__(self, asset_in: str, asset_out: str, fee: int):
        self.asset_in = asset_in
        self.asset_out = asset_out
        self.fee = fee
        super().__init__(f"No pool for {asset_in} -> {asset_out} at fee tier {fee}")


class InsufficientLiquidity(SwapError):
    pass


class DeadlineExpired(SwapError):
    def __init__(self, deadline: float, now: float):
        self.deadline = deadline
        self.now = now
        super().__init__(f"Transaction too old: deadline {deadline}, now {now}")


class SlippageExceeded(SwapError):
    def __init__(self, amount_out: int, min_amount_out: int):
        self.amount_out = amount_out
        self.min_amount_out = min_amount_out
        super().__init__(
            f"Too little received: {amount_out} < minimum {min_amount_out}"
        )
