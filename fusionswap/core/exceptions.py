"""
FusionSwap Exception Hierarchy

All exceptions inherit from FusionSwapError for easy catching.

Every protocol failure has its own class carrying a stable ``code``
(the protocol error name). Families group them the way callers react:

    ValidationError     caller/input malformed
    AuthorizationError  caller lacks the right to act
    TemporalError       operation not valid at the current time
    IntegrityError      supplied terms or accounts do not match what is bound
    CapacityError       escrow cannot satisfy the request
    LedgerError         account-level create/lookup/funds failures
"""


class FusionSwapError(Exception):
    """Base exception for all FusionSwap errors"""

    code = "FusionSwapError"

    def __init__(self, message: str = None, details: dict = None):
        message = message or self.code
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self):
        if self.details:
            details_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            return f"{self.message} ({details_str})"
        return self.message


class ConfigError(FusionSwapError):
    """Raised when engine configuration is invalid"""
    code = "ConfigError"


# ─────────────────────────────────────────────────────────────
# Families
# ─────────────────────────────────────────────────────────────

class ValidationError(FusionSwapError):
    """Raised when an order or call argument is malformed"""
    code = "ValidationError"


class AuthorizationError(FusionSwapError):
    """Raised when the caller is not allowed to perform the operation"""
    code = "AuthorizationError"


class TemporalError(FusionSwapError):
    """Raised when the operation is not valid at the current time"""
    code = "TemporalError"


class IntegrityError(FusionSwapError):
    """Raised when supplied terms or accounts do not match the bound ones"""
    code = "IntegrityError"


class CapacityError(FusionSwapError):
    """Raised when an escrow cannot cover the requested amount"""
    code = "CapacityError"


class LedgerError(FusionSwapError):
    """Raised when ledger account operations fail"""
    code = "LedgerError"


# ─────────────────────────────────────────────────────────────
# Validation
# ─────────────────────────────────────────────────────────────

class InvalidAmount(ValidationError):
    code = "InvalidAmount"


class InvalidEstimatedTakingAmount(ValidationError):
    code = "InvalidEstimatedTakingAmount"


class InvalidProtocolSurplusFee(ValidationError):
    code = "InvalidProtocolSurplusFee"


class InvalidCancellationFee(ValidationError):
    code = "InvalidCancellationFee"


class InconsistentNativeSrcTrait(ValidationError):
    code = "InconsistentNativeSrcTrait"


class InconsistentNativeDstTrait(ValidationError):
    code = "InconsistentNativeDstTrait"


class MissingMakerDstAta(ValidationError):
    code = "MissingMakerDstAta"


class MissingTakerDstAta(ValidationError):
    code = "MissingTakerDstAta"


class MissingMakerSrcAta(ValidationError):
    code = "MissingMakerSrcAta"


class ArithmeticOverflow(ValidationError):
    """A computed amount does not fit in an unsigned 64-bit integer"""
    code = "ArithmeticOverflow"


# ─────────────────────────────────────────────────────────────
# Authorization
# ─────────────────────────────────────────────────────────────

class Unauthorized(AuthorizationError):
    """Caller is not the registry authority"""
    code = "Unauthorized"


class AccountNotInitialized(AuthorizationError):
    """Caller has no resolver access record"""
    code = "AccountNotInitialized"


class CancelOrderByResolverIsForbidden(AuthorizationError):
    code = "CancelOrderByResolverIsForbidden"


# ─────────────────────────────────────────────────────────────
# Temporal
# ─────────────────────────────────────────────────────────────

class OrderExpired(TemporalError):
    code = "OrderExpired"


class OrderNotExpired(TemporalError):
    code = "OrderNotExpired"


# ─────────────────────────────────────────────────────────────
# Integrity
# ─────────────────────────────────────────────────────────────

class ConstraintSeeds(IntegrityError):
    """An account does not match the address derived from its seeds"""
    code = "ConstraintSeeds"


class InconsistentProtocolFeeConfig(ConstraintSeeds):
    code = "InconsistentProtocolFeeConfig"


class InconsistentIntegratorFeeConfig(ConstraintSeeds):
    code = "InconsistentIntegratorFeeConfig"


class ConstraintTokenAccount(IntegrityError):
    """A vault has the wrong owner or holds the wrong asset"""
    code = "ConstraintTokenAccount"


# ─────────────────────────────────────────────────────────────
# Capacity
# ─────────────────────────────────────────────────────────────

class NotEnoughTokensInEscrow(CapacityError):
    code = "NotEnoughTokensInEscrow"


# ─────────────────────────────────────────────────────────────
# Ledger
# ─────────────────────────────────────────────────────────────

class AccountAlreadyInUse(LedgerError):
    code = "AccountAlreadyInUse"


class AccountNotFound(LedgerError):
    code = "AccountNotFound"


class InsufficientFunds(LedgerError):
    code = "InsufficientFunds"
