"""Loyalty ledger exceptions."""


class LoyaltyError(Exception):
    """
    Structured exception for ledger operations.

    Every failure carries a stable ``code``, a human message and the data
    needed to explain it. No operation leaves a partial write behind when
    one of these is raised.

    Usage:
        try:
            LoyaltyService.redeem("CUST-001", 10)
        except InsufficientPointsError as e:
            if e.code == "BELOW_MIN_REDEMPTION":
                show_minimum(e.data["minimum"])
    """

    default_code = "LOYALTY_ERROR"

    _default_messages = {
        "LOYALTY_ERROR": "Loyalty operation failed",
        "NO_ACTIVE_RULES": "No active loyalty rules found",
        "INSUFFICIENT_POINTS": "Insufficient points balance",
        "BELOW_MIN_REDEMPTION": "Redemption is below the minimum points",
        "REDEMPTION_CAP_EXCEEDED": "Redemption exceeds the order cap",
        "NEGATIVE_BALANCE": "Adjustment would result in negative balance",
        "INVALID_INPUT": "Invalid input",
        "ACCOUNT_NOT_FOUND": "Customer loyalty account not found",
        "TIER_NOT_FOUND": "Tier not found",
        "RULE_VERSION_NOT_FOUND": "Rule version not found",
        "CONFLICT": "Change conflicts with ledger state",
        "DUPLICATE_TIER_CODE": "Tier code already exists",
        "TIER_IN_USE": "Tier has customers on it",
        "TIER_REFERENCED": "Tier thresholds are frozen once used by transactions",
        "RULE_VERSION_ALREADY_ACTIVE": "Rule version is already active",
        "RULE_VERSION_OVERLAP": "Backdated rule version overlaps one already in effect",
        "TRANSACTION_IMMUTABLE": "Loyalty transactions cannot be changed",
    }

    def __init__(self, code: str | None = None, message: str | None = None, **data):
        self.code = code or self.default_code
        self.message = message or self._default_messages.get(self.code, self.code)
        self.data = data
        super().__init__(f"[{self.code}] {self.message}")

    def as_dict(self) -> dict:
        return {"code": self.code, "message": self.message, "data": self.data}


class NoActiveRulesError(LoyaltyError):
    """No rule version covers the requested instant. Configuration gap."""

    default_code = "NO_ACTIVE_RULES"


class InsufficientPointsError(LoyaltyError):
    """Redemption rejected by balance, minimum or cap."""

    default_code = "INSUFFICIENT_POINTS"


class InvalidAdjustmentError(LoyaltyError):
    """Adjustment or reversal would drive the balance negative."""

    default_code = "NEGATIVE_BALANCE"


class ValidationError(LoyaltyError):
    """Malformed input, rejected before any lookup."""

    default_code = "INVALID_INPUT"


class NotFoundError(LoyaltyError):
    default_code = "ACCOUNT_NOT_FOUND"


class ConflictError(LoyaltyError):
    """Administrative change conflicts with existing ledger state."""

    default_code = "CONFLICT"
