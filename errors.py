class SettlementError(ValueError):
    """Base class for everything the settlement engine refuses to compute."""


class InvalidExpense(SettlementError):
    """Non-positive amount, empty or duplicated participants, or an expense
    that does not fit the group it is recorded against."""


class InvalidSplit(InvalidExpense):
    """Weighted split whose weights cannot be used (non-positive, non-integer, zero total)."""


class InconsistentWeights(InvalidSplit):
    """Weights and participants disagree: a weight for a non-participant, or a participant without one."""
