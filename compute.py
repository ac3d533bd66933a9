import logging
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from enum import Enum
from typing import Any, Dict, Hashable, Iterable, List, Optional, Tuple

from errors import InconsistentWeights, InvalidExpense, InvalidSplit

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")
# balances and transfers at or inside this band count as settled
SETTLE_THRESHOLD = Decimal("0.01")
HALF_CENT = Decimal("0.005")

MemberId = Hashable


def to_dec(x) -> Decimal:
    if isinstance(x, Decimal):
        return x
    return Decimal(str(x))

def round2(d: Decimal) -> Decimal:
    r = d.quantize(CENT, rounding=ROUND_HALF_UP)
    # -0.00 -> 0.00
    return r if r != 0 else abs(r)


# ============== Engine values ==============
class SplitPolicy(str, Enum):
    EQUAL = "equal"
    WEIGHTED = "weighted"


@dataclass(frozen=True)
class Member:
    member_id: MemberId
    name: Optional[str] = None

    def to_dict(self) -> dict:
        return {"memberId": self.member_id, "name": self.name}


@dataclass(frozen=True)
class Expense:
    amount: Any
    payer: MemberId
    participants: Tuple[MemberId, ...]
    split_policy: SplitPolicy = SplitPolicy.EQUAL
    weights: Optional[Dict[MemberId, int]] = None
    expense_id: Optional[Any] = None
    description: Optional[str] = None

    def __post_init__(self):
        # accept any iterable of ids, keep them hashable and ordered
        if self.participants is None or isinstance(self.participants, (str, bytes)):
            raise InvalidExpense(f"Participants must be a collection of member ids, got {self.participants!r}.")
        try:
            object.__setattr__(self, "participants", tuple(self.participants))
        except TypeError:
            raise InvalidExpense(f"Participants must be a collection of member ids, got {self.participants!r}.")
        try:
            object.__setattr__(self, "split_policy", SplitPolicy(self.split_policy))
        except ValueError:
            raise InvalidExpense(f"Unknown split policy {self.split_policy!r}.")
        if self.weights is not None:
            object.__setattr__(self, "weights", dict(self.weights))


@dataclass(frozen=True)
class Balance:
    member_id: MemberId
    net_amount: Decimal
    member: Optional[Member] = None

    def to_dict(self) -> dict:
        return {
            "memberId": self.member_id,
            "netAmount": str(self.net_amount),
            "member": self.member.to_dict() if self.member else None,
        }


@dataclass(frozen=True)
class Settlement:
    from_id: MemberId
    to_id: MemberId
    amount: Decimal
    from_member: Optional[Member] = None
    to_member: Optional[Member] = None

    def to_dict(self) -> dict:
        return {
            "from": self.from_id,
            "to": self.to_id,
            "amount": str(self.amount),
            "fromMember": self.from_member.to_dict() if self.from_member else None,
            "toMember": self.to_member.to_dict() if self.to_member else None,
        }


@dataclass(frozen=True)
class Summary:
    total_amount: Decimal
    expense_count: int
    balances: List[Balance] = field(default_factory=list)
    settlements: List[Settlement] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "totalAmount": str(self.total_amount),
            "expenseCount": self.expense_count,
            "balances": [b.to_dict() for b in self.balances],
            "settlements": [s.to_dict() for s in self.settlements],
        }


# ============== Share Calculator ==============
def _expense_amount(expense: Expense) -> Decimal:
    try:
        amount = to_dec(expense.amount)
    except (InvalidOperation, ValueError, TypeError):
        raise InvalidExpense(f"Expense amount {expense.amount!r} is not a number.")
    if not amount.is_finite() or amount <= 0:
        raise InvalidExpense(f"Expense amount must be positive, got {expense.amount!r}.")
    return amount

def _validated_weights(expense: Expense) -> Dict[MemberId, int]:
    weights = expense.weights or {}
    participants = set(expense.participants)
    unknown = [m for m in weights if m not in participants]
    if unknown:
        raise InconsistentWeights(f"Weights reference non-participants: {unknown!r}.")
    missing = [m for m in expense.participants if m not in weights]
    if missing:
        raise InconsistentWeights(f"Missing weight for participants: {missing!r}.")
    for m, w in weights.items():
        if isinstance(w, bool) or not isinstance(w, int) or w < 1:
            raise InvalidSplit(f"Invalid weight for {m!r}: must be an integer >= 1, got {w!r}.")
    return weights

def compute_shares(expense: Expense) -> Dict[MemberId, Decimal]:
    """
    Amount owed by each participant of one expense.

    Equal: amount / len(participants). Weighted: amount / total_weight per share.
    Shares are left unrounded; cents are only settled when balances are rounded.
    Raises InvalidExpense / InvalidSplit / InconsistentWeights on malformed input.
    """
    amount = _expense_amount(expense)
    participants = expense.participants
    if not participants:
        raise InvalidExpense("Expense has no participants.")
    if len(set(participants)) != len(participants):
        raise InvalidExpense(f"Expense participants must be unique, got {list(participants)!r}.")

    if expense.split_policy is SplitPolicy.EQUAL:
        per = amount / len(participants)
        return {m: per for m in participants}

    weights = _validated_weights(expense)
    total_weight = sum(weights[m] for m in participants)
    if total_weight == 0:
        raise InvalidSplit("Total weight of a weighted split must be positive.")
    price_per_share = amount / total_weight
    return {m: price_per_share * weights[m] for m in participants}


# ============== Balance Aggregator ==============
def compute_balances(expenses: Iterable[Expense], members: Iterable[Member]) -> List[Balance]:
    """
    Net balance per declared member: paid minus owed, rounded to cents.
    Positive means the member is owed money, negative means they owe.
    Ids that only appear in expenses are accumulated but not returned.
    """
    declared: Dict[MemberId, Member] = {}
    for m in members:
        declared.setdefault(m.member_id, m)

    net: Dict[MemberId, Decimal] = {uid: Decimal("0") for uid in declared}
    for exp in expenses:
        shares = compute_shares(exp)
        net[exp.payer] = net.get(exp.payer, Decimal("0")) + to_dec(exp.amount)
        for uid, owed in shares.items():
            net[uid] = net.get(uid, Decimal("0")) - owed

    strangers = [uid for uid in net if uid not in declared]
    if strangers:
        logger.debug("Expenses reference undeclared members %r; left out of balances", strangers)

    balances = [Balance(uid, round2(net[uid]), member) for uid, member in declared.items()]
    drift = sum((b.net_amount for b in balances), Decimal("0"))
    if abs(drift) > HALF_CENT * len(balances):
        logger.warning("Balances do not sum to zero (drift %s over %d members)", drift, len(balances))
    return balances


# ============== Settlement Reducer ==============
def compute_settlements(balances: Iterable[Balance]) -> List[Settlement]:
    """
    Given net balances, produce settlements (debtor -> creditor, amount)
    using the greedy largest-debtor / largest-creditor matching.
    """
    debtors = []
    creditors = []
    for b in balances:
        amt = to_dec(b.net_amount)
        if amt < -SETTLE_THRESHOLD:
            debtors.append([b, -amt])  # store positive owed amount
        elif amt > SETTLE_THRESHOLD:
            creditors.append([b, amt])

    # largest first; sort is stable so equal amounts keep input order
    debtors.sort(key=lambda x: x[1], reverse=True)
    creditors.sort(key=lambda x: x[1], reverse=True)

    i = j = 0
    settlements = []
    while i < len(debtors) and j < len(creditors):
        debtor, d_amt = debtors[i]
        creditor, c_amt = creditors[j]
        transfer = min(d_amt, c_amt)
        if transfer > SETTLE_THRESHOLD:
            settlements.append(Settlement(
                from_id=debtor.member_id,
                to_id=creditor.member_id,
                amount=round2(transfer),
                from_member=debtor.member,
                to_member=creditor.member,
            ))
        debtors[i][1] = d_amt - transfer
        creditors[j][1] = c_amt - transfer
        if debtors[i][1] < SETTLE_THRESHOLD:
            i += 1
        if creditors[j][1] < SETTLE_THRESHOLD:
            j += 1
    return settlements


# ============== Summary Builder ==============
def build_summary(expenses: Iterable[Expense], members: Iterable[Member]) -> Summary:
    expenses = list(expenses)
    members = list(members)
    balances = compute_balances(expenses, members)
    total = sum((to_dec(e.amount) for e in expenses), Decimal("0"))
    settlements = compute_settlements(balances)
    logger.debug("Summary over %d expenses and %d members: %d settlements",
                 len(expenses), len(members), len(settlements))
    return Summary(
        total_amount=round2(total),
        expense_count=len(expenses),
        balances=balances,
        settlements=settlements,
    )
