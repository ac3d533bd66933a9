import logging
from decimal import Decimal, InvalidOperation
from typing import Dict, List, Optional, Tuple

from sqlmodel import Session, col, select

import compute
import models
from errors import InvalidExpense

logger = logging.getLogger(__name__)


def group_member_rows(session: Session, group_id: int) -> List[models.Member]:
    stmt = (
        select(models.Member)
        .join(models.GroupMember, models.GroupMember.member_id == models.Member.id)
        .where(models.GroupMember.group_id == group_id)
        .order_by(models.GroupMember.joined_at, models.Member.id)
    )
    return list(session.exec(stmt).all())

def add_group_member(session: Session, group_id: int, member_id: int) -> models.GroupMember:
    link = session.get(models.GroupMember, (group_id, member_id))
    if link is None:
        link = models.GroupMember(group_id=group_id, member_id=member_id)
        session.add(link)
        session.commit()
        session.refresh(link)
    return link

def expense_share_rows(session: Session, expense_ids: List[int]) -> Dict[int, List[models.ExpenseShare]]:
    if not expense_ids:
        return {}
    stmt = (
        select(models.ExpenseShare)
        .where(col(models.ExpenseShare.expense_id).in_(expense_ids))
        .order_by(models.ExpenseShare.id)
    )
    by_expense: Dict[int, List[models.ExpenseShare]] = {}
    for s in session.exec(stmt).all():
        by_expense.setdefault(s.expense_id, []).append(s)
    return by_expense

def to_engine_expense(row: models.Expense, shares: List[models.ExpenseShare]) -> compute.Expense:
    weights = None
    if row.split_policy == compute.SplitPolicy.WEIGHTED.value:
        weights = {s.member_id: s.weight for s in shares}
    return compute.Expense(
        amount=row.amount,
        payer=row.payer_id,
        participants=tuple(s.member_id for s in shares),
        split_policy=row.split_policy,
        weights=weights,
        expense_id=row.id,
        description=row.description,
    )

def group_expense_rows(session: Session, group_id: int) -> List[models.Expense]:
    stmt = select(models.Expense).where(models.Expense.group_id == group_id).order_by(models.Expense.id)
    return list(session.exec(stmt).all())

def load_group_snapshot(
    session: Session, group_id: int
) -> Optional[Tuple[models.Group, List[compute.Expense], List[compute.Member]]]:
    """
    Everything the engine needs for one group, read within a single session.
    Returns None when the group does not exist.
    """
    group = session.get(models.Group, group_id)
    if group is None:
        return None
    members = [compute.Member(m.id, m.name) for m in group_member_rows(session, group_id)]
    rows = group_expense_rows(session, group_id)
    shares = expense_share_rows(session, [r.id for r in rows])
    expenses = [to_engine_expense(r, shares.get(r.id, [])) for r in rows]
    return group, expenses, members

def stored_amount(amount) -> Decimal:
    """The amount exactly as the expense column will hold it; more than 2 decimal places is refused."""
    try:
        value = compute.to_dec(amount)
    except (InvalidOperation, ValueError, TypeError):
        raise InvalidExpense(f"Expense amount {amount!r} is not a number.")
    if value.is_finite() and value != compute.round2(value):
        raise InvalidExpense(f"Expense amount {amount} has more than 2 decimal places.")
    return value

def create_expense(
    session: Session,
    group: models.Group,
    payer_id: int,
    amount,
    participants: List[int],
    split_policy: str = "equal",
    weights: Optional[Dict[int, int]] = None,
    currency: Optional[str] = None,
    description: Optional[str] = None,
    category: Optional[str] = None,
    event_date=None,
) -> models.Expense:
    member_ids = {m.id for m in group_member_rows(session, group.id)}
    if payer_id not in member_ids:
        raise InvalidExpense(f"Payer {payer_id} is not a member of group {group.id}.")
    outsiders = [p for p in participants if p not in member_ids]
    if outsiders:
        raise InvalidExpense(f"Participants {outsiders} are not members of group {group.id}.")
    currency = currency or group.currency
    if currency != group.currency:
        raise InvalidExpense(f"Expense currency {currency} differs from group currency {group.currency}.")

    amount = stored_amount(amount)
    candidate = compute.Expense(
        amount=amount,
        payer=payer_id,
        participants=tuple(participants),
        split_policy=split_policy,
        weights=weights,
    )
    # raises before anything is written
    compute.compute_shares(candidate)

    tx = models.Expense(
        group_id=group.id,
        payer_id=payer_id,
        amount=amount,
        currency=currency,
        split_policy=candidate.split_policy.value,
        description=description,
        category=category,
        event_date=event_date,
    )
    session.add(tx)
    session.commit()
    session.refresh(tx)
    weighted = candidate.split_policy is compute.SplitPolicy.WEIGHTED
    for m in candidate.participants:
        session.add(models.ExpenseShare(
            expense_id=tx.id,
            member_id=m,
            weight=candidate.weights[m] if weighted else None,
        ))
    session.commit()
    logger.info("Recorded expense %s in group %s: %s %s paid by %s (%s split)",
                tx.id, group.id, tx.amount, currency, payer_id, tx.split_policy)
    return tx

def delete_expense(session: Session, group_id: int, expense_id: int) -> bool:
    """Remove an expense and its share rows. False when the group has no such expense."""
    tx = session.get(models.Expense, expense_id)
    if tx is None or tx.group_id != group_id:
        return False
    for share in expense_share_rows(session, [expense_id]).get(expense_id, []):
        session.delete(share)
    session.flush()
    session.delete(tx)
    session.commit()
    logger.info("Deleted expense %s from group %s", expense_id, group_id)
    return True
