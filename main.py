import logging
from datetime import date
from decimal import Decimal
from typing import Dict, List, Literal, Optional

from fastapi import FastAPI, HTTPException, Depends
from pydantic import BaseModel
from sqlmodel import Session, select, SQLModel, create_engine

import compute
import models
import store
from config import DATABASE_URL, SQL_ECHO, configure_logging
from errors import SettlementError

logger = logging.getLogger(__name__)

engine = create_engine(DATABASE_URL, echo=SQL_ECHO)

app = FastAPI(title="Shared Expense Settlement API")

def create_db_and_tables():
    SQLModel.metadata.create_all(engine)

@app.on_event("startup")
def on_startup():
    configure_logging()
    create_db_and_tables()

def get_session():
    with Session(engine) as session:
        yield session

def get_group_or_404(session: Session, group_id: int) -> models.Group:
    group = session.get(models.Group, group_id)
    if group is None:
        raise HTTPException(status_code=404, detail="Group not found")
    return group

@app.get("/health")
def health():
    return {"status": "ok"}

# ========== Member endpoints ==========
@app.post("/members", response_model=models.Member)
def create_member(m: models.MemberBase, session: Session = Depends(get_session)):
    member = models.Member(name=m.name)
    session.add(member)
    session.commit()
    session.refresh(member)
    return member

@app.get("/members", response_model=List[models.Member])
def list_members(session: Session = Depends(get_session)):
    return session.exec(select(models.Member)).all()

# ========== Group endpoints ==========
class MemberLink(BaseModel):
    member_id: int

def group_payload(session: Session, group: models.Group) -> dict:
    return {
        "id": group.id,
        "name": group.name,
        "currency": group.currency,
        "members": [{"id": m.id, "name": m.name} for m in store.group_member_rows(session, group.id)],
    }

@app.post("/groups")
def create_group(g: models.GroupBase, session: Session = Depends(get_session)):
    group = models.Group(name=g.name, currency=g.currency.upper())
    session.add(group)
    session.commit()
    session.refresh(group)
    return group_payload(session, group)

@app.get("/groups")
def list_groups(session: Session = Depends(get_session)):
    return [group_payload(session, g) for g in session.exec(select(models.Group)).all()]

@app.get("/groups/{group_id}")
def get_group(group_id: int, session: Session = Depends(get_session)):
    return group_payload(session, get_group_or_404(session, group_id))

@app.post("/groups/{group_id}/members")
def add_group_member(group_id: int, payload: MemberLink, session: Session = Depends(get_session)):
    group = get_group_or_404(session, group_id)
    if session.get(models.Member, payload.member_id) is None:
        raise HTTPException(status_code=404, detail="Member not found")
    store.add_group_member(session, group.id, payload.member_id)
    return group_payload(session, group)

# ========== Expense endpoints ==========
class ExpenseIn(BaseModel):
    amount: Decimal
    payer_id: int
    participants: List[int] = []  # empty -> every group member
    split_policy: Literal["equal", "weighted"] = "equal"
    weights: Optional[Dict[int, int]] = None
    currency: Optional[str] = None
    description: Optional[str] = None
    category: Optional[str] = None
    event_date: Optional[date] = None

@app.post("/groups/{group_id}/expenses")
def create_expense(group_id: int, payload: ExpenseIn, session: Session = Depends(get_session)):
    group = get_group_or_404(session, group_id)
    participants = payload.participants or [m.id for m in store.group_member_rows(session, group.id)]
    try:
        tx = store.create_expense(
            session,
            group,
            payer_id=payload.payer_id,
            amount=payload.amount,
            participants=participants,
            split_policy=payload.split_policy,
            weights=payload.weights,
            currency=payload.currency.upper() if payload.currency else None,
            description=payload.description,
            category=payload.category,
            event_date=payload.event_date,
        )
    except SettlementError as e:
        logger.warning("Rejected expense for group %s: %s", group_id, e)
        raise HTTPException(status_code=400, detail=str(e))
    return {"id": tx.id}

@app.delete("/groups/{group_id}/expenses/{expense_id}")
def delete_expense(group_id: int, expense_id: int, session: Session = Depends(get_session)):
    get_group_or_404(session, group_id)
    if not store.delete_expense(session, group_id, expense_id):
        raise HTTPException(status_code=404, detail="Expense not found")
    return {"deleted": expense_id}

@app.get("/groups/{group_id}/expenses")
def list_expenses(group_id: int, session: Session = Depends(get_session)):
    get_group_or_404(session, group_id)
    rows = store.group_expense_rows(session, group_id)
    shares = store.expense_share_rows(session, [r.id for r in rows])
    results = []
    for t in rows:
        split = shares.get(t.id, [])
        results.append({
            "id": t.id,
            "description": t.description,
            "category": t.category,
            "event_date": t.event_date.isoformat() if t.event_date else None,
            "amount": str(t.amount),
            "currency": t.currency,
            "payer_id": t.payer_id,
            "split_policy": t.split_policy,
            "participants": [s.member_id for s in split],
            "weights": {str(s.member_id): s.weight for s in split} if t.split_policy == "weighted" else None,
        })
    return results

# ========== Summary endpoints ==========
@app.get("/groups/{group_id}/summary")
def group_summary(group_id: int, session: Session = Depends(get_session)):
    snapshot = store.load_group_snapshot(session, group_id)
    if snapshot is None:
        raise HTTPException(status_code=404, detail="Group not found")
    group, expenses, members = snapshot
    try:
        summary = compute.build_summary(expenses, members)
    except SettlementError as e:
        logger.warning("Summary failed for group %s: %s", group_id, e)
        raise HTTPException(status_code=400, detail=str(e))
    return {"summary": summary.to_dict(), "currency": group.currency}

class InlineMember(BaseModel):
    member_id: str
    name: Optional[str] = None

class InlineExpense(BaseModel):
    amount: Decimal
    payer: str
    participants: List[str]
    split_policy: Literal["equal", "weighted"] = "equal"
    weights: Optional[Dict[str, int]] = None
    description: Optional[str] = None

class SummaryIn(BaseModel):
    expenses: List[InlineExpense] = []
    members: List[InlineMember]

@app.post("/summary")
def inline_summary(payload: SummaryIn):
    """Summary over expenses and members sent in the request; nothing is stored."""
    members = [compute.Member(m.member_id, m.name) for m in payload.members]
    try:
        expenses = [
            compute.Expense(
                amount=e.amount,
                payer=e.payer,
                participants=tuple(e.participants),
                split_policy=e.split_policy,
                weights=e.weights,
                description=e.description,
            )
            for e in payload.expenses
        ]
        summary = compute.build_summary(expenses, members)
    except SettlementError as e:
        logger.warning("Rejected inline summary: %s", e)
        raise HTTPException(status_code=400, detail=str(e))
    return {"summary": summary.to_dict()}
