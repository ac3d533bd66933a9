from typing import Optional
from sqlmodel import SQLModel, Field
from datetime import datetime, date
from decimal import Decimal

# ============== Members ==============
class MemberBase(SQLModel):
    name: str

class Member(MemberBase, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    created_at: datetime = Field(default_factory=datetime.utcnow)

# ============== Groups ==============
class GroupBase(SQLModel):
    name: str
    currency: str = "USD"  # one currency per group; expenses must match it

class Group(GroupBase, table=True):
    __tablename__ = "expense_group"
    id: Optional[int] = Field(default=None, primary_key=True)
    created_at: datetime = Field(default_factory=datetime.utcnow)

class GroupMember(SQLModel, table=True):
    __tablename__ = "group_member"
    group_id: int = Field(foreign_key="expense_group.id", primary_key=True)
    member_id: int = Field(foreign_key="member.id", primary_key=True)
    joined_at: datetime = Field(default_factory=datetime.utcnow)

# ============== Expenses ==============
class ExpenseBase(SQLModel):
    description: Optional[str] = None
    category: Optional[str] = None
    event_date: Optional[date] = None
    amount: Decimal = Field(max_digits=12, decimal_places=2)

class Expense(ExpenseBase, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    group_id: int = Field(foreign_key="expense_group.id", index=True)
    payer_id: int = Field(foreign_key="member.id")  # who fronted the money
    currency: str
    split_policy: str = "equal"  # "equal" | "weighted"
    created_at: datetime = Field(default_factory=datetime.utcnow)

# ============== Shares (one row per participant) ==============
class ExpenseShare(SQLModel, table=True):
    __tablename__ = "expense_share"
    id: Optional[int] = Field(default=None, primary_key=True)
    expense_id: int = Field(foreign_key="expense.id", index=True)
    member_id: int = Field(foreign_key="member.id")
    weight: Optional[int] = None  # share count; only for weighted expenses
