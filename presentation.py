from typing import Dict, Optional

import pandas as pd

UNKNOWN = "Unknown"


def member_label(member_id, names: Optional[Dict] = None, enriched: Optional[dict] = None) -> str:
    if names and member_id in names:
        return names[member_id]
    if enriched and enriched.get("name"):
        return enriched["name"]
    return UNKNOWN

def _status(amount: float) -> str:
    if amount > 0:
        return "gets back"
    if amount < 0:
        return "owes"
    return "settled"

def balances_frame(summary: dict, names: Optional[Dict] = None) -> pd.DataFrame:
    rows = []
    for b in summary.get("balances", []):
        amount = float(b["netAmount"])
        rows.append({
            "member": member_label(b["memberId"], names, b.get("member")),
            "balance": amount,
            "status": _status(amount),
        })
    return pd.DataFrame(rows, columns=["member", "balance", "status"])

def settlements_frame(summary: dict, names: Optional[Dict] = None) -> pd.DataFrame:
    rows = [
        {
            "from": member_label(s["from"], names, s.get("fromMember")),
            "to": member_label(s["to"], names, s.get("toMember")),
            "amount": float(s["amount"]),
        }
        for s in summary.get("settlements", [])
    ]
    return pd.DataFrame(rows, columns=["from", "to", "amount"])

def headline(summary: dict, currency: str) -> str:
    count = summary.get("expenseCount", 0)
    noun = "expense" if count == 1 else "expenses"
    return f"{float(summary.get('totalAmount', 0)):.2f} {currency} across {count} {noun}"
