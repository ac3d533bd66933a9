import streamlit as st
import requests
import pandas as pd

from config import BACKEND_URL
from presentation import balances_frame, settlements_frame, headline

BASE_URL = st.secrets.get("backend_url", BACKEND_URL)

st.title("Group Expenses & Settlements")

# Members
st.header("Members")
name = st.text_input("New member name")
if st.button("Add Member"):
    r = requests.post(f"{BASE_URL}/members", json={"name": name})
    st.success(f"Added: {r.json()['name']}" if r.status_code == 200 else f"Error: {r.text}")

members = requests.get(f"{BASE_URL}/members").json()
st.dataframe(pd.DataFrame(members))

# Groups
st.header("Groups")
group_name = st.text_input("New group name")
currency = st.text_input("Currency", value="USD")
if st.button("Create Group"):
    r = requests.post(f"{BASE_URL}/groups", json={"name": group_name, "currency": currency})
    st.success(f"Created: {r.json()['name']}" if r.status_code == 200 else f"Error: {r.text}")

groups = requests.get(f"{BASE_URL}/groups").json()
if not groups:
    st.info("Create a group to start recording expenses.")
    st.stop()

group = st.selectbox("Group", options=groups, format_func=lambda g: f"{g['name']} ({g['currency']})")
names = {m["id"]: m["name"] for m in group["members"]}

outsiders = [m for m in members if m["id"] not in names]
if outsiders:
    joining = st.selectbox("Add member to group", options=outsiders, format_func=lambda m: m["name"])
    if st.button("Add to Group"):
        r = requests.post(f"{BASE_URL}/groups/{group['id']}/members", json={"member_id": joining["id"]})
        if r.status_code == 200:
            st.success(f"{joining['name']} joined {group['name']}")
        else:
            st.error(f"Error: {r.text}")

# Add Expense
st.header("Add Expense")
if group["members"]:
    payer = st.selectbox("Paid by", options=group["members"], format_func=lambda m: m["name"])
    amount = st.number_input("Amount", min_value=0.0, step=0.01)
    description = st.text_input("Description")
    participants = st.multiselect("Split between", options=group["members"], format_func=lambda m: m["name"],
                                  default=group["members"])
    weighted = st.checkbox("Split by shares")
    weights = {}
    if weighted:
        for m in participants:
            weights[m["id"]] = st.number_input(f"{m['name']}'s shares", min_value=1, value=1, step=1,
                                               key=f"weight_{m['id']}")

    if st.button("Submit Expense"):
        payload = {
            "amount": amount,
            "payer_id": payer["id"],
            "participants": [m["id"] for m in participants],
            "split_policy": "weighted" if weighted else "equal",
            "weights": {str(k): int(v) for k, v in weights.items()} if weighted else None,
            "description": description or None,
        }
        r = requests.post(f"{BASE_URL}/groups/{group['id']}/expenses", json=payload)
        if r.status_code == 200:
            st.success("Expense recorded")
        else:
            st.error(f"Error: {r.json().get('detail', r.text)}")
else:
    st.info("Add members to the group first.")

# View Settlement
st.header("Settle Up")
if st.button("Compute Settlement"):
    r = requests.get(f"{BASE_URL}/groups/{group['id']}/summary")
    if r.status_code == 200:
        data = r.json()
        summary = data["summary"]
        st.metric("Total spent", headline(summary, data["currency"]))
        st.subheader("Balances")
        st.dataframe(balances_frame(summary, names))
        st.subheader("Transfers")
        transfers = settlements_frame(summary, names)
        if transfers.empty:
            st.success("Everyone is settled up")
        else:
            st.dataframe(transfers)
    else:
        st.error(f"Error: {r.text}")
