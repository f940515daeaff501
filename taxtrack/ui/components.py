"""
components.py - reusable Streamlit components / forms / displays

This module contains pure-UI helpers used by the dashboard:
 - display_paye_form(on_submit) / display_manual_entry_form(on_submit, types)
 - display_receipt_review(review, on_confirm) for the OCR preview
 - display_csv_upload(on_import) / display_backend_receipt_upload(on_upload)
 - display_summary / display_transaction_table / display_login_form

The forms enforce validation rules:
 - gross income and reliefs >= 0
 - manual amounts > 0
 - preview edits go through ReceiptReview.edit, which rejects negative amounts
"""

from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Sequence
import asyncio

import pandas as pd
import streamlit as st

from taxtrack.extraction import ReceiptReview
from taxtrack.models import Transaction, VAT, CONSUMPTION
from taxtrack.tax import format_naira


@dataclass
class PayeInput:
    """Lightweight container passed to the on_submit callback."""
    gross_income: float
    reliefs: Dict[str, float]


@dataclass
class ManualEntryInput:
    amount: float
    details: str
    tx_type: str
    date: str  # ISO date string


def display_login_form(on_login: Callable[[str, str], tuple]):
    st.header("Sign in")
    with st.form(key="login_form"):
        email = st.text_input("Email")
        password = st.text_input("Password", type="password")
        if st.form_submit_button("Sign in"):
            ok, message = on_login(email, password)
            if ok:
                st.success(message)
                st.rerun()
            else:
                st.error(message)


def display_summary(summary: Dict[str, float]):
    """Summary cards: totals per tax type."""
    cols = st.columns(4)
    cols[0].metric("Income Tax (PAYE)", format_naira(summary["paye"]))
    cols[1].metric("VAT", format_naira(summary["vat"]))
    cols[2].metric("Consumption", format_naira(summary["consumption"]))
    cols[3].metric("Total", format_naira(summary["total"]))
    st.caption(f"{summary['count']} transactions recorded")


def display_paye_form(on_submit: Callable[[PayeInput], None]):
    """
    Display the salary form. The consolidated relief (200,000 + 20% of gross)
    is applied automatically; pension, NHF and other reliefs are optional.
    """
    st.header("Salary Tax (PAYE)")
    with st.form(key="paye_form"):
        gross = st.number_input("Annual gross income (₦)", min_value=0.0, format="%.2f")
        pension = st.number_input("Pension contribution (₦)", min_value=0.0, format="%.2f")
        nhf = st.number_input("NHF contribution (₦)", min_value=0.0, format="%.2f")
        other = st.number_input("Other reliefs (₦)", min_value=0.0, format="%.2f")
        if st.form_submit_button("Calculate PAYE"):
            on_submit(PayeInput(gross_income=gross, reliefs={"pension": pension, "nhf": nhf, "other": other}))


def display_manual_entry_form(on_submit: Callable[[ManualEntryInput], None], types: Sequence[str]):
    st.subheader("Manual entry")
    with st.form(key="manual_entry_form", clear_on_submit=True):
        amount = st.number_input("Amount (₦)", min_value=0.0, format="%.2f")
        tx_type = st.selectbox("Type", options=list(types))
        details = st.text_input("Details", placeholder="Manual Entry")
        date_val = st.date_input("Date")
        if st.form_submit_button("Add Transaction"):
            if amount <= 0:
                st.error("Amount must be greater than 0.")
                return
            on_submit(ManualEntryInput(
                amount=round(amount, 2),
                details=details.strip(),
                tx_type=tx_type,
                date=date_val.isoformat(),
            ))


def _run_recognition(review: ReceiptReview, files: List):
    bar = st.progress(0.0, text="Processing receipts, please wait...")

    def on_progress(name: str, update: Dict):
        bar.progress(float(update.get("progress", 0.0)), text=f"{name}: {update.get('status', '')}")

    results = asyncio.run(review.process_files(files, on_progress=on_progress))
    bar.empty()
    for result in results:
        if result.error:
            st.error(f"{result.name}: {result.error}")
        elif not result.candidates:
            st.warning(f"{result.name}: no amounts detected")


def display_receipt_review(review: ReceiptReview, on_confirm: Callable[[ReceiptReview], List[Transaction]]):
    """
    Upload receipt images, show every detected amount as an editable row and
    commit the ticked rows on confirmation.

    Widget keys are derived from candidate ids, so the edited values are read
    back by id when the user confirms.
    """
    st.subheader("Receipts")
    files = st.file_uploader(
        "Upload receipt images",
        type=["png", "jpg", "jpeg", "webp", "bmp", "tif", "tiff"],
        accept_multiple_files=True,
        key="receipt_files",
    )
    if files and st.button("Read receipts"):
        _run_recognition(review, files)

    if review.status_text:
        st.info(review.status_text)
    if not review.candidates:
        return

    types = [VAT, CONSUMPTION]
    current_source = None
    for line in review.candidates:
        if line.source != current_source:
            current_source = line.source
            st.markdown(f"**OCR Preview for {current_source}**")
        c1, c2, c3, c4 = st.columns([1, 2, 2, 5])
        c1.checkbox("Add", value=line.selected, key=f"{line.id}_selected", label_visibility="collapsed")
        c2.number_input("Amount", min_value=0.0, value=float(line.amount), format="%.2f",
                        key=f"{line.id}_amount", label_visibility="collapsed")
        c3.selectbox("Type", options=types, index=types.index(line.type) if line.type in types else 0,
                     key=f"{line.id}_type", label_visibility="collapsed")
        c4.text_input("Details", value=line.details, key=f"{line.id}_details", label_visibility="collapsed")

    if st.button("Add Selected Transactions", disabled=not review.can_confirm):
        for line in review.candidates:
            review.edit(
                line.id,
                tx_type=st.session_state.get(f"{line.id}_type", line.type),
                amount=st.session_state.get(f"{line.id}_amount", line.amount),
                details=st.session_state.get(f"{line.id}_details", line.details),
                selected=st.session_state.get(f"{line.id}_selected", line.selected),
            )
        added = on_confirm(review)
        st.success(f"{len(added)} transactions added.")
        st.rerun()


def display_csv_upload(on_import: Callable[[bytes], List[Transaction]]):
    st.subheader("CSV import")
    st.caption("Each row's first positive number is taken as a VAT base amount and added immediately.")
    csv_file = st.file_uploader("Upload CSV", type=["csv"], key="csv_file")
    if csv_file is not None and st.button("Import CSV"):
        added = on_import(csv_file.getvalue())
        if added:
            st.success(f"Imported {len(added)} VAT transactions from {csv_file.name}.")
        else:
            st.warning(f"No amounts found in {csv_file.name}.")


def display_backend_receipt_upload(on_upload: Callable[[str, bytes, str], List[Transaction]]):
    st.subheader("Backend receipt reading")
    st.caption("The TaxTrack backend reads the receipt and records the transactions itself.")
    receipt = st.file_uploader("Upload receipt", type=["png", "jpg", "jpeg", "pdf"], key="backend_receipt")
    tx_type = st.selectbox("Record as", [VAT, CONSUMPTION], key="backend_receipt_type")
    if receipt is not None and st.button("Send to backend"):
        added = on_upload(receipt.name, receipt.getvalue(), tx_type)
        if added:
            st.success(f"Backend recorded {len(added)} transactions from {receipt.name}.")
        else:
            st.warning(f"No transactions recorded from {receipt.name}.")


def display_transaction_table(transactions: List[Transaction], on_delete: Optional[Callable[[str], bool]] = None):
    """Render the ledger as a table, newest first."""
    st.header("Transaction History")
    if not transactions:
        st.write("No transactions recorded.")
        return

    rows = [
        {
            "id": t.id,
            "date": t.date,
            "type": t.type,
            "amount": t.amount,
            "details": t.details,
        }
        for t in reversed(transactions)
    ]
    df = pd.DataFrame(rows, columns=["id", "date", "type", "amount", "details"])
    st.dataframe(df.style.format({"amount": "₦{:,.2f}"}), use_container_width=True, hide_index=True)

    totals = df.groupby("type")["amount"].sum().reset_index()
    st.markdown("**Totals by type**")
    for _, r in totals.iterrows():
        st.write(f"- {r['type']}: {format_naira(r['amount'])}")

    if on_delete is not None:
        with st.expander("Delete a transaction"):
            labels = {f"{t.date} {t.type} {format_naira(t.amount)} - {t.details}": t.id for t in transactions}
            choice = st.selectbox("Transaction", options=list(labels))
            if st.button("Delete"):
                if on_delete(labels[choice]):
                    st.success("Transaction deleted.")
                    st.rerun()
                else:
                    st.error("Transaction not found.")
