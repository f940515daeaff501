"""
dashboard.py - Streamlit UI entrypoint and orchestration

This module wires the UI components (taxtrack.ui.components) with the
application service (taxtrack.service). The main() function builds the
sidebar menu and routes actions to components and service methods.

Design notes:
 - Keep the dashboard responsible only for UI orchestration and presentation.
 - All persistence and tax rules live in the service, ledger and tax modules.
 - The service and the open receipt preview live in st.session_state so they
   survive reruns; a new browser session gets a fresh service. The local
   ledger is re-read on every run since other sessions may share its file.
"""

import streamlit as st

from taxtrack.config import AppConfig
from taxtrack.service import TaxTrackService
from taxtrack.tax import format_naira
from taxtrack.ui import components


def _get_service() -> TaxTrackService:
    if "service" not in st.session_state:
        st.session_state["service"] = TaxTrackService(AppConfig.from_env())
    return st.session_state["service"]


def _get_review(service: TaxTrackService):
    if "review" not in st.session_state:
        st.session_state["review"] = service.new_review()
    return st.session_state["review"]


def _show_ledger_notice(service: TaxTrackService):
    if service.ledger.last_error:
        st.warning(f"Could not save to storage: {service.ledger.last_error}. Your entries are kept for this session.")


def main():
    """
    Streamlit page: sidebar menu controls which view is shown.
    Actions:
      - Salary (PAYE): banded PAYE estimate recorded as a PAYE transaction
      - VAT & Receipts: manual entry, OCR receipt preview, CSV import
      - History: transaction table with delete
    """
    st.set_page_config(page_title="TaxTrack NG", page_icon="₦")
    st.title("TaxTrack NG")
    service = _get_service()
    service.reload()

    backend_name, backend_msg = service.storage_status()
    if backend_name == "remote":
        st.sidebar.success(backend_msg)
    else:
        st.sidebar.info(backend_msg)
        st.sidebar.caption("Set TAXTRACK_API_URL in the app secrets to use the TaxTrack backend.")

    if not service.is_logged_in():
        components.display_login_form(service.login)
        return

    user = service.user or {}
    st.sidebar.write(f"Signed in as {user.get('firstName') or user.get('email', '')}")
    if st.sidebar.button("Sign out"):
        service.logout()
        st.session_state.pop("review", None)
        st.rerun()

    components.display_summary(service.summary())

    menu = ["Salary (PAYE)", "VAT & Receipts", "History"]
    choice = st.sidebar.selectbox("Select a page", menu)

    if choice == "Salary (PAYE)":
        def on_paye(paye_input: components.PayeInput):
            result, _ = service.record_paye(paye_input.gross_income, paye_input.reliefs)
            st.success(
                f"Estimated PAYE: {format_naira(result['annual_tax'])} per year "
                f"({format_naira(result['monthly_tax'])} per month)"
            )
            st.caption(
                f"Reliefs {format_naira(result['total_reliefs'])}, "
                f"taxable income {format_naira(result['taxable_income'])}"
            )

        components.display_paye_form(on_paye)

    elif choice == "VAT & Receipts":
        st.header("VAT & Consumption")

        def on_manual(entry: components.ManualEntryInput):
            tx = service.record_manual(entry.amount, entry.details, entry.tx_type, date=entry.date)
            st.success(f"{tx.type} added: {format_naira(tx.amount)}")

        components.display_manual_entry_form(on_manual, service.manual_entry_types())
        components.display_receipt_review(
            _get_review(service),
            on_confirm=lambda review: review.confirm(service.ledger),
        )
        components.display_csv_upload(service.import_csv)
        if service.can_upload_receipts():
            components.display_backend_receipt_upload(service.upload_receipt)

    elif choice == "History":
        on_delete = getattr(service.ledger, "delete", None)
        components.display_transaction_table(service.ledger.list(), on_delete=on_delete)

    _show_ledger_notice(service)


if __name__ == "__main__":
    main()
