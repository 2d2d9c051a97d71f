"""
Billing Page - Customer billing details, payment preview and commit.
Roles: admin, partner
"""

import streamlit as st
import pandas as pd


from utils.auth_guard import require_role, billing_service
from utils.sidebar import render_sidebar
from utils.formatters import format_currency, format_date, status_badge, to_decimal, to_rows

require_role(["admin", "partner"])
render_sidebar()

svc = billing_service()

st.title("Customer Billing")
st.markdown("---")

customers_result = svc.list_customers()
if not customers_result.success:
    st.error(customers_result.error.message)
    st.stop()

customers = customers_result.data
if not customers:
    st.info("No customers available for this operator.")
    st.stop()

customer = st.selectbox(
    "Customer",
    customers,
    format_func=lambda c: f"{c.name} (#{c.customer_id}) - {status_badge(c.payment_type)}",
    key="billing_customer",
)


def _frame(records, columns):
    df = pd.DataFrame(to_rows(records))
    if df.empty:
        return df
    return df[[c for c in columns if c in df.columns]]


def render_details(details):
    m1, m2, m3, m4 = st.columns(4)
    m1.metric("Total Paid", format_currency(details.total_paid))
    m2.metric("Total Due", format_currency(details.total_due))
    m3.metric("Credit Balance", format_currency(details.credits.credit_balance if details.credits else None))
    m4.metric("Next Due", format_date(details.next_due_date))

    if details.emi_progress:
        progress = details.emi_progress
        st.progress(progress.percentage / 100, text=f"EMIs paid: {progress.paid}/{progress.total} ({progress.percentage}%)")

    tab_emi, tab_rent, tab_txn, tab_ledger = st.tabs(["EMIs", "Rents", "Transactions", "Ledger"])

    with tab_emi:
        if details.emis:
            st.dataframe(_frame(details.emis, ["emi_number", "amount", "due_date", "paid_amount",
                                               "remaining_amount", "payment_status"]),
                         use_container_width=True)
        else:
            st.info("No EMI obligations.")

    with tab_rent:
        if details.rents:
            st.dataframe(_frame(details.rents, ["rent_month", "amount", "due_date", "paid_amount",
                                                "remaining_amount", "payment_status", "is_prorated"]),
                         use_container_width=True)
        else:
            st.info("No rent obligations.")

    with tab_txn:
        if details.transactions:
            df = _frame(details.transactions, ["transaction_date", "transaction_type", "amount",
                                               "payment_status", "reference_number", "remarks"])
            st.dataframe(df, use_container_width=True)
            csv = df.to_csv(index=False)
            st.download_button("Download Transactions (CSV)", csv,
                               file_name=f"transactions_{details.customer_id}.csv", mime="text/csv")
        else:
            st.info("No transactions yet.")

    with tab_ledger:
        if details.ledger:
            st.dataframe(_frame(details.ledger, ["payment_date", "payment_type", "payment_mode",
                                                 "amount_paid", "running_balance", "reference_number"]),
                         use_container_width=True)
        else:
            st.info("No ledger entries yet.")


# ===========================
# Billing details
# ===========================
if "pay_success" in st.session_state:
    st.success(f"Payment recorded. Reference: **{st.session_state.pop('pay_success')}**")

details_result = svc.get_billing_details(customer.customer_id)
if details_result.success:
    render_details(details_result.data)
else:
    st.error(details_result.error.message)

st.markdown("---")

# ===========================
# Record payment
# ===========================
st.subheader("Record Payment")

with st.form("payment_form"):
    pc1, pc2, pc3 = st.columns(3)
    with pc1:
        pay_amount = st.number_input("Amount (INR)", min_value=0.01, step=100.0, format="%.2f", key="pay_amount")
    with pc2:
        pay_mode = st.selectbox("Apply To", ["auto", "emi", "rent"], format_func=str.upper, key="pay_mode")
    with pc3:
        pay_method = st.selectbox("Payment Mode", ["cash", "upi", "bank_transfer", "card", "cheque"],
                                  format_func=lambda m: m.replace("_", " ").title(), key="pay_method")
    pay_ref = st.text_input("Reference Number (optional)", key="pay_ref")
    pay_remarks = st.text_input("Remarks", key="pay_remarks")
    preview_clicked = st.form_submit_button("Preview Distribution", use_container_width=True)

if preview_clicked:
    preview = svc.preview_payment(customer.customer_id, to_decimal(pay_amount), pay_mode)
    if preview.success:
        st.session_state["pay_preview"] = preview.data
    else:
        st.session_state.pop("pay_preview", None)
        st.error(preview.error.message)

plan = st.session_state.get("pay_preview")
if plan is not None and plan.customer_id == customer.customer_id:
    st.markdown("#### Distribution Preview")
    if plan.allocations:
        st.dataframe(pd.DataFrame([{
            "Obligation": a.label,
            "Due Date": format_date(a.due_date),
            "Applied": format_currency(a.applied_amount),
            "Status": f"{status_badge(a.previous_status)} -> {status_badge(a.new_status)}",
        } for a in plan.allocations]), use_container_width=True)
    else:
        st.info("Nothing is outstanding; the full amount will be credited.")

    e1, e2 = st.columns(2)
    e1.metric("Total Processed", format_currency(plan.total_processed))
    e2.metric("Excess to Credit", format_currency(plan.excess_amount))

    if st.button("Confirm Payment", type="primary", use_container_width=True, key="confirm_payment"):
        result = svc.commit_payment(
            customer.customer_id, plan.amount, plan.mode.value, pay_method,
            remarks=pay_remarks, reference_number=pay_ref or None, expected_plan=plan,
        )
        st.session_state.pop("pay_preview", None)
        if result.success:
            st.session_state["pay_success"] = result.data.reference_number
            st.rerun()
        elif result.error.retryable:
            st.warning(f"{result.error.message} Please preview the payment again.")
        else:
            st.error(result.error.message)
