"""
Payment Scheduler Page - Daily check, rent generation, overdue reconciliation,
plan scheduling and portfolio summaries.
Roles: admin
"""

import streamlit as st
import pandas as pd
from datetime import date


from utils.auth_guard import require_role, billing_service
from utils.sidebar import render_sidebar
from utils.formatters import format_currency, format_date, to_decimal
from utils.exceptions import DatabaseException

require_role(["admin"])
render_sidebar()

svc = billing_service()

st.title("Payment Scheduler")
st.markdown("---")

tab_jobs, tab_plans, tab_summary, tab_activity = st.tabs(
    ["Scheduled Jobs", "Plan Scheduling", "Summaries", "Activity"]
)


def show_error(result):
    if result.error.retryable:
        st.warning(f"{result.error.message} (temporary, try again)")
    else:
        st.error(result.error.message)


def show_overdue(report):
    st.markdown(f"**Overdue cutoff:** {format_date(report.cutoff)}")
    o1, o2, o3 = st.columns(3)
    o1.metric("EMIs Marked Overdue", report.overdue_emis)
    o2.metric("Rents Marked Overdue", report.overdue_rents)
    o3.metric("Customers Affected", report.affected_customers)
    if report.customers:
        st.dataframe(pd.DataFrame([
            {"Customer ID": cid, "EMIs": format_currency(a["emis"]),
             "Rents": format_currency(a["rents"]), "Total": format_currency(a["total"])}
            for cid, a in sorted(report.customers.items())
        ]), use_container_width=True)


def show_rent_run(run):
    r1, r2, r3 = st.columns(3)
    r1.metric("Rents Created", len(run["created"]))
    r2.metric("Customers Skipped", len(run["skipped"]))
    r3.metric("Errors", len(run["errors"]))
    if run["created"]:
        st.dataframe(pd.DataFrame(run["created"]), use_container_width=True)
    if run["errors"]:
        st.dataframe(pd.DataFrame(run["errors"]), use_container_width=True)


# ===========================
# TAB 1 - Scheduled Jobs
# ===========================
with tab_jobs:
    st.subheader("Daily Check")
    st.caption("Reconciles overdue obligations, then generates this month's rents. Safe to run repeatedly.")

    if st.button("Run Daily Check", key="run_daily", use_container_width=True):
        with st.spinner("Running daily check..."):
            result = svc.run_daily_check()
        if result.success:
            st.success(f"Daily check completed for {format_date(result.data['date'])}.")
            show_overdue(result.data["overdue"])
            show_rent_run(result.data["rents"])
        else:
            show_error(result)

    st.markdown("---")
    jc1, jc2 = st.columns(2)
    with jc1:
        if st.button("Generate Monthly Rents", key="gen_rents", use_container_width=True):
            result = svc.generate_monthly_rents()
            if result.success:
                show_rent_run(result.data)
            else:
                show_error(result)
    with jc2:
        if st.button("Reconcile Overdue", key="reconcile", use_container_width=True):
            result = svc.reconcile_overdue()
            if result.success:
                show_overdue(result.data)
            else:
                show_error(result)

# ===========================
# TAB 2 - Plan Scheduling
# ===========================
with tab_plans:
    st.subheader("Schedule From Customer Plan")
    plan_cid = st.number_input("Customer ID", min_value=1, step=1, key="plan_cid")
    if st.button("Create Initial Obligations", key="schedule_plan"):
        result = svc.schedule_for_customer(int(plan_cid))
        if result.success:
            st.success(f"Created {result.data['created']} obligation(s) "
                       f"for a {result.data['payment_type'].replace('_', ' ')} plan.")
        else:
            show_error(result)

    st.markdown("---")
    st.subheader("Schedule EMIs")
    with st.form("emi_form"):
        ec1, ec2 = st.columns(2)
        with ec1:
            emi_cid = st.number_input("Customer ID", min_value=1, step=1, key="emi_cid")
            emi_total = st.number_input("Total Amount (INR)", min_value=1.0, step=1000.0, format="%.2f", key="emi_total")
            emi_down = st.number_input("Down Payment (INR)", min_value=1.0, step=500.0, format="%.2f", key="emi_down")
        with ec2:
            emi_count = st.number_input("Number of EMIs", min_value=1, max_value=120, step=1, value=12, key="emi_count")
            emi_start = st.date_input("Start Date", value=date.today(), key="emi_start")
        emi_submitted = st.form_submit_button("Schedule EMIs", use_container_width=True)

    if emi_submitted:
        result = svc.schedule_emi(int(emi_cid), to_decimal(emi_total), to_decimal(emi_down),
                                  int(emi_count), emi_start)
        if result.success:
            st.success(f"{result.data} EMI(s) created.")
        else:
            show_error(result)

    st.markdown("---")
    st.subheader("Schedule Rent")
    with st.form("rent_form"):
        rc1, rc2, rc3 = st.columns(3)
        with rc1:
            rent_cid = st.number_input("Customer ID", min_value=1, step=1, key="rent_cid")
        with rc2:
            rent_amount = st.number_input("Monthly Rent (INR)", min_value=1.0, step=100.0, format="%.2f", key="rent_amount")
        with rc3:
            rent_start = st.date_input("Start Date", value=date.today(), key="rent_start")
        rent_submitted = st.form_submit_button("Schedule Rent", use_container_width=True)

    if rent_submitted:
        result = svc.schedule_rent(int(rent_cid), to_decimal(rent_amount), rent_start)
        if result.success:
            rent = result.data
            note = f" (pro-rated, {rent.prorated_days} days)" if rent.is_prorated else ""
            st.success(f"Rent for {rent.rent_month:%B %Y} created: {format_currency(rent.amount)}, "
                       f"due {format_date(rent.due_date)}{note}.")
        else:
            show_error(result)

# ===========================
# TAB 3 - Summaries
# ===========================
with tab_summary:
    st.subheader("Portfolio")
    summary = svc.get_payment_summary()
    if summary.success:
        s = summary.data
        p1, p2, p3 = st.columns(3)
        p1.metric("Active Rental Customers", s["active_rental_customers"])
        p2.metric("Active EMI Customers", s["active_emi_customers"])
        p3.metric("Customers Overdue", s["overdue_customers"])
        st.dataframe(pd.DataFrame([
            {"Plan": "Rent", "Billed": format_currency(s["total_rent_due"]),
             "Collected": format_currency(s["total_rent_paid"]), "Overdue": format_currency(s["total_rent_overdue"])},
            {"Plan": "EMI", "Billed": format_currency(s["total_emi_due"]),
             "Collected": format_currency(s["total_emi_paid"]), "Overdue": format_currency(s["total_emi_overdue"])},
        ]), use_container_width=True)
    else:
        show_error(summary)

    st.markdown("---")
    st.subheader("Monthly Summary")
    mc1, mc2 = st.columns(2)
    with mc1:
        sum_year = st.number_input("Year", min_value=2000, max_value=2100, step=1, value=date.today().year, key="sum_year")
    with mc2:
        sum_month = st.selectbox("Month", list(range(1, 13)), index=date.today().month - 1,
                                 format_func=lambda m: date(2000, m, 1).strftime("%B"), key="sum_month")

    monthly = svc.get_monthly_summary(int(sum_year), int(sum_month))
    if monthly.success:
        m = monthly.data
        ms1, ms2, ms3 = st.columns(3)
        ms1.metric("Billed", format_currency(m["total_amount"]))
        ms2.metric("Collected", format_currency(m["total_collected"]))
        ms3.metric("Pending", format_currency(m["total_pending"]))
        chart = pd.DataFrame(
            {"Collected": [float(m["rent"]["collected"]), float(m["emi"]["collected"])],
             "Pending": [float(m["rent"]["pending"]), float(m["emi"]["pending"])]},
            index=["Rent", "EMI"],
        )
        st.bar_chart(chart)
    else:
        show_error(monthly)

# ===========================
# TAB 4 - Activity
# ===========================
with tab_activity:
    st.subheader("Recent Billing Activity")

    try:
        from core.services.audit_service import AuditService

        logs = AuditService().get_latest_activity(25)
        if logs:
            st.dataframe(pd.DataFrame(logs), use_container_width=True)
        else:
            st.info("No billing activity recorded yet.")
    except DatabaseException as e:
        st.info(f"Unable to load activity: {e.message}")
