import streamlit as st
from datetime import date

st.set_page_config(
    page_title="ChargeLedger Billing",
    page_icon="🔋",
    layout="wide",
    initial_sidebar_state="collapsed",
)

# Ensure logs directory exists
import os
if not os.path.exists("logs"):
    os.makedirs("logs")

from core.models.entities import Caller, CallerRole
from utils.auth_guard import has_context, is_admin, set_operator_context
from db.database import db_manager
from utils.exceptions import DatabaseException


@st.cache_resource
def _prepare_store() -> bool:
    """Create missing billing tables once per process."""
    if not db_manager.db_config.test_connection():
        return False
    db_manager.init_schema()
    return True


@st.cache_resource
def _daily_runs() -> dict:
    """Process-wide record of successful daily checks, keyed by date."""
    return {}


def run_daily_check_once():
    """Run the daily billing job the first time the app is opened on a given day."""
    runs = _daily_runs()
    today = date.today()
    if today in runs:
        return runs[today]

    from core.services.billing_service import BillingService
    result = BillingService(Caller(role=CallerRole.ADMIN)).run_daily_check()
    if result.success:
        runs[today] = result
    return result


# --- PAGE DEFINITIONS ---
def context_page():
    # Centered context card
    col_left, col_center, col_right = st.columns([1, 2, 1])

    with col_center:
        st.markdown("<br>", unsafe_allow_html=True)
        st.markdown(
            """
            <div style="text-align:center">
                <h1 style="color:#1E8449">🔋 ChargeLedger Billing</h1>
                <p style="color:#5D6D7E; font-size:1.1rem">EMI - Rent - Payments</p>
            </div>
            """,
            unsafe_allow_html=True,
        )
        st.markdown("---")

        # --- Operator context form ---
        with st.form("context_form", clear_on_submit=False):
            st.subheader("Operator Context")
            role = st.selectbox("Role", [r.value for r in CallerRole], format_func=str.title)
            partner_id = st.number_input("Partner ID (partners only)", min_value=0, step=1, value=0)
            submitted = st.form_submit_button("Continue", use_container_width=True)

        if submitted:
            if role == CallerRole.PARTNER.value and not partner_id:
                st.error("Partners must enter their partner ID.")
            else:
                set_operator_context(role, int(partner_id) if role == CallerRole.PARTNER.value else None)
                st.rerun()

        st.markdown("---")
        st.caption("(c) 2026 ChargeLedger Battery Leasing")


# --- RECORD STORE ---
try:
    store_ready = _prepare_store()
except DatabaseException as e:
    st.error(f"Could not prepare the billing schema: {e.message}")
    st.stop()
if not store_ready:
    _prepare_store.clear()
    st.error("Billing database is unreachable. Check the DB_* settings and reload.")
    st.stop()

# --- DAILY CHECK ---
daily = run_daily_check_once()
if not daily.success:
    st.toast(f"Daily billing check did not complete: {daily.error.message}")

# --- NAVIGATION SETUP ---
if not has_context():
    pg = st.navigation([st.Page(context_page, title="Start", default=True)])
    pg.run()

else:
    billing_pages = [
        st.Page("pages/1_Billing.py", title="Billing", default=True),
    ]

    admin_pages = [
        st.Page("pages/2_Payment_Scheduler.py", title="Payment Scheduler"),
    ]

    if is_admin():
        pg = st.navigation({
            "Billing": billing_pages,
            "Administration": admin_pages
        })
    else:
        pg = st.navigation({
            "Billing": billing_pages
        })

    pg.run()
