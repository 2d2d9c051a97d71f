"""
Operator context guard utilities for Streamlit pages.
Holds the role/partner picked on the start page and scopes billing calls with it.
"""

import streamlit as st
from datetime import datetime, timedelta
from typing import Optional

from core.models.entities import Caller, CallerRole


SESSION_TIMEOUT_MINUTES = 30


def set_operator_context(role: str, partner_id: Optional[int] = None):
    """Store the operator context for this browser session."""
    st.session_state["session_data"] = {
        "role": role.lower(),
        "partner_id": partner_id,
        "started_at": datetime.now(),
        "last_activity": datetime.now(),
    }


def require_context():
    """Stop page execution if no operator context was chosen."""
    if "session_data" not in st.session_state:
        st.warning("Choose an operator context on the start page to continue.")
        st.stop()
    _check_session_timeout()


def require_role(allowed_roles: list):
    """Stop page execution if operator role is not in allowed_roles."""
    require_context()
    user_role = get_user_role()
    if any(role.lower() == user_role for role in allowed_roles):
        return
    st.error("You do not have permission to access this page.")
    st.stop()


def get_current_user() -> dict:
    """Return current session_data or empty dict."""
    return st.session_state.get("session_data", {})


def get_user_role() -> str:
    """Return current operator role string in lowercase."""
    role = get_current_user().get("role", CallerRole.PARTNER.value)
    return role.lower() if isinstance(role, str) else str(role).lower()


def has_context() -> bool:
    return "session_data" in st.session_state


def current_caller() -> Caller:
    """Caller handed to BillingService for customer scoping."""
    sd = get_current_user()
    return Caller(role=CallerRole(get_user_role()), partner_id=sd.get("partner_id"))


def billing_service():
    """BillingService bound to the current operator."""
    from core.services.billing_service import BillingService
    return BillingService(current_caller())


def clear_context():
    """Drop the operator context and rerun."""
    for key in list(st.session_state.keys()):
        del st.session_state[key]
    st.rerun()


def _check_session_timeout():
    """Drop the context if the session has been idle too long."""
    sd = st.session_state.get("session_data")
    if not sd:
        return
    last_activity = sd.get("last_activity")
    if last_activity and datetime.now() - last_activity > timedelta(minutes=SESSION_TIMEOUT_MINUTES):
        clear_context()
    else:
        sd["last_activity"] = datetime.now()


def is_admin() -> bool:
    """Check if current operator is an admin."""
    return get_user_role() == CallerRole.ADMIN.value
