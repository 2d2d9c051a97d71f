"""
Shared sidebar renderer for all billing pages.
Displays the operator context and a switch button.
"""

import streamlit as st
from utils.auth_guard import clear_context, get_current_user, is_admin


def render_sidebar():
    """Render the common sidebar on every billing page."""
    with st.sidebar:
        st.markdown("## 🔋 ChargeLedger Billing")
        st.markdown("---")

        sd = get_current_user()
        if sd:
            role = sd.get("role", "partner").title()
            st.markdown(f"**{role}**")
            if sd.get("partner_id") is not None:
                st.caption(f"Partner ID: {sd['partner_id']}")

            st.markdown("---")

            if is_admin():
                st.caption("Admin Console")
            else:
                st.caption("Partner Console")

            st.markdown("---")

            if st.button("Switch Context", use_container_width=True, key="sidebar_switch"):
                clear_context()
