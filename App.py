import logging

import streamlit as st

from flow_config import LOG_FORMAT, LOG_LEVEL
from visual_app import apply_visual_theme, load_flow_state, render_flow_section
import od_sankey_app

# Page configuration
st.set_page_config(
    page_title="NYC Pickup → Dropoff Flows",
    layout="wide",
    page_icon="🗽",
)

logging.basicConfig(level=LOG_LEVEL, format=LOG_FORMAT)


def main():
    colors = apply_visual_theme(False)

    st.title("🗽 NYC Pickup → Dropoff Flows")
    st.markdown(
        "Pickup zones clustered from ride data. Select a zone to see where trips "
        "starting there are likely to end, ranked by transition probability."
    )

    controller = load_flow_state()

    tab1, tab2 = st.tabs([
        "🗺️ Flow Map",
        "🔀 Flow Network — Sankey View",
    ])

    with tab1:
        render_flow_section(controller, colors)

    with tab2:
        od_sankey_app.app(controller, colors)

    # Footer
    st.markdown("---")
    st.markdown(
        "<div style='text-align: center; color: #666; padding: 20px;'>"
        "Pickup/dropoff flow explorer | data served from /data"
        "</div>",
        unsafe_allow_html=True
    )


if __name__ == "__main__":
    main()
