import pandas as pd
import plotly.graph_objects as go
import streamlit as st

from flow_index import FlowRecord, top_flows
from pickup_zones import PickupZone
from selection_controller import SelectionController


def pickup_label(zone: PickupZone) -> str:
    return f"Pickup {zone.label}"


def dropoff_label(flow: FlowRecord) -> str:
    if flow.has_dropoff_id:
        return f"Dropoff {flow.dropoff_id}"
    return f"Dropoff {flow.dropoff_lat:.4f}, {flow.dropoff_lon:.4f}"


def sankey_frame(pairs) -> pd.DataFrame:
    return pd.DataFrame(
        [
            {"pickup": pickup_label(zone), "dropoff": dropoff_label(flow), "probability": flow.probability}
            for zone, flow in pairs
        ],
        columns=["pickup", "dropoff", "probability"],
    )


def app(controller: SelectionController, colors=None):
    st.header("Flow Network — Sankey View")

    index = controller.state.index
    if index is None:
        st.info("⏳ Loading pickup/dropoff flows...")
        return
    if not len(index):
        st.info("No pickup zones to show.")
        return

    st.markdown("**Strongest pickup → dropoff transitions across all zones**")

    top_n = st.slider("Top flows by probability", 10, 200, 50)
    df_top = sankey_frame(top_flows(index, top_n))

    if df_top.empty or df_top["probability"].sum() == 0:
        st.info("No flows with a positive probability.")
        return

    pickups = df_top["pickup"].unique().tolist()
    dropoffs = df_top["dropoff"].unique().tolist()

    # Pickup and dropoff nodes stay separate even when they name the same cluster
    nodes = pickups + dropoffs
    sources = [pickups.index(p) for p in df_top["pickup"]]
    targets = [len(pickups) + dropoffs.index(d) for d in df_top["dropoff"]]

    node_colors = ['rgba(0, 153, 204, 0.8)'] * len(pickups) + ['rgba(255, 107, 0, 0.8)'] * len(dropoffs)

    fig = go.Figure(
        data=[
            go.Sankey(
                node=dict(
                    pad=15,
                    thickness=20,
                    label=nodes,
                    color=node_colors,
                ),
                link=dict(
                    source=sources,
                    target=targets,
                    value=df_top["probability"].tolist(),
                    color='rgba(100, 100, 100, 0.3)',
                ),
            )
        ]
    )

    fig.update_layout(
        title_text=f"Top {len(df_top)} flows by transition probability",
        font_size=12,
        height=600,
    )

    st.plotly_chart(fig, use_container_width=True)

    st.markdown("### 📊 Flow Summary")
    col1, col2, col3 = st.columns(3)

    with col1:
        st.metric("Flows shown", len(df_top))

    with col2:
        st.metric("Pickup zones", len(pickups))

    with col3:
        st.metric("Dropoff zones", len(dropoffs))

    with st.expander("📋 View Flow Details"):
        display_df = df_top.copy()
        display_df.columns = ["Pickup", "Dropoff", "Probability (%)"]
        st.dataframe(display_df, use_container_width=True, hide_index=False)
