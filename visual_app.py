import logging
from typing import Dict, List, Optional, Tuple

import pandas as pd
import plotly.express as px
import streamlit as st

from data_source import DataSourceError, fetch_csv_text
from flow_config import DATA_URL, MAP_HEIGHT_PX
from flow_renderer import ZONE_LAYER_ID, PydeckRenderer
from selection_controller import (
    AppState,
    BackgroundClicked,
    DataLoaded,
    Event,
    FetchFailed,
    FlowItemClicked,
    SelectionController,
    ZoneClicked,
)

log = logging.getLogger(__name__)

MAP_KEY = "flow_map"


def _theme_palette(dark_mode: bool) -> Dict[str, object]:
    if dark_mode:
        return {
            "bg": "#0b1220",
            "panel": "#111827",
            "text": "#e2e8f0",
            "muted": "#a0aec0",
            "border": "rgba(148, 163, 184, 0.25)",
            "primary": "#7dd3fc",
            "accent": "#fb7185",
            "continuous": "Plasma",
        }
    return {
        "bg": "#f8fafc",
        "panel": "#edf2f7",
        "text": "#0f172a",
        "muted": "#475569",
        "border": "rgba(148, 163, 184, 0.35)",
        "primary": "#1d6996",
        "accent": "#ff6b00",
        "continuous": "Oranges",
    }


def apply_visual_theme(dark_mode: bool) -> Dict[str, object]:
    palette = _theme_palette(dark_mode)
    px.defaults.template = "plotly_dark" if dark_mode else "plotly_white"
    px.defaults.color_continuous_scale = palette["continuous"]
    st.markdown(
        f"""
        <style>
        :root {{
            --bg-color: {palette["bg"]};
            --panel-color: {palette["panel"]};
            --text-color: {palette["text"]};
            --border-color: {palette["border"]};
            --accent-color: {palette["accent"]};
            --font-stack: 'Inter','Segoe UI',system-ui,-apple-system,sans-serif;
        }}
        html, body, .stApp {{
            background-color: var(--bg-color);
            color: var(--text-color);
            font-family: var(--font-stack);
        }}
        div[data-testid="stDeckGlChart"] {{
            background: var(--bg-color);
            min-height: {MAP_HEIGHT_PX}px !important;
        }}
        .flow-panel button {{
            justify-content: space-between;
            border: 1px solid var(--border-color);
        }}
        .flow-panel button:hover {{
            border-color: var(--accent-color);
        }}
        </style>
        """,
        unsafe_allow_html=True,
    )
    return palette


@st.cache_data(show_spinner=False)
def load_csv_text(url: str) -> str:
    return fetch_csv_text(url)


def kpi_card(label: str, value: str, help_text: str = ""):
    st.metric(label, value, help=help_text if help_text else None)


def get_controller() -> SelectionController:
    if "flow_controller" not in st.session_state:
        st.session_state["flow_controller"] = SelectionController(AppState(), PydeckRenderer())
        st.session_state["map_selection_seen"] = None
        st.session_state["map_key_version"] = 0
        st.session_state["fetch_attempted"] = False
    return st.session_state["flow_controller"]


def load_flow_state(url: str = DATA_URL) -> SelectionController:
    """Fetch and index the flow CSV once per session."""
    controller = get_controller()
    if controller.state.loading and not st.session_state["fetch_attempted"]:
        st.session_state["fetch_attempted"] = True
        with st.spinner("Loading pickup/dropoff flows..."):
            try:
                event = DataLoaded(load_csv_text(url))
            except DataSourceError as exc:
                event = FetchFailed(str(exc))
        controller.handle(event)
    return controller


def map_selection_events(
    widget_state: Optional[dict],
    last_seen: Optional[Tuple[str, str]],
    known_keys: Dict[str, object],
) -> Tuple[List[Event], Optional[Tuple[str, str]]]:
    """
    Turn the pydeck chart's selection into controller events.

    Only changes since the last rerun count. Picking a zone emits ZoneClicked,
    a selection that became empty is a background click, picks on flow layers
    are ignored.
    """
    selection = (widget_state or {}).get("selection") or {}
    objects = selection.get("objects") or {}
    zone_objects = objects.get(ZONE_LAYER_ID) or []

    if zone_objects:
        seen = ("zone", str(zone_objects[0].get("key")))
    elif objects:
        return [], last_seen
    else:
        seen = None

    if seen == last_seen:
        return [], last_seen
    if seen is None:
        return [BackgroundClicked()], None

    key = known_keys.get(seen[1])
    if key is None:
        log.warning("Map selection %s does not match a pickup zone.", seen[1])
        return [], seen
    return [ZoneClicked(key)], seen


def map_widget_key() -> str:
    # a new key gives a fresh chart with nothing picked
    return f"{MAP_KEY}_{st.session_state.get('map_key_version', 0)}"


def _on_map_select():
    # fires only on user interaction, not when the chart is rebuilt
    controller = get_controller()
    if controller.state.index is None:
        return
    known_keys = {str(zone.key): zone.key for zone in controller.state.index}
    events, seen = map_selection_events(
        st.session_state.get(map_widget_key()),
        st.session_state.get("map_selection_seen"),
        known_keys,
    )
    st.session_state["map_selection_seen"] = seen
    for event in events:
        controller.handle(event)


def _focus_flow(index: int):
    get_controller().handle(FlowItemClicked(index))


def _clear_selection():
    st.session_state["map_selection_seen"] = None
    st.session_state["map_key_version"] = st.session_state.get("map_key_version", 0) + 1
    get_controller().handle(BackgroundClicked())


def render_info_panel(controller: SelectionController, colors: Dict[str, object]):
    panel = controller.renderer.info_panel
    if not panel.visible:
        st.caption("Click a pickup zone to see where its riders go.")
        return

    st.subheader(panel.title)
    st.button("Clear selection", on_click=_clear_selection, key="clear_selection")

    if panel.empty_message:
        st.info(panel.empty_message)
        return

    st.markdown("<div class='flow-panel'>", unsafe_allow_html=True)
    for entry in panel.entries:
        st.button(
            f"{entry.label} · {entry.probability_text}",
            key=f"flow_item_{entry.index}",
            on_click=_focus_flow,
            args=(entry.index,),
            use_container_width=True,
        )
    st.markdown("</div>", unsafe_allow_html=True)

    chart = pd.DataFrame({
        "dropoff": [f"{e.index + 1}. {e.label}" for e in panel.entries],
        "probability": [f.probability for f in controller.state.selection.current_flows],
    })
    fig = px.bar(
        chart,
        x="probability",
        y="dropoff",
        orientation="h",
        color="probability",
        color_continuous_scale=colors["continuous"],
        labels={"probability": "Probability (%)", "dropoff": ""},
    )
    fig.update_layout(height=max(220, 28 * len(chart)), showlegend=False, yaxis={"autorange": "reversed"})
    st.plotly_chart(fig, use_container_width=True)


def render_flow_section(controller: SelectionController, colors: Dict[str, object]):
    st.header("Pickup zones and dropoff flows")

    state = controller.state
    if state.loading:
        # fetch failures are logged; the page keeps waiting
        st.info("⏳ Loading pickup/dropoff flows...")
        return

    renderer = controller.renderer

    with st.container():
        kpi1, kpi2, kpi3 = st.columns(3)
        with kpi1:
            kpi_card("Pickup zones", f"{len(state.index):,}")
        with kpi2:
            kpi_card("Flow rows", f"{len(state.index.rows):,}")
        with kpi3:
            kpi_card(
                "Rows skipped",
                f"{state.index.skipped_rows:,}",
                "Rows without a usable pickup coordinate.",
            )

    if not len(state.index):
        st.warning("No rows with valid pickup coordinates were found.")

    map_col, panel_col = st.columns([3, 1])
    with map_col:
        st.pydeck_chart(
            renderer.build_deck(),
            on_select=_on_map_select,
            selection_mode="single-object",
            key=map_widget_key(),
            use_container_width=True,
        )
        st.caption(
            "Circles are pickup zones. Select one to draw its dropoff flows; "
            "line width follows transition probability. Click empty map to clear."
        )
    with panel_col:
        render_info_panel(controller, colors)
