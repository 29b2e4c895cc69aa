import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence

import numpy as np
import pydeck as pdk
from matplotlib.colors import to_rgb

from flow_config import (
    DROPOFF_STYLE,
    FIT_PADDING_PX,
    FLOW_LINE_STYLE,
    FOCUS_STYLE,
    INITIAL_VIEW,
    MAP_HEIGHT_PX,
    MAP_STYLE,
    MAP_WIDTH_PX,
    MAX_FIT_ZOOM,
    ZONE_HIGHLIGHT_STYLE,
    ZONE_STYLE,
)
from flow_index import FlowRecord
from pickup_zones import PickupZone, ZoneBounds, ZoneKey
from selection_controller import Renderer

log = logging.getLogger(__name__)

ZONE_LAYER_ID = "pickup-zones"
FLOW_LINE_LAYER_ID = "flow-lines"
DROPOFF_LAYER_ID = "dropoff-circles"
FOCUS_LAYER_ID = "focused-dropoff"

# deck.gl world is 512px wide at zoom 0
_TILE_SIZE = 512


def _rgba(hex_color: str, opacity: float) -> List[int]:
    return [int(round(c * 255)) for c in to_rgb(hex_color)] + [int(round(opacity * 255))]


def line_width(probability: float) -> float:
    return max(2.0, min(8.0, probability * 0.2))


def _mercator_y(lat):
    return np.log(np.tan(np.pi / 4 + np.radians(lat) / 2))


def fit_view(
    bounds: ZoneBounds,
    width: int = MAP_WIDTH_PX,
    height: int = MAP_HEIGHT_PX,
    padding: int = FIT_PADDING_PX,
    max_zoom: float = MAX_FIT_ZOOM,
) -> Dict[str, float]:
    """Center and zoom that frame `bounds` inside a width x height viewport with padding."""
    y_min, y_max = _mercator_y(bounds.min_lat), _mercator_y(bounds.max_lat)
    center_lat = float(np.degrees(2 * np.arctan(np.exp((y_min + y_max) / 2)) - np.pi / 2))
    center_lon = (bounds.min_lon + bounds.max_lon) / 2

    avail_w = max(width - 2 * padding, 1)
    avail_h = max(height - 2 * padding, 1)
    frac_x = (bounds.max_lon - bounds.min_lon) / 360.0
    frac_y = (y_max - y_min) / (2 * np.pi)

    zooms = [max_zoom]
    if frac_x > 0:
        zooms.append(np.log2(avail_w / (_TILE_SIZE * frac_x)))
    if frac_y > 0:
        zooms.append(np.log2(avail_h / (_TILE_SIZE * frac_y)))

    return {"latitude": center_lat, "longitude": center_lon, "zoom": float(max(min(zooms), 0.0))}


@dataclass
class InfoEntry:
    index: int
    label: str
    probability_text: str


@dataclass
class InfoPanel:
    visible: bool = False
    title: str = ""
    entries: List[InfoEntry] = field(default_factory=list)
    empty_message: Optional[str] = None


class PydeckRenderer(Renderer):
    """
    Keeps the map as plain layer state and turns it into a pydeck Deck on demand.

    Streamlit redraws the whole chart every rerun, so "drawing" here means
    updating the layers this renderer owns.
    """

    def __init__(self, map_style: str = MAP_STYLE):
        self.map_style = map_style
        self.zones: List[PickupZone] = []
        self.highlighted: Optional[ZoneKey] = None
        self.flow_layers: List[pdk.Layer] = []
        self.view_state: Dict[str, float] = dict(INITIAL_VIEW)
        self.view_transitions = 0
        self.info_panel = InfoPanel()

    # ---------------- zones ----------------

    def draw_zones(self, zones: Iterable[PickupZone]) -> None:
        self.zones = list(zones)

    def highlight_zone(self, key: Optional[ZoneKey]) -> None:
        self.highlighted = key

    def zone_records(self) -> List[Dict]:
        records = []
        for zone in self.zones:
            style = ZONE_HIGHLIGHT_STYLE if zone.key == self.highlighted else ZONE_STYLE
            records.append({
                "key": str(zone.key),
                "lat": zone.lat,
                "lon": zone.lon,
                "radius": zone.radius,
                "fill_color": _rgba(style["fill"], style["fill_opacity"]),
                "line_color": _rgba(style["stroke"], style["opacity"]),
                "line_width": style["weight"],
                "tooltip": f"Pickup {zone.label}",
            })
        return records

    def zone_layer(self) -> pdk.Layer:
        return pdk.Layer(
            "ScatterplotLayer",
            id=ZONE_LAYER_ID,
            data=self.zone_records(),
            get_position="[lon, lat]",
            get_radius="radius",
            radius_units="meters",
            get_fill_color="fill_color",
            get_line_color="line_color",
            get_line_width="line_width",
            line_width_units="pixels",
            stroked=True,
            filled=True,
            pickable=True,
            auto_highlight=True,
        )

    # ---------------- flows ----------------

    def draw_flows(self, zone: PickupZone, flows: Sequence[FlowRecord]) -> None:
        self.clear_flows()
        if not flows:
            return

        lines = [
            {
                "source": [zone.lon, zone.lat],
                "target": [f.dropoff_lon, f.dropoff_lat],
                "width": line_width(f.probability),
                "color": _rgba(FLOW_LINE_STYLE["stroke"], FLOW_LINE_STYLE["opacity"]),
                "tooltip": f"{f.probability:.1f}%",
            }
            for f in flows
        ]
        circles = [
            {
                "lat": f.dropoff_lat,
                "lon": f.dropoff_lon,
                "radius": f.dropoff_radius,
                "tooltip": f"Dropoff {f.dropoff_id if f.has_dropoff_id else i + 1}: {f.probability:.1f}%",
            }
            for i, f in enumerate(flows)
        ]

        self.flow_layers.append(
            pdk.Layer(
                "LineLayer",
                id=FLOW_LINE_LAYER_ID,
                data=lines,
                get_source_position="source",
                get_target_position="target",
                get_color="color",
                get_width="width",
                pickable=True,
            )
        )
        self.flow_layers.append(self._circle_layer(DROPOFF_LAYER_ID, circles, DROPOFF_STYLE))

    def draw_focus(self, flow: FlowRecord) -> None:
        record = {
            "lat": flow.dropoff_lat,
            "lon": flow.dropoff_lon,
            "radius": flow.dropoff_radius,
            "tooltip": f"{flow.probability:.1f}%",
        }
        self.flow_layers.append(self._circle_layer(FOCUS_LAYER_ID, [record], FOCUS_STYLE))

    def clear_flows(self) -> None:
        self.flow_layers = []

    def _circle_layer(self, layer_id: str, data: List[Dict], style: Dict) -> pdk.Layer:
        return pdk.Layer(
            "ScatterplotLayer",
            id=layer_id,
            data=data,
            get_position="[lon, lat]",
            get_radius="radius",
            radius_units="meters",
            get_fill_color=_rgba(style["fill"], style["fill_opacity"]),
            get_line_color=_rgba(style["stroke"], style["opacity"]),
            get_line_width=style["weight"],
            line_width_units="pixels",
            stroked=True,
            filled=True,
            pickable=True,
        )

    # ---------------- view ----------------

    def fit_bounds(self, bounds: Optional[ZoneBounds]) -> None:
        if bounds is None:
            return
        self.view_state = fit_view(bounds)

    def fly_to(self, lat: float, lon: float, zoom: float) -> None:
        self.view_state = {"latitude": lat, "longitude": lon, "zoom": zoom, "transition_duration": 1000}
        self.view_transitions += 1

    # ---------------- info panel ----------------

    def show_info_panel(self, zone: PickupZone, flows: Sequence[FlowRecord]) -> None:
        entries = [
            InfoEntry(
                index=i,
                label=f"Zone {f.dropoff_id}" if f.has_dropoff_id else f"Zone {i + 1}",
                probability_text=f"{f.probability:.1f}%",
            )
            for i, f in enumerate(flows)
        ]
        self.info_panel = InfoPanel(
            visible=True,
            title=f"Flows from Pickup {zone.label}",
            entries=entries,
            empty_message=None if entries else "No dropoff flows found.",
        )

    def hide_info_panel(self) -> None:
        self.info_panel = InfoPanel()

    # ---------------- deck ----------------

    def layers(self) -> List[pdk.Layer]:
        return [self.zone_layer()] + list(self.flow_layers)

    def build_deck(self) -> pdk.Deck:
        return pdk.Deck(
            map_style=self.map_style,
            initial_view_state=pdk.ViewState(**self.view_state),
            layers=self.layers(),
            tooltip={"text": "{tooltip}"},
        )
