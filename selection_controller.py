"""
Selection state machine for the pickup flow map.

The controller consumes discrete events (data loaded, zone clicked, flow item
clicked, background clicked, fetch failed) and drives a Renderer. It keeps only
keys and flow records; every visual handle belongs to the renderer.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Sequence, Union

from flow_config import FOCUS_ZOOM
from flow_index import FlowRecord, flow_table, zone_flows
from flow_parser import parse_csv_text
from pickup_zones import PickupZone, ZoneBounds, ZoneIndex, ZoneKey, build_zones

log = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════════════
# EVENTS
# ═══════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class DataLoaded:
    csv_text: str


@dataclass(frozen=True)
class FetchFailed:
    error: str


@dataclass(frozen=True)
class ZoneClicked:
    key: ZoneKey


@dataclass(frozen=True)
class FlowItemClicked:
    index: int


@dataclass(frozen=True)
class BackgroundClicked:
    pass


Event = Union[DataLoaded, FetchFailed, ZoneClicked, FlowItemClicked, BackgroundClicked]


# ═══════════════════════════════════════════════════════════════════════════
# STATE
# ═══════════════════════════════════════════════════════════════════════════

@dataclass
class SelectionState:
    selected_key: Optional[ZoneKey] = None
    current_flows: List[FlowRecord] = field(default_factory=list)

    @property
    def is_selected(self) -> bool:
        return self.selected_key is not None


@dataclass
class AppState:
    index: Optional[ZoneIndex] = None
    selection: SelectionState = field(default_factory=SelectionState)
    fetch_error: Optional[str] = None

    @property
    def loading(self) -> bool:
        return self.index is None


class Renderer(ABC):
    """Map surface plus info panel. Owns every drawn layer."""

    @abstractmethod
    def draw_zones(self, zones: Iterable[PickupZone]) -> None: ...

    @abstractmethod
    def fit_bounds(self, bounds: Optional[ZoneBounds]) -> None: ...

    @abstractmethod
    def highlight_zone(self, key: Optional[ZoneKey]) -> None:
        """Highlight one zone and revert all others; None reverts every zone."""

    @abstractmethod
    def draw_flows(self, zone: PickupZone, flows: Sequence[FlowRecord]) -> None:
        """Replace any drawn flows with lines and dropoff circles for `flows`."""

    @abstractmethod
    def clear_flows(self) -> None: ...

    @abstractmethod
    def draw_focus(self, flow: FlowRecord) -> None: ...

    @abstractmethod
    def fly_to(self, lat: float, lon: float, zoom: float) -> None: ...

    @abstractmethod
    def show_info_panel(self, zone: PickupZone, flows: Sequence[FlowRecord]) -> None: ...

    @abstractmethod
    def hide_info_panel(self) -> None: ...


# ═══════════════════════════════════════════════════════════════════════════
# CONTROLLER
# ═══════════════════════════════════════════════════════════════════════════

class SelectionController:
    def __init__(self, state: AppState, renderer: Renderer):
        self.state = state
        self.renderer = renderer

    def handle(self, event: Event) -> bool:
        """Apply one event; returns True when state or visuals changed."""
        if isinstance(event, DataLoaded):
            self.load(event.csv_text)
            return True
        if isinstance(event, FetchFailed):
            log.error("Error loading CSV data: %s", event.error)
            self.state.fetch_error = event.error
            return False
        if isinstance(event, ZoneClicked):
            zone = self.state.index.get(event.key) if self.state.index else None
            if zone is None:
                log.warning("Click on unknown pickup zone %s ignored.", event.key)
                return False
            return self.select_zone(zone)
        if isinstance(event, FlowItemClicked):
            return self.focus_flow(event.index)
        if isinstance(event, BackgroundClicked):
            self.clear_selection()
            return True
        raise TypeError(f"Unsupported event: {event!r}")

    def load(self, csv_text: str) -> ZoneIndex:
        rows = parse_csv_text(csv_text)
        index = build_zones(rows)
        flow_table(index)
        self.state.index = index
        self.state.fetch_error = None
        self.renderer.draw_zones(index)
        self.renderer.fit_bounds(index.bounds())
        return index

    def select_zone(self, zone: PickupZone) -> bool:
        selection = self.state.selection
        if selection.selected_key == zone.key:
            return False

        selection.selected_key = zone.key
        selection.current_flows = zone_flows(self.state.index, zone) if self.state.index else []

        self.renderer.highlight_zone(zone.key)
        self.renderer.draw_flows(zone, selection.current_flows)
        self.renderer.show_info_panel(zone, selection.current_flows)
        return True

    def focus_flow(self, index: int) -> bool:
        selection = self.state.selection
        if not selection.is_selected or not 0 <= index < len(selection.current_flows):
            log.error("Could not find the clicked flow data (index %s).", index)
            return False

        flow = selection.current_flows[index]
        self.renderer.clear_flows()
        self.renderer.draw_focus(flow)
        self.renderer.fly_to(flow.dropoff_lat, flow.dropoff_lon, FOCUS_ZOOM)
        return True

    def clear_selection(self) -> None:
        self.state.selection = SelectionState()
        self.renderer.clear_flows()
        self.renderer.highlight_zone(None)
        self.renderer.hide_info_panel()
