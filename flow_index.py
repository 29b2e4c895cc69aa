import logging
import math
from dataclasses import dataclass
from typing import Any, Dict, Iterator, List, Sequence, Tuple

from flow_config import COORD_EPSILON
from flow_parser import (
    DROPOFF_ID,
    DROPOFF_LAT,
    DROPOFF_LON,
    DROPOFF_RADIUS,
    PROBABILITY,
    first_present,
    to_float,
)
from pickup_zones import PickupZone, ZoneIndex, ZoneKey, pickup_coords, radius_or_default

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class FlowRecord:
    dropoff_lat: float
    dropoff_lon: float
    dropoff_radius: float
    probability: float
    dropoff_id: Any = None

    @property
    def has_dropoff_id(self) -> bool:
        return self.dropoff_id is not None and self.dropoff_id != -1


def _matches(zone: PickupZone, row: Dict[str, Any]) -> bool:
    coords = pickup_coords(row)
    if coords is None:
        return False
    lat, lon = coords
    return abs(lat - zone.lat) < COORD_EPSILON and abs(lon - zone.lon) < COORD_EPSILON


def _to_flow(row: Dict[str, Any]) -> FlowRecord:
    probability = to_float(first_present(row, PROBABILITY))
    return FlowRecord(
        dropoff_lat=to_float(first_present(row, DROPOFF_LAT)),
        dropoff_lon=to_float(first_present(row, DROPOFF_LON)),
        dropoff_radius=radius_or_default(first_present(row, DROPOFF_RADIUS)),
        probability=0.0 if probability is None else probability,
        dropoff_id=first_present(row, DROPOFF_ID),
    )


def flows_for(zone: PickupZone, rows: Sequence[Dict[str, Any]]) -> List[FlowRecord]:
    """
    Dropoff flows leaving `zone`, highest probability first.

    Rows whose dropoff coordinate is not a finite number are left out. Equal
    probabilities keep their input order.
    """
    flows = []
    for row in rows:
        if not _matches(zone, row):
            continue
        flow = _to_flow(row)
        if flow.dropoff_lat is None or flow.dropoff_lon is None:
            log.warning("Skipping flow from zone %s with invalid dropoff coordinates.", zone.key)
            continue
        flows.append(flow)

    return sorted(flows, key=lambda f: f.probability, reverse=True)


def _nearby_keys(key: ZoneKey) -> Iterator[ZoneKey]:
    # a coordinate within epsilon of a zone rounds to that zone's key or one this close to it
    reach = math.ceil(COORD_EPSILON * 10 ** key.precision)
    for d_lat in range(-reach, reach + 1):
        for d_lon in range(-reach, reach + 1):
            yield ZoneKey(key.lat_scaled + d_lat, key.lon_scaled + d_lon, key.precision)


def flow_table(index: ZoneIndex) -> Dict[ZoneKey, List[FlowRecord]]:
    """
    Sorted flows for every zone in `index`, built in one pass over its rows.

    Each zone gets the same list `flows_for` would return. The table is kept on
    the index, so later calls for the same load are free.
    """
    if index.flow_table is not None:
        return index.flow_table

    table: Dict[ZoneKey, List[FlowRecord]] = {key: [] for key in index.zones}
    for row in index.rows:
        coords = pickup_coords(row)
        if coords is None:
            continue
        nearby = (index.zones.get(key) for key in _nearby_keys(ZoneKey.from_coords(*coords)))
        matched = [zone for zone in nearby if zone is not None and _matches(zone, row)]
        if not matched:
            continue

        flow = _to_flow(row)
        for zone in matched:
            if flow.dropoff_lat is None or flow.dropoff_lon is None:
                log.warning("Skipping flow from zone %s with invalid dropoff coordinates.", zone.key)
                continue
            table[zone.key].append(flow)

    index.flow_table = {
        key: sorted(flows, key=lambda f: f.probability, reverse=True)
        for key, flows in table.items()
    }
    log.info("Indexed flows for %d pickup zones.", len(index.flow_table))
    return index.flow_table


def zone_flows(index: ZoneIndex, zone: PickupZone) -> List[FlowRecord]:
    if zone.key in index.zones:
        return list(flow_table(index)[zone.key])
    return flows_for(zone, index.rows)


def top_flows(index: ZoneIndex, limit: int = 50) -> List[Tuple[PickupZone, FlowRecord]]:
    """Highest-probability (zone, flow) pairs across every pickup zone."""
    table = flow_table(index)
    pairs = [(zone, flow) for zone in index for flow in table[zone.key]]
    pairs.sort(key=lambda pair: pair[1].probability, reverse=True)
    return pairs[:limit]
