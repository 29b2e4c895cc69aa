import logging
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Context, Decimal
from typing import Any, Dict, Iterator, List, Optional, Tuple

from flow_config import DEFAULT_RADIUS_M, KEY_PRECISION
from flow_parser import (
    PICKUP_ID,
    PICKUP_LAT,
    PICKUP_LON,
    PICKUP_RADIUS,
    find_synonym_conflicts,
    first_present,
    to_float,
)

log = logging.getLogger(__name__)

# wide enough for any finite float at any key precision
_WIDE = Context(prec=400)


def _scaled(value: float, precision: int) -> int:
    """Round half away from zero at `precision` decimals and return the scaled integer."""
    quantum = Decimal(1).scaleb(-precision)
    exact = Decimal(value).quantize(quantum, rounding=ROUND_HALF_UP, context=_WIDE)
    return int(exact.scaleb(precision, context=_WIDE))


def _format_scaled(scaled: int, precision: int) -> str:
    sign = "-" if scaled < 0 else ""
    whole, frac = divmod(abs(scaled), 10 ** precision)
    return f"{sign}{whole}.{frac:0{precision}d}"


@dataclass(frozen=True)
class ZoneKey:
    """Pickup coordinate rounded to a fixed number of decimals, held as scaled integers."""

    lat_scaled: int
    lon_scaled: int
    precision: int = KEY_PRECISION

    @classmethod
    def from_coords(cls, lat: float, lon: float, precision: int = KEY_PRECISION) -> "ZoneKey":
        return cls(_scaled(lat, precision), _scaled(lon, precision), precision)

    def __str__(self) -> str:
        return (
            f"{_format_scaled(self.lat_scaled, self.precision)}_"
            f"{_format_scaled(self.lon_scaled, self.precision)}"
        )


@dataclass(frozen=True)
class PickupZone:
    key: ZoneKey
    lat: float
    lon: float
    radius: float = DEFAULT_RADIUS_M
    id: Any = None
    ordinal: int = 0

    @property
    def label(self) -> Any:
        return self.id if self.id is not None else self.ordinal


@dataclass(frozen=True)
class ZoneBounds:
    min_lat: float
    min_lon: float
    max_lat: float
    max_lon: float

    @property
    def center(self) -> Tuple[float, float]:
        return (self.min_lat + self.max_lat) / 2, (self.min_lon + self.max_lon) / 2


@dataclass
class ZoneIndex:
    """Deduplicated pickup zones plus every parsed row, kept for flow lookups."""

    zones: Dict[ZoneKey, PickupZone] = field(default_factory=dict)
    rows: List[Dict[str, Any]] = field(default_factory=list)
    skipped_rows: int = 0
    # per-zone flows, filled once by flow_index.flow_table
    flow_table: Optional[Dict[ZoneKey, List[Any]]] = field(default=None, repr=False, compare=False)

    def __len__(self) -> int:
        return len(self.zones)

    def __iter__(self) -> Iterator[PickupZone]:
        return iter(self.zones.values())

    def get(self, key: ZoneKey) -> Optional[PickupZone]:
        return self.zones.get(key)

    def bounds(self) -> Optional[ZoneBounds]:
        if not self.zones:
            return None
        lats = [z.lat for z in self.zones.values()]
        lons = [z.lon for z in self.zones.values()]
        return ZoneBounds(min(lats), min(lons), max(lats), max(lons))


def pickup_coords(row: Dict[str, Any]) -> Optional[Tuple[float, float]]:
    lat = to_float(first_present(row, PICKUP_LAT))
    lon = to_float(first_present(row, PICKUP_LON))
    if lat is None or lon is None:
        return None
    return lat, lon


def radius_or_default(value: Any) -> float:
    radius = to_float(value)
    return DEFAULT_RADIUS_M if radius is None else radius


def build_zones(rows: List[Dict[str, Any]]) -> ZoneIndex:
    """
    Build one PickupZone per rounded pickup coordinate.

    The first row seen for a key decides the zone's id and radius. Rows with an
    unusable pickup coordinate are skipped with a warning but stay in `rows`.
    """
    index = ZoneIndex(rows=list(rows))

    for i, row in enumerate(index.rows):
        coords = pickup_coords(row)
        if coords is None:
            log.warning("Skipping row %d due to invalid pickup coordinates.", i + 1)
            index.skipped_rows += 1
            continue

        lat, lon = coords
        key = ZoneKey.from_coords(lat, lon)
        if key in index.zones:
            continue

        index.zones[key] = PickupZone(
            key=key,
            lat=lat,
            lon=lon,
            radius=radius_or_default(first_present(row, PICKUP_RADIUS)),
            id=first_present(row, PICKUP_ID),
            ordinal=len(index.zones) + 1,
        )

    for field_name, count in find_synonym_conflicts(index.rows).items():
        log.warning(
            "%d rows carry conflicting values for %s synonyms; using the first listed column",
            count,
            field_name,
        )

    log.info("Created %d unique pickup zones.", len(index.zones))
    return index
