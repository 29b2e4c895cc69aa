"""
CSV parsing for pickup/dropoff flow files.

Flow files come from several clustering notebooks, so the same field shows up
under different column names. Each field group lists its synonyms in priority
order; the first populated one wins.
"""

import io
import logging
import math
import re
from typing import Any, Dict, Iterable, List, Optional, Sequence

import pandas as pd

log = logging.getLogger(__name__)

# ---------- COLUMN SYNONYMS ----------
PICKUP_LAT = ("pickup_centroid_lat", "pickup_lat", "pickup_center_lat")
PICKUP_LON = ("pickup_centroid_lon", "pickup_lon", "pickup_center_lon")
PICKUP_ID = ("pickup_cluster_id", "pickup_zone_id", "pickup_id")
PICKUP_RADIUS = ("pickup_radius_meters", "pickup_radius")

DROPOFF_LAT = ("dropoff_centroid_lat", "dropoff_lat", "dropoff_center_lat")
DROPOFF_LON = ("dropoff_centroid_lon", "dropoff_lon", "dropoff_center_lon")
DROPOFF_ID = ("dropoff_cluster_id", "dropoff_zone_id", "dropoff_id")
DROPOFF_RADIUS = ("dropoff_radius_meters", "dropoff_radius")

PROBABILITY = ("probability_%", "probability")

FIELD_SYNONYMS: Dict[str, Sequence[str]] = {
    "pickup_lat": PICKUP_LAT,
    "pickup_lon": PICKUP_LON,
    "pickup_id": PICKUP_ID,
    "pickup_radius": PICKUP_RADIUS,
    "dropoff_lat": DROPOFF_LAT,
    "dropoff_lon": DROPOFF_LON,
    "dropoff_id": DROPOFF_ID,
    "dropoff_radius": DROPOFF_RADIUS,
    "probability": PROBABILITY,
}

_NUMBER_RE = re.compile(r"^\s*[-+]?(\d+\.?\d*|\.\d+)([eE][-+]?\d+)?\s*$")
_INT_RE = re.compile(r"^\s*[-+]?\d+\s*$")


def infer_scalar(token: Any) -> Any:
    """Number-looking tokens become int/float, blanks become None, the rest stays text."""
    if token is None:
        return None
    if not isinstance(token, str):
        if isinstance(token, float) and math.isnan(token):
            return None
        return token
    if token == "":
        return None
    if token in ("true", "false"):
        return token == "true"
    if _NUMBER_RE.match(token):
        if _INT_RE.match(token):
            return int(token)
        return float(token)
    return token


def to_float(value: Any) -> Optional[float]:
    """Finite float for numbers and numeric strings, None for anything else."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    else:
        try:
            number = float(str(value).strip())
        except ValueError:
            return None
    if not math.isfinite(number):
        return None
    return number


def _is_populated(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, str) and value.strip() == "":
        return False
    if isinstance(value, float) and math.isnan(value):
        return False
    return True


def first_present(row: Dict[str, Any], names: Iterable[str]) -> Any:
    for name in names:
        value = row.get(name)
        if _is_populated(value):
            return value
    return None


def parse_csv_text(text: str) -> List[Dict[str, Any]]:
    """
    Parse header-led CSV text into row dicts with per-token type inference.

    Blank lines are skipped. Lines with too many fields are logged and dropped,
    the rest of the file still parses. A file pandas cannot read at all is
    logged and yields an empty list.
    """
    if not text or not text.strip():
        log.error("Error parsing CSV: no content")
        return []

    bad_lines = []

    def _drop_bad_line(fields: List[str]) -> None:
        bad_lines.append(fields)
        log.warning("Dropping malformed CSV line with %d fields", len(fields))
        return None

    # The header is read as data row 0 so pandas never reinterprets leading
    # columns as an index; every line is checked against the header width.
    try:
        frame = pd.read_csv(
            io.StringIO(text),
            header=None,
            dtype=str,
            keep_default_na=False,
            skip_blank_lines=True,
            engine="python",
            on_bad_lines=_drop_bad_line,
        )
    except (pd.errors.ParserError, pd.errors.EmptyDataError) as exc:
        log.error("Error parsing CSV: %s", exc)
        return []

    header = [str(name) for name in frame.iloc[0]]
    rows = [
        dict(zip(header, (infer_scalar(value) for value in values)))
        for values in frame.iloc[1:].itertuples(index=False, name=None)
    ]
    # a row of only separators parses as all-None; treat it like a blank line
    rows = [row for row in rows if any(value is not None for value in row.values())]

    log.info("CSV data parsed: %d rows (%d malformed lines dropped)", len(rows), len(bad_lines))
    return rows


def find_synonym_conflicts(rows: Iterable[Dict[str, Any]]) -> Dict[str, int]:
    """
    Count rows where two synonyms of one field are both populated and disagree.

    The first synonym is still the one used; this only reports the ambiguity.
    """
    conflicts: Dict[str, int] = {}
    for row in rows:
        for field, names in FIELD_SYNONYMS.items():
            values = [row.get(name) for name in names if _is_populated(row.get(name))]
            if len(values) < 2:
                continue
            normalized = {to_float(v) if to_float(v) is not None else str(v) for v in values}
            if len(normalized) > 1:
                conflicts[field] = conflicts.get(field, 0) + 1
    return conflicts
