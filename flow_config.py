import os
from pathlib import Path

# ---------- PATHS ----------
BASE_DIR = Path(__file__).parent
DATA_DIR = Path(os.environ.get("FLOW_DATA_DIR", BASE_DIR / "data"))
CSV_PATH = Path(os.environ.get("FLOW_CSV_PATH", DATA_DIR / "pickup_dropoff_flows.csv"))
PUBLIC_DIR = Path(os.environ.get("FLOW_PUBLIC_DIR", BASE_DIR / "public"))

# ---------- DATA SOURCE ----------
DATA_URL = os.environ.get("FLOW_DATA_URL", "http://localhost:3000/data")
FETCH_TIMEOUT = float(os.environ.get("FLOW_FETCH_TIMEOUT", "30"))

# ---------- SERVER ----------
SERVER_HOST = os.environ.get("FLOW_SERVER_HOST", "0.0.0.0")
SERVER_PORT = int(os.environ.get("FLOW_SERVER_PORT", "3000"))

LOG_LEVEL = os.environ.get("FLOW_LOG_LEVEL", "INFO").upper()
LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

# ---------- DOMAIN ----------
DEFAULT_RADIUS_M = 500.0
KEY_PRECISION = 6
COORD_EPSILON = 1e-6

# ---------- MAP VIEW ----------
MAP_STYLE = "https://basemaps.cartocdn.com/gl/positron-gl-style/style.json"
INITIAL_VIEW = {"latitude": 40.7128, "longitude": -74.0060, "zoom": 11}
FOCUS_ZOOM = 15
FIT_PADDING_PX = 50
MAP_WIDTH_PX = 1000
MAP_HEIGHT_PX = 650
MAX_FIT_ZOOM = 16

# Styles mirror the leaflet look of the first version of the map.
ZONE_STYLE = {"fill": "#00d4ff", "fill_opacity": 0.4, "stroke": "#0099cc", "weight": 2, "opacity": 0.8}
ZONE_HIGHLIGHT_STYLE = {"fill": "#00d4ff", "fill_opacity": 0.8, "stroke": "#ff6b00", "weight": 4, "opacity": 0.8}
FLOW_LINE_STYLE = {"stroke": "#ff6b00", "opacity": 0.8}
DROPOFF_STYLE = {"fill": "#ff6b00", "fill_opacity": 0.3, "stroke": "#ff4500", "weight": 2, "opacity": 0.7}
FOCUS_STYLE = {"fill": "#FF0033", "fill_opacity": 0.9, "stroke": "#FFFFFF", "weight": 4, "opacity": 1.0}
