import logging
from typing import Optional

import requests

from flow_config import DATA_URL, FETCH_TIMEOUT

log = logging.getLogger(__name__)


class DataSourceError(Exception):
    """The flow CSV could not be fetched."""


def fetch_csv_text(url: Optional[str] = None, timeout: Optional[float] = None) -> str:
    """Fetch the flow CSV once. No retries: a failure is raised as DataSourceError."""
    url = url or DATA_URL
    timeout = FETCH_TIMEOUT if timeout is None else timeout
    log.info("Fetching flow data from %s", url)
    try:
        response = requests.get(url, timeout=timeout)
    except requests.RequestException as exc:
        raise DataSourceError(f"Request to {url} failed: {exc}") from exc

    if not response.ok:
        raise DataSourceError(f"Network response error: HTTP {response.status_code} from {url}")
    return response.text
