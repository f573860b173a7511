"""
Adoption of the initial data embedded in server-rendered pages.
"""

import json
import re
from typing import Any, Dict, Optional

from .query import QueryClient, query_key

_INITIAL_DATA_RE = re.compile(
    r'<script type="application/json" id="initial-data">(.*?)</script>',
    re.DOTALL,
)


def parse_initial_data(html: str) -> Optional[Dict[str, Any]]:
    """Return the embedded payload, or None when the page carries none."""
    match = _INITIAL_DATA_RE.search(html)
    if match is None:
        return None
    return json.loads(match.group(1))


def hydrate_from_html(client: QueryClient, html: str) -> Optional[str]:
    """Seed ``client`` from a rendered page; returns the query key that was hydrated."""
    payload = parse_initial_data(html)
    if not payload or payload.get("data") is None:
        return None

    key = query_key(payload["resource"], payload.get("ownerEmail"))
    if client.hydrate(key, payload["data"]):
        return key
    return None
