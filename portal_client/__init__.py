"""
Client runtime for the ETL monitoring portal.

Consumes the portal's proxy endpoint the way the browser views do:

- polling: visibility-aware refetch cadence (SmartPollingCoordinator)
- query: per-resource state with coalescing and retry (QueryClient)
- poller: background refetch loop per resource (QueryPoller)
- pagination: cursor page accumulator (CursorPaginator)
- proxy_client: httpx client for ``/api/apps-script``
- hydration: adoption of server-embedded initial data
"""

from .pagination import CursorPaginator, Page, PaginationState
from .poller import QueryPoller
from .polling import POLLING_INTERVALS, PollingState, SmartPollingCoordinator
from .proxy_client import ProxyClient
from .query import QueryClient, QueryState, query_key

__all__ = [
    "CursorPaginator",
    "Page",
    "PaginationState",
    "POLLING_INTERVALS",
    "PollingState",
    "ProxyClient",
    "QueryClient",
    "QueryPoller",
    "QueryState",
    "SmartPollingCoordinator",
    "query_key",
]
