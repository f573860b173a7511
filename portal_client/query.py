"""
Query layer: per-resource state, request coalescing and retry.

Each logical resource is identified by a key that includes anything that
changes the scope of the result (``procesos:ALL`` vs
``procesos:someone@transperuana.com.pe``). For every key there is at most one
request in flight; concurrent refetches join it.
"""

import asyncio
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional

import httpx

from shared.errors import PortalException, UpstreamError
from shared.logging import get_logger
from shared.retry import RetryConfig, RetryError, retry_on_exception

DEFAULT_STALE_TIME = 15.0
INITIAL_DATA_GRACE = 5.0
DEFAULT_RETRY_CONFIG = RetryConfig(max_attempts=3, base_delay=1.0, max_delay=30.0)

# ConfigurationError and auth failures are not transient
RETRYABLE_ERRORS = (UpstreamError, httpx.TransportError)

Fetcher = Callable[[], Awaitable[Any]]


def query_key(resource: str, owner_email: Optional[str] = None) -> str:
    if owner_email:
        return f"{resource}:{owner_email}"
    return resource


@dataclass
class QueryState:
    """What a view renders for one resource key."""

    data: Any = None
    last_updated_at: Optional[float] = None
    is_refetching: bool = False
    is_error: bool = False
    error: Optional[BaseException] = None
    fresh_until: float = 0.0


class QueryClient:
    """Holds QueryState per key and runs fetches against it."""

    def __init__(
        self,
        *,
        stale_time: float = DEFAULT_STALE_TIME,
        grace_window: float = INITIAL_DATA_GRACE,
        retry_config: Optional[RetryConfig] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.stale_time = stale_time
        self.grace_window = grace_window
        self.retry_config = retry_config or DEFAULT_RETRY_CONFIG
        self._clock = clock
        self._states: Dict[str, QueryState] = {}
        self._in_flight: Dict[str, "asyncio.Task[QueryState]"] = {}
        self.logger = get_logger("portal_client.query")

    def state(self, key: str) -> QueryState:
        if key not in self._states:
            self._states[key] = QueryState()
        return self._states[key]

    def is_in_flight(self, key: str) -> bool:
        return key in self._in_flight

    def hydrate(self, key: str, data: Any) -> bool:
        """Adopt server-provided initial data for ``key``.

        Only applies when the key holds nothing yet. The adopted data counts as
        fresh for the grace window, so mounting does not trigger a request.
        """
        state = self.state(key)
        if state.data is not None or data is None:
            return False

        now = self._clock()
        state.data = data
        state.last_updated_at = now
        state.fresh_until = now + self.grace_window
        self.logger.debug("Hydrated initial data", key=key)
        return True

    def is_stale(self, key: str) -> bool:
        state = self.state(key)
        return state.data is None or self._clock() >= state.fresh_until

    def invalidate(self, key: str) -> None:
        self.state(key).fresh_until = 0.0

    async def fetch(self, key: str, fetcher: Fetcher) -> QueryState:
        """Fetch only when the current data is stale."""
        if not self.is_stale(key):
            return self.state(key)
        return await self.refetch(key, fetcher)

    async def refetch(self, key: str, fetcher: Fetcher) -> QueryState:
        """Force a fetch, joining the in-flight one for ``key`` if there is one."""
        task = self._in_flight.get(key)
        if task is None:
            task = asyncio.ensure_future(self._run(key, fetcher))
            self._in_flight[key] = task
        else:
            self.logger.debug("Joining in-flight request", key=key)
        # a cancelled caller must not cancel the shared request
        return await asyncio.shield(task)

    async def _run(self, key: str, fetcher: Fetcher) -> QueryState:
        state = self.state(key)
        state.is_refetching = True
        try:
            data = await retry_on_exception(RETRYABLE_ERRORS, self.retry_config)(fetcher)()
        except RetryError as exc:
            self._record_error(key, state, exc.last_exception)
        except (PortalException, httpx.HTTPError) as exc:
            self._record_error(key, state, exc)
        except Exception as exc:
            # payload handling bugs still surface as an error state
            self.logger.error("Query fetcher raised", key=key, exc_info=True)
            self._record_error(key, state, exc)
        else:
            now = self._clock()
            state.data = data
            state.last_updated_at = now
            state.fresh_until = now + self.stale_time
            state.is_error = False
            state.error = None
        finally:
            state.is_refetching = False
            self._in_flight.pop(key, None)
        return state

    def _record_error(self, key: str, state: QueryState, error: BaseException) -> None:
        # previous data stays visible
        state.is_error = True
        state.error = error
        self.logger.warning("Query failed", key=key, error=str(error), has_data=state.data is not None)
