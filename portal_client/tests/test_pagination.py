"""
Unit tests for the cursor pagination accumulator.
"""

import asyncio

import pytest

from shared.test_helpers import TestDataFactory
from portal_client.pagination import CursorPaginator, Page, PaginationState


class FakeUpstream:
    """Serves cursor pages per scope and records every request."""

    def __init__(self, pages):
        self.pages = pages
        self.requests = []

    async def fetch_page(self, scope, cursor):
        self.requests.append((scope, cursor))
        return self.pages[(scope, cursor)]


class TestPage:
    def test_from_response(self):
        page = Page.from_response({"procesos": [1, 2], "nextCursor": "abc", "hasMore": True}, "procesos")
        assert page == Page(items=[1, 2], next_cursor="abc", has_more=True)

    def test_has_more_derived_from_cursor_when_missing(self):
        assert Page.from_response({"procesos": [], "nextCursor": "abc"}, "procesos").has_more is True
        assert Page.from_response({"procesos": []}, "procesos").has_more is False

    def test_has_more_without_cursor_is_terminal(self):
        assert Page.from_response({"procesos": [], "hasMore": True}, "procesos").has_more is False


class TestCursorPaginator:
    @pytest.fixture
    def first_page(self):
        return Page(items=TestDataFactory.create_test_procesos(200), next_cursor="abc", has_more=True)

    @pytest.fixture
    def second_page(self):
        return Page(items=TestDataFactory.create_test_procesos(50, start=200), next_cursor=None, has_more=False)

    @pytest.mark.asyncio
    async def test_accumulates_pages_in_arrival_order(self, first_page, second_page):
        upstream = FakeUpstream({("ALL", None): first_page, ("ALL", "abc"): second_page})
        paginator = CursorPaginator(upstream.fetch_page, scope="ALL")
        assert paginator.state == PaginationState.EMPTY

        await paginator.load_first()
        assert paginator.state == PaginationState.LOADED
        assert await paginator.load_more() is True

        assert len(paginator.items) == 250
        assert [row["idProceso"] for row in paginator.items] == [f"PROC-{i:05d}" for i in range(250)]
        assert paginator.has_more is False

        assert await paginator.load_more() is False
        assert await paginator.load_more() is False
        assert upstream.requests == [("ALL", None), ("ALL", "abc")]

    @pytest.mark.asyncio
    async def test_load_more_is_ignored_while_loading(self, first_page, second_page):
        gate = asyncio.Event()

        async def fetch_page(scope, cursor):
            if cursor is None:
                return first_page
            await gate.wait()
            return second_page

        paginator = CursorPaginator(fetch_page, scope="ALL")
        await paginator.load_first()

        pending = asyncio.ensure_future(paginator.load_more())
        await asyncio.sleep(0)
        assert paginator.state == PaginationState.LOADING_MORE
        assert await paginator.load_more() is False

        gate.set()
        assert await pending is True
        assert len(paginator.items) == 250

    @pytest.mark.asyncio
    async def test_scope_change_resets_and_reseeds(self, first_page):
        own_rows = Page(items=TestDataFactory.create_test_procesos(3, owner="ana@transperuana.com.pe"))
        upstream = FakeUpstream({("ALL", None): first_page, ("ana@transperuana.com.pe", None): own_rows})
        paginator = CursorPaginator(upstream.fetch_page, scope="ALL")
        await paginator.load_first()

        await paginator.set_scope("ana@transperuana.com.pe")

        assert len(paginator.items) == 3
        assert all(row["usuario"] == "ana@transperuana.com.pe" for row in paginator.items)
        assert paginator.has_more is False

    @pytest.mark.asyncio
    async def test_results_for_a_previous_scope_are_dropped(self, first_page, second_page):
        gate = asyncio.Event()
        own_rows = Page(items=TestDataFactory.create_test_procesos(3, owner="ana@transperuana.com.pe"))

        async def fetch_page(scope, cursor):
            if scope == "ALL" and cursor == "abc":
                await gate.wait()
                return second_page
            if scope == "ALL":
                return first_page
            return own_rows

        paginator = CursorPaginator(fetch_page, scope="ALL")
        await paginator.load_first()
        pending = asyncio.ensure_future(paginator.load_more())
        await asyncio.sleep(0)

        await paginator.set_scope("ana@transperuana.com.pe")
        gate.set()

        assert await pending is False
        assert len(paginator.items) == 3

    @pytest.mark.asyncio
    async def test_refresh_starts_over(self, first_page, second_page):
        upstream = FakeUpstream({("ALL", None): first_page, ("ALL", "abc"): second_page})
        paginator = CursorPaginator(upstream.fetch_page, scope="ALL")
        await paginator.load_first()
        await paginator.load_more()

        await paginator.refresh()

        assert len(paginator.items) == 200
        assert paginator.has_more is True

    @pytest.mark.asyncio
    async def test_failed_load_more_keeps_items(self, first_page):
        async def fetch_page(scope, cursor):
            if cursor is None:
                return first_page
            raise RuntimeError("upstream down")

        paginator = CursorPaginator(fetch_page, scope="ALL")
        await paginator.load_first()

        with pytest.raises(RuntimeError):
            await paginator.load_more()

        assert paginator.state == PaginationState.LOADED
        assert len(paginator.items) == 200

    def test_seed_from_initial_data(self, first_page):
        paginator = CursorPaginator(lambda scope, cursor: None, scope="ALL")

        paginator.seed(first_page)

        assert paginator.state == PaginationState.LOADED
        assert paginator.next_cursor == "abc"
