"""Tests for the URL frontier."""

import asyncio

import pytest

from sitecrawler.crawler.url_frontier import URLFrontier, dedup_key


async def settle():
    """Let other tasks run until they block."""
    for _ in range(5):
        await asyncio.sleep(0)


class TestDedupKey:
    """Test cases for dedup_key."""

    def test_strips_fragment(self):
        assert dedup_key("https://x/a#section") == "https://x/a"

    def test_strips_single_trailing_slash(self):
        assert dedup_key("https://x/a/") == "https://x/a"
        assert dedup_key("https://x/a//") == "https://x/a/"

    def test_strips_fragment_then_slash(self):
        assert dedup_key("https://x/a/#top") == "https://x/a"

    def test_uses_last_hash(self):
        assert dedup_key("https://x/a#b#c") == "https://x/a#b"

    def test_plain_url_unchanged(self):
        assert dedup_key("https://x/a?q=1") == "https://x/a?q=1"


class TestURLFrontier:
    """Test cases for URLFrontier."""

    @pytest.fixture
    def frontier(self):
        return URLFrontier()

    @pytest.mark.asyncio
    async def test_add_urls_deduplicates_variants(self, frontier):
        added = await frontier.add_urls([
            "https://x/a", "https://x/a/", "https://x/a#frag", "https://x/b"
        ])

        assert added == 2
        assert frontier.get_stats() == {'pending': 2, 'in_flight': 0, 'seen': 2, 'waiters': 0}

    @pytest.mark.asyncio
    async def test_add_url_reports_new(self, frontier):
        assert await frontier.add_url("https://x/a") is True
        assert await frontier.add_url("https://x/a/") is False

    @pytest.mark.asyncio
    async def test_dequeue_moves_url_in_flight(self, frontier):
        await frontier.add_urls(["https://x/a"])

        url = await frontier.dequeue_or_suspend()

        assert url == "https://x/a"
        stats = frontier.get_stats()
        assert stats['pending'] == 0
        assert stats['in_flight'] == 1
        assert not frontier.is_done()

    @pytest.mark.asyncio
    async def test_dequeue_on_done_frontier_returns_terminal(self, frontier):
        assert frontier.is_done()
        assert await frontier.dequeue_or_suspend() is None

    @pytest.mark.asyncio
    async def test_seen_urls_are_never_requeued(self, frontier):
        await frontier.add_urls(["https://x/a"])
        url = await frontier.dequeue_or_suspend()
        await frontier.mark_done(url)

        assert await frontier.add_urls(["https://x/a/", "https://x/a#x"]) == 0
        assert await frontier.dequeue_or_suspend() is None
        assert frontier.get_stats()['seen'] == 1

    @pytest.mark.asyncio
    async def test_waiter_is_woken_by_add(self, frontier):
        await frontier.add_urls(["https://x/a"])
        first = await frontier.dequeue_or_suspend()

        waiter = asyncio.create_task(frontier.dequeue_or_suspend())
        await settle()
        assert not waiter.done()
        assert frontier.get_stats()['waiters'] == 1

        await frontier.add_urls(["https://x/b"])
        assert await asyncio.wait_for(waiter, timeout=1) == "https://x/b"
        assert first == "https://x/a"
        assert frontier.get_stats()['waiters'] == 0

    @pytest.mark.asyncio
    async def test_waiters_see_terminal_when_last_item_done(self, frontier):
        await frontier.add_urls(["https://x/a"])
        url = await frontier.dequeue_or_suspend()

        waiters = [asyncio.create_task(frontier.dequeue_or_suspend()) for _ in range(3)]
        await settle()
        assert not any(w.done() for w in waiters)

        await frontier.mark_done(url)

        results = await asyncio.wait_for(asyncio.gather(*waiters), timeout=1)
        assert results == [None, None, None]

    @pytest.mark.asyncio
    async def test_only_available_items_are_handed_out(self, frontier):
        await frontier.add_urls(["https://x/root"])
        root = await frontier.dequeue_or_suspend()

        waiters = [asyncio.create_task(frontier.dequeue_or_suspend()) for _ in range(3)]
        await settle()

        await frontier.add_urls(["https://x/only"])
        await settle()

        finished = [w for w in waiters if w.done()]
        assert len(finished) == 1
        assert finished[0].result() == "https://x/only"
        assert frontier.get_stats()['waiters'] == 2

        await frontier.mark_done("https://x/only")
        await frontier.mark_done(root)
        results = await asyncio.wait_for(
            asyncio.gather(*[w for w in waiters if w not in finished]), timeout=1
        )
        assert results == [None, None]

    @pytest.mark.asyncio
    async def test_force_wake_without_cancel_resuspends(self, frontier):
        await frontier.add_urls(["https://x/a"])
        await frontier.dequeue_or_suspend()

        waiter = asyncio.create_task(frontier.dequeue_or_suspend())
        await settle()

        frontier.force_wake_all()
        await settle()

        assert not waiter.done()
        assert frontier.get_stats()['waiters'] == 1

        waiter.cancel()
        with pytest.raises(asyncio.CancelledError):
            await waiter

    @pytest.mark.asyncio
    async def test_force_wake_after_cancel_releases_waiters(self, frontier):
        await frontier.add_urls(["https://x/a", "https://x/b"])
        await frontier.dequeue_or_suspend()
        await frontier.dequeue_or_suspend()

        waiters = [asyncio.create_task(frontier.dequeue_or_suspend()) for _ in range(4)]
        await settle()
        assert frontier.get_stats()['waiters'] == 4

        frontier.cancel_event.set()
        frontier.force_wake_all()

        results = await asyncio.wait_for(asyncio.gather(*waiters), timeout=1)
        assert results == [None] * 4
        assert frontier.get_stats()['waiters'] == 0

    @pytest.mark.asyncio
    async def test_cancelled_frontier_serves_no_more_urls(self, frontier):
        await frontier.add_urls(["https://x/a"])
        frontier.cancel_event.set()

        assert await frontier.dequeue_or_suspend() is None

    @pytest.mark.asyncio
    async def test_cancelled_waiter_unregisters(self, frontier):
        await frontier.add_urls(["https://x/a"])
        await frontier.dequeue_or_suspend()

        waiter = asyncio.create_task(frontier.dequeue_or_suspend())
        await settle()
        waiter.cancel()
        with pytest.raises(asyncio.CancelledError):
            await waiter

        assert frontier.get_stats()['waiters'] == 0

    @pytest.mark.asyncio
    async def test_is_empty_tracks_pending_only(self, frontier):
        assert await frontier.is_empty()
        await frontier.add_urls(["https://x/a"])
        assert not await frontier.is_empty()
        await frontier.dequeue_or_suspend()
        assert await frontier.is_empty()
        assert not frontier.is_done()
