"""Tests for the aiohttp page fetcher."""

import asyncio

import pytest
import pytest_asyncio
from aiohttp import web
from aiohttp import test_utils

from sitecrawler import crawl
from sitecrawler.crawler.fetcher import FetchError, WebFetcher


def html_page(title, *links):
    anchors = "".join(f'<a href="{link}">{link}</a>' for link in links)
    return f"<html><head><title>{title}</title></head><body>{anchors}</body></html>"


@pytest_asyncio.fixture
async def site():
    """Small website served by a local aiohttp server."""
    routes = {
        '/': html_page("Home", "/a", "/b#section", "/a/", "http://other.invalid/x"),
        '/a': html_page("Page A", "/", "/b"),
        '/b': html_page("Page B"),
    }

    async def page(request):
        return web.Response(text=routes[request.path], content_type='text/html')

    async def image(request):
        return web.Response(body=b'\x89PNG\r\n\x1a\n', content_type='image/png')

    async def missing(request):
        return web.Response(text=html_page("Not Found", "/"), status=404, content_type='text/html')

    async def large(request):
        return web.Response(text="x" * 5000, content_type='text/html')

    async def huge(request):
        return web.Response(text="x" * (11 * 1024 * 1024), content_type='text/html')

    async def slow(request):
        await asyncio.sleep(1.5)
        return web.Response(text=html_page("Slow", "/"), content_type='text/html')

    app = web.Application()
    for path in routes:
        app.router.add_get(path, page)
    app.router.add_get('/image', image)
    app.router.add_get('/missing', missing)
    app.router.add_get('/large', large)
    app.router.add_get('/huge', huge)
    app.router.add_get('/slow', slow)

    server = test_utils.TestServer(app)
    await server.start_server()
    yield server
    await server.close()


class TestWebFetcher:
    """Test cases for WebFetcher."""

    @pytest.mark.asyncio
    async def test_fetch_page_extracts_title_and_links(self, site):
        root = str(site.make_url('/'))
        async with WebFetcher(user_agent="test-agent") as fetcher:
            page = await fetcher.fetch_page(root)

        assert page.url == root
        assert page.title == "Home"
        assert str(site.make_url('/a')) in page.outgoing_links
        assert str(site.make_url('/b')) in page.outgoing_links
        assert "http://other.invalid/x" in page.outgoing_links

    @pytest.mark.asyncio
    async def test_non_text_content_has_no_links(self, site):
        async with WebFetcher(user_agent="test-agent") as fetcher:
            page = await fetcher.fetch_page(str(site.make_url('/image')))

        assert page.title == ""
        assert page.outgoing_links == ()

    @pytest.mark.asyncio
    async def test_http_error_status_is_parsed(self, site):
        async with WebFetcher(user_agent="test-agent") as fetcher:
            result = await fetcher.fetch(str(site.make_url('/missing')))
            page = await fetcher.fetch_page(str(site.make_url('/missing')))

        assert result.status_code == 404
        assert page.title == "Not Found"

    @pytest.mark.asyncio
    async def test_oversized_content_fails(self, site):
        async with WebFetcher(user_agent="test-agent", max_content_size=100) as fetcher:
            with pytest.raises(FetchError) as exc_info:
                await fetcher.fetch_page(str(site.make_url('/large')))

        assert "size limit" in exc_info.value.reason

    @pytest.mark.asyncio
    async def test_no_limits_by_default(self, site):
        async with WebFetcher(user_agent="test-agent") as fetcher:
            assert fetcher.session.timeout.total is None

            page = await fetcher.fetch_page(str(site.make_url('/huge')))
            slow = await fetcher.fetch_page(str(site.make_url('/slow')))

        assert page.outgoing_links == ()
        assert fetcher.get_stats()['total_bytes_downloaded'] > 10 * 1024 * 1024
        assert slow.title == "Slow"

    @pytest.mark.asyncio
    async def test_configured_timeout_raises_fetch_error(self, site):
        async with WebFetcher(user_agent="test-agent", request_timeout=0.2) as fetcher:
            with pytest.raises(FetchError) as exc_info:
                await fetcher.fetch_page(str(site.make_url('/slow')))

        assert "timeout" in exc_info.value.reason.lower()

    @pytest.mark.asyncio
    async def test_connection_error_raises_fetch_error(self):
        async with WebFetcher(user_agent="test-agent", request_timeout=5) as fetcher:
            with pytest.raises(FetchError) as exc_info:
                await fetcher.fetch_page("http://127.0.0.1:1/")

            assert exc_info.value.url == "http://127.0.0.1:1/"
            assert fetcher.get_stats()['failed_requests'] == 1

    @pytest.mark.asyncio
    async def test_stats_are_counted(self, site):
        async with WebFetcher(user_agent="test-agent") as fetcher:
            await fetcher.fetch(str(site.make_url('/')))
            stats = fetcher.get_stats()
            fetcher.reset_stats()

            assert stats['total_requests'] == 1
            assert stats['successful_requests'] == 1
            assert fetcher.get_stats()['total_requests'] == 0


class TestCrawlOverHTTP:
    """End-to-end crawl against a local server with the default fetcher."""

    @pytest.mark.asyncio
    async def test_crawl_site(self, site):
        root = str(site.make_url('/'))

        async with crawl(root, worker_count=2) as pages:
            urls = await asyncio.wait_for(_collect_urls(pages), timeout=10)

        assert sorted(urls) == sorted([
            root,
            str(site.make_url('/a')),
            str(site.make_url('/b')),
        ])

    @pytest.mark.asyncio
    async def test_slow_page_completes_with_default_config(self, site):
        root = str(site.make_url('/slow'))

        async with crawl(root, worker_count=2) as pages:
            found = [page async for page in pages]

        assert [page.url for page in found] == [root]
        assert found[0].title == "Slow"


async def _collect_urls(pages):
    return [page.url async for page in pages]
