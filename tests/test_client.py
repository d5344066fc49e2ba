import asyncio

import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer

from livestream_dl.exceptions import NetworkError
from livestream_dl.models.segment import ByteRange, RemoteResource
from livestream_dl.net.client import HttpClient, is_transient_error


def run_with_server(handlers, scenario, **client_options):
    """Starts an aiohttp server with `handlers`, then runs `scenario(client, url_for)`."""

    async def main():
        app = web.Application()
        for path, handler in handlers.items():
            app.router.add_get(path, handler)
        server = TestServer(app)
        await server.start_server()
        options = {
            "timeout": 5,
            "max_retries": 2,
            "retry_min_delay": 0.01,
            "retry_max_delay": 0.02,
        }
        options.update(client_options)
        try:
            async with HttpClient(**options) as client:
                return await scenario(client, lambda path: str(server.make_url(path)))
        finally:
            await server.close()

    return asyncio.run(main())


def test_client_error_is_terminal():
    calls = []

    async def missing(request):
        calls.append(request.path)
        return web.Response(status=404)

    async def scenario(client, url_for):
        with pytest.raises(NetworkError) as excinfo:
            await client.get(url_for("/missing.m3u8"))
        return excinfo.value

    error = run_with_server({"/missing.m3u8": missing}, scenario)
    assert error.status == 404
    assert error.url.endswith("/missing.m3u8")
    assert calls == ["/missing.m3u8"]


def test_server_errors_are_retried():
    calls = []

    async def flaky(request):
        calls.append(request.path)
        if len(calls) < 3:
            return web.Response(status=503)
        return web.Response(body=b"#EXTM3U\n")

    async def scenario(client, url_for):
        return await client.get(url_for("/flaky.m3u8"))

    result = run_with_server({"/flaky.m3u8": flaky}, scenario)
    assert result.data == b"#EXTM3U\n"
    assert len(calls) == 3


def test_retries_are_bounded():
    calls = []

    async def broken(request):
        calls.append(request.path)
        return web.Response(status=500)

    async def scenario(client, url_for):
        with pytest.raises(NetworkError) as excinfo:
            await client.get(url_for("/broken.ts"))
        return excinfo.value

    error = run_with_server({"/broken.ts": broken}, scenario, max_retries=1)
    assert error.status == 500
    assert len(calls) == 2


def test_result_carries_effective_url_after_redirect():
    async def old(request):
        raise web.HTTPFound("/moved/index.m3u8")

    async def moved(request):
        return web.Response(body=b"#EXTM3U\n")

    async def scenario(client, url_for):
        return await client.get(url_for("/index.m3u8"))

    result = run_with_server({"/index.m3u8": old, "/moved/index.m3u8": moved}, scenario)
    assert result.url.endswith("/moved/index.m3u8")


def test_fetch_sends_range_header():
    async def echo(request):
        return web.Response(text=request.headers.get("Range", "none"))

    async def scenario(client, url_for):
        ranged = await client.fetch(RemoteResource(url_for("/seg.ts"), ByteRange(50, 100)))
        whole = await client.fetch(RemoteResource(url_for("/seg.ts")))
        return ranged.data, whole.data

    assert run_with_server({"/seg.ts": echo}, scenario) == (b"bytes=100-149", b"none")


def test_extra_query_is_appended_to_requests():
    async def echo(request):
        return web.Response(text=request.query_string)

    async def scenario(client, url_for):
        return (await client.get(url_for("/seg.ts"))).data

    body = run_with_server({"/seg.ts": echo}, scenario, extra_query=[("token", "abc")])
    assert body == b"token=abc"


def test_transient_error_classification():
    assert is_transient_error(NetworkError(502, "https://example.com"))
    assert not is_transient_error(NetworkError(403, "https://example.com"))
    assert is_transient_error(asyncio.TimeoutError())
    assert not is_transient_error(ValueError("boom"))
