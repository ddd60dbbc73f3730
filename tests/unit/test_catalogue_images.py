import httpx
import pytest

from ecoshop.catalogue.images import download, is_allowed_url

STORAGE = ["proj.supabase.co"]
URL = "https://proj.supabase.co/storage/v1/object/public/product-images/raw.png"


def test_only_https_urls_on_allowed_hosts_are_accepted():
    assert is_allowed_url(URL, STORAGE)
    assert is_allowed_url("https://PROJ.supabase.co/x.png", STORAGE)
    assert not is_allowed_url("http://proj.supabase.co/x.png", STORAGE)
    assert not is_allowed_url("https://proj.supabase.co.evil.test/x.png", STORAGE)
    assert not is_allowed_url("https://127.0.0.1/x.png", STORAGE)
    assert not is_allowed_url(URL, [])


@pytest.mark.asyncio
async def test_download_returns_image_bytes():
    async with httpx.AsyncClient(transport=httpx.MockTransport(lambda request: httpx.Response(200, content=b"png"))) as http:
        assert await download(http, URL, allowed_hosts=STORAGE) == b"png"


@pytest.mark.asyncio
async def test_download_refuses_foreign_host_without_request():
    requests = []

    def handler(request):
        requests.append(request)
        return httpx.Response(200, content=b"png")

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
        with pytest.raises(ValueError):
            await download(http, "https://169.254.169.254/latest/meta-data/", allowed_hosts=STORAGE)
    assert requests == []


@pytest.mark.asyncio
async def test_download_does_not_follow_redirects():
    def handler(request):
        if request.url.host == "proj.supabase.co":
            return httpx.Response(302, headers={"location": "http://10.0.0.1/admin"})
        raise AssertionError("redirection suivie")

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
        with pytest.raises(httpx.HTTPStatusError):
            await download(http, URL, allowed_hosts=STORAGE)


@pytest.mark.asyncio
async def test_download_stops_above_size_cap():
    async with httpx.AsyncClient(transport=httpx.MockTransport(lambda request: httpx.Response(200, content=b"x" * 2048))) as http:
        with pytest.raises(ValueError):
            await download(http, URL, allowed_hosts=STORAGE, max_bytes=1024)


@pytest.mark.asyncio
async def test_download_stops_when_body_exceeds_cap_without_length():
    async def body():
        for _ in range(4):
            yield b"x" * 512

    async with httpx.AsyncClient(transport=httpx.MockTransport(lambda request: httpx.Response(200, content=body()))) as http:
        with pytest.raises(ValueError):
            await download(http, URL, allowed_hosts=STORAGE, max_bytes=1024)
