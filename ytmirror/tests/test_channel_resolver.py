import httpx
import pytest

from conftest import FakeClock
from ytmirror.core.errors import QuotaExhaustedError
from ytmirror.services import channel_resolver
from ytmirror.services.quota_ledger import QuotaLedger
from ytmirror.services.youtube_client import YouTubeDataClient

pytest_plugins = ("pytest_asyncio",)


def _client(handler, *, api_key: str | None = "dummy-key", ledger: QuotaLedger | None = None) -> YouTubeDataClient:
    return YouTubeDataClient(
        httpx.AsyncClient(transport=httpx.MockTransport(handler)),
        api_key=api_key,
        ledger=ledger,
        base_url="https://youtube.test/v3",
    )


def test_extract_channel_id_passes_through_raw_id() -> None:
    channel_id = "UC" + "A" * 22
    assert channel_resolver.extract_channel_id(channel_id) == channel_id
    assert channel_resolver.extract_channel_id(f"  {channel_id}\n") == channel_id


def test_extract_channel_id_from_urls() -> None:
    channel_id = "UC" + "B" * 22
    assert channel_resolver.extract_channel_id(f"https://www.youtube.com/channel/{channel_id}") == channel_id
    assert (
        channel_resolver.extract_channel_id(f"https://www.youtube.com/feeds/videos.xml?channel_id={channel_id}")
        == channel_id
    )


@pytest.mark.parametrize(
    "raw, message",
    [
        ("", "Empty channel identifier"),
        ("@demo", "must be resolved"),
        ("https://www.youtube.com/watch?v=abc", "Unsupported YouTube URL format"),
        ("not-a-channel", "Unsupported channel identifier format"),
    ],
)
def test_extract_channel_id_rejects(raw: str, message: str) -> None:
    with pytest.raises(channel_resolver.ChannelResolutionError, match=message):
        channel_resolver.extract_channel_id(raw)


def test_extract_handle_from_url() -> None:
    assert channel_resolver.extract_handle("https://www.youtube.com/@demo/videos") == "@demo"
    assert channel_resolver.extract_handle("UC" + "A" * 22) is None


@pytest.mark.asyncio
async def test_resolve_handle_through_client() -> None:
    channel_id = "UC" + "B" * 22

    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.params["forHandle"] == "demo"
        assert request.url.params["part"] == "id"
        assert request.url.params["key"] == "dummy-key"
        return httpx.Response(200, json={"items": [{"id": channel_id}]})

    assert await channel_resolver.resolve_channel_identifier("@demo", _client(handler)) == channel_id


@pytest.mark.asyncio
async def test_resolve_handle_requires_credentials() -> None:
    client = _client(lambda request: httpx.Response(200, json={}), api_key=None)

    with pytest.raises(channel_resolver.ChannelResolutionError, match="requires YouTube credentials"):
        await channel_resolver.resolve_channel_identifier("@demo", client)
    with pytest.raises(channel_resolver.ChannelResolutionError, match="requires YouTube credentials"):
        await channel_resolver.resolve_channel_identifier("@demo", None)


@pytest.mark.asyncio
async def test_resolve_handle_not_found() -> None:
    client = _client(lambda request: httpx.Response(200, json={"items": []}))

    with pytest.raises(channel_resolver.ChannelResolutionError, match="not found"):
        await channel_resolver.resolve_channel_identifier("@missing", client)


@pytest.mark.asyncio
async def test_resolve_handle_http_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("boom", request=request)

    with pytest.raises(channel_resolver.ChannelResolutionError, match="Unable to contact YouTube Data API"):
        await channel_resolver.resolve_channel_identifier("@demo", _client(handler))


@pytest.mark.asyncio
async def test_resolve_handle_propagates_quota_exhaustion(clock: FakeClock) -> None:
    ledger = QuotaLedger(units_budget=0, clock=clock)
    client = _client(lambda request: httpx.Response(200, json={"items": []}), ledger=ledger)

    with pytest.raises(QuotaExhaustedError):
        await channel_resolver.resolve_channel_identifier("@demo", client)


@pytest.mark.asyncio
async def test_resolve_raw_id_needs_no_client() -> None:
    channel_id = "UC" + "C" * 22
    assert await channel_resolver.resolve_channel_identifier(channel_id, None) == channel_id
