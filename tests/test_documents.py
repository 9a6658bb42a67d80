import httpx
import pytest
import respx

from carriers.documents import DocumentApiError, DocumentClient, is_transient

URL = "https://docs.test/api/packing-slips"


@pytest.fixture
def documents():
    # no backoff in tests
    return DocumentClient(retry_attempts=3, retry_delay=0)


def test_transient_classification():
    request = httpx.Request("POST", URL)
    assert is_transient(httpx.HTTPStatusError("boom", request=request, response=httpx.Response(502)))
    assert not is_transient(httpx.HTTPStatusError("bad", request=request, response=httpx.Response(422)))
    assert is_transient(httpx.ConnectTimeout("slow"))
    assert is_transient(httpx.ReadError("reset"))
    assert is_transient(httpx.RemoteProtocolError("peer closed"))
    assert not is_transient(httpx.UnsupportedProtocol("ftp"))
    assert not is_transient(httpx.ProxyError("proxy refused"))
    assert not is_transient(ValueError("nope"))


@pytest.mark.asyncio
@respx.mock
async def test_server_errors_are_retried(documents):
    route = respx.post(URL).mock(
        side_effect=[httpx.Response(503), httpx.Response(500), httpx.Response(200, json={"ok": True})]
    )

    data = await documents.post_json(URL, {"location": "Sydney"})

    assert data == {"ok": True}
    assert route.call_count == 3


@pytest.mark.asyncio
@respx.mock
async def test_client_errors_are_not_retried(documents):
    route = respx.post(URL).mock(return_value=httpx.Response(400, text="missing batch"))

    with pytest.raises(DocumentApiError) as excinfo:
        await documents.post_json(URL, {})

    assert route.call_count == 1
    assert excinfo.value.status_code == 400
    assert str(excinfo.value).startswith("API call failed after 1 attempts")


@pytest.mark.asyncio
@respx.mock
async def test_exhausted_retries_message(documents):
    route = respx.post(URL).mock(return_value=httpx.Response(502, text="bad gateway"))

    with pytest.raises(DocumentApiError) as excinfo:
        await documents.post_json(URL, {})

    assert route.call_count == 3
    assert excinfo.value.attempts == 3
    assert str(excinfo.value) == "API call failed after 3 attempts: HTTP 502: bad gateway"


@pytest.mark.asyncio
@respx.mock
async def test_connection_errors_are_retried(documents):
    route = respx.get(URL).mock(side_effect=[httpx.ConnectError("refused"), httpx.Response(200, content=b"%PDF")])

    assert await documents.get_bytes(URL) == b"%PDF"
    assert route.call_count == 2


@pytest.mark.asyncio
@respx.mock
async def test_proxy_errors_are_not_retried(documents):
    route = respx.get(URL).mock(side_effect=httpx.ProxyError("proxy refused"))

    with pytest.raises(DocumentApiError) as excinfo:
        await documents.get_bytes(URL)

    assert route.call_count == 1
    assert str(excinfo.value) == "API call failed after 1 attempts: proxy refused"


@pytest.mark.asyncio
async def test_missing_url_fails_without_calling(documents):
    with pytest.raises(DocumentApiError):
        await documents.post_json("", {})


@pytest.mark.asyncio
@respx.mock
async def test_non_object_body_is_wrapped(documents):
    respx.post(URL).mock(return_value=httpx.Response(200, json=[1, 2]))
    assert await documents.post_json(URL, {}) == {"data": [1, 2]}


def test_invalid_retry_settings():
    with pytest.raises(ValueError):
        DocumentClient(retry_attempts=0)
