import httpx
import pytest

from src.autosend.exceptions import DispatchError, DispatchTimeoutError
from src.autosend.providers.telegram_dispatcher import MAX_MESSAGE_LENGTH, TelegramDispatcher
from tests.helpers.channels import make_channel

pytestmark = pytest.mark.unit


class DummyResponse:
    def __init__(self, status_code: int, json_data: dict):
        self.status_code = status_code
        self._json_data = json_data

    def json(self):
        return self._json_data


class DummyAsyncClient:
    def __init__(self, response):
        self.response = response
        self.requests = []

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        pass

    async def post(self, url, json):
        self.requests.append((url, json))
        if isinstance(self.response, Exception):
            raise self.response
        return self.response


@pytest.mark.asyncio
async def test_send_uses_channel_chat(monkeypatch):
    client = DummyAsyncClient(DummyResponse(200, {"ok": True, "result": {"message_id": 7}}))
    monkeypatch.setattr("httpx.AsyncClient", lambda timeout: client)
    dispatcher = TelegramDispatcher(bot_token="TOKEN", default_chat_id="default")

    receipt = await dispatcher.send(make_channel("c1", dispatch_chat_id="555"), "hello")

    assert receipt.message_id == "7"
    assert receipt.chat_id == "555"
    url, payload = client.requests[0]
    assert url == "https://api.telegram.org/botTOKEN/sendMessage"
    assert payload == {"chat_id": "555", "text": "hello"}


@pytest.mark.asyncio
async def test_send_falls_back_to_default_chat_and_truncates(monkeypatch):
    client = DummyAsyncClient(DummyResponse(200, {"ok": True, "result": {}}))
    monkeypatch.setattr("httpx.AsyncClient", lambda timeout: client)
    dispatcher = TelegramDispatcher(bot_token="TOKEN", default_chat_id="default")

    await dispatcher.send(make_channel("c1"), "x" * (MAX_MESSAGE_LENGTH + 100))

    payload = client.requests[0][1]
    assert payload["chat_id"] == "default"
    assert len(payload["text"]) == MAX_MESSAGE_LENGTH


@pytest.mark.asyncio
async def test_send_without_chat_fails(monkeypatch):
    client = DummyAsyncClient(DummyResponse(200, {"ok": True}))
    monkeypatch.setattr("httpx.AsyncClient", lambda timeout: client)

    with pytest.raises(DispatchError, match="No dispatch chat"):
        await TelegramDispatcher(bot_token="TOKEN").send(make_channel("c1"), "hi")
    assert client.requests == []


@pytest.mark.asyncio
async def test_api_error_is_raised(monkeypatch):
    client = DummyAsyncClient(
        DummyResponse(400, {"ok": False, "description": "Bad Request: chat not found"})
    )
    monkeypatch.setattr("httpx.AsyncClient", lambda timeout: client)

    with pytest.raises(DispatchError, match="chat not found"):
        await TelegramDispatcher(bot_token="TOKEN", default_chat_id="1").send(
            make_channel("c1"), "hi"
        )


@pytest.mark.asyncio
async def test_timeout_is_mapped(monkeypatch):
    client = DummyAsyncClient(httpx.ConnectTimeout("slow"))
    monkeypatch.setattr("httpx.AsyncClient", lambda timeout: client)

    with pytest.raises(DispatchTimeoutError):
        await TelegramDispatcher(bot_token="TOKEN", default_chat_id="1").send(
            make_channel("c1"), "hi"
        )
