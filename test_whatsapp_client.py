#!/usr/bin/env python3
"""
Tests for the Meta Cloud API client
"""
import asyncio
import json
from unittest.mock import patch

import httpx

from sociobot import whatsapp_client

_RealAsyncClient = httpx.AsyncClient


def _mock_client(handler):
    transport = httpx.MockTransport(handler)
    return lambda **kwargs: _RealAsyncClient(transport=transport, **kwargs)


def _configured():
    return [
        patch.object(whatsapp_client.config, "PHONE_NUMBER_ID", "12345"),
        patch.object(whatsapp_client.config, "WHATSAPP_TOKEN", "token"),
        patch.object(whatsapp_client.config, "GRAPH_API_URL", "https://graph.test/v19.0"),
    ]


def _with(patches, coro_factory):
    for p in patches:
        p.start()
    try:
        return asyncio.run(coro_factory())
    finally:
        for p in reversed(patches):
            p.stop()


def test_send_text_with_quote():
    requests = []

    def handler(request):
        requests.append(request)
        return httpx.Response(200, json={"messages": [{"id": "wamid.out"}]})

    patches = _configured() + [patch.object(whatsapp_client.httpx, "AsyncClient", _mock_client(handler))]
    result = _with(patches, lambda: whatsapp_client.send_whatsapp_text("549111", "hola", reply_to="wamid.in"))

    assert result == {"messages": [{"id": "wamid.out"}]}
    request = requests[0]
    assert str(request.url) == "https://graph.test/v19.0/12345/messages"
    assert request.headers["Authorization"] == "Bearer token"
    body = json.loads(request.content)
    assert body["to"] == "549111"
    assert body["text"] == {"body": "hola"}
    assert body["context"] == {"message_id": "wamid.in"}


def test_send_text_without_quote_has_no_context():
    requests = []

    def handler(request):
        requests.append(request)
        return httpx.Response(200, json={})

    patches = _configured() + [patch.object(whatsapp_client.httpx, "AsyncClient", _mock_client(handler))]
    _with(patches, lambda: whatsapp_client.send_whatsapp_text("549111", "hola"))
    assert "context" not in json.loads(requests[0].content)


def test_send_text_unconfigured_returns_none():
    patches = [patch.object(whatsapp_client.config, "PHONE_NUMBER_ID", None)]
    assert _with(patches, lambda: whatsapp_client.send_whatsapp_text("549111", "hola")) is None


def test_send_text_http_error_propagates():
    handler = lambda request: httpx.Response(401, json={"error": {"message": "invalid token"}})
    patches = _configured() + [patch.object(whatsapp_client.httpx, "AsyncClient", _mock_client(handler))]
    try:
        _with(patches, lambda: whatsapp_client.send_whatsapp_text("549111", "hola"))
        assert False, "HTTP error should propagate"
    except httpx.HTTPStatusError as e:
        assert e.response.status_code == 401


def test_download_media_follows_media_url():
    def handler(request):
        if request.url.path == "/v19.0/media-1":
            return httpx.Response(200, json={"url": "https://cdn.test/voice", "mime_type": "audio/ogg"})
        assert request.headers["Authorization"] == "Bearer token"
        return httpx.Response(200, content=b"OggS")

    patches = _configured() + [patch.object(whatsapp_client.httpx, "AsyncClient", _mock_client(handler))]
    data, mime = _with(patches, lambda: whatsapp_client.download_media("media-1"))
    assert data == b"OggS"
    assert mime == "audio/ogg"


if __name__ == "__main__":
    test_send_text_with_quote()
    test_send_text_without_quote_has_no_context()
    test_send_text_unconfigured_returns_none()
    test_send_text_http_error_propagates()
    test_download_media_follows_media_url()
    print("✅ ALL TESTS PASSED!")
