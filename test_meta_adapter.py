#!/usr/bin/env python3
"""
Tests for parsing Meta Cloud API webhook payloads and sending through the adapter
"""
import asyncio
from unittest.mock import AsyncMock, patch

from sociobot.adapters import get_adapter_for_channel
from sociobot.adapters.meta_cloud_adapter import MetaCloudAdapter, extract_incoming_text
from sociobot.models.unified_message import MessageType, UnifiedMessage


def _payload(*messages):
    return {"entry": [{"changes": [{"value": {"messages": list(messages)}}]}]}


def test_extract_incoming_text_variants():
    assert extract_incoming_text({"type": "text", "text": {"body": "hola"}}) == "hola"
    assert extract_incoming_text({
        "type": "interactive",
        "interactive": {"type": "button_reply", "button_reply": {"id": "btn_1", "title": "Asociarme"}},
    }) == "Asociarme"
    assert extract_incoming_text({
        "type": "interactive",
        "interactive": {"type": "list_reply", "list_reply": {"id": "cuota"}},
    }) == "cuota"
    assert extract_incoming_text({"type": "image", "image": {"caption": "mi DNI"}}) == "mi DNI"
    assert extract_incoming_text({"type": "sticker"}) == ""
    assert extract_incoming_text({}) == ""


def test_parse_text_and_interactive_messages():
    adapter = MetaCloudAdapter()
    messages = adapter.parse_incoming(_payload(
        {"from": "549111", "id": "wamid.1", "timestamp": "1700000000", "type": "text", "text": {"body": "hola"}},
        {"from": "549222", "id": "wamid.2", "type": "interactive",
         "interactive": {"type": "button_reply", "button_reply": {"id": "b", "title": "Sí"}}},
    ))

    assert [(m.user_id, m.content, m.message_type) for m in messages] == [
        ("549111", "hola", MessageType.TEXT),
        ("549222", "Sí", MessageType.INTERACTIVE),
    ]
    assert messages[0].dedup_key == "wamid.1"
    assert messages[0].channel == "whatsapp"


def test_parse_audio_message():
    messages = MetaCloudAdapter().parse_incoming(_payload(
        {"from": "549111", "id": "wamid.3", "type": "audio",
         "audio": {"id": "media-9", "mime_type": "audio/ogg; codecs=opus", "voice": True}},
    ))
    assert len(messages) == 1
    assert messages[0].has_audio
    assert messages[0].media_id == "media-9"
    assert messages[0].content == ""


def test_messages_without_text_or_sender_are_dropped():
    messages = MetaCloudAdapter().parse_incoming(_payload(
        {"from": "549111", "id": "wamid.4", "type": "sticker", "sticker": {"id": "s"}},
        {"id": "wamid.5", "type": "text", "text": {"body": "sin remitente"}},
        {"from": "549111", "id": "wamid.6", "type": "audio", "audio": {}},
    ))
    assert messages == []
    assert MetaCloudAdapter().parse_incoming({}) == []


def test_malformed_payload_shapes_are_skipped():
    adapter = MetaCloudAdapter()
    assert adapter.parse_incoming([]) == []
    assert adapter.parse_incoming({"entry": "x"}) == []
    assert adapter.parse_incoming({"entry": ["x", {"changes": [None, {"value": []}]}]}) == []
    messages = adapter.parse_incoming(_payload(
        "m",
        {"from": "549111", "id": "wamid.7", "type": "text", "text": "sin objeto"},
        {"from": "549111", "id": "wamid.8", "type": "audio", "audio": "media"},
        {"from": "549111", "id": "wamid.9", "type": "text", "text": {"body": "hola"}},
    ))
    assert [m.message_id for m in messages] == ["wamid.9"]


def test_send_outgoing_passes_quote_through():
    send = AsyncMock(return_value={"messages": [{"id": "wamid.out"}]})
    with patch("sociobot.whatsapp_client.send_whatsapp_text", send):
        ok = asyncio.run(MetaCloudAdapter().send_outgoing("549111", "hola", reply_to="wamid.1"))
    assert ok is True
    send.assert_awaited_once_with("549111", "hola", reply_to="wamid.1")


def test_send_outgoing_reports_unconfigured_channel():
    with patch("sociobot.whatsapp_client.send_whatsapp_text", AsyncMock(return_value=None)):
        assert asyncio.run(MetaCloudAdapter().send_outgoing("549111", "hola")) is False


def test_download_audio_only_for_voice_notes():
    download = AsyncMock(return_value=(b"OggS", "audio/ogg"))
    text = UnifiedMessage(channel="whatsapp", user_id="549", message_type=MessageType.TEXT, content="hola")
    voice = UnifiedMessage(channel="whatsapp", user_id="549", message_type=MessageType.AUDIO, content="", media_id="m1")
    with patch("sociobot.whatsapp_client.download_media", download):
        assert asyncio.run(MetaCloudAdapter().download_audio(text)) is None
        assert asyncio.run(MetaCloudAdapter().download_audio(voice)) == (b"OggS", "audio/ogg")
    download.assert_awaited_once_with("m1")


def test_adapter_factory():
    assert isinstance(get_adapter_for_channel("whatsapp"), MetaCloudAdapter)
    try:
        get_adapter_for_channel("telegram")
        assert False, "unknown channel should raise"
    except ValueError:
        pass


if __name__ == "__main__":
    test_extract_incoming_text_variants()
    test_parse_text_and_interactive_messages()
    test_parse_audio_message()
    test_messages_without_text_or_sender_are_dropped()
    test_malformed_payload_shapes_are_skipped()
    test_send_outgoing_passes_quote_through()
    test_send_outgoing_reports_unconfigured_channel()
    test_download_audio_only_for_voice_notes()
    test_adapter_factory()
    print("✅ ALL TESTS PASSED!")
