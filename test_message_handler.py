#!/usr/bin/env python3
"""
Tests for inbound message handling: dedup, voice notes, ping and error replies
"""
import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

from sociobot import message_handler
from sociobot.adapters.base_channel_adapter import ChannelAdapter
from sociobot.agent import AgentReply
from sociobot.dedup import RecentMessages
from sociobot.models.unified_message import MessageType, UnifiedMessage
from sociobot.sheets_client import LogResult, MemberRecord


class FakeAdapter(ChannelAdapter):
    def __init__(self, audio=None, fail_send=False, accept=True):
        self.sent = []
        self.audio = audio
        self.fail_send = fail_send
        self.accept = accept

    def parse_incoming(self, raw):
        return []

    async def send_outgoing(self, user_id, message, reply_to=None):
        if self.fail_send:
            raise RuntimeError("graph api down")
        self.sent.append((user_id, message, reply_to))
        return self.accept

    async def download_audio(self, message):
        return self.audio


REPLY = AgentReply(text="¡Hola Ana!", source="llm", is_member=True, name="Ana", tone="amable")


def _text(content, message_id="wamid.1"):
    return UnifiedMessage(
        channel="whatsapp", user_id="5492664123456", message_type=MessageType.TEXT,
        content=content, message_id=message_id,
    )


def _run(message, adapter=None, run_agent=None, transcribe=None, dedup=None, quote=True):
    adapter = adapter or FakeAdapter()
    log = AsyncMock(return_value=LogResult(ok=True))
    run_agent = run_agent or AsyncMock(return_value=REPLY)
    transcribe = transcribe or AsyncMock(return_value="")
    update_profile = MagicMock()
    with patch.object(message_handler.agent, "lookup_member", AsyncMock(return_value=MemberRecord(True, "Ana"))), \
         patch.object(message_handler.agent, "run_agent", run_agent), \
         patch.object(message_handler.sheets_client, "log_message", log), \
         patch.object(message_handler.whisper_client, "transcribe_buffer", transcribe), \
         patch.object(message_handler.profile_store, "update_profile", update_profile), \
         patch.object(message_handler.config, "WHATSAPP_QUOTE_REPLY", quote):
        result = asyncio.run(message_handler.handle_message(adapter, message, dedup or RecentMessages()))
    return result, adapter, log, run_agent, update_profile


def test_text_message_gets_agent_reply_quoted_and_logged():
    result, adapter, log, run_agent, update_profile = _run(_text("hola"))

    assert result == "¡Hola Ana!"
    assert adapter.sent == [("5492664123456", "¡Hola Ana!", "wamid.1")]
    run_agent.assert_awaited_once_with("5492664123456", "hola")
    directions = [c.kwargs["direction"] for c in log.await_args_list]
    assert directions == ["inbound", "outbound"]
    outbound = log.await_args_list[1].kwargs
    assert outbound["reply"] == "¡Hola Ana!"
    assert outbound["extra"]["source"] == "llm"
    assert "latency_ms" in outbound["extra"]
    update_profile.assert_called_once()


def test_reply_not_quoted_when_disabled():
    _, adapter, _, _, _ = _run(_text("hola"), quote=False)
    assert adapter.sent[0][2] is None


def test_duplicate_delivery_is_ignored():
    dedup = RecentMessages()
    _run(_text("hola"), dedup=dedup)
    result, adapter, log, run_agent, _ = _run(_text("hola"), dedup=dedup)

    assert result is None
    assert adapter.sent == []
    run_agent.assert_not_awaited()
    log.assert_not_awaited()


def test_ping_answers_without_agent():
    result, adapter, _, run_agent, _ = _run(_text("!ping"))
    assert result.startswith("🏓")
    assert len(adapter.sent) == 1
    run_agent.assert_not_awaited()


def test_voice_note_is_transcribed_before_agent():
    voice = UnifiedMessage(
        channel="whatsapp", user_id="5492664123456", message_type=MessageType.AUDIO,
        content="", message_id="wamid.audio", media_id="media-1", mime_type="audio/ogg; codecs=opus",
    )
    adapter = FakeAdapter(audio=(b"OggS", "audio/ogg; codecs=opus"))
    transcribe = AsyncMock(return_value=" quiero retirar mañana ")

    _, _, log, run_agent, _ = _run(voice, adapter=adapter, transcribe=transcribe)

    transcribe.assert_awaited_once_with(b"OggS", "audio/ogg; codecs=opus")
    run_agent.assert_awaited_once_with("5492664123456", "quiero retirar mañana")
    assert log.await_args_list[0].kwargs["extra"]["stt_from_audio"] is True


def test_untranscribable_voice_note_is_skipped():
    voice = UnifiedMessage(
        channel="whatsapp", user_id="549", message_type=MessageType.AUDIO,
        content="", message_id="wamid.audio2", media_id="media-2",
    )
    adapter = FakeAdapter(audio=(b"OggS", "audio/ogg"))
    transcribe = AsyncMock(side_effect=RuntimeError("ffmpeg missing"))

    result, adapter, _, run_agent, _ = _run(voice, adapter=adapter, transcribe=transcribe)

    assert result is None
    assert adapter.sent == []
    run_agent.assert_not_awaited()


def test_agent_error_sends_apology_and_logs_error():
    failing = AsyncMock(side_effect=RuntimeError("boom"))
    result, adapter, log, _, _ = _run(_text("hola", "wamid.err"), run_agent=failing)

    assert result is None
    assert adapter.sent == [("5492664123456", message_handler.ERROR_REPLY, "wamid.err")]
    last = log.await_args_list[-1].kwargs
    assert last["direction"] == "outbound"
    assert last["error"] == "boom"


def test_failed_apology_is_logged_not_raised():
    failing = AsyncMock(side_effect=RuntimeError("boom"))
    result, _, log, _, _ = _run(_text("hola", "wamid.err2"), adapter=FakeAdapter(fail_send=True), run_agent=failing)
    assert result is None
    assert log.await_args_list[-1].kwargs["error"] == "boom"


def test_reply_rejected_by_channel_is_logged_as_not_sent():
    result, adapter, log, _, _ = _run(_text("hola", "wamid.ns"), adapter=FakeAdapter(accept=False))

    assert result is None
    assert len(adapter.sent) == 1
    outbound = log.await_args_list[-1].kwargs
    assert outbound["direction"] == "outbound"
    assert outbound["reply"] == "¡Hola Ana!"
    assert outbound["error"] == message_handler.NOT_SENT_ERROR


def test_ping_rejected_by_channel_is_logged_as_not_sent():
    result, _, log, _, _ = _run(_text("!ping", "wamid.ns2"), adapter=FakeAdapter(accept=False))
    assert result is None
    assert log.await_args_list[-1].kwargs["error"] == "not sent"


if __name__ == "__main__":
    test_text_message_gets_agent_reply_quoted_and_logged()
    test_reply_not_quoted_when_disabled()
    test_duplicate_delivery_is_ignored()
    test_ping_answers_without_agent()
    test_voice_note_is_transcribed_before_agent()
    test_untranscribable_voice_note_is_skipped()
    test_agent_error_sends_apology_and_logs_error()
    test_failed_apology_is_logged_not_raised()
    test_reply_rejected_by_channel_is_logged_as_not_sent()
    test_ping_rejected_by_channel_is_logged_as_not_sent()
    print("✅ ALL TESTS PASSED!")
