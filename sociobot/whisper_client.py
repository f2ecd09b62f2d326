import httpx
import os
import tempfile
import subprocess
import logging
import asyncio

from . import config

OPENAI_WHISPER_URL = "https://api.openai.com/v1/audio/transcriptions"
logger = logging.getLogger(__name__)

_MIME_EXTENSIONS = (
    ("wav", ".wav"),
    ("mp3", ".mp3"),
    ("mpeg", ".mp3"),
    ("m4a", ".m4a"),
    ("mp4", ".m4a"),
    ("webm", ".webm"),
    ("ogg", ".ogg"),
    ("opus", ".opus"),
)


class TranscriptionError(Exception):
    """Raised when conversion or transcription fails."""


def guess_extension(mime: str = "") -> str:
    """File extension for an audio MIME type; WhatsApp voice notes default to .ogg."""
    m = (mime or "").lower()
    for marker, ext in _MIME_EXTENSIONS:
        if marker in m:
            return ext
    return ".ogg"


def _run_ffmpeg(input_path: str, output_path: str) -> None:
    ffmpeg_cmd = [
        config.FFMPEG_BIN, "-y", "-i", input_path,
        "-acodec", "pcm_s16le", "-ar", "16000", "-ac", "1", output_path,
    ]
    try:
        result = subprocess.run(ffmpeg_cmd, capture_output=True)
    except FileNotFoundError as e:
        raise TranscriptionError(f"ffmpeg not available ({config.FFMPEG_BIN})") from e
    if result.returncode != 0:
        logger.error(f"[STT] ffmpeg conversion failed: {result.stderr.decode(errors='ignore')}")
        raise TranscriptionError("Failed to convert audio to wav for transcription.")


async def convert_to_wav(input_path: str, output_path: str) -> str:
    """Convert any audio container to mono 16 kHz PCM WAV."""
    loop = asyncio.get_running_loop()
    await loop.run_in_executor(None, _run_ffmpeg, input_path, output_path)
    return output_path


async def _transcribe_with_openai_whisper(wav_path: str, language: str) -> str:
    """Transcribe using OpenAI Whisper API"""
    headers = {
        "Authorization": f"Bearer {config.OPENAI_API_KEY}",
    }
    data = {
        "model": config.WHISPER_MODEL,
        "response_format": "text",
        "language": language,
    }
    try:
        with open(wav_path, "rb") as audio_file:
            files = {
                "file": (os.path.basename(wav_path), audio_file, "audio/wav"),
            }
            async with httpx.AsyncClient() as client:
                response = await client.post(OPENAI_WHISPER_URL, headers=headers, data=data, files=files, timeout=60)
        if response.status_code != 200:
            logger.error(f"[STT] Whisper API error {response.status_code}: {response.text}")
            response.raise_for_status()
        return response.text.strip()
    except httpx.HTTPError as e:
        logger.error(f"[STT] OpenAI Whisper transcription failed: {e}")
        raise TranscriptionError(f"OpenAI Whisper transcription failed: {str(e)}") from e


async def transcribe_file(file_path: str, language: str = None) -> str:
    """Convert an audio file to wav and transcribe it. Returns the transcribed text."""
    language = language or config.STT_LANGUAGE
    with tempfile.NamedTemporaryFile(delete=False, suffix=".wav") as wav_tmpfile:
        wav_path = wav_tmpfile.name
    try:
        await convert_to_wav(file_path, wav_path)
        logger.info(f"[STT] Using OpenAI Whisper for transcription")
        return await _transcribe_with_openai_whisper(wav_path, language)
    finally:
        if os.path.exists(wav_path):
            os.unlink(wav_path)


async def transcribe_buffer(data: bytes, mime: str = "audio/ogg", language: str = None) -> str:
    """Transcribe raw audio bytes (e.g. a downloaded voice note)."""
    with tempfile.NamedTemporaryFile(delete=False, suffix=guess_extension(mime)) as tmpfile:
        tmpfile.write(data)
        input_path = tmpfile.name
    try:
        return await transcribe_file(input_path, language)
    finally:
        try:
            os.remove(input_path)
        except OSError:
            logger.warning(f"[STT] Could not delete temp file: {input_path}")
