"""Abstract base interface for channel adapters.

Adapters normalize provider-specific payloads to the unified message model
and provide a uniform API for sending responses back through that channel.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from sociobot.models.unified_message import UnifiedMessage


class ChannelAdapter(ABC):
    """Base adapter contract for all channels."""

    @abstractmethod
    def parse_incoming(self, raw: Dict[str, Any]) -> List[UnifiedMessage]:
        """Parse a webhook payload into zero or more `UnifiedMessage`s.

        Payloads that are not actionable (delivery receipts, status updates)
        yield an empty list.
        """
        raise NotImplementedError

    @abstractmethod
    async def send_outgoing(
        self,
        user_id: str,
        message: str,
        reply_to: Optional[str] = None,
    ) -> bool:
        """Send a text back to the user. Returns True if the channel accepted it."""
        raise NotImplementedError

    @abstractmethod
    async def download_audio(self, message: UnifiedMessage) -> Optional[tuple]:
        """Return (bytes, mime_type) for an audio message, or None."""
        raise NotImplementedError
