"""Adapters package entry.

Provides a factory to obtain adapters by channel string.
"""
from typing import Dict

from sociobot.adapters.base_channel_adapter import ChannelAdapter
from sociobot.adapters.meta_cloud_adapter import MetaCloudAdapter


_ADAPTERS: Dict[str, ChannelAdapter] = {
    "whatsapp": MetaCloudAdapter(),
}


def get_adapter_for_channel(channel: str) -> ChannelAdapter:
    """Return a singleton adapter instance for the given channel."""
    adapter = _ADAPTERS.get(channel)
    if adapter is None:
        raise ValueError(f"No adapter for channel: {channel}")
    return adapter
