"""Relay core: channel mapping, text conversion, muting and the join quiet period."""

from .channel_mapper import ChannelMapper
from .join_quiet_queue import JoinQuietQueue
from .mute_filter import MuteFilter
from .router import RelayRouter
from .text_transformer import SlackTextTransformer

__all__ = [
    "ChannelMapper",
    "JoinQuietQueue",
    "MuteFilter",
    "RelayRouter",
    "SlackTextTransformer"
]
