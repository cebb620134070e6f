"""
Bidirectional lookup between Slack channel names and IRC channel names.
"""
import logging
from typing import Dict, List, Mapping, Optional

from slackirc.errors import ConfigurationError

logger = logging.getLogger(__name__)

IRC_CHANNEL_PREFIXES = ("#", "&", "+", "!")


def normalize_slack_channel(name: str) -> str:
    """Slack channel names are matched without their leading '#'."""
    return name[1:] if name.startswith("#") else name


def normalize_irc_channel(name: str) -> str:
    return name.lower()


class ChannelMapper:
    """Immutable Slack <-> IRC channel mapping built from configuration."""

    def __init__(self, channel_mapping: Mapping[str, str]):
        if not isinstance(channel_mapping, Mapping):
            raise ConfigurationError("Invalid channel mapping given")
        if not channel_mapping:
            raise ConfigurationError("Channel mapping must not be empty")

        self._forward: Dict[str, str] = {}
        self._inverse: Dict[str, str] = {}
        self._keys: Dict[str, str] = {}

        for slack_channel, irc_value in channel_mapping.items():
            if not isinstance(slack_channel, str) or not normalize_slack_channel(slack_channel.strip()):
                raise ConfigurationError(f"Invalid Slack channel in mapping: {slack_channel!r}")
            if not isinstance(irc_value, str) or not irc_value.strip():
                raise ConfigurationError(f"Invalid IRC channel for {slack_channel}: {irc_value!r}")

            # "#chan password" -> "#chan", the password is only needed to join
            irc_parts = irc_value.split()
            irc_channel = normalize_irc_channel(irc_parts[0])
            if not irc_channel.startswith(IRC_CHANNEL_PREFIXES) or len(irc_channel) < 2:
                raise ConfigurationError(
                    f"IRC channel {irc_parts[0]!r} for {slack_channel} must start with one of "
                    f"{' '.join(IRC_CHANNEL_PREFIXES)}"
                )

            slack_name = normalize_slack_channel(slack_channel.strip())
            if slack_name in self._forward:
                raise ConfigurationError(f"Slack channel {slack_name} is mapped more than once")
            if irc_channel in self._inverse:
                raise ConfigurationError(f"IRC channel {irc_channel} is mapped more than once")

            self._forward[slack_name] = irc_channel
            self._inverse[irc_channel] = slack_name
            if len(irc_parts) > 1:
                self._keys[irc_channel] = irc_parts[1]

        logger.debug(f"Channel mapping loaded with {len(self._forward)} pairs")

    def forward(self, slack_channel: str) -> Optional[str]:
        """IRC channel for a Slack channel name, with or without '#'."""
        return self._forward.get(normalize_slack_channel(slack_channel))

    def inverse(self, irc_channel: str) -> Optional[str]:
        """Slack channel name (no '#') for an IRC channel."""
        return self._inverse.get(normalize_irc_channel(irc_channel))

    def channel_key(self, irc_channel: str) -> Optional[str]:
        return self._keys.get(normalize_irc_channel(irc_channel))

    @property
    def irc_channels(self) -> List[str]:
        return list(self._inverse)

    def __len__(self) -> int:
        return len(self._forward)

    def __contains__(self, irc_channel: str) -> bool:
        return self.inverse(irc_channel) is not None
