"""
Content and author based suppression of relayed messages.
"""
from typing import Iterable, Optional, Tuple

from slackirc.core.models import Network

SLACKBOT_USER_ID = "USLACKBOT"


class MuteFilter:
    """Immutable block rules: muted users per network plus muted substrings."""

    def __init__(self, slack_users: Iterable[str] = (), irc_users: Iterable[str] = (),
                 words: Iterable[str] = (), mute_slackbot: bool = False):
        self._users = {
            Network.SLACK: frozenset(slack_users),
            Network.IRC: frozenset(irc_users),
        }
        self._words: Tuple[str, ...] = tuple(word.lower() for word in words if word)
        self.mute_slackbot = mute_slackbot

    @classmethod
    def from_config(cls, config) -> "MuteFilter":
        return cls(
            slack_users=config.mute_users.slack,
            irc_users=config.mute_users.irc,
            words=config.mute_words,
            mute_slackbot=config.mute_slackbot,
        )

    def is_muted(self, network: Network, author: str, text: Optional[str],
                 author_id: Optional[str] = None) -> bool:
        """True if the author is muted on its network or the text holds a muted word."""
        if network is Network.SLACK and self.mute_slackbot and author_id == SLACKBOT_USER_ID:
            return True
        if author in self._users[network]:
            return True
        return self.contains_muted_word(text)

    def contains_muted_word(self, text: Optional[str]) -> bool:
        lowered = (text or "").lower()
        return any(word in lowered for word in self._words)
