"""Network clients for the Slack and IRC sides of a bridge."""

from .irc_client import IrcClientManager
from .slack_client import SlackClientManager
from .client_factory import ClientFactory

__all__ = [
    "IrcClientManager",
    "SlackClientManager",
    "ClientFactory"
]
