"""
Client factory for one bridge: builds the IRC and Slack clients and wires
both of them to a shared relay router.
"""
import logging
from typing import Any, Callable, Dict, Optional

from slackirc.clients.irc_client import IrcClientManager
from slackirc.clients.slack_client import SlackClientManager
from slackirc.config.settings import BridgeConfig
from slackirc.core.channel_mapper import ChannelMapper
from slackirc.core.router import RelayRouter
from slackirc.errors import ConfigurationError

logger = logging.getLogger(__name__)


class ClientFactory:
    """Owns the two network clients of a bridge and the router between them."""

    def __init__(self, config: BridgeConfig, on_fatal: Optional[Callable[[], Any]] = None):
        if not config.app_token:
            raise ConfigurationError("Missing configuration field appToken (needed for Slack Socket Mode)")

        self.config = config
        mapper = ChannelMapper(config.channel_mapping)
        self.slack_client = SlackClientManager(config.token, config.app_token)
        self.irc_client = IrcClientManager(
            config, [(channel, mapper.channel_key(channel)) for channel in mapper.irc_channels]
        )
        self.router = RelayRouter(config, self.irc_client, self.slack_client, on_fatal=on_fatal)

        self.irc_client.set_event_handler(self.router.handle)
        self.slack_client.set_event_handler(self.router.handle)

    async def start_all(self) -> None:
        """Start both clients."""
        logger.info(f"Connecting to IRC and Slack for {self.config.nickname}@{self.config.server}")

        await self.slack_client.start()
        await self.irc_client.start()

        logger.info("All clients started successfully")

    async def stop_all(self) -> None:
        """Stop both clients and drop queued relay state."""
        logger.info("Stopping all clients...")

        self.router.close()
        await self.irc_client.stop()
        await self.slack_client.stop()

        logger.info("All clients stopped")

    def get_client_status(self) -> Dict[str, Any]:
        """Get status of both clients."""
        return {
            "bridge": f"{self.config.nickname}@{self.config.server}",
            "irc_client": {
                "running": self.irc_client.is_running,
                "connected": self.irc_client.is_connected,
            },
            "slack_client": {
                "running": self.slack_client.is_running,
            },
            "mapped_channels": len(self.router.channel_mapper),
        }
