"""
IRC client manager using pydle.
Translates pydle callbacks into relay events and owns the connection lifecycle:
reconnects with a bounded retry budget and paces outgoing lines.
"""
import asyncio
import logging
from typing import Any, Callable, List, Optional, Tuple

import pydle

from slackirc.config.settings import BridgeConfig
from slackirc.core.events import (
    IrcAbort, IrcError, IrcEvent, IrcInvite, IrcJoin, IrcKick, IrcMessage, IrcMessageKind,
    IrcNick, IrcPart, IrcQuit, IrcRegistered
)

logger = logging.getLogger(__name__)

EventHandler = Callable[[IrcEvent], None]


class BridgeIrcClient(pydle.Client):
    """pydle client that forwards everything it hears to an event handler."""

    # Reconnects are driven by IrcClientManager so the retry budget is ours
    RECONNECT_ON_ERROR = False

    def __init__(self, nickname: str, channels: List[Tuple[str, Optional[str]]],
                 emit: EventHandler, **kwargs):
        super().__init__(nickname, **kwargs)
        self._autojoin = channels
        self._emit = emit

    async def on_connect(self):
        await super().on_connect()
        logger.info(f"Connected to IRC as {self.nickname}")
        self._emit(IrcRegistered(message=self.nickname))
        for channel, key in self._autojoin:
            await self.join(channel, key)

    async def on_channel_message(self, target, by, message):
        await super().on_channel_message(target, by, message)
        if not self.is_same_nick(by, self.nickname):
            self._emit(IrcMessage(author=by, channel=target, text=message))

    async def on_channel_notice(self, target, by, message):
        await super().on_channel_notice(target, by, message)
        if by and not self.is_same_nick(by, self.nickname):
            self._emit(IrcMessage(author=by, channel=target, text=message, kind=IrcMessageKind.NOTICE))

    async def on_ctcp_action(self, by, target, contents):
        if self.is_channel(target) and not self.is_same_nick(by, self.nickname):
            self._emit(IrcMessage(author=by, channel=target, text=contents, kind=IrcMessageKind.ACTION))

    async def on_invite(self, channel, by):
        await super().on_invite(channel, by)
        self._emit(IrcInvite(channel=channel, by=by))

    async def on_join(self, channel, user):
        await super().on_join(channel, user)
        self._emit(IrcJoin(channel=channel, nick=user))

    async def on_part(self, channel, user, message=None):
        await super().on_part(channel, user, message)
        self._emit(IrcPart(channel=channel, nick=user, reason=message))

    async def on_kick(self, channel, target, by, reason=None):
        await super().on_kick(channel, target, by, reason)
        self._emit(IrcKick(channel=channel, nick=target, by=by, reason=reason))

    async def on_nick_change(self, old, new):
        await super().on_nick_change(old, new)
        self._emit(IrcNick(old=old, new=new))

    async def on_quit(self, user, message=None):
        await super().on_quit(user, message)
        # pydle still lists the user in its channels while on_quit runs
        self._emit(IrcQuit(nick=user, reason=message, channels=tuple(self.channels_of(user))))

    def channels_of(self, nick: str) -> List[str]:
        return [
            name for name, info in self.channels.items()
            if any(self.is_same_nick(nick, member) for member in info.get("users", ()))
        ]


class IrcClientManager:
    """Manages the pydle connection for one bridge."""

    def __init__(self, config: BridgeConfig, channels: List[Tuple[str, Optional[str]]]):
        self.config = config
        self.options = config.irc_options
        self.channels = channels
        self.client: Optional[BridgeIrcClient] = None
        self._on_event: Optional[EventHandler] = None
        self._outbound: asyncio.Queue = asyncio.Queue()
        self._connection_task: Optional[asyncio.Task] = None
        self._sender_task: Optional[asyncio.Task] = None
        self._pending: set = set()
        self._is_running = False

    def set_event_handler(self, handler: EventHandler) -> None:
        self._on_event = handler

    def initialize(self) -> None:
        """Create the pydle client."""
        self.client = BridgeIrcClient(
            self.config.nickname,
            self.channels,
            self._emit,
            username=self.options.user_name or self.config.nickname,
            realname=self.options.real_name or self.config.nickname,
        )

    async def start(self) -> None:
        if self._is_running:
            return
        if not self.client:
            self.initialize()

        logger.info(f"Connecting to IRC server {self.config.server}:{self.options.port}")
        self._is_running = True
        self._connection_task = asyncio.create_task(self._maintain_connection())
        self._sender_task = asyncio.create_task(self._consume_outbound())

    async def stop(self) -> None:
        # An abort clears _is_running from inside the connection loop, the sender may still be live
        tasks = [task for task in (self._connection_task, self._sender_task) if task and not task.done()]
        if not self._is_running and not tasks:
            return
        logger.info("Stopping IRC client...")
        self._is_running = False

        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._connection_task = self._sender_task = None

        if self.client and self.client.connected:
            await self.client.quit("Bridge shutting down")
        logger.info("IRC client stopped")

    @property
    def is_running(self) -> bool:
        return self._is_running

    @property
    def is_connected(self) -> bool:
        return bool(self.client and self.client.connected)

    # Outbound primitives used by the router, all fire-and-forget

    def say(self, channel: str, text: str) -> None:
        self._outbound.put_nowait((channel, text))

    def join(self, channel: str) -> None:
        if self.client:
            self._spawn(self.client.join(channel), f"join {channel}")

    def send_raw(self, command: str, *args: str) -> None:
        if self.client:
            self._spawn(self.client.rawmsg(command, *args), f"raw {command}")

    def _emit(self, event: Any) -> None:
        if not self._on_event:
            return
        try:
            self._on_event(event)
        except Exception as e:
            logger.error(f"Error handling IRC event {type(event).__name__}: {e}", exc_info=True)

    def _spawn(self, coro, description: str) -> None:
        task = asyncio.ensure_future(coro)
        self._pending.add(task)

        def _done(finished: asyncio.Task) -> None:
            self._pending.discard(finished)
            if not finished.cancelled() and finished.exception():
                logger.error(f"IRC {description} failed: {finished.exception()}")

        task.add_done_callback(_done)

    async def _maintain_connection(self) -> None:
        """Connect, wait for disconnect, reconnect until the retry budget runs out."""
        failures = 0
        retry_delay = self.options.retry_delay / 1000.0

        while self._is_running:
            try:
                await self.client.connect(
                    hostname=self.config.server,
                    port=self.options.port,
                    tls=self.options.secure,
                    tls_verify=not self.options.self_signed,
                    password=self.options.password,
                )
                failures = 0
                while self.client.connected:
                    await asyncio.sleep(0.5)
                logger.warning(f"Disconnected from IRC, reconnecting in {retry_delay:.1f}s")

            except asyncio.CancelledError:
                raise
            except Exception as e:
                failures += 1
                self._emit(IrcError(error=e))
                if failures > self.options.retry_count:
                    self._is_running = False
                    self._emit(IrcAbort(attempts=failures))
                    return
                logger.warning(f"IRC connect failed (attempt {failures}): {e}")

            await asyncio.sleep(retry_delay)

    async def _consume_outbound(self) -> None:
        delay = self.options.flood_protection_delay / 1000.0

        while True:
            channel, text = await self._outbound.get()
            try:
                if self.is_connected:
                    await self.client.message(channel, text)
                else:
                    logger.warning(f"Not connected to IRC, dropping message for {channel}")
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error(f"Failed to send message to {channel}: {e}")

            if self.options.flood_protection and delay:
                await asyncio.sleep(delay)
