"""
Relay router: the orchestrator between the Slack and IRC clients.

Every inbound event from either network goes through RelayRouter.handle().
Everything runs on one event loop, so the router keeps no locks; the join
quiet-period table is private to the router and is only touched from its
handlers and from the timer callbacks on the same loop.
"""
import sys
from typing import Any, Callable, Dict, List, Optional

import structlog

from slackirc.config.settings import BridgeConfig
from slackirc.core.channel_mapper import ChannelMapper
from slackirc.core.events import (
    Event, IrcAbort, IrcError, IrcInvite, IrcJoin, IrcKick, IrcMessage, IrcMessageKind,
    IrcNick, IrcPart, IrcQuit, IrcRegistered, SlackError, SlackMessage
)
from slackirc.core.interfaces import IrcSink, Scheduler, SlackSink
from slackirc.core.join_quiet_queue import JoinQuietQueue
from slackirc.core.models import Network, SlackChannel, SlackFile
from slackirc.core.mute_filter import MuteFilter
from slackirc.core.text_transformer import (
    SlackTextTransformer, format_username, highlight_username, strip_irc_formatting
)

logger = structlog.get_logger(__name__)


def exit_process() -> None:
    sys.exit(1)


class RelayRouter:
    """Routes messages between the mapped Slack and IRC channels of one bridge."""

    def __init__(self, config: BridgeConfig, irc: IrcSink, slack: SlackSink,
                 scheduler: Optional[Scheduler] = None,
                 emojis: Optional[Dict[str, str]] = None,
                 on_fatal: Optional[Callable[[], Any]] = None):
        self.config = config
        self.nickname = config.nickname
        self.irc = irc
        self.slack = slack
        self.channel_mapper = ChannelMapper(config.channel_mapping)
        self.mute_filter = MuteFilter.from_config(config)
        self.transformer = SlackTextTransformer(slack, emojis)
        self._quiet_queue = JoinQuietQueue(self._flush_queued, config.queue_seconds, scheduler)
        self._on_fatal = on_fatal or exit_process
        self.logger = logger.bind(bridge=config.nickname, server=config.server)

        self._handlers: Dict[type, Callable[[Any], None]] = {
            SlackMessage: self._on_slack_message,
            SlackError: self._on_slack_error,
            IrcRegistered: self._on_irc_registered,
            IrcMessage: self._on_irc_message,
            IrcInvite: self._on_irc_invite,
            IrcJoin: self._on_irc_join,
            IrcPart: self._on_irc_part,
            IrcQuit: self._on_irc_quit,
            IrcKick: self._on_irc_kick,
            IrcNick: self._on_irc_nick,
            IrcError: self._on_irc_error,
            IrcAbort: self._on_irc_abort,
        }

    def handle(self, event: Event) -> None:
        """Dispatch one inbound event."""
        handler = self._handlers.get(type(event))
        if handler is None:
            raise TypeError(f"Unsupported event type: {type(event).__name__}")
        handler(event)

    def close(self) -> None:
        """Cancel pending quiet-period timers; queued messages are dropped."""
        self._quiet_queue.clear()

    def is_command_message(self, text: str) -> bool:
        return bool(text) and text[0] in self.config.command_characters

    # Slack -> IRC

    def _on_slack_message(self, message: SlackMessage) -> None:
        if not message.relayable:
            return

        channel = self.slack.channel_by_id(message.channel)
        if channel is None:
            self.logger.info("Received message from a channel the bot isn't in", channel=message.channel)
            return

        user = self.slack.user_by_id(message.user) if message.user else None
        author = user.name if user else (message.user or "")

        if self.mute_filter.is_muted(Network.SLACK, author, message.text, author_id=message.user):
            self.logger.debug("Muted message from Slack", author=author, text=message.text)
            return

        irc_channel = self.channel_mapper.forward(channel.name)
        self.logger.debug("Channel mapping", slack_channel=channel.name, irc_channel=irc_channel)
        if irc_channel is None:
            return

        text = self.transformer(message.text)
        username = format_username(self.config.irc_username_format, author)

        if self.is_command_message(text):
            self.irc.say(irc_channel, f"Command sent from Slack by {author}:")
        elif not message.subtype:
            text = f"{username}{text}"
        elif message.subtype == "file_share":
            text = self._file_share_text(username, message.file or SlackFile())
        elif message.subtype == "me_message":
            text = f"Action: {author} {text}"

        self.logger.debug("Sending message to IRC", slack_channel=channel.name, text=text)
        self.irc.say(irc_channel, text)

    @staticmethod
    def _file_share_text(username: str, file: SlackFile) -> str:
        text = f"{username}File uploaded {file.permalink} / {file.permalink_public}"
        if file.initial_comment:
            text += f" - {file.initial_comment}"
        return text

    def _on_slack_error(self, event: SlackError) -> None:
        self.logger.error("Received error event from Slack", error=str(event.error))

    # IRC -> Slack

    def _on_irc_message(self, event: IrcMessage) -> None:
        text = strip_irc_formatting(event.text)
        if event.kind is IrcMessageKind.NOTICE:
            text = f"*{text}*"
        elif event.kind is IrcMessageKind.ACTION:
            text = f"_{text}_"
        self._relay_to_slack(event.author, event.channel, text)

    def _relay_to_slack(self, author: str, irc_channel: str, text: str) -> None:
        slack_channel = self._resolve_slack_channel(irc_channel)
        if slack_channel is None:
            return

        if self.mute_filter.is_muted(Network.IRC, author, text):
            self.logger.debug("Muted message from IRC", author=author, text=text)
            return

        if self._quiet_queue.enqueue(irc_channel, author, text):
            return

        self._post_to_slack(author, slack_channel, text)

    def _resolve_slack_channel(self, irc_channel: str) -> Optional[SlackChannel]:
        slack_name = self.channel_mapper.inverse(irc_channel)
        if slack_name is None:
            self.logger.debug("No Slack channel mapped", irc_channel=irc_channel)
            return None

        slack_channel = self.slack.channel_or_group_by_name(slack_name)
        if slack_channel is None or not slack_channel.reachable:
            self.logger.info("Tried to send a message to a channel the bot isn't in", slack_channel=slack_name)
            return None
        return slack_channel

    def _post_to_slack(self, author: str, slack_channel: SlackChannel, text: str) -> None:
        for member_id in slack_channel.members:
            member = self.slack.user_by_id(member_id)
            if member is not None:
                text = highlight_username(member.name, text)

        icon_url = None
        avatar_template = self.config.avatar_template
        if author != self.nickname and avatar_template:
            icon_url = format_username(avatar_template, author)

        self.logger.debug("Sending message to Slack", slack_channel=slack_channel.name, text=text)
        self.slack.post_message(
            slack_channel.id,
            text,
            username=format_username(self.config.slack_username_format, author),
            icon_url=icon_url,
            parse="full",
        )

    def _flush_queued(self, irc_channel: str, nick: str, messages: List[str]) -> None:
        slack_channel = self._resolve_slack_channel(irc_channel)
        if slack_channel is None:
            return
        for text in messages:
            self._post_to_slack(nick, slack_channel, text)

    def _send_status(self, irc_channel: str, text: str) -> None:
        slack_channel = self._resolve_slack_channel(irc_channel)
        if slack_channel is not None:
            self._post_to_slack(self.nickname, slack_channel, text)

    def _is_self(self, nick: str) -> bool:
        return nick.lower() == self.nickname.lower()

    def _on_irc_join(self, event: IrcJoin) -> None:
        if self._is_self(event.nick) or event.channel not in self.channel_mapper:
            return
        self._quiet_queue.joined(event.channel, event.nick)
        if self.config.irc_status_notices.join:
            self._send_status(event.channel, f"*{event.nick}* has joined the IRC channel")

    def _on_irc_part(self, event: IrcPart) -> None:
        self._quiet_queue.left(event.channel, event.nick)
        if self.config.irc_status_notices.leave:
            self._send_status(event.channel, f"*{event.nick}* has left the IRC channel")

    def _on_irc_quit(self, event: IrcQuit) -> None:
        for channel in event.channels:
            self._quiet_queue.left(channel, event.nick)
            if self.config.irc_status_notices.leave:
                self._send_status(channel, f"*{event.nick}* has quit the IRC channel")

    def _on_irc_kick(self, event: IrcKick) -> None:
        self._quiet_queue.left(event.channel, event.nick)

    def _on_irc_nick(self, event: IrcNick) -> None:
        self._quiet_queue.renamed(event.old, event.new)

    def _on_irc_invite(self, event: IrcInvite) -> None:
        self.logger.debug("Received invite", channel=event.channel, by=event.by)
        if event.channel not in self.channel_mapper:
            self.logger.debug("Channel not found in config, not joining", channel=event.channel)
            return
        self.logger.debug("Joining channel", channel=event.channel)
        self.irc.join(event.channel)

    def _on_irc_registered(self, event: IrcRegistered) -> None:
        self.logger.debug("Registered event", message=event.message)
        for command in self.config.auto_send_commands:
            if command:
                self.irc.send_raw(*command)

    def _on_irc_error(self, event: IrcError) -> None:
        self.logger.error("Received error event from IRC", error=str(event.error))

    def _on_irc_abort(self, event: IrcAbort) -> None:
        self.logger.error("Maximum IRC retry count reached, exiting.", attempts=event.attempts)
        self._on_fatal()
