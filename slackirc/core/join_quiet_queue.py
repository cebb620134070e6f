"""
Join quiet period: withhold a user's IRC messages for a while after they join.

Joining a channel often triggers noise (bouncer backlog replay, auto-greets).
Once a nick joins, its messages are buffered. Every new message restarts the
countdown. When the countdown finally runs out the buffer is flushed in
arrival order; if the nick leaves first, the buffer is dropped.

Per (channel, nick) states:
    absent  --join-->  held  --timer-->  idle
    held/idle  --leave/quit-->  absent
"""
import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from functools import partial
from typing import Any, Callable, Dict, List, Optional

from slackirc.core.interfaces import Scheduler, TimerHandle

logger = logging.getLogger(__name__)

DEFAULT_QUEUE_SECONDS = 30.0

FlushCallback = Callable[[str, str, List[Any]], None]


def loop_call_later(delay: float, callback: Callable[[], Any]) -> TimerHandle:
    """Schedule on the running asyncio loop."""
    return asyncio.get_running_loop().call_later(delay, callback)


@dataclass
class QueueEntry:
    """Hold state for one nick in one channel."""
    held: bool = False
    messages: List[Any] = field(default_factory=list)
    timer: Optional[TimerHandle] = None
    start: Optional[datetime] = None

    def cancel_timer(self) -> None:
        if self.timer is not None:
            self.timer.cancel()
            self.timer = None


class JoinQuietQueue:
    """Per-(channel, nick) buffering with a debounced flush timer."""

    def __init__(self, flush: FlushCallback, queue_for: float = DEFAULT_QUEUE_SECONDS,
                 scheduler: Optional[Scheduler] = None):
        self.queue_for = queue_for
        self._flush = flush
        self._schedule = scheduler or loop_call_later
        self._entries: Dict[str, Dict[str, QueueEntry]] = {}

    def joined(self, channel: str, nick: str) -> None:
        """Start holding messages from nick in channel."""
        entry = self._get_or_create_entry(channel, nick)
        entry.held = True
        entry.start = datetime.now(timezone.utc)
        logger.debug(f"Holding messages from {nick} in {channel}")

    def enqueue(self, channel: str, nick: str, message: Any) -> bool:
        """Buffer message if nick is held in channel. Returns True when held."""
        entry = self._get_entry(channel, nick)
        if entry is None or not entry.held:
            return False

        entry.messages.append(message)
        self._set_timer(channel, nick, entry)
        logger.info(f"Queueing message for {channel} {nick} ({len(entry.messages)} pending)")
        return True

    def left(self, channel: str, nick: str) -> int:
        """Forget nick in channel, discarding anything still buffered.

        Returns the number of discarded messages.
        """
        channel_entries = self._entries.get(self._channel_key(channel))
        if not channel_entries or nick not in channel_entries:
            return 0

        entry = channel_entries.pop(nick)
        entry.cancel_timer()
        if not channel_entries:
            del self._entries[self._channel_key(channel)]

        dropped = len(entry.messages)
        if dropped:
            logger.info(f"Prevented {dropped} messages from being forwarded from {channel} {nick}")
        return dropped

    def renamed(self, old_nick: str, new_nick: str) -> None:
        """Move every entry of old_nick to new_nick, restarting any running timer."""
        for channel_key, channel_entries in self._entries.items():
            entry = channel_entries.pop(old_nick, None)
            if entry is None:
                continue

            replaced = channel_entries.get(new_nick)
            if replaced is not None:
                replaced.cancel_timer()
            channel_entries[new_nick] = entry
            if entry.timer is not None:
                self._set_timer(channel_key, new_nick, entry)
            logger.debug(f"Moved queue entry for {channel_key} from {old_nick} to {new_nick}")

    def is_held(self, channel: str, nick: str) -> bool:
        entry = self._get_entry(channel, nick)
        return entry is not None and entry.held

    def pending(self, channel: str, nick: str) -> List[Any]:
        entry = self._get_entry(channel, nick)
        return list(entry.messages) if entry else []

    def clear(self) -> None:
        """Cancel every timer and drop all state."""
        for channel_entries in self._entries.values():
            for entry in channel_entries.values():
                entry.cancel_timer()
        self._entries.clear()

    def __contains__(self, key) -> bool:
        channel, nick = key
        return self._get_entry(channel, nick) is not None

    def _fire(self, channel: str, nick: str) -> None:
        entry = self._get_entry(channel, nick)
        if entry is None:
            return

        entry.held = False
        entry.cancel_timer()
        messages, entry.messages = entry.messages, []
        if messages:
            logger.info(f"Sending {len(messages)} queued messages for {channel} {nick}")
            self._flush(channel, nick, messages)

    def _set_timer(self, channel: str, nick: str, entry: QueueEntry) -> None:
        # One live timer per entry: debounce on every new message
        entry.cancel_timer()
        entry.timer = self._schedule(self.queue_for, partial(self._fire, channel, nick))

    def _get_entry(self, channel: str, nick: str) -> Optional[QueueEntry]:
        return self._entries.get(self._channel_key(channel), {}).get(nick)

    def _get_or_create_entry(self, channel: str, nick: str) -> QueueEntry:
        channel_entries = self._entries.setdefault(self._channel_key(channel), {})
        entry = channel_entries.get(nick)
        if entry is None:
            entry = QueueEntry()
            channel_entries[nick] = entry
            logger.debug(f"Created queue entry for {channel} {nick}")
        return entry

    @staticmethod
    def _channel_key(channel: str) -> str:
        return channel.lower()
