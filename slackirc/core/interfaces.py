"""
Narrow interfaces the relay core needs from the two network clients.
"""
from typing import Any, Callable, Optional, Protocol

from slackirc.core.models import SlackChannel, SlackUser


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


# call_later(delay_seconds, callback) -> cancellable handle
Scheduler = Callable[[float, Callable[[], Any]], TimerHandle]


class SlackDirectory(Protocol):
    """Lookups over the Slack workspace the bridge is connected to."""

    def channel_by_id(self, channel_id: str) -> Optional[SlackChannel]: ...

    def user_by_id(self, user_id: str) -> Optional[SlackUser]: ...

    def channel_or_group_by_name(self, name: str) -> Optional[SlackChannel]: ...


class SlackSink(SlackDirectory, Protocol):
    def post_message(self, channel_id: str, text: str, username: str,
                     icon_url: Optional[str] = None, parse: str = "full") -> None: ...


class IrcSink(Protocol):
    def say(self, channel: str, text: str) -> None: ...

    def join(self, channel: str) -> None: ...

    def send_raw(self, command: str, *args: str) -> None: ...
