"""Shared fakes for the relay tests."""

from typing import Any, Callable, Dict, List, Optional, Tuple

import pytest

from slackirc.config.settings import BridgeConfig
from slackirc.core.models import SlackChannel, SlackUser


class FakeTimer:
    def __init__(self, when: float, callback: Callable[[], Any]):
        self.when = when
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class FakeScheduler:
    """Manual clock: timers only fire when advance() passes their deadline."""

    def __init__(self):
        self.now = 0.0
        self.timers: List[FakeTimer] = []

    def __call__(self, delay: float, callback: Callable[[], Any]) -> FakeTimer:
        timer = FakeTimer(self.now + delay, callback)
        self.timers.append(timer)
        return timer

    @property
    def live(self) -> List[FakeTimer]:
        return [timer for timer in self.timers if not timer.cancelled]

    def advance(self, seconds: float) -> None:
        self.now += seconds
        for timer in sorted(self.live, key=lambda t: t.when):
            if timer.when <= self.now and not timer.cancelled:
                timer.cancelled = True
                timer.callback()


class FakeIrc:
    def __init__(self):
        self.said: List[Tuple[str, str]] = []
        self.joined: List[str] = []
        self.raw: List[Tuple[str, ...]] = []

    def say(self, channel: str, text: str) -> None:
        self.said.append((channel, text))

    def join(self, channel: str) -> None:
        self.joined.append(channel)

    def send_raw(self, command: str, *args: str) -> None:
        self.raw.append((command,) + args)


class FakeSlack:
    def __init__(self):
        self.channels: Dict[str, SlackChannel] = {
            "C1": SlackChannel(id="C1", name="general", is_member=True, members=["U1", "U2"]),
            "C2": SlackChannel(id="C2", name="random", is_member=False, members=["U1"]),
            "G1": SlackChannel(id="G1", name="secret", is_channel=False, is_group=True),
        }
        self.users: Dict[str, SlackUser] = {
            "U1": SlackUser(id="U1", name="alice"),
            "U2": SlackUser(id="U2", name="bob"),
            "USLACKBOT": SlackUser(id="USLACKBOT", name="slackbot"),
        }
        self.posted: List[Dict[str, Any]] = []

    def channel_by_id(self, channel_id: str) -> Optional[SlackChannel]:
        return self.channels.get(channel_id)

    def user_by_id(self, user_id: str) -> Optional[SlackUser]:
        return self.users.get(user_id)

    def channel_or_group_by_name(self, name: str) -> Optional[SlackChannel]:
        for channel in self.channels.values():
            if channel.name == name.lstrip("#"):
                return channel
        return None

    def post_message(self, channel_id: str, text: str, username: str,
                     icon_url: Optional[str] = None, parse: str = "full") -> None:
        self.posted.append({
            "channel": channel_id,
            "text": text,
            "username": username,
            "icon_url": icon_url,
            "parse": parse,
        })


def make_config(**overrides) -> BridgeConfig:
    raw = {
        "server": "irc.example.org",
        "nickname": "relaybot",
        "channelMapping": {"#general": "#bridge", "random": "#random", "secret": "#secret"},
        "token": "xoxb-test",
        "appToken": "xapp-test",
    }
    raw.update(overrides)
    return BridgeConfig.model_validate(raw)


@pytest.fixture
def scheduler() -> FakeScheduler:
    return FakeScheduler()


@pytest.fixture
def irc() -> FakeIrc:
    return FakeIrc()


@pytest.fixture
def slack() -> FakeSlack:
    return FakeSlack()


@pytest.fixture
def emojis() -> Dict[str, str]:
    return {"smile": "😄", "+1": "👍"}
