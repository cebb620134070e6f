"""
Inbound events delivered to the relay router.

Each network client translates its library callbacks into one of these
records; the router dispatches on the record type.
"""
import enum
from dataclasses import dataclass
from typing import Optional, Tuple, Union

from slackirc.core.models import SlackFile

ALLOWED_SLACK_SUBTYPES = ("me_message", "file_share")


class IrcMessageKind(enum.Enum):
    PRIVMSG = "privmsg"
    NOTICE = "notice"
    ACTION = "action"


@dataclass(frozen=True)
class IrcRegistered:
    message: str = ""


@dataclass(frozen=True)
class IrcMessage:
    author: str
    channel: str
    text: str
    kind: IrcMessageKind = IrcMessageKind.PRIVMSG


@dataclass(frozen=True)
class IrcInvite:
    channel: str
    by: str


@dataclass(frozen=True)
class IrcJoin:
    channel: str
    nick: str


@dataclass(frozen=True)
class IrcPart:
    channel: str
    nick: str
    reason: Optional[str] = None


@dataclass(frozen=True)
class IrcQuit:
    nick: str
    reason: Optional[str] = None
    channels: Tuple[str, ...] = ()


@dataclass(frozen=True)
class IrcNick:
    old: str
    new: str


@dataclass(frozen=True)
class IrcKick:
    channel: str
    nick: str
    by: str
    reason: Optional[str] = None


@dataclass(frozen=True)
class IrcError:
    error: object


@dataclass(frozen=True)
class IrcAbort:
    """The IRC client gave up reconnecting."""
    attempts: int = 0


@dataclass(frozen=True)
class SlackMessage:
    channel: str
    user: Optional[str]
    text: str = ""
    type: str = "message"
    subtype: Optional[str] = None
    file: Optional[SlackFile] = None

    @property
    def relayable(self) -> bool:
        """Bot posts, joins/leaves, edits and the like are not relayed."""
        return self.type == "message" and (not self.subtype or self.subtype in ALLOWED_SLACK_SUBTYPES)


@dataclass(frozen=True)
class SlackError:
    error: object


IrcEvent = Union[
    IrcRegistered, IrcMessage, IrcInvite, IrcJoin, IrcPart, IrcQuit, IrcKick, IrcNick, IrcError, IrcAbort
]
SlackEvent = Union[SlackMessage, SlackError]
Event = Union[IrcEvent, SlackEvent]
