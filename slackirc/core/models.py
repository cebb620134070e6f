"""
Plain data records shared by the relay core and the network clients.
"""
import enum
from dataclasses import dataclass, field
from typing import List, Optional


class Network(enum.Enum):
    """The two bridged networks."""
    SLACK = "slack"
    IRC = "irc"


@dataclass
class SlackUser:
    id: str
    name: str


@dataclass
class SlackChannel:
    """Directory record for a Slack channel, private group or DM."""
    id: str
    name: str
    is_channel: bool = True
    is_group: bool = False
    is_member: bool = False
    members: List[str] = field(default_factory=list)

    @property
    def reachable(self) -> bool:
        """Private groups only show up when the bridge is in them, channels need is_member."""
        return self.is_member or self.is_group


@dataclass
class SlackFile:
    permalink: str = ""
    permalink_public: str = ""
    initial_comment: Optional[str] = None
