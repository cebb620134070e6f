"""Tests for MuteFilter."""

from slackirc.core.models import Network
from slackirc.core.mute_filter import SLACKBOT_USER_ID, MuteFilter
from tests.conftest import make_config


class TestMuteFilter:
    def test_muted_word_is_case_insensitive(self):
        mute = MuteFilter(words=["badword"])
        assert mute.is_muted(Network.IRC, "alice", "this has badword here")
        assert mute.is_muted(Network.SLACK, "alice", "this has BADWORD here")
        assert not mute.is_muted(Network.IRC, "alice", "clean text")

    def test_users_are_per_network(self):
        mute = MuteFilter(slack_users=["alice"], irc_users=["bob"])
        assert mute.is_muted(Network.SLACK, "alice", "hi")
        assert not mute.is_muted(Network.IRC, "alice", "hi")
        assert mute.is_muted(Network.IRC, "bob", "hi")
        assert not mute.is_muted(Network.SLACK, "bob", "hi")

    def test_slackbot(self):
        mute = MuteFilter(mute_slackbot=True)
        assert mute.is_muted(Network.SLACK, "slackbot", "reminder", author_id=SLACKBOT_USER_ID)
        assert not MuteFilter().is_muted(Network.SLACK, "slackbot", "reminder", author_id=SLACKBOT_USER_ID)

    def test_empty_text(self):
        assert not MuteFilter(words=["x"]).is_muted(Network.IRC, "alice", None)

    def test_from_config(self):
        config = make_config(muteUsers={"slack": ["alice"], "irc": ["bob"]}, muteWords=["Spoiler"])
        mute = MuteFilter.from_config(config)
        assert mute.is_muted(Network.SLACK, "alice", "")
        assert mute.is_muted(Network.IRC, "bob", "")
        assert mute.is_muted(Network.IRC, "carol", "big spoiler ahead")
