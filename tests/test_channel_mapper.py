"""Tests for ChannelMapper."""

import pytest

from slackirc.core.channel_mapper import ChannelMapper
from slackirc.errors import ConfigurationError


class TestLookup:
    def test_forward_and_inverse(self):
        mapper = ChannelMapper({"#general": "#bridge"})
        assert mapper.forward("general") == "#bridge"
        assert mapper.forward("#general") == "#bridge"
        assert mapper.inverse("#bridge") == "general"

    def test_irc_side_is_lower_cased(self):
        mapper = ChannelMapper({"general": "#Bridge"})
        assert mapper.forward("general") == "#bridge"
        assert mapper.inverse("#BRIDGE") == "general"
        assert "#BrIdGe" in mapper

    def test_password_is_stripped_and_kept_as_key(self):
        mapper = ChannelMapper({"general": "#bridge s3cret"})
        assert mapper.forward("general") == "#bridge"
        assert mapper.channel_key("#bridge") == "s3cret"
        assert mapper.irc_channels == ["#bridge"]

    def test_unmapped_channels(self):
        mapper = ChannelMapper({"general": "#bridge"})
        assert mapper.forward("random") is None
        assert mapper.inverse("#random") is None
        assert "#random" not in mapper
        assert mapper.channel_key("#bridge") is None

    def test_len(self):
        assert len(ChannelMapper({"a": "#a", "b": "&b"})) == 2


class TestValidation:
    def test_empty_mapping(self):
        with pytest.raises(ConfigurationError):
            ChannelMapper({})

    def test_not_a_mapping(self):
        with pytest.raises(ConfigurationError, match="Invalid channel mapping"):
            ChannelMapper(["general", "#bridge"])

    def test_missing_prefix(self):
        with pytest.raises(ConfigurationError, match="must start with"):
            ChannelMapper({"general": "bridge"})

    def test_blank_value(self):
        with pytest.raises(ConfigurationError):
            ChannelMapper({"general": "   "})

    def test_duplicate_irc_channel(self):
        with pytest.raises(ConfigurationError, match="mapped more than once"):
            ChannelMapper({"general": "#bridge", "random": "#BRIDGE"})

    def test_duplicate_slack_channel(self):
        with pytest.raises(ConfigurationError, match="mapped more than once"):
            ChannelMapper({"general": "#a", "#general": "#b"})
