"""
Text conversion between Slack message markup and IRC plain text.

Slack -> IRC runs a fixed, ordered pipeline of pure stages. Order matters:
later stages consume the output of earlier ones, and the generic link
patterns would otherwise swallow channel/user references. Entities are
decoded last so that literal brackets typed by users are never read as
markup.
"""
import json
import logging
import re
from functools import lru_cache
from importlib import resources
from typing import Callable, Dict, Optional, Tuple

from slackirc.core.interfaces import SlackDirectory

logger = logging.getLogger(__name__)

LINE_BREAK = re.compile(r"\r\n|\r|\n")
BROADCAST = re.compile(r"<!(channel|group|everyone)>")
CHANNEL_REFERENCE = re.compile(r"<#(C\w+)(?:\|([^>]*))?>")
USER_REFERENCE = re.compile(r"<@([UW]\w+)(?:\|([^>]*))?>")
BARE_LINK = re.compile(r"<(?!!)([^|<>]+?)>")
SPECIAL_COMMAND = re.compile(r"<!(\w+)(?:\|(\w+))?>")
EMOJI_SHORTCODE = re.compile(r":([\w+-]+):")
LABELED_LINK = re.compile(r"<[^<>|]+\|([^<>]+)>")
HTML_ENTITIES = (("&lt;", "<"), ("&gt;", ">"), ("&amp;", "&"))

# mIRC colours (\x03 with optional fg[,bg]) and the toggle codes
IRC_FORMATTING = re.compile(r"\x03(?:\d{1,2}(?:,\d{1,2})?)?|[\x02\x0f\x11\x16\x1d\x1e\x1f]")

Stage = Callable[[str], str]


@lru_cache(maxsize=1)
def load_emojis() -> Dict[str, str]:
    """Shortcode -> glyph table shipped with the package."""
    source = resources.files("slackirc") / "assets" / "emoji.json"
    return json.loads(source.read_text(encoding="utf-8"))


def format_username(template: str, username: str) -> str:
    return template.replace("$username", username)


def normalize_line_breaks(text: str) -> str:
    return LINE_BREAK.sub(" ", text)


def expand_broadcasts(text: str) -> str:
    return BROADCAST.sub(lambda m: f"@{m.group(1)}", text)


def unwrap_bare_links(text: str) -> str:
    return BARE_LINK.sub(lambda m: m.group(1), text)


def rewrite_special_commands(text: str) -> str:
    return SPECIAL_COMMAND.sub(lambda m: f"<{m.group(2) or m.group(1)}>", text)


def unwrap_labeled_links(text: str) -> str:
    return LABELED_LINK.sub(lambda m: m.group(1), text)


def decode_entities(text: str) -> str:
    for entity, char in HTML_ENTITIES:
        text = text.replace(entity, char)
    return text


class SlackTextTransformer:
    """Converts a raw Slack message body into IRC display text."""

    def __init__(self, directory: SlackDirectory, emojis: Optional[Dict[str, str]] = None):
        self.directory = directory
        self.emojis = load_emojis() if emojis is None else emojis
        self.stages: Tuple[Stage, ...] = (
            normalize_line_breaks,
            expand_broadcasts,
            self.resolve_channel_references,
            self.resolve_user_references,
            unwrap_bare_links,
            rewrite_special_commands,
            self.substitute_emoji,
            unwrap_labeled_links,
            decode_entities,
        )

    def __call__(self, text: Optional[str]) -> str:
        return self.transform(text)

    def transform(self, text: Optional[str]) -> str:
        text = text or ""
        for stage in self.stages:
            text = stage(text)
        return text

    def resolve_channel_references(self, text: str) -> str:
        def replace(match: re.Match) -> str:
            channel_id, label = match.groups()
            if label:
                return f"#{label}"
            channel = self.directory.channel_by_id(channel_id)
            if channel is None:
                logger.debug(f"Unknown channel reference {channel_id}")
                return f"#{channel_id}"
            return f"#{channel.name}"

        return CHANNEL_REFERENCE.sub(replace, text)

    def resolve_user_references(self, text: str) -> str:
        def replace(match: re.Match) -> str:
            user_id, label = match.groups()
            if label:
                return f"@{label}"
            user = self.directory.user_by_id(user_id)
            if user is None:
                logger.debug(f"Unknown user reference {user_id}")
                return f"@{user_id}"
            return f"@{user.name}"

        return USER_REFERENCE.sub(replace, text)

    def substitute_emoji(self, text: str) -> str:
        return EMOJI_SHORTCODE.sub(lambda m: self.emojis.get(m.group(1), m.group(0)), text)


def highlight_username(username: str, text: str) -> str:
    """Prefix '@' to words naming a Slack user so Slack notifies them.

    A word may carry one trailing punctuation mark ("alice:", "alice,").
    Words already written as "@alice" do not match and are left alone.
    """
    if not username:
        return text
    word_pattern = re.compile(rf"{re.escape(username)}[,.:!?]?")
    return " ".join(
        f"@{word}" if word_pattern.fullmatch(word) else word
        for word in text.split(" ")
    )


def strip_irc_formatting(text: str) -> str:
    return IRC_FORMATTING.sub("", text)
