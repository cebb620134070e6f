"""
Slack client manager using slack_sdk.
Web API for posting and directory lookups, Socket Mode for receiving events.
Keeps an in-memory directory of channels and users for synchronous lookups.
"""
import asyncio
import logging
from typing import Any, Callable, Dict, Optional

from slack_sdk.errors import SlackApiError
from slack_sdk.socket_mode.aiohttp import SocketModeClient
from slack_sdk.socket_mode.request import SocketModeRequest
from slack_sdk.socket_mode.response import SocketModeResponse
from slack_sdk.web.async_client import AsyncWebClient

from slackirc.core.events import SlackError, SlackEvent, SlackMessage
from slackirc.core.models import SlackChannel, SlackFile, SlackUser
from slackirc.core.mute_filter import SLACKBOT_USER_ID

logger = logging.getLogger(__name__)

EventHandler = Callable[[SlackEvent], None]
PAGE_SIZE = 200


class SlackDirectory:
    """In-memory view of the workspace's channels and users."""

    def __init__(self):
        self.channels: Dict[str, SlackChannel] = {}
        self.users: Dict[str, SlackUser] = {SLACKBOT_USER_ID: SlackUser(id=SLACKBOT_USER_ID, name="slackbot")}
        self.bot_user_id: Optional[str] = None

    def channel_by_id(self, channel_id: str) -> Optional[SlackChannel]:
        return self.channels.get(channel_id)

    def user_by_id(self, user_id: str) -> Optional[SlackUser]:
        return self.users.get(user_id)

    def channel_or_group_by_name(self, name: str) -> Optional[SlackChannel]:
        name = name.lstrip("#")
        for channel in self.channels.values():
            if channel.name == name and (channel.is_channel or channel.is_group):
                return channel
        return None

    def add_channel(self, payload: Dict[str, Any]) -> SlackChannel:
        existing = self.channels.get(payload["id"])
        is_group = bool(payload.get("is_group") or payload.get("is_private"))
        channel = SlackChannel(
            id=payload["id"],
            name=payload.get("name") or payload["id"],
            is_channel=bool(payload.get("is_channel", not is_group)) and not is_group,
            is_group=is_group,
            is_member=bool(payload.get("is_member", existing.is_member if existing else False)),
            members=list(payload.get("members") or (existing.members if existing else [])),
        )
        self.channels[channel.id] = channel
        return channel

    def add_user(self, payload: Dict[str, Any]) -> SlackUser:
        user = SlackUser(id=payload["id"], name=payload.get("name") or payload["id"])
        self.users[user.id] = user
        return user

    def rename_channel(self, channel_id: str, name: str) -> None:
        channel = self.channels.get(channel_id)
        if channel is not None:
            channel.name = name

    def member_joined(self, channel_id: str, user_id: str) -> None:
        channel = self.channels.get(channel_id)
        if channel is None:
            return
        if user_id not in channel.members:
            channel.members.append(user_id)
        if user_id == self.bot_user_id:
            channel.is_member = True

    def member_left(self, channel_id: str, user_id: str) -> None:
        channel = self.channels.get(channel_id)
        if channel is None:
            return
        if user_id in channel.members:
            channel.members.remove(user_id)
        if user_id == self.bot_user_id:
            self.bot_left(channel_id)

    def bot_left(self, channel_id: str) -> None:
        channel = self.channels.get(channel_id)
        if channel is None:
            return
        if channel.is_group:
            # Private channels are only visible while the bot is a member
            del self.channels[channel_id]
        else:
            channel.is_member = False

    async def load_channel(self, web: AsyncWebClient, channel_id: str) -> SlackChannel:
        """Fetch a channel the bot was added to after the directory was loaded."""
        response = await web.conversations_info(channel=channel_id)
        channel = self.add_channel(dict(response.get("channel") or {"id": channel_id}, is_member=True))
        channel.members = [
            member async for member in _paginate(web.conversations_members, "members", channel=channel_id)
        ]
        logger.info(f"Added Slack channel {channel.name} to the directory")
        return channel

    async def refresh(self, web: AsyncWebClient) -> None:
        """Load channels, users and the member lists of channels the bot is in."""
        async for payload in _paginate(web.conversations_list, "channels",
                                       types="public_channel,private_channel", exclude_archived=True):
            self.add_channel(payload)

        async for payload in _paginate(web.users_list, "members"):
            self.add_user(payload)

        for channel in self.channels.values():
            if channel.reachable:
                channel.members = [
                    member async for member in _paginate(web.conversations_members, "members", channel=channel.id)
                ]

        logger.info(f"Slack directory loaded: {len(self.channels)} channels, {len(self.users)} users")


async def _paginate(method, key: str, **kwargs):
    cursor = None
    while True:
        params = dict(kwargs, limit=PAGE_SIZE)
        if cursor:
            params["cursor"] = cursor
        response = await method(**params)
        for item in response.get(key, []):
            yield item
        cursor = (response.get("response_metadata") or {}).get("next_cursor")
        if not cursor:
            break


def message_from_payload(event: Dict[str, Any]) -> SlackMessage:
    """Build a SlackMessage from an Events API message payload."""
    file_payload = event.get("file") or next(iter(event.get("files") or []), None)
    slack_file = None
    if file_payload:
        comment = file_payload.get("initial_comment") or {}
        slack_file = SlackFile(
            permalink=file_payload.get("permalink", ""),
            permalink_public=file_payload.get("permalink_public", ""),
            initial_comment=comment.get("comment") if isinstance(comment, dict) else comment,
        )
    return SlackMessage(
        channel=event.get("channel", ""),
        user=event.get("user"),
        text=event.get("text") or "",
        type=event.get("type", "message"),
        subtype=event.get("subtype"),
        file=slack_file,
    )


class SlackClientManager:
    """Manages the Slack Web API and Socket Mode clients for one bridge."""

    def __init__(self, token: str, app_token: Optional[str] = None):
        self.web = AsyncWebClient(token=token)
        self.app_token = app_token
        self.socket: Optional[SocketModeClient] = None
        self.directory = SlackDirectory()
        self._on_event: Optional[EventHandler] = None
        self._pending: set = set()
        self._is_running = False

    def set_event_handler(self, handler: EventHandler) -> None:
        self._on_event = handler

    async def start(self) -> None:
        if self._is_running:
            return

        logger.info("Starting Slack client...")
        auth = await self.web.auth_test()
        self.directory.bot_user_id = auth.get("user_id")
        await self.directory.refresh(self.web)

        self.socket = SocketModeClient(app_token=self.app_token, web_client=self.web)
        self.socket.socket_mode_request_listeners.append(self._process_request)
        await self.socket.connect()

        self._is_running = True
        logger.info(f"Connected to Slack as {auth.get('user')}")

    async def stop(self) -> None:
        if not self._is_running:
            return
        logger.info("Stopping Slack client...")
        self._is_running = False
        if self.socket:
            await self.socket.disconnect()
            await self.socket.close()
        logger.info("Slack client stopped")

    @property
    def is_running(self) -> bool:
        return self._is_running

    # Directory lookups used by the router

    def channel_by_id(self, channel_id: str) -> Optional[SlackChannel]:
        return self.directory.channel_by_id(channel_id)

    def user_by_id(self, user_id: str) -> Optional[SlackUser]:
        return self.directory.user_by_id(user_id)

    def channel_or_group_by_name(self, name: str) -> Optional[SlackChannel]:
        return self.directory.channel_or_group_by_name(name)

    def post_message(self, channel_id: str, text: str, username: str,
                     icon_url: Optional[str] = None, parse: str = "full") -> None:
        """Post without waiting; failures are logged, not retried."""
        kwargs = {"channel": channel_id, "text": text, "username": username, "parse": parse}
        if icon_url:
            kwargs["icon_url"] = icon_url
        self._spawn(self.web.chat_postMessage(**kwargs), "post message")

    def _spawn(self, coro, description: str) -> None:
        task = asyncio.ensure_future(coro)
        self._pending.add(task)

        def _done(finished: asyncio.Task) -> None:
            self._pending.discard(finished)
            if finished.cancelled():
                return
            error = finished.exception()
            if isinstance(error, SlackApiError):
                logger.error(f"Slack rejected {description}: {error.response.get('error')}")
            elif error:
                logger.error(f"Slack {description} failed: {error}")

        task.add_done_callback(_done)

    async def _process_request(self, client: SocketModeClient, req: SocketModeRequest) -> None:
        if req.type != "events_api":
            return
        await client.send_socket_mode_response(SocketModeResponse(envelope_id=req.envelope_id))
        self.handle_event((req.payload or {}).get("event") or {})

    def handle_event(self, event: Dict[str, Any]) -> None:
        """Update the directory and forward message events to the router."""
        event_type = event.get("type")

        if event_type == "message":
            self._emit(message_from_payload(event))
        elif event_type == "member_joined_channel":
            self._member_joined(event.get("channel", ""), event.get("user", ""))
        elif event_type == "member_left_channel":
            self.directory.member_left(event.get("channel", ""), event.get("user", ""))
        elif event_type in ("channel_left", "group_left"):
            self.directory.bot_left(event["channel"])
        elif event_type == "channel_created":
            self.directory.add_channel(event["channel"])
        elif event_type in ("channel_rename", "group_rename"):
            self.directory.rename_channel(event["channel"]["id"], event["channel"]["name"])
        elif event_type in ("team_join", "user_change"):
            self.directory.add_user(event["user"])
        elif event_type == "error":
            self._emit(SlackError(error=event.get("error")))

    def _member_joined(self, channel_id: str, user_id: str) -> None:
        known = self.directory.channel_by_id(channel_id) is not None
        if user_id == self.directory.bot_user_id and not known:
            # Private channels joined after startup are missing from the directory
            self._spawn(self.directory.load_channel(self.web, channel_id), f"load channel {channel_id}")
        else:
            self.directory.member_joined(channel_id, user_id)

    def _emit(self, event: Any) -> None:
        if not self._on_event:
            return
        try:
            self._on_event(event)
        except Exception as e:
            logger.error(f"Error handling Slack event {type(event).__name__}: {e}", exc_info=True)
