from abc import ABC, abstractmethod
from typing import IO, Any, Literal

from aiohttp import FormData

from uservault.request_execution.models import RequestType
from uservault.utils.common import coerce_positive_int, first_present


NotificationKind = Literal["all", "mentions", "important"]


class SocialEndpoints(ABC):
    """
    Typed wrappers for the feed, story, post, messaging, settings and
    notification endpoints. Every call needs a token. Mixed into
    UserVaultClient, which supplies `_authed`.
    """

    @abstractmethod
    async def _authed(
        self,
        endpoint: str,
        method: RequestType = RequestType.GET,
        params: dict[str, Any] | None = None,
        body: Any | None = None,
        coalesce: bool = True,
    ) -> Any: ...

    # Timeline

    async def get_timeline_feed(self, cursor: int = 0) -> Any:
        return await self._authed("timeline/feed", params={"filter": {"cursor": cursor}})

    async def get_post(self, hash_id: str) -> Any:
        return await self._authed(f"timeline/post/{hash_id}")

    async def add_post_reaction(self, post_id: int, unified_id: str = "like") -> Any:
        return await self._authed(
            "timeline/post/reaction/add",
            RequestType.POST,
            body={"post_id": post_id, "unified_id": unified_id},
        )

    async def add_post_bookmark(self, post_id: int) -> Any:
        return await self._authed("timeline/post/bookmarks/add", RequestType.POST, body={"id": post_id})

    async def create_post_comment(self, post_id: int, content: str, parent_id: int | None = None) -> Any:
        body: dict[str, Any] = {"post_id": post_id, "content": content}
        if parent_id:
            body["parent_id"] = parent_id
        return await self._authed("timeline/post/comment/create", RequestType.POST, body=body, coalesce=False)

    async def get_post_comments(self, hash_id: str, cursor: int = 0) -> Any:
        return await self._authed(f"timeline/post/{hash_id}/comments", params={"cursor": cursor})

    async def add_comment_reaction(self, comment_id: int, unified_id: str = "1f44d") -> Any:
        return await self._authed(
            "timeline/comment/reaction/add",
            RequestType.POST,
            body={"comment_id": comment_id, "unified_id": unified_id},
        )

    async def delete_comment(self, comment_id: int) -> Any:
        return await self._authed("timeline/post/comment/delete", RequestType.DELETE, body={"id": comment_id})

    async def vote_on_poll(self, poll_id: int, choice_index: int) -> Any:
        return await self._authed(
            "timeline/post/poll/vote",
            RequestType.POST,
            body={"poll_id": poll_id, "choice_index": choice_index},
        )

    # Stories

    async def get_stories_feed(self) -> Any:
        return await self._authed("stories/feed")

    async def get_story(self, story_uuid: str) -> Any:
        return await self._authed(f"stories/stories/{story_uuid}")

    async def record_story_view(self, frame_id: int) -> Any:
        return await self._authed("stories/views/record", RequestType.POST, body={"frame_id": frame_id})

    async def get_story_views(self, frame_id: int) -> Any:
        return await self._authed(f"stories/views/{frame_id}")

    async def create_story(self, content: str | None = None) -> Any:
        return await self._authed(
            "story/editor/create", RequestType.POST, body={"content": content or ""}, coalesce=False
        )

    async def upload_story_media(self, file: bytes | IO[bytes], filename: str = "media", content_type: str | None = None) -> Any:
        form = FormData()
        form.add_field("media_file", file, filename=filename, content_type=content_type)
        return await self._authed("story/editor/media/upload", RequestType.POST, body=form, coalesce=False)

    async def delete_story_media(self) -> Any:
        return await self._authed("story/editor/media/delete", RequestType.DELETE)

    async def delete_story_frame(self, frame_id: int) -> Any:
        return await self._authed("stories/delete", RequestType.DELETE, body={"frame_id": frame_id})

    # Posts

    async def create_post(self, content: str, marks: Any | None = None) -> Any:
        body: dict[str, Any] = {"content": content}
        if marks is not None:
            body["marks"] = marks
        return await self._authed("post/editor/create", RequestType.POST, body=body, coalesce=False)

    async def upload_post_media(
        self,
        file: bytes | IO[bytes],
        media_type: Literal["image", "video"] = "image",
        filename: str = "media",
        content_type: str | None = None,
    ) -> Any:
        form = FormData()
        form.add_field(media_type, file, filename=filename, content_type=content_type)
        return await self._authed(
            f"post/editor/media/{media_type}/upload", RequestType.POST, body=form, coalesce=False
        )

    async def delete_post_media(self) -> Any:
        return await self._authed("post/editor/media/delete", RequestType.DELETE)

    # Explore and follows

    async def search_people(self, query: str, page: int = 1) -> Any:
        return await self._authed(
            "explore/people", RequestType.POST, body={"filter": {"query": query, "page": page}}
        )

    async def explore_posts(self, page: int = 1, onset: int = 0) -> Any:
        return await self._authed(
            "explore/posts", RequestType.POST, body={"filter": {"page": page, "onset": onset}}
        )

    async def toggle_follow(self, user_id: int) -> Any:
        if coerce_positive_int(user_id) is None:
            raise ValueError("Valid user ID is required to follow/unfollow")
        return await self._authed("follows/follow/user", RequestType.POST, body={"id": user_id})

    async def accept_follow_request(self, user_id: int) -> Any:
        return await self._authed("follows/accept/user", RequestType.POST, body={"id": user_id})

    async def get_followers(self, user_id: int, cursor: int = 0) -> Any:
        return await self._authed("profile/profile/followers", params={"id": user_id, "cursor": cursor})

    async def get_following(self, user_id: int, cursor: int = 0) -> Any:
        return await self._authed("profile/profile/followings", params={"id": user_id, "cursor": cursor})

    # Messenger

    async def get_chats(self, cursor: int = 0) -> Any:
        return await self._authed("messenger/chats", params={"cursor": cursor})

    async def get_chat_messages(self, chat_id: str, cursor: int = 0) -> Any:
        return await self._authed(f"messenger/chat/{chat_id}/messages", params={"cursor": cursor})

    async def send_message(self, content: str, chat_id: str | None = None, recipient_id: int | None = None) -> Any:
        body: dict[str, Any] = {"content": content}
        if chat_id:
            body["chat_id"] = chat_id
        elif coerce_positive_int(recipient_id) is not None:
            body["user_id"] = recipient_id
        else:
            raise ValueError("Valid chat ID or user ID is required to send message")
        return await self._authed("messenger/send", RequestType.POST, body=body, coalesce=False)

    async def launch_chat(self, recipient_id: int) -> str | None:
        """Open (or find) the chat with a user and return its id."""
        if coerce_positive_int(recipient_id) is None:
            raise ValueError("Valid recipient ID is required to create chat")
        response = await self._authed("messenger/chats/launch", RequestType.POST, body={"user_id": recipient_id})
        chat_id = first_present(response, ("data.chat_id", "chat_id"))
        return str(chat_id) if chat_id is not None else None

    # Settings

    async def get_account_settings(self) -> Any:
        return await self._authed("settings/account/settings")

    async def update_account_settings(self, data: dict[str, Any]) -> Any:
        return await self._authed("settings/account/update", RequestType.PUT, body=data)

    async def get_privacy_settings(self) -> Any:
        return await self._authed("settings/privacy/settings")

    async def update_privacy_settings(self, data: dict[str, Any]) -> Any:
        return await self._authed("settings/privacy/update", RequestType.PUT, body=data)

    async def get_password_settings(self) -> Any:
        return await self._authed("settings/password/settings")

    async def update_password(self, current_password: str, new_password: str, confirmation: str) -> Any:
        return await self._authed(
            "settings/password/update",
            RequestType.PUT,
            body={
                "current_password": current_password,
                "password": new_password,
                "password_confirmation": confirmation,
            },
            coalesce=False,
        )

    async def get_sessions(self) -> Any:
        return await self._authed("settings/sessions")

    async def terminate_other_sessions(self) -> Any:
        return await self._authed("settings/sessions/terminate/other", RequestType.DELETE)

    async def get_languages(self) -> Any:
        return await self._authed("settings/languages")

    async def switch_language(self, language: str) -> Any:
        return await self._authed("settings/languages/switch", RequestType.PUT, body={"language": language})

    async def update_theme(self, theme: Literal["light", "dark"]) -> Any:
        return await self._authed("settings/account/theme/update", RequestType.PUT, body={"theme": theme})

    async def get_authorship_status(self) -> Any:
        return await self._authed("settings/authorship/settings")

    async def request_verification(self) -> Any:
        return await self._authed("settings/authorship/request", RequestType.POST)

    # Notifications

    async def get_notifications(self, kind: NotificationKind = "all") -> Any:
        return await self._authed(f"notifications/{kind}")

    async def get_unread_notification_count(self) -> Any:
        return await self._authed("notifications/unread/count")

    async def delete_notification(self, notification_id: str) -> Any:
        return await self._authed(
            "notifications/delete", RequestType.DELETE, body={"notification_id": notification_id}
        )
