from .health import health
from .users import user_profile, profile_upsert, device_register, user_search
from .friends import (
    friend_request,
    friend_accept,
    friend_decline,
    friend_cancel,
    requests_incoming,
    requests_outgoing,
    friend_list,
    friend_remove,
)
from .chats import (
    chat_direct,
    chat_list,
    chat_detail,
    chat_messages,
    chat_read,
    chat_archive,
    chat_unarchive,
    chat_delete,
    chat_delete_all,
)
from .groups import group_list, group_detail, group_messages, group_participants
from .posts import (
    post_feed,
    post_detail,
    post_delete,
    post_like,
    post_unlike,
    post_toggle_like,
    post_repost,
    post_share,
    post_comments,
)
from .notifications import (
    notification_list,
    notification_unread_count,
    notification_read,
    notification_read_all,
    notification_archive,
    notification_remove,
)
from .follows import follow, unfollow, follow_status, followers, following

__all__ = [
    "health",
    "user_profile",
    "profile_upsert",
    "device_register",
    "user_search",
    "friend_request",
    "friend_accept",
    "friend_decline",
    "friend_cancel",
    "requests_incoming",
    "requests_outgoing",
    "friend_list",
    "friend_remove",
    "chat_direct",
    "chat_list",
    "chat_detail",
    "chat_messages",
    "chat_read",
    "chat_archive",
    "chat_unarchive",
    "chat_delete",
    "chat_delete_all",
    "group_list",
    "group_detail",
    "group_messages",
    "group_participants",
    "post_feed",
    "post_detail",
    "post_delete",
    "post_like",
    "post_unlike",
    "post_toggle_like",
    "post_repost",
    "post_share",
    "post_comments",
    "notification_list",
    "notification_unread_count",
    "notification_read",
    "notification_read_all",
    "notification_archive",
    "notification_remove",
    "follow",
    "unfollow",
    "follow_status",
    "followers",
    "following",
]
