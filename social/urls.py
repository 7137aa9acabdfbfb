from django.urls import path
from . import views

urlpatterns = [
    # Health check
    path("health", views.health, name="health"),

    # Users
    path("users/profile", views.profile_upsert, name="profile_upsert"),
    path("users/device", views.device_register, name="device_register"),
    path("users/search", views.user_search, name="user_search"),
    path("users/<str:uid>", views.user_profile, name="user_profile"),

    # Friend requests and friendships
    path("friends", views.friend_list, name="friend_list"),
    path("friends/request", views.friend_request, name="friend_request"),
    path("friends/accept", views.friend_accept, name="friend_accept"),
    path("friends/decline", views.friend_decline, name="friend_decline"),
    path("friends/cancel", views.friend_cancel, name="friend_cancel"),
    path("friends/remove", views.friend_remove, name="friend_remove"),
    path("friends/requests/incoming", views.requests_incoming, name="requests_incoming"),
    path("friends/requests/outgoing", views.requests_outgoing, name="requests_outgoing"),

    # Direct chats
    path("chats", views.chat_list, name="chat_list"),
    path("chats/direct", views.chat_direct, name="chat_direct"),
    path("chats/<str:room_id>", views.chat_detail, name="chat_detail"),
    path("chats/<str:room_id>/messages", views.chat_messages, name="chat_messages"),
    path("chats/<str:room_id>/read", views.chat_read, name="chat_read"),
    path("chats/<str:room_id>/archive", views.chat_archive, name="chat_archive"),
    path("chats/<str:room_id>/unarchive", views.chat_unarchive, name="chat_unarchive"),
    path("chats/<str:room_id>/delete", views.chat_delete, name="chat_delete"),
    path("chats/<str:room_id>/delete-all", views.chat_delete_all, name="chat_delete_all"),

    # Group chats
    path("groups", views.group_list, name="group_list"),
    path("groups/<str:group_id>", views.group_detail, name="group_detail"),
    path("groups/<str:group_id>/messages", views.group_messages, name="group_messages"),
    path("groups/<str:group_id>/participants", views.group_participants, name="group_participants"),

    # Community posts
    path("posts", views.post_feed, name="post_feed"),
    path("posts/<str:post_id>", views.post_detail, name="post_detail"),
    path("posts/<str:post_id>/delete", views.post_delete, name="post_delete"),
    path("posts/<str:post_id>/like", views.post_like, name="post_like"),
    path("posts/<str:post_id>/unlike", views.post_unlike, name="post_unlike"),
    path("posts/<str:post_id>/toggle-like", views.post_toggle_like, name="post_toggle_like"),
    path("posts/<str:post_id>/repost", views.post_repost, name="post_repost"),
    path("posts/<str:post_id>/share", views.post_share, name="post_share"),
    path("posts/<str:post_id>/comments", views.post_comments, name="post_comments"),

    # Notification inbox (stored on users/{uid}.notifications)
    path("notifications", views.notification_list, name="notification_list"),
    path("notifications/unread-count", views.notification_unread_count, name="notification_unread_count"),
    path("notifications/read", views.notification_read, name="notification_read"),
    path("notifications/read-all", views.notification_read_all, name="notification_read_all"),
    path("notifications/archive", views.notification_archive, name="notification_archive"),
    path("notifications/remove", views.notification_remove, name="notification_remove"),

    # Follows
    path("follows/follow", views.follow, name="follow"),
    path("follows/unfollow", views.unfollow, name="unfollow"),
    path("follows/status", views.follow_status, name="follow_status"),
    path("follows/followers", views.followers, name="followers"),
    path("follows/following", views.following, name="following"),
]
