# Chat
MAX_MESSAGE_LENGTH = 4000
DEFAULT_MESSAGE_PAGE_SIZE = 50
MAX_MESSAGE_PAGE_SIZE = 200

# Group chats
MAX_GROUP_NAME_LENGTH = 100

# Posts
MAX_POST_LENGTH = 500
MAX_COMMENT_LENGTH = 500
DEFAULT_FEED_PAGE_SIZE = 20
MAX_FEED_PAGE_SIZE = 50
AUDIENCE_ANYONE = "anyone"
AUDIENCE_FRIENDS = "friends"
POST_AUDIENCES = (AUDIENCE_ANYONE, AUDIENCE_FRIENDS)

# Notifications kept per user document; oldest are dropped first
MAX_NOTIFICATIONS = 100

NOTIFICATION_FRIEND_REQUEST = "friend_request"
NOTIFICATION_REQUEST_SENT = "request_sent"
NOTIFICATION_REQUEST_ACCEPTED = "request_accepted"
NOTIFICATION_NEW_MESSAGE = "new_message"
NOTIFICATION_NEW_FOLLOWER = "new_follower"

NOTIFICATION_TYPES = (
    NOTIFICATION_FRIEND_REQUEST,
    NOTIFICATION_REQUEST_SENT,
    NOTIFICATION_REQUEST_ACCEPTED,
    NOTIFICATION_NEW_MESSAGE,
    NOTIFICATION_NEW_FOLLOWER,
)

# Friend requests
REQUEST_PENDING = "pending"
REQUEST_ACCEPTED = "accepted"
REQUEST_DECLINED = "declined"
REQUEST_CANCELLED = "cancelled"

# User search
DEFAULT_SEARCH_LIMIT = 20
MAX_SEARCH_LIMIT = 50

# Devices
PLATFORMS = ("ios", "android", "web")

# Firestore hard limit on writes per batch
FIRESTORE_BATCH_LIMIT = 500
