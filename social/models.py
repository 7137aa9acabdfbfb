# Models are stored in Firebase Firestore, not Django DB.
# This file is kept for Django app structure compatibility.
#
# Firestore Collections:
# - users/{uid}: Profile, friends, request id lists, notifications, push tokens
# - friendRequests/{fromUid}_{toUid}: Friend requests (pending/accepted)
# - chatRooms/{pairKey}: Direct chat rooms; messages in chatRooms/{id}/messages
# - friendships/{viewerId}_{targetId}: Follow edges
# - group_chats/{auto}: Group chats with participants and participantIds
# - group_messages/{auto}: Group chat messages keyed by groupId
# - posts/{auto}: Community posts; comments in posts/{id}/comments
#
# See firebase_service.py and the *_service.py modules for Firestore operations.
