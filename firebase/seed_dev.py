"""
Firestore seed script (Emulator)
Run with: FIREBASE_USE_EMULATOR=true python3 firebase/seed_dev.py [--reset]
"""

import os
import sys
from datetime import datetime, timedelta, timezone

import firebase_admin
from firebase_admin import firestore


def _init_firebase():
    if os.environ.get("FIREBASE_USE_EMULATOR", "").lower() != "true":
        print("FIREBASE_USE_EMULATOR is not set. Refusing to seed a real project.", file=sys.stderr)
        sys.exit(1)

    os.environ.setdefault("FIRESTORE_EMULATOR_HOST", "localhost:8080")
    project_id = os.environ.get("FIREBASE_PROJECT_ID", "demo-creatorhub")
    firebase_admin.initialize_app(options={"projectId": project_id})


def _clear_collection(collection_ref, subcollection=None):
    for doc in collection_ref.stream():
        if subcollection:
            _clear_collection(doc.reference.collection(subcollection))
        doc.reference.delete()


def clear_all(db):
    print("🧹 Clearing Firestore emulator data...")
    _clear_collection(db.collection("users"))
    _clear_collection(db.collection("friendRequests"))
    _clear_collection(db.collection("chatRooms"), subcollection="messages")
    _clear_collection(db.collection("friendships"))
    _clear_collection(db.collection("group_chats"))
    _clear_collection(db.collection("group_messages"))
    _clear_collection(db.collection("posts"), subcollection="comments")
    print("✅ Clear completed")


def _user(uid, name, email, business_name, now):
    return {
        "uid": uid,
        "name": name,
        "nameLower": name.lower(),
        "email": email,
        "businessName": business_name,
        "profileImageUrl": "https://placehold.co/200x200",
        "friends": [],
        "friendsSince": {},
        "incomingRequests": [],
        "sentRequests": [],
        "notifications": [],
        "createdAt": now,
        "updatedAt": now,
    }


def seed(db):
    print("🌱 Seeding Firestore emulator...")

    maya = "user_maya"
    leo = "user_leo"
    nina = "user_nina"

    now = datetime.now(timezone.utc)
    users = {
        maya: _user(maya, "Maya", "maya@test.com", "Maya Makes", now),
        leo: _user(leo, "Leo", "leo@test.com", "Leo Studio", now),
        nina: _user(nina, "Nina", "nina@test.com", "Nina Bakes", now),
    }

    # Maya and Leo are friends with a short conversation
    friends_since = now - timedelta(days=2)
    users[maya]["friends"] = [leo]
    users[maya]["friendsSince"] = {leo: friends_since}
    users[leo]["friends"] = [maya]
    users[leo]["friendsSince"] = {maya: friends_since}

    # Nina has asked Maya to connect
    pending_id = f"{nina}_{maya}"
    users[nina]["sentRequests"] = [pending_id]
    users[maya]["incomingRequests"] = [pending_id]
    users[maya]["notifications"] = [{
        "id": "seed_friend_request",
        "type": "friend_request",
        "fromUserUid": nina,
        "message": "Nina sent you a friend request!",
        "timestamp": now,
        "read": False,
        "archived": False,
        "requestId": pending_id,
    }]

    for uid, data in users.items():
        db.collection("users").document(uid).set(data)

    room_id = "_".join(sorted([maya, leo]))
    db.collection("friendRequests").document(f"{maya}_{leo}").set({
        "id": f"{maya}_{leo}",
        "fromUid": maya,
        "toUid": leo,
        "fromName": "Maya",
        "toName": "Leo",
        "status": "accepted",
        "seen": True,
        "chatRoomId": room_id,
        "createdAt": friends_since - timedelta(hours=1),
        "updatedAt": friends_since,
    })
    db.collection("friendRequests").document(pending_id).set({
        "id": pending_id,
        "fromUid": nina,
        "toUid": maya,
        "fromName": "Nina",
        "toName": "Maya",
        "status": "pending",
        "seen": False,
        "chatRoomId": None,
        "createdAt": now,
        "updatedAt": now,
    })

    messages = [
        (maya, "Hi Leo! Loved your last collab."),
        (leo, "Thanks Maya, want to do one together?"),
        (maya, "Absolutely, let's plan next week."),
    ]
    room_ref = db.collection("chatRooms").document(room_id)
    for i, (sender, text) in enumerate(messages):
        room_ref.collection("messages").add({
            "senderId": sender,
            "text": text,
            "createdAt": friends_since + timedelta(minutes=5 * (i + 1)),
        })
    last_at = friends_since + timedelta(minutes=5 * len(messages))
    room_ref.set({
        "id": room_id,
        "members": [maya, leo],
        "pairKey": room_id,
        "createdAt": friends_since,
        "lastMessageAt": last_at,
        "lastMessage": {"senderId": messages[-1][0], "text": messages[-1][1]},
        "archivedBy": {},
        "deletedBy": {},
        "readAt": {maya: last_at},
        "canHardDelete": [maya, leo],
    })

    db.collection("friendships").document(f"{leo}_{nina}").set({
        "viewerId": leo,
        "targetId": nina,
        "createdAt": now,
        "updatedAt": now,
    })

    # All three share a group chat
    group_ref = db.collection("group_chats").document()
    participants = [
        {"id": uid, "type": "human", "displayName": users[uid]["name"], "joinedAt": now}
        for uid in (maya, leo, nina)
    ]
    group_ref.set({
        "id": group_ref.id,
        "name": "Market Day",
        "createdBy": maya,
        "participants": participants,
        "participantIds": [maya, leo, nina],
        "createdAt": now,
        "updatedAt": now,
        "lastMessage": "Who is bringing the banner?",
        "lastMessageSender": "Maya",
        "lastMessageAt": now,
    })
    db.collection("group_messages").add({
        "groupId": group_ref.id,
        "senderId": maya,
        "senderType": "human",
        "content": "Who is bringing the banner?",
        "displayName": "Maya",
        "timestamp": now,
    })

    post_ref = db.collection("posts").document()
    post_ref.set({
        "authorId": leo,
        "authorName": "Leo",
        "authorPhotoURL": users[leo]["profileImageUrl"],
        "text": "New studio shots are up!",
        "imageURL": None,
        "audience": "anyone",
        "likeCount": 1,
        "likedBy": [maya],
        "commentsCount": 1,
        "repostCount": 0,
        "shareCount": 0,
        "createdAt": now,
    })
    post_ref.collection("comments").add({
        "authorId": maya,
        "authorName": "Maya",
        "authorPhotoURL": users[maya]["profileImageUrl"],
        "text": "These look great",
        "createdAt": now,
    })

    print("✅ Seed completed successfully (emulator)")


def main():
    _init_firebase()
    db = firestore.client()

    if "--reset" in sys.argv:
        clear_all(db)

    seed(db)


if __name__ == "__main__":
    main()
