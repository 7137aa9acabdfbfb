"""
Group chats between several users.

Group document at group_chats/{auto}:
{
    "id": "...",
    "name": "Launch crew",
    "createdBy": "uid",
    "participants": [{"id", "type": "human", "displayName", "avatar"?, "joinedAt"}],
    "participantIds": ["uid", ...],
    "createdAt": Timestamp,
    "updatedAt": Timestamp,
    "lastMessage": "",
    "lastMessageSender": "",
    "lastMessageAt": Timestamp | null
}

Messages live in the top-level group_messages collection with a groupId
field: senderId, senderType, content, displayName, avatar?, timestamp.
"""
import logging
from typing import Any, Dict, List, Tuple

from firebase_admin import firestore as fb_firestore

from .constants import (
    DEFAULT_MESSAGE_PAGE_SIZE,
    MAX_GROUP_NAME_LENGTH,
    MAX_MESSAGE_LENGTH,
    MAX_MESSAGE_PAGE_SIZE,
)
from .errors import BadRequest, Forbidden, NotFound
from .firebase_service import FirestoreService, snapshot_data, user_summary
from .user_service import user_service
from .utils import clamp_int, normalize_datetime, time_sort_key

logger = logging.getLogger("social")

PREVIEW_LENGTH = 120


def make_participant(summary: Dict[str, Any], joined_at) -> Dict[str, Any]:
    participant = {
        "id": summary["uid"],
        "type": "human",
        "displayName": summary["name"],
        "joinedAt": joined_at,
    }
    # Firestore rejects undefined values, so avatar is only set when known
    if summary.get("profileImageUrl"):
        participant["avatar"] = summary["profileImageUrl"]
    return participant


class GroupChatService(FirestoreService):

    def group_ref(self, group_id: str):
        return self.db.collection(self.GROUP_CHATS_COLLECTION).document(group_id)

    def get_group(self, group_id: str, uid: str) -> Dict[str, Any]:
        """Load a group the caller participates in."""
        snapshot = self.group_ref(group_id).get()
        if not snapshot.exists:
            raise NotFound("group_not_found", groupId=group_id)
        group = snapshot_data(snapshot)
        if uid not in (group.get("participantIds") or []):
            raise Forbidden("not_group_member")
        return group

    def create_group(self, creator_uid: str, name, member_uids) -> Dict[str, Any]:
        if not isinstance(name, str) or not name.strip():
            raise BadRequest("invalid_name")
        name = name.strip()
        if len(name) > MAX_GROUP_NAME_LENGTH:
            raise BadRequest("name_too_long", maxLength=MAX_GROUP_NAME_LENGTH)
        if not isinstance(member_uids, list) or not all(isinstance(m, str) for m in member_uids):
            raise BadRequest("invalid_fields", invalid=["member_uids"])

        invited = []
        for member in member_uids:
            if member and member != creator_uid and member not in invited:
                invited.append(member)
        if not invited:
            raise BadRequest("no_participants")

        creator = user_summary(self.get_user(creator_uid))
        summaries = user_service.get_summaries(invited)
        missing = [member for member in invited if member not in summaries]
        if missing:
            raise NotFound("user_not_found", uids=missing)

        now = self.now()
        participants = [make_participant(creator, now)]
        participants.extend(make_participant(summaries[member], now) for member in invited)

        ref = self.db.collection(self.GROUP_CHATS_COLLECTION).document()
        group = {
            "id": ref.id,
            "name": name,
            "createdBy": creator_uid,
            "participants": participants,
            # Flat id list for array_contains queries
            "participantIds": [p["id"] for p in participants],
            "createdAt": now,
            "updatedAt": now,
            "lastMessage": "",
            "lastMessageSender": "",
            "lastMessageAt": None,
        }
        ref.set(group)
        logger.info(f"Group chat {ref.id} created by {creator_uid} with {len(participants)} participants")
        return group

    def list_user_groups(self, uid: str) -> List[Dict[str, Any]]:
        query = self.db.collection(self.GROUP_CHATS_COLLECTION).where("participantIds", "array_contains", uid)
        groups = [snapshot_data(doc) for doc in query.stream()]
        # Sorted here so no composite index on participantIds + updatedAt is needed
        groups.sort(key=lambda g: time_sort_key(g.get("updatedAt")), reverse=True)
        return groups

    def add_participant(self, group_id: str, uid: str, new_uid) -> Dict[str, Any]:
        """Add a user to a group the caller belongs to. Re-adding is a no-op."""
        if not isinstance(new_uid, str) or not new_uid:
            raise BadRequest("invalid_fields", invalid=["participant_uid"])
        summary = user_summary(self.get_user(new_uid))
        ref = self.group_ref(group_id)

        def _txn(transaction) -> Tuple[Dict[str, Any], bool]:
            snapshot = ref.get(transaction=transaction)
            if not snapshot.exists:
                raise NotFound("group_not_found", groupId=group_id)
            group = snapshot_data(snapshot)
            participant_ids = group.get("participantIds") or []
            if uid not in participant_ids:
                raise Forbidden("not_group_member")
            if new_uid in participant_ids:
                return group, False

            now = self.now()
            participant = make_participant(summary, now)
            transaction.update(ref, {
                "participants": fb_firestore.ArrayUnion([participant]),
                "participantIds": fb_firestore.ArrayUnion([new_uid]),
                "updatedAt": now,
            })
            group["participants"] = (group.get("participants") or []) + [participant]
            group["participantIds"] = participant_ids + [new_uid]
            group["updatedAt"] = now
            return group, True

        group, added = self.run_transaction(_txn)
        if added:
            logger.info(f"{new_uid} added to group {group_id} by {uid}")
        return {"group": group, "added": added}

    # =========================================================================
    # Messages
    # =========================================================================

    def send_group_message(self, group_id: str, sender_uid: str, text) -> Dict[str, Any]:
        if text is not None and not isinstance(text, str):
            raise BadRequest("invalid_text")
        text = (text or "").strip()
        if not text:
            raise BadRequest("empty_message")
        if len(text) > MAX_MESSAGE_LENGTH:
            raise BadRequest("message_too_long", maxLength=MAX_MESSAGE_LENGTH)

        group = self.get_group(group_id, sender_uid)
        sender = next((p for p in group.get("participants") or [] if p.get("id") == sender_uid), None)
        if sender is None:
            sender = make_participant(user_summary(self.get_user(sender_uid)), None)

        now = self.now()
        message_ref = self.db.collection(self.GROUP_MESSAGES_COLLECTION).document()
        message = {
            "groupId": group_id,
            "senderId": sender_uid,
            "senderType": "human",
            "content": text,
            "displayName": sender["displayName"],
            "timestamp": now,
        }
        if sender.get("avatar"):
            message["avatar"] = sender["avatar"]

        batch = self.db.batch()
        batch.set(message_ref, message)
        batch.update(self.group_ref(group_id), {
            "updatedAt": now,
            "lastMessage": text[:PREVIEW_LENGTH],
            "lastMessageSender": sender["displayName"],
            "lastMessageAt": now,
        })
        batch.commit()
        logger.info(f"Group message {message_ref.id} sent to {group_id} by {sender_uid}")

        return {"message": {"id": message_ref.id, **message}}

    def list_group_messages(self, group_id: str, uid: str, limit=None, before=None) -> List[Dict[str, Any]]:
        """Page of messages in ascending time order, newest page first."""
        self.get_group(group_id, uid)
        limit = clamp_int(limit, DEFAULT_MESSAGE_PAGE_SIZE, 1, MAX_MESSAGE_PAGE_SIZE)

        query = self.db.collection(self.GROUP_MESSAGES_COLLECTION).where("groupId", "==", group_id)
        if before is not None:
            before_dt = normalize_datetime(before)
            if before_dt is None:
                raise BadRequest("invalid_before")
            query = query.where("timestamp", "<", before_dt)

        docs = (
            query.order_by("timestamp", direction=fb_firestore.Query.DESCENDING)
            .limit(limit)
            .stream()
        )
        messages = [snapshot_data(doc) for doc in docs]
        messages.reverse()
        return messages


# Singleton instance
group_chat_service = GroupChatService()
