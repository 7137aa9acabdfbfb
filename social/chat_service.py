"""
Direct (1:1) chat rooms and their messages.

Room document at chatRooms/{pairKey}:
{
    "id": "uidA_uidB",
    "members": ["uidA", "uidB"],
    "pairKey": "uidA_uidB",
    "createdAt": Timestamp,
    "lastMessageAt": Timestamp | null,
    "lastMessage": {"senderId": "...", "text": "..."} | null,
    "archivedBy": {"uid": true},
    "deletedBy": {"uid": true},
    "readAt": {"uid": Timestamp},
    "canHardDelete": ["uidA", "uidB"]
}

Messages at chatRooms/{id}/messages/{auto}: senderId, text, createdAt.
"""
import logging
from typing import Any, Dict, List, Tuple

from firebase_admin import firestore as fb_firestore

from .constants import (
    DEFAULT_MESSAGE_PAGE_SIZE,
    MAX_MESSAGE_LENGTH,
    MAX_MESSAGE_PAGE_SIZE,
    NOTIFICATION_NEW_MESSAGE,
)
from .errors import BadRequest, Forbidden, NotFound
from .firebase_service import FirestoreService, snapshot_data, user_summary
from .notification_service import notification_service
from .user_service import user_service
from .utils import clamp_int, normalize_datetime, time_sort_key

logger = logging.getLogger("social")

PREVIEW_LENGTH = 120


def pair_key(uid_a: str, uid_b: str) -> str:
    """Deterministic key for a 1:1 room, independent of argument order."""
    return "_".join(sorted([uid_a, uid_b]))


def is_visible(room: Dict[str, Any], uid: str, archived: bool = False) -> bool:
    """
    Inbox rooms are neither archived nor deleted by uid. The archive list
    only looks at archivedBy, so an archived room stays there after a delete.
    """
    if uid not in (room.get("members") or []):
        return False
    is_archived = bool((room.get("archivedBy") or {}).get(uid))
    if archived:
        return is_archived
    return not is_archived and not (room.get("deletedBy") or {}).get(uid)


def sort_rooms(rooms: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Newest activity first; rooms without messages go last."""
    with_messages = [r for r in rooms if r.get("lastMessageAt")]
    without = [r for r in rooms if not r.get("lastMessageAt")]
    with_messages.sort(key=lambda r: time_sort_key(r["lastMessageAt"]), reverse=True)
    without.sort(key=lambda r: time_sort_key(r.get("createdAt")), reverse=True)
    return with_messages + without


class ChatService(FirestoreService):

    def room_ref(self, room_id: str):
        return self.db.collection(self.CHAT_ROOMS_COLLECTION).document(room_id)

    def messages_ref(self, room_id: str):
        return self.room_ref(room_id).collection(self.MESSAGES_SUBCOLLECTION)

    def _load_room(self, room_id: str) -> Dict[str, Any]:
        snapshot = self.room_ref(room_id).get()
        if not snapshot.exists:
            raise NotFound("chat_room_not_found", chatRoomId=room_id)
        return snapshot_data(snapshot)

    def get_room(self, room_id: str, uid: str) -> Dict[str, Any]:
        """Load a room the caller is a member of."""
        room = self._load_room(room_id)
        if uid not in (room.get("members") or []):
            raise Forbidden("not_room_member")
        return room

    # =========================================================================
    # Room creation
    # =========================================================================

    def ensure_direct_room(self, uid_a: str, uid_b: str) -> Tuple[Dict[str, Any], bool]:
        """
        Get or create the room for a pair. The room id is the pair key, so
        concurrent callers converge on one document.
        """
        if uid_a == uid_b:
            raise BadRequest("cannot_chat_with_self")

        key = pair_key(uid_a, uid_b)
        ref = self.room_ref(key)

        def _txn(transaction):
            snapshot = ref.get(transaction=transaction)
            if snapshot.exists:
                return snapshot_data(snapshot), False
            room = {
                "id": key,
                "members": [uid_a, uid_b],
                "pairKey": key,
                "createdAt": self.now(),
                "lastMessageAt": None,
                "lastMessage": None,
                "archivedBy": {},
                "deletedBy": {},
                "readAt": {},
                "canHardDelete": [uid_a, uid_b],
            }
            transaction.set(ref, room)
            return room, True

        room, created = self.run_transaction(_txn)
        if created:
            logger.info(f"Chat room created: {key}")
        return room, created

    def open_direct_chat(self, uid: str, other_uid: str) -> Dict[str, Any]:
        """Open (or reopen) the direct chat between two friends."""
        if uid == other_uid:
            raise BadRequest("cannot_chat_with_self")
        user = self.get_user(uid)
        if other_uid not in (user.get("friends") or []):
            raise Forbidden("not_friends")

        room, created = self.ensure_direct_room(uid, other_uid)
        if (room.get("deletedBy") or {}).get(uid):
            self.room_ref(room["id"]).update({f"deletedBy.{uid}": fb_firestore.DELETE_FIELD})
            room["deletedBy"] = {k: v for k, v in room["deletedBy"].items() if k != uid}
        return {"room": room, "created": created}

    # =========================================================================
    # Messages
    # =========================================================================

    def send_message(self, room_id: str, sender_uid: str, text: str) -> Dict[str, Any]:
        if text is not None and not isinstance(text, str):
            raise BadRequest("invalid_text")
        text = (text or "").strip()
        if not text:
            raise BadRequest("empty_message")
        if len(text) > MAX_MESSAGE_LENGTH:
            raise BadRequest("message_too_long", maxLength=MAX_MESSAGE_LENGTH)

        room = self.get_room(room_id, sender_uid)

        now = self.now()
        message_ref = self.messages_ref(room_id).document()
        message = {
            "id": message_ref.id,
            "roomId": room_id,
            "senderId": sender_uid,
            "text": text,
            "createdAt": now,
        }

        batch = self.db.batch()
        batch.set(message_ref, {
            "senderId": sender_uid,
            "text": text,
            "createdAt": now,
        })
        batch.update(self.room_ref(room_id), {
            "lastMessageAt": now,
            "lastMessage": {"senderId": sender_uid, "text": text[:PREVIEW_LENGTH]},
            f"readAt.{sender_uid}": now,
            # New activity brings the room back for members who deleted it
            "deletedBy": {},
        })
        batch.commit()
        logger.info(f"Message {message_ref.id} sent to room {room_id} by {sender_uid}")

        sender = user_summary(self.get_user_or_none(sender_uid))
        sender_name = sender["name"] if sender else "Someone"
        preview = text if len(text) <= PREVIEW_LENGTH else text[:PREVIEW_LENGTH - 3] + "..."

        push_sent = False
        for member in room.get("members") or []:
            if member == sender_uid:
                continue
            try:
                _, push_result = notification_service.add(
                    member,
                    NOTIFICATION_NEW_MESSAGE,
                    sender_uid,
                    message=f"{sender_name}: {preview}",
                    chat_room_id=room_id,
                )
            except NotFound:
                logger.warning(f"Room {room_id} member {member} has no user document")
                continue
            push_sent = push_sent or bool(push_result and push_result.success)

        return {"message": message, "pushSent": push_sent}

    def list_messages(self, room_id: str, uid: str, limit=None, before=None) -> List[Dict[str, Any]]:
        """Page of messages in ascending time order, newest page first."""
        self.get_room(room_id, uid)
        limit = clamp_int(limit, DEFAULT_MESSAGE_PAGE_SIZE, 1, MAX_MESSAGE_PAGE_SIZE)

        query = self.messages_ref(room_id)
        if before is not None:
            before_dt = normalize_datetime(before)
            if before_dt is None:
                raise BadRequest("invalid_before")
            query = query.where("createdAt", "<", before_dt)

        docs = (
            query.order_by("createdAt", direction=fb_firestore.Query.DESCENDING)
            .limit(limit)
            .stream()
        )
        messages = []
        for doc in docs:
            data = snapshot_data(doc)
            data["roomId"] = room_id
            messages.append(data)
        messages.reverse()
        return messages

    def mark_read(self, room_id: str, uid: str) -> Dict[str, Any]:
        self.get_room(room_id, uid)
        now = self.now()
        self.room_ref(room_id).update({f"readAt.{uid}": now})
        return {"chatRoomId": room_id, "readAt": now}

    def unread_count(self, room: Dict[str, Any], uid: str) -> int:
        if not room.get("lastMessageAt"):
            return 0
        read_at = normalize_datetime((room.get("readAt") or {}).get(uid))
        if read_at is not None and time_sort_key(room["lastMessageAt"]) <= read_at:
            return 0

        query = self.messages_ref(room["id"])
        if read_at is not None:
            query = query.where("createdAt", ">", read_at)
        # Filtered in Python to avoid a composite index on senderId + createdAt
        return sum(1 for doc in query.stream() if (doc.to_dict() or {}).get("senderId") != uid)

    # =========================================================================
    # Room listing
    # =========================================================================

    def list_user_chats(self, uid: str, archived: bool = False) -> List[Dict[str, Any]]:
        query = self.db.collection(self.CHAT_ROOMS_COLLECTION).where("members", "array_contains", uid)
        rooms = [snapshot_data(doc) for doc in query.stream()]
        rooms = sort_rooms([room for room in rooms if is_visible(room, uid, archived=archived)])

        other_uids = sorted({
            member for room in rooms for member in room.get("members") or [] if member != uid
        })
        summaries = user_service.get_summaries(other_uids)

        for room in rooms:
            others = [m for m in room.get("members") or [] if m != uid]
            room["otherMember"] = summaries.get(others[0]) if others else None
            room["unreadCount"] = self.unread_count(room, uid)
        logger.debug(f"Found {len(rooms)} {'archived' if archived else 'active'} chat rooms for {uid}")
        return rooms

    # =========================================================================
    # Archive / delete
    # =========================================================================

    def archive_chat(self, room_id: str, uid: str) -> Dict[str, Any]:
        self.get_room(room_id, uid)
        self.room_ref(room_id).update({f"archivedBy.{uid}": True})
        logger.info(f"Chat {room_id} archived for {uid}")
        return {"chatRoomId": room_id, "archived": True}

    def unarchive_chat(self, room_id: str, uid: str) -> Dict[str, Any]:
        self.get_room(room_id, uid)
        self.room_ref(room_id).update({f"archivedBy.{uid}": fb_firestore.DELETE_FIELD})
        logger.info(f"Chat {room_id} unarchived for {uid}")
        return {"chatRoomId": room_id, "archived": False}

    def delete_chat_for_user(self, room_id: str, uid: str) -> Dict[str, Any]:
        """Hide the room for uid; hard delete once every member has deleted it."""
        ref = self.room_ref(room_id)

        def _txn(transaction):
            snapshot = ref.get(transaction=transaction)
            if not snapshot.exists:
                raise NotFound("chat_room_not_found", chatRoomId=room_id)
            room = snapshot_data(snapshot)
            members = room.get("members") or []
            if uid not in members:
                raise Forbidden("not_room_member")
            deleted_by = {**(room.get("deletedBy") or {}), uid: True}
            transaction.update(ref, {f"deletedBy.{uid}": True})
            return all(deleted_by.get(member) for member in members)

        everyone_deleted = self.run_transaction(_txn)
        logger.info(f"Chat {room_id} deleted for {uid}")

        if everyone_deleted:
            logger.info(f"All members deleted chat {room_id}; performing hard delete")
            self._hard_delete(room_id)
        return {"chatRoomId": room_id, "hardDeleted": everyone_deleted}

    def delete_chat_for_everyone(self, room_id: str, uid: str) -> Dict[str, Any]:
        room = self._load_room(room_id)
        if uid not in (room.get("canHardDelete") or []):
            raise Forbidden("not_allowed_to_delete")
        deleted = self._hard_delete(room_id)
        return {"chatRoomId": room_id, "hardDeleted": True, "deletedMessages": deleted}

    def _hard_delete(self, room_id: str) -> int:
        """Delete all messages and the room document. Returns message count."""
        message_refs = [doc.reference for doc in self.messages_ref(room_id).stream()]
        ops = [("delete", ref, None) for ref in message_refs]
        ops.append(("delete", self.room_ref(room_id), None))
        self.commit_in_batches(ops)
        logger.info(f"Chat room {room_id} permanently deleted with {len(message_refs)} messages")
        return len(message_refs)


# Singleton instance
chat_service = ChatService()
