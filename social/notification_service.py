"""
Per-user notification inbox stored on users/{uid}.notifications, with push fan-out.

Notification structure:
{
    "id": "uuid hex",
    "type": "friend_request" | "request_sent" | "request_accepted" | "new_message" | "new_follower",
    "fromUserUid": "uid of the actor",
    "message": "Display text",
    "timestamp": Timestamp,
    "read": false,
    "archived": false,
    "chatRoomId": "optional",
    "requestId": "optional"
}
"""
import logging
import uuid
from typing import Any, Callable, Dict, List, Optional, Tuple

from .constants import (
    MAX_NOTIFICATIONS,
    NOTIFICATION_FRIEND_REQUEST,
    NOTIFICATION_NEW_FOLLOWER,
    NOTIFICATION_NEW_MESSAGE,
    NOTIFICATION_REQUEST_ACCEPTED,
    NOTIFICATION_REQUEST_SENT,
    NOTIFICATION_TYPES,
)
from .errors import BadRequest, NotFound
from .firebase_service import FirestoreService, user_summary
from .push_service import PushResult, push_service
from .user_service import user_service
from .utils import run_async, time_sort_key

logger = logging.getLogger("social")

_MESSAGES = {
    NOTIFICATION_FRIEND_REQUEST: "{name} sent you a friend request!",
    NOTIFICATION_REQUEST_SENT: "Friend request sent to {name}.",
    NOTIFICATION_REQUEST_ACCEPTED: "{name} accepted your friend request!",
    NOTIFICATION_NEW_MESSAGE: "{name} sent you a message.",
    NOTIFICATION_NEW_FOLLOWER: "{name} started following you.",
}


def message_for(notif_type: str, actor_name: str) -> str:
    template = _MESSAGES.get(notif_type)
    if template is None:
        raise BadRequest("invalid_notification_type", valid=list(NOTIFICATION_TYPES))
    return template.format(name=actor_name or "Someone")


def merge_notification(items: List[Dict[str, Any]], notification: Dict[str, Any]) -> List[Dict[str, Any]]:
    """
    Append a notification to an inbox list.

    An unread new_message entry for the same chat room is replaced rather
    than duplicated, and the list is capped at MAX_NOTIFICATIONS by dropping
    the oldest entries.
    """
    if notification["type"] == NOTIFICATION_NEW_MESSAGE and notification.get("chatRoomId"):
        items = [
            item for item in items
            if not (
                item.get("type") == NOTIFICATION_NEW_MESSAGE
                and item.get("chatRoomId") == notification["chatRoomId"]
                and not item.get("read")
                and not item.get("archived")
            )
        ]
    items = list(items) + [notification]
    if len(items) > MAX_NOTIFICATIONS:
        items = items[-MAX_NOTIFICATIONS:]
    return items


class NotificationService(FirestoreService):

    # =========================================================================
    # Create + fan-out
    # =========================================================================

    def add(
        self,
        uid: str,
        notif_type: str,
        from_uid: str,
        message: Optional[str] = None,
        chat_room_id: Optional[str] = None,
        request_id: Optional[str] = None,
        push: bool = True,
    ) -> Tuple[Dict[str, Any], Optional[PushResult]]:
        """
        Store a notification for uid and push it to the user's device.

        Returns (notification, push_result); push_result is None when no
        push was attempted.
        """
        if notif_type not in NOTIFICATION_TYPES:
            raise BadRequest("invalid_notification_type", valid=list(NOTIFICATION_TYPES))

        if message is None:
            actor = user_summary(self.get_user_or_none(from_uid))
            message = message_for(notif_type, actor["name"] if actor else "Someone")

        notification = {
            "id": uuid.uuid4().hex,
            "type": notif_type,
            "fromUserUid": from_uid,
            "message": message,
            "timestamp": self.now(),
            "read": False,
            "archived": False,
        }
        if chat_room_id:
            notification["chatRoomId"] = chat_room_id
        if request_id:
            notification["requestId"] = request_id

        ref = self.user_ref(uid)

        def _txn(transaction):
            snapshot = ref.get(transaction=transaction)
            if not snapshot.exists:
                raise NotFound("user_not_found", uid=uid)
            data = snapshot.to_dict() or {}
            items = merge_notification(data.get("notifications") or [], notification)
            transaction.update(ref, {"notifications": items})
            return data

        user = self.run_transaction(_txn)
        logger.info(f"Notification {notif_type} added for {uid} from {from_uid}")

        push_result = self._push(uid, user, notification) if push else None
        return notification, push_result

    def _push(self, uid: str, user: Dict[str, Any], notification: Dict[str, Any]) -> Optional[PushResult]:
        platform = user.get("platform") or ""
        fcm_token = user.get("fcmToken")
        apns_token = user.get("apnsToken")

        if not fcm_token and not apns_token:
            logger.debug(f"No push token for {uid}, skipping push")
            return None

        try:
            result = run_async(push_service.send_notification_push(
                platform=platform,
                fcm_token=fcm_token,
                apns_token=apns_token,
                notification=notification,
            ))
        except Exception as e:
            logger.error(f"Push fan-out failed for {uid}: {e}")
            return PushResult(success=False, platform=platform, error=str(e), error_code="exception")

        if not result.success:
            logger.warning(f"Push to {uid} failed: {result.error_code} {result.error}")
            if result.error_code == "UNREGISTERED":
                user_service.clear_push_token(uid, "apnsToken" if platform == "ios" else "fcmToken")
        return result

    # =========================================================================
    # Inbox reads
    # =========================================================================

    def list(self, uid: str, include_archived: bool = False, unread_only: bool = False) -> List[Dict[str, Any]]:
        user = self.get_user(uid)
        items = [
            item for item in user.get("notifications") or []
            if (include_archived or not item.get("archived"))
            and (not unread_only or not item.get("read"))
        ]
        items.sort(key=lambda item: time_sort_key(item.get("timestamp")), reverse=True)
        return items

    def unread_count(self, uid: str) -> int:
        user = self.get_user(uid)
        return sum(
            1 for item in user.get("notifications") or []
            if not item.get("read") and not item.get("archived")
        )

    # =========================================================================
    # Inbox mutations
    # =========================================================================

    def _rewrite(self, uid: str, change: Callable[[List[Dict[str, Any]]], List[Dict[str, Any]]]):
        ref = self.user_ref(uid)

        def _txn(transaction):
            snapshot = ref.get(transaction=transaction)
            if not snapshot.exists:
                raise NotFound("user_not_found", uid=uid)
            items = (snapshot.to_dict() or {}).get("notifications") or []
            updated = change(list(items))
            transaction.update(ref, {"notifications": updated})
            return updated

        return self.run_transaction(_txn)

    def _update_one(self, uid: str, notification_id: str, **fields) -> Dict[str, Any]:
        found = {}

        def _change(items):
            updated = []
            for item in items:
                if item.get("id") == notification_id:
                    item = {**item, **fields}
                    found["item"] = item
                updated.append(item)
            if "item" not in found:
                raise NotFound("notification_not_found", notificationId=notification_id)
            return updated

        self._rewrite(uid, _change)
        return found["item"]

    def mark_read(self, uid: str, notification_id: str) -> Dict[str, Any]:
        return self._update_one(uid, notification_id, read=True)

    def archive(self, uid: str, notification_id: str) -> Dict[str, Any]:
        return self._update_one(uid, notification_id, read=True, archived=True)

    def mark_all_read(self, uid: str) -> int:
        changed = []

        def _change(items):
            changed.clear()
            changed.extend(item for item in items if not item.get("read"))
            return [{**item, "read": True} for item in items]

        self._rewrite(uid, _change)
        logger.info(f"Marked {len(changed)} notifications read for {uid}")
        return len(changed)

    def remove(self, uid: str, notification_id: str) -> None:
        def _change(items):
            remaining = [item for item in items if item.get("id") != notification_id]
            if len(remaining) == len(items):
                raise NotFound("notification_not_found", notificationId=notification_id)
            return remaining

        self._rewrite(uid, _change)

    def remove_for_request(self, uid: str, request_id: str) -> int:
        """Drop friend_request notifications pointing at a withdrawn request."""
        removed = []

        def _change(items):
            removed.clear()
            remaining = []
            for item in items:
                if item.get("type") == NOTIFICATION_FRIEND_REQUEST and item.get("requestId") == request_id:
                    removed.append(item)
                else:
                    remaining.append(item)
            return remaining

        try:
            self._rewrite(uid, _change)
        except NotFound:
            return 0
        return len(removed)


# Singleton instance
notification_service = NotificationService()
