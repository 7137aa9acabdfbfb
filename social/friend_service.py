"""
Friend requests and friendships.

Request documents live at friendRequests/{fromUid}_{toUid}, so a pair has at
most one request per direction. The request id is mirrored in the sender's
users/{uid}.sentRequests and the receiver's users/{uid}.incomingRequests;
accepted friends are kept in users/{uid}.friends with the start time in
users/{uid}.friendsSince.{friendUid}.
"""
import logging
from typing import Any, Dict, List

from firebase_admin import firestore as fb_firestore

from .chat_service import chat_service
from .constants import (
    NOTIFICATION_FRIEND_REQUEST,
    NOTIFICATION_REQUEST_ACCEPTED,
    NOTIFICATION_REQUEST_SENT,
    REQUEST_ACCEPTED,
    REQUEST_CANCELLED,
    REQUEST_DECLINED,
    REQUEST_PENDING,
)
from .errors import BadRequest, Conflict, Forbidden, NotFound
from .firebase_service import FirestoreService, snapshot_data, user_summary
from .notification_service import message_for, notification_service
from .user_service import user_service
from .utils import time_sort_key

logger = logging.getLogger("social")


def request_id(from_uid: str, to_uid: str) -> str:
    return f"{from_uid}_{to_uid}"


class FriendService(FirestoreService):

    def request_ref(self, req_id: str):
        return self.db.collection(self.FRIEND_REQUESTS_COLLECTION).document(req_id)

    def get_request(self, req_id: str, transaction=None) -> Dict[str, Any]:
        snapshot = self.request_ref(req_id).get(transaction=transaction)
        if not snapshot.exists:
            raise NotFound("request_not_found", requestId=req_id)
        return snapshot_data(snapshot)

    def are_friends(self, uid: str, other_uid: str) -> bool:
        user = self.get_user_or_none(uid)
        return bool(user) and other_uid in (user.get("friends") or [])

    # =========================================================================
    # Request lifecycle
    # =========================================================================

    def send_request(self, from_uid: str, to_uid: str) -> Dict[str, Any]:
        """
        Create a pending request from from_uid to to_uid.

        Returns {"request": ..., "created": bool, "pushSent": bool}. An
        existing pending request in the same direction is returned as-is.
        """
        if not from_uid or not to_uid:
            raise BadRequest("missing_fields", required=["to_uid"])
        if from_uid == to_uid:
            raise BadRequest("cannot_request_self")

        req_id = request_id(from_uid, to_uid)
        reverse_id = request_id(to_uid, from_uid)
        req_ref = self.request_ref(req_id)
        reverse_ref = self.request_ref(reverse_id)
        from_ref = self.user_ref(from_uid)
        to_ref = self.user_ref(to_uid)

        def _txn(transaction):
            # All reads before any write
            from_snap = from_ref.get(transaction=transaction)
            to_snap = to_ref.get(transaction=transaction)
            existing = req_ref.get(transaction=transaction)
            reverse = reverse_ref.get(transaction=transaction)

            if not from_snap.exists:
                raise NotFound("user_not_found", uid=from_uid)
            if not to_snap.exists:
                raise NotFound("user_not_found", uid=to_uid)

            from_user = from_snap.to_dict() or {}
            to_user = to_snap.to_dict() or {}

            if to_uid in (from_user.get("friends") or []):
                raise Conflict("already_friends")
            if reverse.exists and (reverse.to_dict() or {}).get("status") == REQUEST_PENDING:
                raise Conflict("reverse_request_pending", requestId=reverse_id)
            if existing.exists and (existing.to_dict() or {}).get("status") == REQUEST_PENDING:
                return snapshot_data(existing), False

            now = self.now()
            request = {
                "id": req_id,
                "fromUid": from_uid,
                "toUid": to_uid,
                "fromName": user_summary({**from_user, "uid": from_uid})["name"],
                "toName": user_summary({**to_user, "uid": to_uid})["name"],
                "status": REQUEST_PENDING,
                "seen": False,
                "chatRoomId": None,
                "createdAt": now,
                "updatedAt": now,
            }
            transaction.set(req_ref, request)
            transaction.update(from_ref, {
                "sentRequests": fb_firestore.ArrayUnion([req_id]),
                "updatedAt": now,
            })
            transaction.update(to_ref, {
                "incomingRequests": fb_firestore.ArrayUnion([req_id]),
                "updatedAt": now,
            })
            return request, True

        request, created = self.run_transaction(_txn)

        if not created:
            logger.info(f"Friend request already pending: {req_id}")
            return {"request": request, "created": False, "pushSent": False}

        logger.info(f"Friend request created: {req_id}")

        _, push_result = notification_service.add(
            to_uid,
            NOTIFICATION_FRIEND_REQUEST,
            from_uid,
            message=message_for(NOTIFICATION_FRIEND_REQUEST, request["fromName"]),
            request_id=req_id,
        )
        notification_service.add(
            from_uid,
            NOTIFICATION_REQUEST_SENT,
            to_uid,
            message=message_for(NOTIFICATION_REQUEST_SENT, request["toName"]),
            request_id=req_id,
            push=False,
        )

        return {
            "request": request,
            "created": True,
            "pushSent": bool(push_result and push_result.success),
        }

    def accept_request(self, req_id: str, uid: str) -> Dict[str, Any]:
        """Accept a pending request addressed to uid and open the direct chat."""
        req_ref = self.request_ref(req_id)

        def _txn(transaction):
            request = self.get_request(req_id, transaction=transaction)
            if request.get("toUid") != uid:
                raise Forbidden("not_request_receiver")
            if request.get("status") != REQUEST_PENDING:
                raise Conflict("request_not_pending", currentStatus=request.get("status"))

            from_uid = request["fromUid"]
            from_ref = self.user_ref(from_uid)
            to_ref = self.user_ref(uid)
            from_snap = from_ref.get(transaction=transaction)
            to_snap = to_ref.get(transaction=transaction)
            if not from_snap.exists or not to_snap.exists:
                raise NotFound("user_not_found")

            now = self.now()
            transaction.update(req_ref, {
                "status": REQUEST_ACCEPTED,
                "seen": True,
                "updatedAt": now,
            })
            transaction.update(from_ref, {
                "friends": fb_firestore.ArrayUnion([uid]),
                f"friendsSince.{uid}": now,
                "sentRequests": fb_firestore.ArrayRemove([req_id]),
                "updatedAt": now,
            })
            transaction.update(to_ref, {
                "friends": fb_firestore.ArrayUnion([from_uid]),
                f"friendsSince.{from_uid}": now,
                "incomingRequests": fb_firestore.ArrayRemove([req_id]),
                "updatedAt": now,
            })
            request.update({"status": REQUEST_ACCEPTED, "seen": True, "updatedAt": now})
            return request

        request = self.run_transaction(_txn)
        logger.info(f"Friend request accepted: {req_id}")

        room, _ = chat_service.ensure_direct_room(request["fromUid"], request["toUid"])
        req_ref.update({"chatRoomId": room["id"]})
        request["chatRoomId"] = room["id"]

        # The receiver's own friend_request entry is settled now
        notification_service.remove_for_request(uid, req_id)
        _, push_result = notification_service.add(
            request["fromUid"],
            NOTIFICATION_REQUEST_ACCEPTED,
            uid,
            message=message_for(NOTIFICATION_REQUEST_ACCEPTED, request.get("toName")),
            chat_room_id=room["id"],
            request_id=req_id,
        )

        return {
            "request": request,
            "chatRoomId": room["id"],
            "pushSent": bool(push_result and push_result.success),
        }

    def _withdraw(self, req_id: str, uid: str, role: str) -> Dict[str, Any]:
        """Delete a pending request and unlink it from both users."""
        req_ref = self.request_ref(req_id)

        def _txn(transaction):
            request = self.get_request(req_id, transaction=transaction)
            if role == "receiver" and request.get("toUid") != uid:
                raise Forbidden("not_request_receiver")
            if role == "sender" and request.get("fromUid") != uid:
                raise Forbidden("not_request_sender")
            if request.get("status") != REQUEST_PENDING:
                raise Conflict("request_not_pending", currentStatus=request.get("status"))

            from_ref = self.user_ref(request["fromUid"])
            to_ref = self.user_ref(request["toUid"])
            from_exists = from_ref.get(transaction=transaction).exists
            to_exists = to_ref.get(transaction=transaction).exists

            now = self.now()
            transaction.delete(req_ref)
            if from_exists:
                transaction.update(from_ref, {
                    "sentRequests": fb_firestore.ArrayRemove([req_id]),
                    "updatedAt": now,
                })
            if to_exists:
                transaction.update(to_ref, {
                    "incomingRequests": fb_firestore.ArrayRemove([req_id]),
                    "updatedAt": now,
                })
            return request

        request = self.run_transaction(_txn)
        notification_service.remove_for_request(request["toUid"], req_id)
        return request

    def decline_request(self, req_id: str, uid: str) -> Dict[str, Any]:
        self._withdraw(req_id, uid, "receiver")
        logger.info(f"Friend request declined and removed: {req_id}")
        return {"requestId": req_id, "status": REQUEST_DECLINED}

    def cancel_request(self, req_id: str, uid: str) -> Dict[str, Any]:
        self._withdraw(req_id, uid, "sender")
        logger.info(f"Friend request cancelled and removed: {req_id}")
        return {"requestId": req_id, "status": REQUEST_CANCELLED}

    # =========================================================================
    # Listings
    # =========================================================================

    def _pending(self, field: str, uid: str) -> List[Dict[str, Any]]:
        # Sorted in Python so no composite index is needed
        query = (
            self.db.collection(self.FRIEND_REQUESTS_COLLECTION)
            .where(field, "==", uid)
            .where("status", "==", REQUEST_PENDING)
        )
        requests = [snapshot_data(doc) for doc in query.stream()]
        requests.sort(key=lambda r: time_sort_key(r.get("createdAt")), reverse=True)
        return requests

    def list_incoming(self, uid: str) -> List[Dict[str, Any]]:
        return self._pending("toUid", uid)

    def list_outgoing(self, uid: str) -> List[Dict[str, Any]]:
        return self._pending("fromUid", uid)

    def list_friends(self, uid: str) -> List[Dict[str, Any]]:
        user = self.get_user(uid)
        friend_uids = user.get("friends") or []
        since = user.get("friendsSince") or {}
        summaries = user_service.get_summaries(friend_uids)

        friends = []
        for friend_uid in friend_uids:
            summary = summaries.get(friend_uid)
            if summary is None:
                logger.warning(f"Friend {friend_uid} of {uid} has no user document")
                continue
            friends.append({**summary, "since": since.get(friend_uid)})
        return friends

    def remove_friend(self, uid: str, friend_uid: str) -> Dict[str, Any]:
        if uid == friend_uid:
            raise BadRequest("cannot_unfriend_self")

        user = self.get_user(uid)
        if friend_uid not in (user.get("friends") or []):
            raise Conflict("not_friends")

        now = self.now()
        ops = [
            ("update", self.user_ref(uid), {
                "friends": fb_firestore.ArrayRemove([friend_uid]),
                f"friendsSince.{friend_uid}": fb_firestore.DELETE_FIELD,
                "updatedAt": now,
            }),
        ]
        if self.user_ref(friend_uid).get().exists:
            ops.append(("update", self.user_ref(friend_uid), {
                "friends": fb_firestore.ArrayRemove([uid]),
                f"friendsSince.{uid}": fb_firestore.DELETE_FIELD,
                "updatedAt": now,
            }))

        # Drop the accepted request docs so a new request is possible later
        for req_id in (request_id(uid, friend_uid), request_id(friend_uid, uid)):
            if self.request_ref(req_id).get().exists:
                ops.append(("delete", self.request_ref(req_id), None))

        self.commit_in_batches(ops)
        logger.info(f"Friendship removed: {uid} <-> {friend_uid}")
        return {"uid": uid, "friendUid": friend_uid, "removed": True}


# Singleton instance
friend_service = FriendService()
