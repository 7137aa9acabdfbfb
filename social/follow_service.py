"""
One-way follow edges at friendships/{viewerId}_{targetId}.
"""
import logging
from typing import Any, Dict, List

from .constants import NOTIFICATION_NEW_FOLLOWER
from .errors import BadRequest, NotFound
from .firebase_service import FirestoreService
from .notification_service import notification_service

logger = logging.getLogger("social")


def follow_id(viewer_uid: str, target_uid: str) -> str:
    return f"{viewer_uid}_{target_uid}"


class FollowService(FirestoreService):

    def follow_ref(self, viewer_uid: str, target_uid: str):
        return self.db.collection(self.FOLLOWS_COLLECTION).document(follow_id(viewer_uid, target_uid))

    def is_following(self, viewer_uid: str, target_uid: str) -> bool:
        if viewer_uid == target_uid:
            return False
        return self.follow_ref(viewer_uid, target_uid).get().exists

    def follow(self, viewer_uid: str, target_uid: str) -> Dict[str, Any]:
        if viewer_uid == target_uid:
            raise BadRequest("cannot_follow_self")
        if not self.user_ref(target_uid).get().exists:
            raise NotFound("user_not_found", uid=target_uid)

        ref = self.follow_ref(viewer_uid, target_uid)

        def _txn(transaction):
            if ref.get(transaction=transaction).exists:
                return False
            now = self.now()
            transaction.set(ref, {
                "viewerId": viewer_uid,
                "targetId": target_uid,
                "createdAt": now,
                "updatedAt": now,
            })
            return True

        created = self.run_transaction(_txn)
        if created:
            logger.info(f"User followed: {viewer_uid} -> {target_uid}")
            notification_service.add(target_uid, NOTIFICATION_NEW_FOLLOWER, viewer_uid)
        return {"following": True, "created": created}

    def unfollow(self, viewer_uid: str, target_uid: str) -> Dict[str, Any]:
        if viewer_uid == target_uid:
            raise BadRequest("cannot_unfollow_self")
        ref = self.follow_ref(viewer_uid, target_uid)
        existed = ref.get().exists
        if existed:
            ref.delete()
            logger.info(f"User unfollowed: {viewer_uid} -> {target_uid}")
        return {"following": False, "removed": existed}

    def followers(self, uid: str) -> List[str]:
        query = self.db.collection(self.FOLLOWS_COLLECTION).where("targetId", "==", uid)
        return [(doc.to_dict() or {}).get("viewerId") for doc in query.stream()]

    def following(self, uid: str) -> List[str]:
        query = self.db.collection(self.FOLLOWS_COLLECTION).where("viewerId", "==", uid)
        return [(doc.to_dict() or {}).get("targetId") for doc in query.stream()]

    def counts(self, uid: str) -> Dict[str, int]:
        return {
            "followers": len(self.followers(uid)),
            "following": len(self.following(uid)),
        }


# Singleton instance
follow_service = FollowService()
