"""
User profiles, push device registration and name search.
"""
import logging
from typing import Any, Dict, List, Optional

from firebase_admin import firestore as fb_firestore

from .constants import DEFAULT_SEARCH_LIMIT, MAX_SEARCH_LIMIT, PLATFORMS
from .errors import BadRequest, NotFound
from .firebase_service import FirestoreService, user_summary
from .utils import clamp_int

logger = logging.getLogger("social")

PROFILE_FIELDS = (
    "name",
    "displayName",
    "email",
    "businessName",
    "industry",
    "bio",
    "profileImageUrl",
)

# Prefix range end for Firestore string queries
_PREFIX_END = "\uf8ff"


def relationship(viewer: Dict[str, Any], other_uid: str) -> str:
    """Relationship of other_uid as seen from the viewer's user document."""
    viewer_uid = viewer.get("uid")
    if other_uid == viewer_uid:
        return "self"
    if other_uid in (viewer.get("friends") or []):
        return "friend"
    if f"{viewer_uid}_{other_uid}" in (viewer.get("sentRequests") or []):
        return "request_sent"
    if f"{other_uid}_{viewer_uid}" in (viewer.get("incomingRequests") or []):
        return "request_received"
    return "none"


class UserService(FirestoreService):

    def get_profile(self, uid: str) -> Dict[str, Any]:
        user = self.get_user(uid)
        profile = {key: user.get(key) for key in PROFILE_FIELDS if key in user}
        profile.update({
            "uid": user["uid"],
            "friends": user.get("friends") or [],
            "friendCount": len(user.get("friends") or []),
            "createdAt": user.get("createdAt"),
            "updatedAt": user.get("updatedAt"),
        })
        return profile

    def upsert_profile(self, uid: str, fields: Dict[str, Any]) -> Dict[str, Any]:
        """
        Create or update users/{uid} with whitelisted profile fields.

        New documents get empty friend/request/notification lists.
        """
        updates = {}
        for key in PROFILE_FIELDS:
            if key in fields:
                value = fields[key]
                if key == "name" and not isinstance(value, str):
                    raise BadRequest("invalid_name")
                if value is not None and not isinstance(value, str):
                    raise BadRequest("invalid_fields", invalid=[key])
                updates[key] = value.strip() if isinstance(value, str) else value

        if "name" in updates:
            if not updates["name"]:
                raise BadRequest("invalid_name")
            updates["nameLower"] = updates["name"].lower()

        ref = self.user_ref(uid)
        snapshot = ref.get()
        now = self.now()
        updates["updatedAt"] = now

        if snapshot.exists:
            ref.update(updates)
            logger.info(f"Updated profile {uid}: {sorted(k for k in updates if k != 'updatedAt')}")
        else:
            if not updates.get("name"):
                raise BadRequest("missing_fields", required=["name"])
            doc = {
                "uid": uid,
                "friends": [],
                "friendsSince": {},
                "incomingRequests": [],
                "sentRequests": [],
                "notifications": [],
                "createdAt": now,
            }
            doc.update(updates)
            ref.set(doc)
            logger.info(f"Created profile {uid}")

        return self.get_profile(uid)

    def register_device(self, uid: str, platform: str, token: str) -> Dict[str, Any]:
        if not isinstance(platform, str) or platform not in PLATFORMS:
            raise BadRequest("invalid_platform", valid=list(PLATFORMS))
        if not token:
            raise BadRequest("missing_fields", required=["token"])
        if not isinstance(token, str):
            raise BadRequest("invalid_fields", invalid=["token"])

        ref = self.user_ref(uid)
        if not ref.get().exists:
            raise NotFound("user_not_found", uid=uid)

        field = "apnsToken" if platform == "ios" else "fcmToken"
        ref.update({
            field: token,
            "platform": platform,
            "updatedAt": self.now(),
        })
        logger.info(f"Registered {platform} device for {uid}")
        return {"platform": platform, "tokenField": field}

    def clear_push_token(self, uid: str, field: str) -> None:
        """Drop a token the push provider reported as unregistered."""
        try:
            self.user_ref(uid).update({field: fb_firestore.DELETE_FIELD})
            logger.info(f"Cleared {field} for {uid}")
        except Exception as e:
            logger.error(f"Error clearing {field} for {uid}: {e}")

    def search_users(self, viewer_uid: str, query: str, limit=None) -> List[Dict[str, Any]]:
        query = (query or "").strip().lower()
        if not query:
            raise BadRequest("missing_query")
        limit = clamp_int(limit, DEFAULT_SEARCH_LIMIT, 1, MAX_SEARCH_LIMIT)

        viewer = self.get_user(viewer_uid)

        docs = (
            self.db.collection(self.USERS_COLLECTION)
            .where("nameLower", ">=", query)
            .where("nameLower", "<=", query + _PREFIX_END)
            .order_by("nameLower")
            .limit(limit + 1)
            .stream()
        )

        results = []
        for doc in docs:
            if doc.id == viewer_uid:
                continue
            data = doc.to_dict() or {}
            data.setdefault("uid", doc.id)
            summary = user_summary(data)
            summary["businessName"] = data.get("businessName")
            summary["relationship"] = relationship(viewer, doc.id)
            results.append(summary)
            if len(results) >= limit:
                break
        return results

    def get_summaries(self, uids: List[str]) -> Dict[str, Optional[Dict[str, Any]]]:
        """Fetch user summaries for many uids in one round trip."""
        if not uids:
            return {}
        refs = [self.user_ref(uid) for uid in uids]
        summaries = {}
        for snapshot in self.db.get_all(refs):
            if snapshot.exists:
                data = snapshot.to_dict() or {}
                data.setdefault("uid", snapshot.id)
                summaries[snapshot.id] = user_summary(data)
        return summaries


# Singleton instance
user_service = UserService()
