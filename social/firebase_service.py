"""
Firebase service for Django - Firestore integration for the social graph.

Firestore Collections:
- users/{uid}: Profile, friends, request id lists, notifications, push tokens
- friendRequests/{fromUid}_{toUid}: Friend request records
- chatRooms/{pairKey}: Direct chat rooms, messages in chatRooms/{id}/messages
- friendships/{viewerId}_{targetId}: Follow edges
"""
import os
import json
import logging
from typing import Any, Callable, Dict, Iterable, Optional, Tuple

from django.utils import timezone

from .constants import FIRESTORE_BATCH_LIMIT
from .errors import FirestoreUnavailable, NotFound

logger = logging.getLogger("social")

# Firebase Admin initialization
_firebase_app = None
_firestore_client = None
_firebase_init_attempted = False


def get_firebase_app():
    """Get or initialize Firebase Admin app"""
    global _firebase_app, _firebase_init_attempted

    if _firebase_app is not None:
        return _firebase_app

    if _firebase_init_attempted:
        # Already tried and failed
        return None

    _firebase_init_attempted = True

    import firebase_admin
    from firebase_admin import credentials

    use_emulator = os.environ.get("FIREBASE_USE_EMULATOR", "false").lower() == "true"
    project_id = os.environ.get("FIREBASE_PROJECT_ID")

    logger.info(f"Firebase init: use_emulator={use_emulator}, project_id={project_id}")

    if use_emulator:
        # Emulator mode - environment variable must be set BEFORE initializing
        firestore_host = os.environ.get("FIRESTORE_EMULATOR_HOST", "localhost:8080")
        os.environ["FIRESTORE_EMULATOR_HOST"] = firestore_host

        try:
            _firebase_app = firebase_admin.initialize_app(
                credential=None,
                options={
                    "projectId": project_id or "demo-creatorhub",
                }
            )
            logger.info(f"Firebase Admin initialized with EMULATOR (Firestore: {firestore_host})")
        except ValueError as e:
            # Already initialized
            try:
                _firebase_app = firebase_admin.get_app()
                logger.info("Firebase Admin already initialized")
            except ValueError:
                logger.error(f"Firebase init failed: {e}")
                return None
    else:
        # Production mode - need credentials
        service_account_json = os.environ.get("FIREBASE_SERVICE_ACCOUNT")
        service_account_path = os.environ.get("FIREBASE_SERVICE_ACCOUNT_PATH")

        cred = None
        if service_account_json:
            try:
                cred = credentials.Certificate(json.loads(service_account_json))
                logger.info("Using FIREBASE_SERVICE_ACCOUNT env var")
            except json.JSONDecodeError as e:
                logger.error(f"Invalid FIREBASE_SERVICE_ACCOUNT JSON: {e}")
        elif service_account_path and os.path.exists(service_account_path):
            cred = credentials.Certificate(service_account_path)
            logger.info(f"Using service account from {service_account_path}")

        if cred is None:
            logger.warning("Firebase credentials not found - Firestore operations will fail")
            return None

        options = {"projectId": project_id} if project_id else None
        try:
            _firebase_app = firebase_admin.initialize_app(cred, options=options)
            logger.info("Firebase Admin initialized (production)")
        except ValueError:
            _firebase_app = firebase_admin.get_app()

    return _firebase_app


def get_firestore():
    """Get Firestore client"""
    global _firestore_client

    if _firestore_client is not None:
        return _firestore_client

    app = get_firebase_app()
    if app is None:
        return None

    from firebase_admin import firestore
    _firestore_client = firestore.client(app)
    return _firestore_client


def run_transaction(db, callback: Callable[[Any], Any]):
    """
    Run ``callback(transaction)`` inside a Firestore transaction.

    The callback is retried by the client library on contention, so it must
    only read through the transaction and must not have side effects beyond
    the writes it queues on it.
    """
    from firebase_admin import firestore as fb_firestore

    return fb_firestore.transactional(callback)(db.transaction())


def snapshot_data(snapshot) -> Dict[str, Any]:
    data = snapshot.to_dict() or {}
    data.setdefault("id", snapshot.id)
    return data


class FirestoreService:
    """Base class for Firestore-backed services"""

    # Collection names
    USERS_COLLECTION = "users"
    FRIEND_REQUESTS_COLLECTION = "friendRequests"
    CHAT_ROOMS_COLLECTION = "chatRooms"
    MESSAGES_SUBCOLLECTION = "messages"
    FOLLOWS_COLLECTION = "friendships"
    GROUP_CHATS_COLLECTION = "group_chats"
    GROUP_MESSAGES_COLLECTION = "group_messages"
    POSTS_COLLECTION = "posts"
    COMMENTS_SUBCOLLECTION = "comments"

    @property
    def db(self):
        db = get_firestore()
        if db is None:
            raise FirestoreUnavailable()
        return db

    def is_available(self) -> bool:
        """Check if Firestore is available"""
        try:
            return get_firestore() is not None
        except Exception as e:
            logger.error(f"Failed to get Firestore client: {e}")
            return False

    @staticmethod
    def now():
        return timezone.now()

    def run_transaction(self, callback: Callable[[Any], Any]):
        return run_transaction(self.db, callback)

    # =========================================================================
    # Shared document helpers
    # =========================================================================

    def user_ref(self, uid: str):
        return self.db.collection(self.USERS_COLLECTION).document(uid)

    def get_user(self, uid: str, transaction=None) -> Dict[str, Any]:
        """Load users/{uid} or raise NotFound."""
        snapshot = self.user_ref(uid).get(transaction=transaction)
        if not snapshot.exists:
            raise NotFound("user_not_found", uid=uid)
        data = snapshot.to_dict() or {}
        data.setdefault("uid", snapshot.id)
        return data

    def get_user_or_none(self, uid: str) -> Optional[Dict[str, Any]]:
        snapshot = self.user_ref(uid).get()
        if not snapshot.exists:
            return None
        data = snapshot.to_dict() or {}
        data.setdefault("uid", snapshot.id)
        return data

    def commit_in_batches(self, ops: Iterable[Tuple[str, Any, Optional[dict]]]) -> int:
        """
        Apply (op, ref, data) tuples with write batches of at most
        FIRESTORE_BATCH_LIMIT writes. op is "set", "update" or "delete".

        Returns number of writes committed.
        """
        batch = self.db.batch()
        pending = 0
        total = 0
        for op, ref, data in ops:
            if op == "set":
                batch.set(ref, data)
            elif op == "update":
                batch.update(ref, data)
            elif op == "delete":
                batch.delete(ref)
            else:
                raise ValueError(f"unknown batch op: {op}")
            pending += 1
            total += 1
            if pending >= FIRESTORE_BATCH_LIMIT:
                batch.commit()
                batch = self.db.batch()
                pending = 0
        if pending:
            batch.commit()
        return total


def user_summary(user: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """Public subset of a user document used in lists."""
    if not user:
        return None
    return {
        "uid": user.get("uid"),
        "name": user.get("name") or user.get("displayName") or user.get("email") or "Unknown User",
        "profileImageUrl": user.get("profileImageUrl"),
    }


# Singleton instance
firestore_service = FirestoreService()
