"""
Community post feed with likes, comments, reposts and shares.

Post document at posts/{auto}:
{
    "id": "...",
    "authorId": "uid",
    "authorName": "...",
    "authorPhotoURL": "..." | null,
    "text": "...",
    "imageURL": "..." | null,
    "audience": "anyone" | "friends",
    "likeCount": 0,
    "likedBy": ["uid"],
    "commentsCount": 0,
    "repostCount": 0,
    "shareCount": 0,
    "createdAt": Timestamp
}

Comments at posts/{id}/comments/{auto}: authorId, authorName,
authorPhotoURL, text, createdAt.
"""
import logging
from typing import Any, Dict, List, Optional, Set

from firebase_admin import firestore as fb_firestore

from .constants import (
    AUDIENCE_ANYONE,
    AUDIENCE_FRIENDS,
    DEFAULT_FEED_PAGE_SIZE,
    DEFAULT_MESSAGE_PAGE_SIZE,
    MAX_COMMENT_LENGTH,
    MAX_FEED_PAGE_SIZE,
    MAX_MESSAGE_PAGE_SIZE,
    MAX_POST_LENGTH,
    POST_AUDIENCES,
)
from .errors import BadRequest, Conflict, Forbidden, NotFound
from .firebase_service import FirestoreService, snapshot_data, user_summary
from .utils import clamp_int, normalize_datetime

logger = logging.getLogger("social")


def resolve_audience(post: Dict[str, Any]) -> str:
    """Older posts carry "visibility" instead of "audience"."""
    raw = post.get("audience") or post.get("visibility") or AUDIENCE_ANYONE
    return AUDIENCE_FRIENDS if raw == AUDIENCE_FRIENDS else AUDIENCE_ANYONE


def can_view(post: Dict[str, Any], viewer_uid: str, friend_ids: Set[str]) -> bool:
    if resolve_audience(post) == AUDIENCE_ANYONE:
        return True
    return post.get("authorId") == viewer_uid or post.get("authorId") in friend_ids


def _optional_str(value, field: str) -> Optional[str]:
    if value is None:
        return None
    if not isinstance(value, str):
        raise BadRequest("invalid_fields", invalid=[field])
    return value.strip() or None


class PostService(FirestoreService):

    def post_ref(self, post_id: str):
        return self.db.collection(self.POSTS_COLLECTION).document(post_id)

    def comments_ref(self, post_id: str):
        return self.post_ref(post_id).collection(self.COMMENTS_SUBCOLLECTION)

    def friend_ids(self, uid: str) -> Set[str]:
        user = self.get_user_or_none(uid)
        return set((user or {}).get("friends") or [])

    def present(self, post: Dict[str, Any], viewer_uid: str) -> Dict[str, Any]:
        post["audience"] = resolve_audience(post)
        post["likedBy"] = post.get("likedBy") or []
        post["liked"] = viewer_uid in post["likedBy"]
        for key in ("likeCount", "commentsCount", "repostCount", "shareCount"):
            post[key] = post.get(key) or 0
        return post

    def _check_visible(self, post: Dict[str, Any], viewer_uid: str, friend_ids: Set[str]):
        if not can_view(post, viewer_uid, friend_ids):
            raise Forbidden("post_not_visible", postId=post["id"])

    def get_post(self, post_id: str, viewer_uid: str) -> Dict[str, Any]:
        snapshot = self.post_ref(post_id).get()
        if not snapshot.exists:
            raise NotFound("post_not_found", postId=post_id)
        post = snapshot_data(snapshot)
        self._check_visible(post, viewer_uid, self.friend_ids(viewer_uid))
        return self.present(post, viewer_uid)

    # =========================================================================
    # Create / delete
    # =========================================================================

    def create_post(self, uid: str, text=None, image_url=None, audience=None) -> Dict[str, Any]:
        if text is not None and not isinstance(text, str):
            raise BadRequest("invalid_text")
        text = (text or "").strip()
        image_url = _optional_str(image_url, "image_url")
        audience = audience or AUDIENCE_ANYONE
        if audience not in POST_AUDIENCES:
            raise BadRequest("invalid_audience", valid=list(POST_AUDIENCES))
        if not text and not image_url:
            raise BadRequest("empty_post")
        if len(text) > MAX_POST_LENGTH:
            raise BadRequest("post_too_long", maxLength=MAX_POST_LENGTH)

        author = user_summary(self.get_user(uid))
        ref = self.db.collection(self.POSTS_COLLECTION).document()
        post = {
            "authorId": uid,
            "authorName": author["name"],
            "authorPhotoURL": author.get("profileImageUrl"),
            "text": text,
            "imageURL": image_url,
            "audience": audience,
            "likeCount": 0,
            "likedBy": [],
            "commentsCount": 0,
            "repostCount": 0,
            "shareCount": 0,
            "createdAt": self.now(),
        }
        ref.set(post)
        logger.info(f"Post {ref.id} created by {uid} ({audience})")
        return self.present({"id": ref.id, **post}, uid)

    def delete_post(self, post_id: str, uid: str) -> Dict[str, Any]:
        """Author only. Removes the post and every comment under it."""
        snapshot = self.post_ref(post_id).get()
        if not snapshot.exists:
            raise NotFound("post_not_found", postId=post_id)
        if (snapshot.to_dict() or {}).get("authorId") != uid:
            raise Forbidden("not_post_author")

        comment_refs = [doc.reference for doc in self.comments_ref(post_id).stream()]
        ops = [("delete", ref, None) for ref in comment_refs]
        ops.append(("delete", self.post_ref(post_id), None))
        self.commit_in_batches(ops)
        logger.info(f"Post {post_id} deleted by {uid} with {len(comment_refs)} comments")
        return {"postId": post_id, "deleted": True, "deletedComments": len(comment_refs)}

    # =========================================================================
    # Feed
    # =========================================================================

    def list_feed(self, viewer_uid: str, limit=None, before=None, audience=None) -> Dict[str, Any]:
        """
        Newest posts first. Friends-only posts are shown to the author and
        the author's friends.

        The page scans limit posts; filtered posts make it shorter. Pass
        nextCursor back as before to continue after the scanned window.
        """
        limit = clamp_int(limit, DEFAULT_FEED_PAGE_SIZE, 1, MAX_FEED_PAGE_SIZE)
        if audience and audience not in POST_AUDIENCES:
            raise BadRequest("invalid_audience", valid=list(POST_AUDIENCES))

        query = self.db.collection(self.POSTS_COLLECTION)
        if before is not None:
            before_dt = normalize_datetime(before)
            if before_dt is None:
                raise BadRequest("invalid_before")
            query = query.where("createdAt", "<", before_dt)

        docs = list(
            query.order_by("createdAt", direction=fb_firestore.Query.DESCENDING)
            .limit(limit + 1)
            .stream()
        )
        has_more = len(docs) > limit
        scanned = [snapshot_data(doc) for doc in docs[:limit]]
        friend_ids = self.friend_ids(viewer_uid)

        posts = []
        for post in scanned:
            if audience and resolve_audience(post) != audience:
                continue
            if not can_view(post, viewer_uid, friend_ids):
                continue
            posts.append(self.present(post, viewer_uid))

        return {
            "posts": posts,
            "hasMore": has_more,
            "nextCursor": scanned[-1].get("createdAt") if has_more and scanned else None,
        }

    # =========================================================================
    # Likes
    # =========================================================================

    def _set_like(self, post_id: str, uid: str, want: Optional[bool]) -> Dict[str, Any]:
        """
        want=True likes, want=False unlikes, None flips the current state.
        """
        ref = self.post_ref(post_id)
        friend_ids = self.friend_ids(uid)

        def _txn(transaction):
            snapshot = ref.get(transaction=transaction)
            if not snapshot.exists:
                raise NotFound("post_not_found", postId=post_id)
            post = snapshot_data(snapshot)
            self._check_visible(post, uid, friend_ids)

            liked_by = post.get("likedBy") or []
            count = post.get("likeCount") or 0
            liked = uid in liked_by
            like = not liked if want is None else want
            if like and liked:
                raise Conflict("already_liked")
            if not like and not liked:
                raise Conflict("not_liked")

            if like:
                count += 1
                transaction.update(ref, {"likedBy": fb_firestore.ArrayUnion([uid]), "likeCount": count})
            else:
                count = max(0, count - 1)
                transaction.update(ref, {"likedBy": fb_firestore.ArrayRemove([uid]), "likeCount": count})
            return like, count

        liked, count = self.run_transaction(_txn)
        logger.info(f"Post {post_id} {'liked' if liked else 'unliked'} by {uid}")
        return {"postId": post_id, "liked": liked, "likeCount": count}

    def like(self, post_id: str, uid: str) -> Dict[str, Any]:
        return self._set_like(post_id, uid, True)

    def unlike(self, post_id: str, uid: str) -> Dict[str, Any]:
        return self._set_like(post_id, uid, False)

    def toggle_like(self, post_id: str, uid: str) -> Dict[str, Any]:
        return self._set_like(post_id, uid, None)

    # =========================================================================
    # Reposts / shares
    # =========================================================================

    def _bump(self, post_id: str, uid: str, field: str) -> int:
        ref = self.post_ref(post_id)
        friend_ids = self.friend_ids(uid)

        def _txn(transaction):
            snapshot = ref.get(transaction=transaction)
            if not snapshot.exists:
                raise NotFound("post_not_found", postId=post_id)
            post = snapshot_data(snapshot)
            self._check_visible(post, uid, friend_ids)
            count = (post.get(field) or 0) + 1
            transaction.update(ref, {field: count})
            return count

        return self.run_transaction(_txn)

    def repost(self, post_id: str, uid: str) -> Dict[str, Any]:
        count = self._bump(post_id, uid, "repostCount")
        logger.info(f"Post {post_id} reposted by {uid}")
        return {"postId": post_id, "repostCount": count}

    def share(self, post_id: str, uid: str) -> Dict[str, Any]:
        count = self._bump(post_id, uid, "shareCount")
        logger.info(f"Post {post_id} shared by {uid}")
        return {"postId": post_id, "shareCount": count}

    # =========================================================================
    # Comments
    # =========================================================================

    def add_comment(self, post_id: str, uid: str, text) -> Dict[str, Any]:
        if text is not None and not isinstance(text, str):
            raise BadRequest("invalid_text")
        text = (text or "").strip()
        if not text:
            raise BadRequest("empty_comment")
        if len(text) > MAX_COMMENT_LENGTH:
            raise BadRequest("comment_too_long", maxLength=MAX_COMMENT_LENGTH)

        author = user_summary(self.get_user(uid))
        friend_ids = self.friend_ids(uid)
        ref = self.post_ref(post_id)
        comment_ref = self.comments_ref(post_id).document()

        def _txn(transaction):
            snapshot = ref.get(transaction=transaction)
            if not snapshot.exists:
                raise NotFound("post_not_found", postId=post_id)
            post = snapshot_data(snapshot)
            self._check_visible(post, uid, friend_ids)

            comment = {
                "authorId": uid,
                "authorName": author["name"],
                "authorPhotoURL": author.get("profileImageUrl"),
                "text": text,
                "createdAt": self.now(),
            }
            count = (post.get("commentsCount") or 0) + 1
            transaction.set(comment_ref, comment)
            transaction.update(ref, {"commentsCount": count})
            return comment, count

        comment, count = self.run_transaction(_txn)
        logger.info(f"Comment {comment_ref.id} added to post {post_id} by {uid}")
        return {"comment": {"id": comment_ref.id, **comment}, "commentsCount": count}

    def list_comments(self, post_id: str, uid: str, limit=None) -> List[Dict[str, Any]]:
        """Oldest first."""
        self.get_post(post_id, uid)
        limit = clamp_int(limit, DEFAULT_MESSAGE_PAGE_SIZE, 1, MAX_MESSAGE_PAGE_SIZE)
        docs = self.comments_ref(post_id).order_by("createdAt").limit(limit).stream()
        return [snapshot_data(doc) for doc in docs]


# Singleton instance
post_service = PostService()
