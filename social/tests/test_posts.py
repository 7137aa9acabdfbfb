from unittest.mock import patch

from social.constants import MAX_POST_LENGTH
from social.errors import BadRequest, Conflict, Forbidden, NotFound
from social.post_service import can_view, post_service, resolve_audience

from .base import FirestoreTestCase


class AudienceTests(FirestoreTestCase):

    def test_resolve_audience(self):
        self.assertEqual(resolve_audience({}), "anyone")
        self.assertEqual(resolve_audience({"audience": "friends"}), "friends")
        self.assertEqual(resolve_audience({"visibility": "friends"}), "friends")
        self.assertEqual(resolve_audience({"audience": "everyone"}), "anyone")

    def test_can_view(self):
        post = {"authorId": "alice", "audience": "friends"}
        self.assertTrue(can_view(post, "alice", set()))
        self.assertTrue(can_view(post, "bob", {"alice"}))
        self.assertFalse(can_view(post, "carol", set()))
        self.assertTrue(can_view({"authorId": "alice"}, "carol", set()))


class PostTestCase(FirestoreTestCase):

    def setUp(self):
        super().setUp()
        self.make_user("alice", "Alice", friends=["bob"], profileImageUrl="https://img/alice.png")
        self.make_user("bob", "Bob", friends=["alice"])
        self.make_user("carol", "Carol")


class CreatePostTests(PostTestCase):

    def test_create_post(self):
        post = post_service.create_post("alice", text="  first post  ")

        self.assertEqual(post["text"], "first post")
        self.assertEqual(post["audience"], "anyone")
        self.assertEqual(post["authorName"], "Alice")
        self.assertEqual(post["authorPhotoURL"], "https://img/alice.png")
        self.assertFalse(post["liked"])
        stored = self.db.data(f"posts/{post['id']}")
        self.assertEqual(stored["likeCount"], 0)
        self.assertEqual(stored["likedBy"], [])
        self.assertIsNone(stored["imageURL"])

    def test_image_only_post(self):
        post = post_service.create_post("alice", image_url="https://img/cake.png", audience="friends")
        self.assertEqual(post["text"], "")
        self.assertEqual(post["imageURL"], "https://img/cake.png")
        self.assertEqual(post["audience"], "friends")

    def test_rejects_invalid_posts(self):
        cases = [
            ({"text": "   "}, "empty_post"),
            ({"text": "x" * (MAX_POST_LENGTH + 1)}, "post_too_long"),
            ({"text": 12}, "invalid_text"),
            ({"text": "hi", "image_url": 3}, "invalid_fields"),
            ({"text": "hi", "audience": "public"}, "invalid_audience"),
        ]
        for kwargs, code in cases:
            with self.assertRaises(BadRequest) as ctx:
                post_service.create_post("alice", **kwargs)
            self.assertEqual(ctx.exception.code, code)
        self.assertEqual(self.db.paths("posts/"), [])

    def test_requires_profile(self):
        with self.assertRaises(NotFound):
            post_service.create_post("ghost", text="hello")

    def test_delete_post_with_comments(self):
        post_id = post_service.create_post("alice", text="bye")["id"]
        post_service.add_comment(post_id, "bob", "one")
        post_service.add_comment(post_id, "carol", "two")

        with self.assertRaises(Forbidden) as ctx:
            post_service.delete_post(post_id, "bob")
        self.assertEqual(ctx.exception.code, "not_post_author")

        result = post_service.delete_post(post_id, "alice")
        self.assertEqual(result["deletedComments"], 2)
        self.assertEqual(self.db.paths("posts/"), [])

    def test_delete_splits_batches(self):
        post_id = post_service.create_post("alice", text="bye")["id"]
        for text in ("a", "b", "c"):
            post_service.add_comment(post_id, "bob", text)
        commits = self.db.commits

        with patch("social.firebase_service.FIRESTORE_BATCH_LIMIT", 2):
            post_service.delete_post(post_id, "alice")

        self.assertEqual(self.db.commits - commits, 2)
        self.assertEqual(self.db.paths("posts/"), [])

    def test_delete_missing_post(self):
        with self.assertRaises(NotFound):
            post_service.delete_post("nope", "alice")


class FeedTests(PostTestCase):

    def setUp(self):
        super().setUp()
        self.public_id = post_service.create_post("alice", text="hello world")["id"]
        self.private_id = post_service.create_post("alice", text="friends only", audience="friends")["id"]

    def test_friends_only_posts_are_filtered(self):
        bob_feed = post_service.list_feed("bob")["posts"]
        self.assertEqual([p["id"] for p in bob_feed], [self.private_id, self.public_id])

        carol_feed = post_service.list_feed("carol")["posts"]
        self.assertEqual([p["id"] for p in carol_feed], [self.public_id])

        alice_feed = post_service.list_feed("alice")["posts"]
        self.assertEqual(len(alice_feed), 2)

    def test_audience_filter(self):
        feed = post_service.list_feed("bob", audience="friends")["posts"]
        self.assertEqual([p["id"] for p in feed], [self.private_id])
        with self.assertRaises(BadRequest):
            post_service.list_feed("bob", audience="public")

    def test_paging(self):
        for i in range(3):
            post_service.create_post("carol", text=f"c{i}")

        first = post_service.list_feed("bob", limit=2)
        self.assertEqual([p["text"] for p in first["posts"]], ["c2", "c1"])
        self.assertTrue(first["hasMore"])

        second = post_service.list_feed("bob", limit=2, before=first["nextCursor"])
        self.assertEqual([p["text"] for p in second["posts"]], ["c0", "friends only"])
        self.assertTrue(second["hasMore"])

        third = post_service.list_feed("bob", limit=2, before=second["nextCursor"].isoformat())
        self.assertEqual([p["text"] for p in third["posts"]], ["hello world"])
        self.assertFalse(third["hasMore"])
        self.assertIsNone(third["nextCursor"])

    def test_filtered_page_still_advances(self):
        first = post_service.list_feed("carol", limit=1)
        self.assertEqual(first["posts"], [])
        self.assertTrue(first["hasMore"])

        second = post_service.list_feed("carol", limit=1, before=first["nextCursor"])
        self.assertEqual([p["id"] for p in second["posts"]], [self.public_id])

    def test_invalid_before(self):
        with self.assertRaises(BadRequest):
            post_service.list_feed("bob", before="last week")

    def test_get_post_visibility(self):
        self.assertEqual(post_service.get_post(self.private_id, "bob")["text"], "friends only")
        with self.assertRaises(Forbidden) as ctx:
            post_service.get_post(self.private_id, "carol")
        self.assertEqual(ctx.exception.code, "post_not_visible")
        with self.assertRaises(NotFound):
            post_service.get_post("nope", "bob")


class EngagementTests(PostTestCase):

    def setUp(self):
        super().setUp()
        self.post_id = post_service.create_post("alice", text="like me")["id"]
        self.private_id = post_service.create_post("alice", text="friends only", audience="friends")["id"]

    def test_like_and_unlike(self):
        result = post_service.like(self.post_id, "bob")
        self.assertEqual(result, {"postId": self.post_id, "liked": True, "likeCount": 1})
        self.assertEqual(self.db.data(f"posts/{self.post_id}")["likedBy"], ["bob"])
        self.assertTrue(post_service.get_post(self.post_id, "bob")["liked"])

        with self.assertRaises(Conflict) as ctx:
            post_service.like(self.post_id, "bob")
        self.assertEqual(ctx.exception.code, "already_liked")

        result = post_service.unlike(self.post_id, "bob")
        self.assertEqual(result["likeCount"], 0)
        self.assertEqual(self.db.data(f"posts/{self.post_id}")["likedBy"], [])

        with self.assertRaises(Conflict) as ctx:
            post_service.unlike(self.post_id, "bob")
        self.assertEqual(ctx.exception.code, "not_liked")

    def test_toggle_like(self):
        self.assertTrue(post_service.toggle_like(self.post_id, "carol")["liked"])
        post_service.like(self.post_id, "bob")
        result = post_service.toggle_like(self.post_id, "carol")
        self.assertFalse(result["liked"])
        self.assertEqual(result["likeCount"], 1)
        self.assertEqual(self.db.data(f"posts/{self.post_id}")["likedBy"], ["bob"])

    def test_cannot_engage_with_hidden_post(self):
        for action in (post_service.like, post_service.repost, post_service.share):
            with self.assertRaises(Forbidden):
                action(self.private_id, "carol")
        with self.assertRaises(Forbidden):
            post_service.add_comment(self.private_id, "carol", "let me in")
        self.assertEqual(self.db.data(f"posts/{self.private_id}")["likeCount"], 0)

    def test_missing_post(self):
        with self.assertRaises(NotFound):
            post_service.like("nope", "bob")

    def test_repost_and_share_counts(self):
        self.assertEqual(post_service.repost(self.post_id, "bob")["repostCount"], 1)
        self.assertEqual(post_service.repost(self.post_id, "carol")["repostCount"], 2)
        self.assertEqual(post_service.share(self.post_id, "bob")["shareCount"], 1)
        stored = self.db.data(f"posts/{self.post_id}")
        self.assertEqual((stored["repostCount"], stored["shareCount"]), (2, 1))

    def test_comments(self):
        first = post_service.add_comment(self.post_id, "bob", "  nice  ")
        post_service.add_comment(self.post_id, "carol", "agreed")

        self.assertEqual(first["comment"]["text"], "nice")
        self.assertEqual(first["comment"]["authorName"], "Bob")
        self.assertEqual(first["commentsCount"], 1)
        self.assertEqual(self.db.data(f"posts/{self.post_id}")["commentsCount"], 2)

        comments = post_service.list_comments(self.post_id, "alice")
        self.assertEqual([c["text"] for c in comments], ["nice", "agreed"])

    def test_rejects_empty_comment(self):
        with self.assertRaises(BadRequest) as ctx:
            post_service.add_comment(self.post_id, "bob", "  ")
        self.assertEqual(ctx.exception.code, "empty_comment")
        with self.assertRaises(BadRequest) as ctx:
            post_service.add_comment(self.post_id, "bob", {"text": "hi"})
        self.assertEqual(ctx.exception.code, "invalid_text")


class PostApiTests(PostTestCase):

    def test_create_and_feed(self):
        response = self.post_json("/api/posts", {"text": "hello", "audience": "friends"}, uid="alice")
        self.assertEqual(response.status_code, 201)
        post_id = response.json()["post"]["id"]

        response = self.get_json("/api/posts", uid="bob")
        self.assertEqual(response.status_code, 200)
        self.assertEqual([p["id"] for p in response.json()["posts"]], [post_id])
        self.assertFalse(response.json()["hasMore"])

        response = self.get_json("/api/posts", uid="carol")
        self.assertEqual(response.json()["count"], 0)

    def test_feed_cursor_round_trips_through_json(self):
        for i in range(3):
            self.post_json("/api/posts", {"text": f"p{i}"}, uid="carol")

        first = self.get_json("/api/posts", uid="bob", limit=2).json()
        self.assertEqual([p["text"] for p in first["posts"]], ["p2", "p1"])

        second = self.get_json("/api/posts", uid="bob", limit=2, before=first["nextCursor"]).json()
        self.assertEqual([p["text"] for p in second["posts"]], ["p0"])

    def test_like_comment_and_delete(self):
        post_id = post_service.create_post("alice", text="hi")["id"]

        response = self.post_json(f"/api/posts/{post_id}/like", {}, uid="bob")
        self.assertEqual(response.json()["likeCount"], 1)
        response = self.post_json(f"/api/posts/{post_id}/like", {}, uid="bob")
        self.assertEqual(response.status_code, 409)
        response = self.post_json(f"/api/posts/{post_id}/toggle-like", {}, uid="bob")
        self.assertFalse(response.json()["liked"])

        response = self.post_json(f"/api/posts/{post_id}/comments", {"text": "cool"}, uid="carol")
        self.assertEqual(response.status_code, 201)
        response = self.get_json(f"/api/posts/{post_id}/comments", uid="bob")
        self.assertEqual([c["text"] for c in response.json()["comments"]], ["cool"])

        response = self.post_json(f"/api/posts/{post_id}/share", {}, uid="carol")
        self.assertEqual(response.json()["shareCount"], 1)

        response = self.post_json(f"/api/posts/{post_id}/delete", {}, uid="carol")
        self.assertEqual(response.status_code, 403)
        response = self.post_json(f"/api/posts/{post_id}/delete", {}, uid="alice")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(self.get_json(f"/api/posts/{post_id}", uid="alice").status_code, 404)

    def test_non_string_text(self):
        response = self.post_json("/api/posts", {"text": 5}, uid="alice")
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["error"], "invalid_text")
