import asyncio
from unittest.mock import AsyncMock, Mock, patch

import httpx
from django.test import SimpleTestCase
from firebase_admin import messaging

from social.push_service import APNsService, FCMService, PushNotificationService, PushResult, build_push_content


class BuildPushContentTests(SimpleTestCase):

    def test_chat_message(self):
        title, body, data = build_push_content({
            "id": "n1",
            "type": "new_message",
            "fromUserUid": "alice",
            "message": "Alice: hi",
            "chatRoomId": "alice_bob",
        })
        self.assertEqual(title, "New message")
        self.assertEqual(body, "Alice: hi")
        self.assertEqual(data, {
            "type": "new_message",
            "notificationId": "n1",
            "fromUserUid": "alice",
            "chatRoomId": "alice_bob",
        })

    def test_data_values_are_strings(self):
        _, _, data = build_push_content({"id": 7, "type": "friend_request", "requestId": "a_b"})
        self.assertTrue(all(isinstance(value, str) for value in data.values()))
        self.assertEqual(data["requestId"], "a_b")
        self.assertNotIn("chatRoomId", data)


class PushRoutingTests(SimpleTestCase):

    def setUp(self):
        self.service = PushNotificationService()
        self.ok = PushResult(success=True, platform="test", message_id="id-1")
        self.notification = {
            "id": "n1",
            "type": "new_message",
            "fromUserUid": "alice",
            "message": "Alice: hi",
            "chatRoomId": "alice_bob",
        }

    def _send(self, platform, fcm_token=None, apns_token=None):
        return asyncio.run(self.service.send_notification_push(
            platform=platform,
            fcm_token=fcm_token,
            apns_token=apns_token,
            notification=self.notification,
        ))

    def test_ios_goes_to_apns(self):
        with patch.object(self.service.apns, "send_alert_push", AsyncMock(return_value=self.ok)) as apns:
            result = self._send("ios", apns_token="apns-token")

        self.assertTrue(result.success)
        token, payload, collapse_id = apns.await_args.args
        self.assertEqual(token, "apns-token")
        self.assertEqual(payload["aps"]["alert"], {"title": "New message", "body": "Alice: hi"})
        self.assertEqual(payload["aps"]["thread-id"], "alice_bob")
        self.assertEqual(collapse_id, "alice_bob")

    def test_android_goes_to_fcm(self):
        with patch.object(self.service.fcm, "send_message", AsyncMock(return_value=self.ok)) as fcm:
            self._send("android", fcm_token="fcm-token")

        args = fcm.await_args
        self.assertEqual(args.args[:3], ("fcm-token", "New message", "Alice: hi"))
        self.assertEqual(args.kwargs["platform"], "android")

    def test_missing_token(self):
        result = self._send("ios", fcm_token="fcm-token")
        self.assertFalse(result.success)
        self.assertEqual(result.error_code, "missing_token")

    def test_unconfigured_apns(self):
        self.service.apns.private_key = None
        result = self._send("ios", apns_token="apns-token")
        self.assertEqual(result.error_code, "not_configured")


class APNsErrorTests(SimpleTestCase):

    def setUp(self):
        self.apns = APNsService()
        self.apns.team_id = "TEAM"
        self.apns.key_id = "KEY"
        self.apns.bundle_id = "com.creatorhub.app"
        self.apns.private_key = "unused"
        patcher = patch.object(self.apns, "_generate_token", return_value="jwt")
        patcher.start()
        self.addCleanup(patcher.stop)

    def _send(self, post):
        with patch.object(httpx.AsyncClient, "post", new=post):
            return asyncio.run(self.apns.send_alert_push("apns-token", {"aps": {}}, "alice_bob"))

    def test_success(self):
        response = httpx.Response(200, headers={"apns-id": "apns-1"})
        result = self._send(AsyncMock(return_value=response))
        self.assertTrue(result.success)
        self.assertEqual(result.message_id, "apns-1")

    def test_gone_token_is_unregistered(self):
        response = httpx.Response(410, json={"reason": "Unregistered"})
        result = self._send(AsyncMock(return_value=response))
        self.assertFalse(result.success)
        self.assertEqual(result.error_code, "UNREGISTERED")
        self.assertEqual(result.error, "Unregistered")

    def test_bad_device_token_is_unregistered(self):
        response = httpx.Response(400, json={"reason": "BadDeviceToken"})
        result = self._send(AsyncMock(return_value=response))
        self.assertEqual(result.error_code, "UNREGISTERED")

    def test_other_failure_keeps_status(self):
        response = httpx.Response(403, json={"reason": "InvalidProviderToken"})
        result = self._send(AsyncMock(return_value=response))
        self.assertEqual(result.error_code, "403")

    def test_timeout(self):
        result = self._send(AsyncMock(side_effect=httpx.ConnectTimeout("timed out")))
        self.assertFalse(result.success)
        self.assertEqual(result.error_code, "timeout")

    def test_transport_error(self):
        result = self._send(AsyncMock(side_effect=httpx.ConnectError("refused")))
        self.assertEqual(result.error_code, "exception")


class FCMErrorTests(SimpleTestCase):

    def setUp(self):
        self.fcm = FCMService()
        self.fcm._messaging = messaging

    def _send(self, send):
        with patch.object(messaging, "send", new=send):
            return asyncio.run(self.fcm.send_message("fcm-token", "Title", "Body", {"type": "new_message"}))

    def test_success(self):
        result = self._send(Mock(return_value="projects/p/messages/1"))
        self.assertTrue(result.success)
        self.assertEqual(result.message_id, "projects/p/messages/1")

    def test_unregistered_token(self):
        result = self._send(Mock(side_effect=messaging.UnregisteredError("Requested entity was not found.")))
        self.assertFalse(result.success)
        self.assertEqual(result.error_code, "UNREGISTERED")

    def test_sender_id_mismatch(self):
        result = self._send(Mock(side_effect=messaging.SenderIdMismatchError("Sender mismatch")))
        self.assertEqual(result.error_code, "SENDER_ID_MISMATCH")

    def test_other_error(self):
        result = self._send(Mock(side_effect=ValueError("bad message")))
        self.assertEqual(result.error_code, "exception")
        self.assertEqual(result.error, "bad message")
