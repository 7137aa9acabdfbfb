"""
Push notification service for iOS (APNs) and Android/Web (FCM via Firebase Admin SDK)
"""
import logging
import os
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

import httpx
import jwt

from .constants import (
    NOTIFICATION_FRIEND_REQUEST,
    NOTIFICATION_NEW_FOLLOWER,
    NOTIFICATION_NEW_MESSAGE,
    NOTIFICATION_REQUEST_ACCEPTED,
    NOTIFICATION_REQUEST_SENT,
)

logger = logging.getLogger("social")

PUSH_TITLES = {
    NOTIFICATION_FRIEND_REQUEST: "New friend request",
    NOTIFICATION_REQUEST_SENT: "Friend request sent",
    NOTIFICATION_REQUEST_ACCEPTED: "Friend request accepted",
    NOTIFICATION_NEW_MESSAGE: "New message",
    NOTIFICATION_NEW_FOLLOWER: "New follower",
}


@dataclass
class PushResult:
    """Result of a push notification attempt"""
    success: bool
    platform: str
    message_id: Optional[str] = None
    error: Optional[str] = None
    error_code: Optional[str] = None


def build_push_content(notification: Dict[str, Any]) -> Tuple[str, str, Dict[str, str]]:
    """
    Build (title, body, data) for a stored notification.

    FCM requires every data value to be a string.
    """
    notif_type = notification.get("type", "")
    title = PUSH_TITLES.get(notif_type, "CreatorHub")
    body = notification.get("message") or ""

    data = {
        "type": notif_type,
        "notificationId": notification.get("id", ""),
        "fromUserUid": notification.get("fromUserUid", ""),
    }
    for key in ("chatRoomId", "requestId"):
        if notification.get(key):
            data[key] = notification[key]

    return title, body, {k: str(v) for k, v in data.items()}


class APNsService:
    """
    Apple Push Notification service for alert pushes.
    Uses HTTP/2 with JWT authentication.
    """

    APNS_PRODUCTION_HOST = "api.push.apple.com"
    APNS_SANDBOX_HOST = "api.sandbox.push.apple.com"

    def __init__(self):
        self.team_id = os.environ.get("APNS_TEAM_ID")
        self.key_id = os.environ.get("APNS_KEY_ID")
        self.bundle_id = os.environ.get("APNS_BUNDLE_ID")
        self.use_sandbox = os.environ.get("APNS_USE_SANDBOX", "0") == "1"

        # Private key can be provided as file path or direct content
        key_path = os.environ.get("APNS_KEY_PATH")
        key_content = os.environ.get("APNS_KEY_CONTENT")

        self.private_key = None
        if key_path and os.path.exists(key_path):
            with open(key_path, "r") as f:
                self.private_key = f.read()
        elif key_content:
            # Handle escaped newlines in env var
            self.private_key = key_content.replace("\\n", "\n")

    def is_configured(self) -> bool:
        """Check if APNs is properly configured"""
        return all([
            self.team_id,
            self.key_id,
            self.bundle_id,
            self.private_key
        ])

    def _generate_token(self) -> str:
        """Generate JWT token for APNs authentication"""
        headers = {
            "alg": "ES256",
            "kid": self.key_id
        }
        payload = {
            "iss": self.team_id,
            "iat": int(time.time())
        }
        return jwt.encode(payload, self.private_key, algorithm="ES256", headers=headers)

    async def send_alert_push(
        self,
        device_token: str,
        payload: Dict[str, Any],
        collapse_id: Optional[str] = None
    ) -> PushResult:
        """
        Send alert push notification to iOS device.

        Args:
            device_token: The APNs device token
            payload: The push payload including the "aps" dictionary
            collapse_id: Notifications with the same id replace each other on device

        Returns:
            PushResult with success status and details
        """
        if not self.is_configured():
            return PushResult(
                success=False,
                platform="ios",
                error="APNs not configured",
                error_code="not_configured"
            )

        host = self.APNS_SANDBOX_HOST if self.use_sandbox else self.APNS_PRODUCTION_HOST
        url = f"https://{host}/3/device/{device_token}"

        headers = {
            "authorization": f"bearer {self._generate_token()}",
            "apns-topic": self.bundle_id,
            "apns-push-type": "alert",
            "apns-priority": "10",
        }
        if collapse_id:
            headers["apns-collapse-id"] = collapse_id[:64]

        try:
            async with httpx.AsyncClient(http2=True) as client:
                response = await client.post(
                    url,
                    headers=headers,
                    json=payload,
                    timeout=30.0
                )

                if response.status_code == 200:
                    apns_id = response.headers.get("apns-id")
                    logger.info(f"[APNs] Push sent successfully: {apns_id}")
                    return PushResult(
                        success=True,
                        platform="ios",
                        message_id=apns_id
                    )

                try:
                    reason = response.json().get("reason", "Unknown")
                except ValueError:
                    reason = response.text or "Unknown error"

                logger.error(f"[APNs] Push failed: {response.status_code} - {reason}")
                # 410 / BadDeviceToken mean the token will never work again
                error_code = "UNREGISTERED" if response.status_code == 410 or reason == "BadDeviceToken" \
                    else str(response.status_code)
                return PushResult(
                    success=False,
                    platform="ios",
                    error=reason,
                    error_code=error_code
                )

        except httpx.TimeoutException:
            logger.error("[APNs] Push timeout")
            return PushResult(
                success=False,
                platform="ios",
                error="Request timeout",
                error_code="timeout"
            )
        except httpx.HTTPError as e:
            logger.error(f"[APNs] Push exception: {e}")
            return PushResult(
                success=False,
                platform="ios",
                error=str(e),
                error_code="exception"
            )


class FCMService:
    """
    Firebase Cloud Messaging service for Android and Web.
    Uses Firebase Admin SDK for sending messages.
    """

    def __init__(self):
        self._messaging = None

    def _get_messaging(self):
        """Get Firebase messaging module (lazy initialization)"""
        if self._messaging is not None:
            return self._messaging

        from firebase_admin import messaging
        from .firebase_service import get_firebase_app

        if get_firebase_app() is not None:
            self._messaging = messaging
            logger.info("[FCM] Firebase messaging initialized")
        else:
            logger.warning("[FCM] Firebase app not initialized")

        return self._messaging

    def is_configured(self) -> bool:
        """Check if FCM is properly configured"""
        return self._get_messaging() is not None

    async def send_message(
        self,
        device_token: str,
        title: str,
        body: str,
        data: Dict[str, str],
        platform: str = "android",
        ttl: int = 3600
    ) -> PushResult:
        """
        Send a notification message with a data payload.

        Args:
            device_token: The FCM registration token
            title: Notification title
            body: Notification body
            data: Data payload (all values must be strings)
            platform: "android" or "web", used for reporting
            ttl: Time to live in seconds

        Returns:
            PushResult with success status and details
        """
        messaging = self._get_messaging()
        if messaging is None:
            return PushResult(
                success=False,
                platform=platform,
                error="FCM not configured",
                error_code="not_configured"
            )

        try:
            message = messaging.Message(
                token=device_token,
                notification=messaging.Notification(title=title, body=body),
                data={k: str(v) for k, v in data.items()},
                android=messaging.AndroidConfig(
                    priority="high",
                    ttl=ttl,
                ),
                webpush=messaging.WebpushConfig(
                    headers={"TTL": str(ttl), "Urgency": "high"},
                ),
            )

            # Send message (synchronous, but fast)
            response = messaging.send(message)

            logger.info(f"[FCM] Message sent successfully: {response}")
            return PushResult(
                success=True,
                platform=platform,
                message_id=response
            )

        except messaging.UnregisteredError:
            logger.warning(f"[FCM] Token unregistered: {device_token[:20]}...")
            return PushResult(
                success=False,
                platform=platform,
                error="Token unregistered",
                error_code="UNREGISTERED"
            )
        except messaging.SenderIdMismatchError:
            logger.error("[FCM] Sender ID mismatch")
            return PushResult(
                success=False,
                platform=platform,
                error="Sender ID mismatch",
                error_code="SENDER_ID_MISMATCH"
            )
        except Exception as e:
            logger.error(f"[FCM] Send error: {e}")
            return PushResult(
                success=False,
                platform=platform,
                error=str(e),
                error_code="exception"
            )


class PushNotificationService:
    """
    Unified push notification service that handles iOS, Android and Web.
    """

    def __init__(self):
        self.apns = APNsService()
        self.fcm = FCMService()

    async def send_notification_push(
        self,
        platform: str,
        fcm_token: Optional[str],
        apns_token: Optional[str],
        notification: Dict[str, Any]
    ) -> PushResult:
        """
        Deliver a stored notification to the user's registered device.

        Args:
            platform: 'ios', 'android' or 'web'
            fcm_token: FCM registration token (Android / Web)
            apns_token: APNs device token (iOS)
            notification: The notification entry as stored on users/{uid}

        Returns:
            PushResult with success status
        """
        title, body, data = build_push_content(notification)
        # Chat pushes for one room replace each other on the device
        collapse_id = data.get("chatRoomId") or data.get("notificationId")

        if platform == "ios" and apns_token:
            apns_payload = {
                "aps": {
                    "alert": {
                        "title": title,
                        "body": body,
                    },
                    "sound": "default",
                    "thread-id": data.get("chatRoomId", data["type"]),
                },
                **data
            }
            return await self.apns.send_alert_push(apns_token, apns_payload, collapse_id)

        elif platform in ("android", "web") and fcm_token:
            return await self.fcm.send_message(fcm_token, title, body, data, platform=platform)

        else:
            missing = "apnsToken" if platform == "ios" else "fcmToken"
            return PushResult(
                success=False,
                platform=platform or "",
                error=f"Missing {missing} for {platform}",
                error_code="missing_token"
            )


# Singleton instance
push_service = PushNotificationService()
