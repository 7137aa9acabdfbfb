import logging

from django.http import JsonResponse

from ..http import api_view, request_uid, require_fields
from ..notification_service import notification_service
from ..utils import parse_bool

logger = logging.getLogger("social")


@api_view("GET")
def notification_list(request):
    uid = request_uid(request)
    items = notification_service.list(
        uid,
        include_archived=parse_bool(request.GET.get("archived")),
        unread_only=parse_bool(request.GET.get("unread")),
    )
    return JsonResponse({"success": True, "count": len(items), "notifications": items})


@api_view("GET")
def notification_unread_count(request):
    uid = request_uid(request)
    return JsonResponse({"success": True, "unreadCount": notification_service.unread_count(uid)})


@api_view("POST")
def notification_read(request):
    uid = request_uid(request, request.json)
    notification_id = require_fields(request.json, "notification_id")
    notification = notification_service.mark_read(uid, notification_id)
    return JsonResponse({"success": True, "notification": notification})


@api_view("POST")
def notification_read_all(request):
    logger.info(f"[NOTIFICATIONS/READ_ALL] {request.method} from {request.META.get('REMOTE_ADDR')}")
    uid = request_uid(request, request.json)
    updated = notification_service.mark_all_read(uid)
    return JsonResponse({"success": True, "updatedCount": updated})


@api_view("POST")
def notification_archive(request):
    uid = request_uid(request, request.json)
    notification_id = require_fields(request.json, "notification_id")
    notification = notification_service.archive(uid, notification_id)
    return JsonResponse({"success": True, "notification": notification})


@api_view("POST")
def notification_remove(request):
    uid = request_uid(request, request.json)
    notification_id = require_fields(request.json, "notification_id")
    notification_service.remove(uid, notification_id)
    return JsonResponse({"success": True, "notificationId": notification_id})
