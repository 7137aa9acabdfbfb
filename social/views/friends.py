import logging

from django.http import JsonResponse

from ..friend_service import friend_service
from ..http import api_view, request_uid, require_fields

logger = logging.getLogger("social")


@api_view("POST")
def friend_request(request):
    """
    Send a friend request and notify the receiver.
    """
    logger.info(f"[FRIENDS/REQUEST] {request.method} from {request.META.get('REMOTE_ADDR')}")
    uid = request_uid(request, request.json)
    to_uid = require_fields(request.json, "to_uid")

    result = friend_service.send_request(uid, to_uid)
    return JsonResponse({"success": True, **result}, status=201 if result["created"] else 200)


@api_view("POST")
def friend_accept(request):
    """
    Accept a pending request; both users become friends and share a chat room.
    """
    logger.info(f"[FRIENDS/ACCEPT] {request.method} from {request.META.get('REMOTE_ADDR')}")
    uid = request_uid(request, request.json)
    req_id = require_fields(request.json, "request_id")

    result = friend_service.accept_request(req_id, uid)
    return JsonResponse({"success": True, **result})


@api_view("POST")
def friend_decline(request):
    logger.info(f"[FRIENDS/DECLINE] {request.method} from {request.META.get('REMOTE_ADDR')}")
    uid = request_uid(request, request.json)
    req_id = require_fields(request.json, "request_id")
    return JsonResponse({"success": True, **friend_service.decline_request(req_id, uid)})


@api_view("POST")
def friend_cancel(request):
    logger.info(f"[FRIENDS/CANCEL] {request.method} from {request.META.get('REMOTE_ADDR')}")
    uid = request_uid(request, request.json)
    req_id = require_fields(request.json, "request_id")
    return JsonResponse({"success": True, **friend_service.cancel_request(req_id, uid)})


@api_view("GET")
def requests_incoming(request):
    uid = request_uid(request)
    requests = friend_service.list_incoming(uid)
    return JsonResponse({"success": True, "count": len(requests), "requests": requests})


@api_view("GET")
def requests_outgoing(request):
    uid = request_uid(request)
    requests = friend_service.list_outgoing(uid)
    return JsonResponse({"success": True, "count": len(requests), "requests": requests})


@api_view("GET")
def friend_list(request):
    uid = request_uid(request)
    friends = friend_service.list_friends(uid)
    return JsonResponse({"success": True, "count": len(friends), "friends": friends})


@api_view("POST")
def friend_remove(request):
    logger.info(f"[FRIENDS/REMOVE] {request.method} from {request.META.get('REMOTE_ADDR')}")
    uid = request_uid(request, request.json)
    friend_uid = require_fields(request.json, "friend_uid")
    return JsonResponse({"success": True, **friend_service.remove_friend(uid, friend_uid)})
