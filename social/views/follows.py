import logging

from django.http import JsonResponse

from ..follow_service import follow_service
from ..http import api_view, request_uid, require_fields

logger = logging.getLogger("social")


@api_view("POST")
def follow(request):
    logger.info(f"[FOLLOWS/FOLLOW] {request.method} from {request.META.get('REMOTE_ADDR')}")
    uid = request_uid(request, request.json)
    target_uid = require_fields(request.json, "target_uid")
    return JsonResponse({"success": True, **follow_service.follow(uid, target_uid)})


@api_view("POST")
def unfollow(request):
    logger.info(f"[FOLLOWS/UNFOLLOW] {request.method} from {request.META.get('REMOTE_ADDR')}")
    uid = request_uid(request, request.json)
    target_uid = require_fields(request.json, "target_uid")
    return JsonResponse({"success": True, **follow_service.unfollow(uid, target_uid)})


@api_view("GET")
def follow_status(request):
    uid = request_uid(request)
    target_uid = require_fields(request.GET, "target_uid")
    return JsonResponse({
        "success": True,
        "targetUid": target_uid,
        "following": follow_service.is_following(uid, target_uid),
        "followedBy": follow_service.is_following(target_uid, uid),
    })


@api_view("GET")
def followers(request):
    viewer = request_uid(request)
    uid = request.GET.get("target") or viewer
    uids = follow_service.followers(uid)
    return JsonResponse({"success": True, "uid": uid, "count": len(uids), "followers": uids})


@api_view("GET")
def following(request):
    viewer = request_uid(request)
    uid = request.GET.get("target") or viewer
    uids = follow_service.following(uid)
    return JsonResponse({"success": True, "uid": uid, "count": len(uids), "following": uids})
