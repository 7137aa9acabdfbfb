import logging

from django.http import JsonResponse

from ..http import api_view, request_uid, require_fields
from ..user_service import user_service

logger = logging.getLogger("social")


@api_view("GET")
def user_profile(request, uid):
    logger.info(f"[USERS/PROFILE] {request.method} {uid} from {request.META.get('REMOTE_ADDR')}")
    request_uid(request)
    return JsonResponse({"success": True, "profile": user_service.get_profile(uid)})


@api_view("POST")
def profile_upsert(request):
    """
    Create or update the caller's profile.
    """
    logger.info(f"[USERS/UPSERT] {request.method} from {request.META.get('REMOTE_ADDR')}")
    uid = request_uid(request, request.json)
    profile = user_service.upsert_profile(uid, request.json)
    return JsonResponse({"success": True, "profile": profile})


@api_view("POST")
def device_register(request):
    """
    Store the caller's push token for the given platform.
    """
    logger.info(f"[USERS/DEVICE] {request.method} from {request.META.get('REMOTE_ADDR')}")
    uid = request_uid(request, request.json)
    platform, token = require_fields(request.json, "platform", "token")
    result = user_service.register_device(uid, platform, token)
    return JsonResponse({"success": True, **result})


@api_view("GET")
def user_search(request):
    logger.info(f"[USERS/SEARCH] {request.method} from {request.META.get('REMOTE_ADDR')}")
    uid = request_uid(request)
    results = user_service.search_users(uid, request.GET.get("q"), request.GET.get("limit"))
    return JsonResponse({"success": True, "results": results})
