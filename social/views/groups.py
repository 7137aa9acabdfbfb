import logging

from django.http import JsonResponse

from ..group_service import group_chat_service
from ..http import api_view, request_uid

logger = logging.getLogger("social")


@api_view("GET", "POST")
def group_list(request):
    """
    GET: groups the caller belongs to, most recently active first.
    POST: create {"name": "...", "member_uids": [...]}.
    """
    logger.info(f"[GROUPS] {request.method} from {request.META.get('REMOTE_ADDR')}")
    uid = request_uid(request, request.json)

    if request.method == "GET":
        groups = group_chat_service.list_user_groups(uid)
        return JsonResponse({"success": True, "count": len(groups), "groups": groups})

    group = group_chat_service.create_group(uid, request.json.get("name"), request.json.get("member_uids"))
    return JsonResponse({"success": True, "group": group}, status=201)


@api_view("GET")
def group_detail(request, group_id):
    uid = request_uid(request)
    return JsonResponse({"success": True, "group": group_chat_service.get_group(group_id, uid)})


@api_view("GET", "POST")
def group_messages(request, group_id):
    """
    GET: page of messages (?limit=&before=ISO timestamp).
    POST: send {"text": "..."} to the group.
    """
    logger.info(f"[GROUPS/MESSAGES] {request.method} {group_id} from {request.META.get('REMOTE_ADDR')}")
    uid = request_uid(request, request.json)

    if request.method == "GET":
        messages = group_chat_service.list_group_messages(
            group_id,
            uid,
            limit=request.GET.get("limit"),
            before=request.GET.get("before"),
        )
        return JsonResponse({"success": True, "count": len(messages), "messages": messages})

    result = group_chat_service.send_group_message(group_id, uid, request.json.get("text"))
    return JsonResponse({"success": True, **result}, status=201)


@api_view("POST")
def group_participants(request, group_id):
    logger.info(f"[GROUPS/PARTICIPANTS] {request.method} {group_id} from {request.META.get('REMOTE_ADDR')}")
    uid = request_uid(request, request.json)
    result = group_chat_service.add_participant(group_id, uid, request.json.get("participant_uid"))
    return JsonResponse({"success": True, **result}, status=201 if result["added"] else 200)
