import logging

from django.http import JsonResponse

from ..chat_service import chat_service
from ..http import api_view, request_uid, require_fields
from ..utils import parse_bool

logger = logging.getLogger("social")


@api_view("POST")
def chat_direct(request):
    """
    Open the direct chat with a friend, creating the room on first use.
    """
    logger.info(f"[CHATS/DIRECT] {request.method} from {request.META.get('REMOTE_ADDR')}")
    uid = request_uid(request, request.json)
    other_uid = require_fields(request.json, "other_uid")

    result = chat_service.open_direct_chat(uid, other_uid)
    return JsonResponse({"success": True, **result}, status=201 if result["created"] else 200)


@api_view("GET")
def chat_list(request):
    uid = request_uid(request)
    archived = parse_bool(request.GET.get("archived"))
    rooms = chat_service.list_user_chats(uid, archived=archived)
    return JsonResponse({"success": True, "count": len(rooms), "rooms": rooms})


@api_view("GET")
def chat_detail(request, room_id):
    uid = request_uid(request)
    room = chat_service.get_room(room_id, uid)
    room["unreadCount"] = chat_service.unread_count(room, uid)
    return JsonResponse({"success": True, "room": room})


@api_view("GET", "POST")
def chat_messages(request, room_id):
    """
    GET: page of messages (?limit=&before=ISO timestamp).
    POST: send {"text": "..."} to the room.
    """
    logger.info(f"[CHATS/MESSAGES] {request.method} {room_id} from {request.META.get('REMOTE_ADDR')}")
    uid = request_uid(request, request.json)

    if request.method == "GET":
        messages = chat_service.list_messages(
            room_id,
            uid,
            limit=request.GET.get("limit"),
            before=request.GET.get("before"),
        )
        return JsonResponse({"success": True, "count": len(messages), "messages": messages})

    result = chat_service.send_message(room_id, uid, request.json.get("text"))
    return JsonResponse({"success": True, **result}, status=201)


@api_view("POST")
def chat_read(request, room_id):
    uid = request_uid(request, request.json)
    return JsonResponse({"success": True, **chat_service.mark_read(room_id, uid)})


@api_view("POST")
def chat_archive(request, room_id):
    logger.info(f"[CHATS/ARCHIVE] {request.method} {room_id} from {request.META.get('REMOTE_ADDR')}")
    uid = request_uid(request, request.json)
    return JsonResponse({"success": True, **chat_service.archive_chat(room_id, uid)})


@api_view("POST")
def chat_unarchive(request, room_id):
    logger.info(f"[CHATS/UNARCHIVE] {request.method} {room_id} from {request.META.get('REMOTE_ADDR')}")
    uid = request_uid(request, request.json)
    return JsonResponse({"success": True, **chat_service.unarchive_chat(room_id, uid)})


@api_view("POST")
def chat_delete(request, room_id):
    """
    Delete the chat for the caller; removed for good once every member deleted it.
    """
    logger.info(f"[CHATS/DELETE] {request.method} {room_id} from {request.META.get('REMOTE_ADDR')}")
    uid = request_uid(request, request.json)
    return JsonResponse({"success": True, **chat_service.delete_chat_for_user(room_id, uid)})


@api_view("POST")
def chat_delete_all(request, room_id):
    logger.info(f"[CHATS/DELETE_ALL] {request.method} {room_id} from {request.META.get('REMOTE_ADDR')}")
    uid = request_uid(request, request.json)
    return JsonResponse({"success": True, **chat_service.delete_chat_for_everyone(room_id, uid)})
