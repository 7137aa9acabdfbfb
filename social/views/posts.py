import logging

from django.http import JsonResponse

from ..http import api_view, request_uid
from ..post_service import post_service

logger = logging.getLogger("social")


@api_view("GET", "POST")
def post_feed(request):
    """
    GET: feed page (?limit=&before=ISO timestamp&audience=anyone|friends).
    POST: create {"text": "...", "image_url": "...", "audience": "anyone"|"friends"}.
    """
    logger.info(f"[POSTS] {request.method} from {request.META.get('REMOTE_ADDR')}")
    uid = request_uid(request, request.json)

    if request.method == "GET":
        page = post_service.list_feed(
            uid,
            limit=request.GET.get("limit"),
            before=request.GET.get("before"),
            audience=request.GET.get("audience"),
        )
        return JsonResponse({"success": True, "count": len(page["posts"]), **page})

    post = post_service.create_post(
        uid,
        text=request.json.get("text"),
        image_url=request.json.get("image_url"),
        audience=request.json.get("audience"),
    )
    return JsonResponse({"success": True, "post": post}, status=201)


@api_view("GET")
def post_detail(request, post_id):
    uid = request_uid(request)
    return JsonResponse({"success": True, "post": post_service.get_post(post_id, uid)})


@api_view("POST")
def post_delete(request, post_id):
    logger.info(f"[POSTS/DELETE] {request.method} {post_id} from {request.META.get('REMOTE_ADDR')}")
    uid = request_uid(request, request.json)
    return JsonResponse({"success": True, **post_service.delete_post(post_id, uid)})


@api_view("POST")
def post_like(request, post_id):
    uid = request_uid(request, request.json)
    return JsonResponse({"success": True, **post_service.like(post_id, uid)})


@api_view("POST")
def post_unlike(request, post_id):
    uid = request_uid(request, request.json)
    return JsonResponse({"success": True, **post_service.unlike(post_id, uid)})


@api_view("POST")
def post_toggle_like(request, post_id):
    uid = request_uid(request, request.json)
    return JsonResponse({"success": True, **post_service.toggle_like(post_id, uid)})


@api_view("POST")
def post_repost(request, post_id):
    uid = request_uid(request, request.json)
    return JsonResponse({"success": True, **post_service.repost(post_id, uid)})


@api_view("POST")
def post_share(request, post_id):
    uid = request_uid(request, request.json)
    return JsonResponse({"success": True, **post_service.share(post_id, uid)})


@api_view("GET", "POST")
def post_comments(request, post_id):
    """
    GET: comments, oldest first (?limit=).
    POST: add {"text": "..."}.
    """
    logger.info(f"[POSTS/COMMENTS] {request.method} {post_id} from {request.META.get('REMOTE_ADDR')}")
    uid = request_uid(request, request.json)

    if request.method == "GET":
        comments = post_service.list_comments(post_id, uid, limit=request.GET.get("limit"))
        return JsonResponse({"success": True, "count": len(comments), "comments": comments})

    result = post_service.add_comment(post_id, uid, request.json.get("text"))
    return JsonResponse({"success": True, **result}, status=201)
