import json
import logging
from functools import wraps
from typing import Tuple

from django.conf import settings
from django.http import HttpResponseNotAllowed, JsonResponse
from django.views.decorators.csrf import csrf_exempt

from .errors import BadRequest, SocialError, Unauthorized

logger = logging.getLogger("social")


def json_body(request) -> Tuple[dict, JsonResponse]:
    if request.method == "GET":
        return {}, None
    try:
        body = request.body.decode("utf-8") if request.body else "{}"
        data = json.loads(body)
        if not isinstance(data, dict):
            raise ValueError("JSON body must be an object")
        return data, None
    except (json.JSONDecodeError, UnicodeDecodeError, ValueError) as exc:
        return None, JsonResponse({"error": f"invalid_json: {exc}"}, status=400)


def require_fields(data, *names):
    """
    Return the named string values or raise BadRequest listing what is
    missing or not a string.
    """
    missing = [name for name in names if not data.get(name)]
    if missing:
        raise BadRequest("missing_fields", required=list(names))
    invalid = [name for name in names if not isinstance(data[name], str)]
    if invalid:
        raise BadRequest("invalid_fields", invalid=invalid)
    values = tuple(data[name] for name in names)
    return values[0] if len(values) == 1 else values


def _verify_id_token(token: str) -> str:
    from firebase_admin import auth
    from .firebase_service import get_firebase_app

    app = get_firebase_app()
    if app is None:
        raise Unauthorized("auth_unavailable", "Firebase is not configured")
    try:
        decoded = auth.verify_id_token(token, app=app)
    except (ValueError, auth.InvalidIdTokenError, auth.ExpiredIdTokenError,
            auth.RevokedIdTokenError, auth.CertificateFetchError) as exc:
        logger.warning(f"Rejected ID token: {exc}")
        raise Unauthorized("invalid_token")
    return decoded["uid"]


def request_uid(request, data=None) -> str:
    """
    Identify the calling user.

    With CREATORHUB_AUTH_REQUIRED the uid comes from a Firebase ID token in
    the Authorization header; otherwise (local development) from the "uid"
    body field, the "uid" query parameter or the X-User-Id header.
    """
    if getattr(settings, "CREATORHUB_AUTH_REQUIRED", True):
        header = request.META.get("HTTP_AUTHORIZATION", "")
        scheme, _, token = header.partition(" ")
        if scheme.lower() != "bearer" or not token.strip():
            raise Unauthorized("missing_token")
        return _verify_id_token(token.strip())

    uid = (data or {}).get("uid") or request.GET.get("uid") or request.META.get("HTTP_X_USER_ID")
    if not uid:
        raise Unauthorized("missing_uid")
    if not isinstance(uid, str):
        raise BadRequest("invalid_fields", invalid=["uid"])
    return uid


def api_view(*methods):
    """
    csrf_exempt JSON view: checks the method, parses the body into
    request.json and renders SocialError as {"error": code} responses.
    """
    def decorator(view):
        @csrf_exempt
        @wraps(view)
        def wrapper(request, *args, **kwargs):
            if request.method not in methods:
                return HttpResponseNotAllowed(list(methods))

            data, error = json_body(request)
            if error:
                return error
            request.json = data

            try:
                return view(request, *args, **kwargs)
            except SocialError as exc:
                logger.info(f"[{view.__name__.upper()}] {exc.status} {exc.code}")
                return JsonResponse(exc.as_dict(), status=exc.status)
            except Exception:
                logger.exception(f"[{view.__name__.upper()}] Unhandled error")
                return JsonResponse({"error": "internal_error"}, status=500)

        return wrapper
    return decorator
