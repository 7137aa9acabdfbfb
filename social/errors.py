"""
Error types raised by the social services and rendered by the API views.
"""


class SocialError(Exception):
    status = 400
    code = "bad_request"

    def __init__(self, code=None, message="", **extra):
        self.code = code or self.code
        self.message = message
        self.extra = extra
        super().__init__(message or self.code)

    def as_dict(self):
        body = {"error": self.code}
        if self.message:
            body["message"] = self.message
        body.update(self.extra)
        return body


class BadRequest(SocialError):
    status = 400


class Unauthorized(SocialError):
    status = 401
    code = "unauthorized"


class Forbidden(SocialError):
    status = 403
    code = "forbidden"


class NotFound(SocialError):
    status = 404
    code = "not_found"


class Conflict(SocialError):
    status = 409
    code = "conflict"


class FirestoreUnavailable(SocialError):
    status = 503
    code = "firestore_unavailable"

    def __init__(self, message="Firebase Firestore is not configured"):
        super().__init__(self.code, message)
