from django.http import JsonResponse

from ..firebase_service import firestore_service
from ..http import api_view


@api_view("GET")
def health(request):
    firestore_ok = firestore_service.is_available()

    return JsonResponse({
        "status": "ok",
        "firestore": "connected" if firestore_ok else "not_configured",
    })
