"""Root URL configuration for the blog authorization API."""
from django.http import JsonResponse
from django.urls import include, path
from drf_spectacular.views import SpectacularAPIView

from authentication.urls import users_urlpatterns


def health(request):
    return JsonResponse({"ok": True})


urlpatterns = [
    path("health/", health, name="health"),
    path("schema/", SpectacularAPIView.as_view(), name="schema"),
    path("auth/", include("authentication.urls")),
    path("users/", include(users_urlpatterns)),
    path("", include("rebac.urls")),
    path("", include("posts.urls")),
]
