from django.urls import path, include
from rest_framework.routers import DefaultRouter

from .views import FeatureViewSet, RoleViewSet

app_name = "access"

router = DefaultRouter()
router.register(r"roles", RoleViewSet, basename="role")
router.register(r"features", FeatureViewSet, basename="feature")

urlpatterns = [
    path("", include(router.urls)),
]
