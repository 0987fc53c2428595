from django.urls import path, include
from rest_framework.routers import DefaultRouter

from .views import PlatformSettingsView, SubscriptionViewSet

app_name = "billing"

router = DefaultRouter()
router.register(r'subscriptions', SubscriptionViewSet, basename='subscription')

urlpatterns = [
    path('', include(router.urls)),
    path('platform-settings/', PlatformSettingsView.as_view(), name='platform-settings'),
]
