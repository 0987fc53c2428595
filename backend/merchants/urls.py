from django.urls import path, include
from rest_framework.routers import DefaultRouter

from .views import MerchantRegistrationViewSet, MerchantViewSet

app_name = "merchants"

router = DefaultRouter()
# Registered first so "register" is not taken for a merchant id.
router.register(r'merchants/register', MerchantRegistrationViewSet, basename='merchant-register')
router.register(r'merchants', MerchantViewSet, basename='merchant')

urlpatterns = [
    path('', include(router.urls)),
]
