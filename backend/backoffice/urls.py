from django.contrib import admin
from django.urls import path, include
from drf_spectacular.views import SpectacularAPIView, SpectacularSwaggerView
from rest_framework_simplejwt.views import TokenObtainPairView, TokenRefreshView
from users.tokens import BackofficeTokenObtainPairSerializer


class BackofficeTokenObtainPairView(TokenObtainPairView):
    serializer_class = BackofficeTokenObtainPairSerializer


urlpatterns = [
    path('admin/', admin.site.urls),

    # Auth routes
    path('api/auth/token/', BackofficeTokenObtainPairView.as_view(), name='token_obtain_pair'),
    path('api/auth/token/refresh/', TokenRefreshView.as_view(), name='token_refresh'),

    # API schema and docs
    path('api/schema/', SpectacularAPIView.as_view(), name='schema'),
    path('api/docs/', SpectacularSwaggerView.as_view(url_name='schema'), name='swagger-ui'),

    # app APIs
    path('api/', include('users.urls')),
    path('api/', include('access.urls')),
    path('api/', include('merchants.urls')),
    path('api/', include('billing.urls')),
    path('api/', include('sales.urls')),
]
