from django.contrib.auth import get_user_model
from django.shortcuts import get_object_or_404
from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import OpenApiParameter, extend_schema
from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from users.models import UserRole
from .models import Feature, Role, RoleType
from .permissions import RouteGuardPermission
from .serializers import (
    AssignRoleSerializer,
    FeatureSerializer,
    RoleSerializer,
    RoleWriteSerializer,
)
from . import services

User = get_user_model()

TYPE_PARAMETER = OpenApiParameter(
    name="type",
    type=OpenApiTypes.STR,
    enum=RoleType.values,
    required=False,
    description="Only return entries scoped to this role type.",
)


def _filter_by_type(queryset, request, field):
    role_type = request.query_params.get("type")
    if role_type:
        queryset = queryset.filter(**{field: role_type})
    return queryset


# ----------------------------------------------------------
#  Feature catalog
# ----------------------------------------------------------
@extend_schema(parameters=[TYPE_PARAMETER])
class FeatureViewSet(
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    mixins.CreateModelMixin,
    mixins.UpdateModelMixin,
    viewsets.GenericViewSet,
):
    """
    The feature catalog. Features are never deleted; roles refer to them by slug.
    """
    serializer_class = FeatureSerializer
    permission_classes = [IsAuthenticated, RouteGuardPermission]
    allowed_roles = [UserRole.PLATFORM_OWNER]
    feature_permissions = {
        "list": "features.view",
        "retrieve": "features.view",
        "create": "features.create",
        "update": "features.create",
        "partial_update": "features.create",
    }

    def get_queryset(self):
        return _filter_by_type(Feature.objects.all(), self.request, "role_type")

    def perform_create(self, serializer):
        serializer.instance = services.create_feature(**serializer.validated_data)

    def perform_update(self, serializer):
        serializer.instance = services.update_feature(serializer.instance, **serializer.validated_data)


# ----------------------------------------------------------
#  Roles
# ----------------------------------------------------------
@extend_schema(parameters=[TYPE_PARAMETER])
class RoleViewSet(viewsets.ModelViewSet):
    permission_classes = [IsAuthenticated, RouteGuardPermission]
    allowed_roles = [UserRole.PLATFORM_OWNER]
    feature_permissions = {
        "list": "roles.view",
        "retrieve": "roles.view",
        "create": "roles.create",
        "update": "roles.edit",
        "partial_update": "roles.edit",
        "destroy": "roles.delete",
        "assign": "roles.edit",
        "unassign": "roles.edit",
    }

    def get_queryset(self):
        queryset = Role.objects.prefetch_related("grants__feature")
        return _filter_by_type(queryset, self.request, "type")

    def get_serializer_class(self):
        if self.action in ["create", "update", "partial_update"]:
            return RoleWriteSerializer
        if self.action == "assign":
            return AssignRoleSerializer
        return RoleSerializer

    @extend_schema(request=RoleWriteSerializer, responses=RoleSerializer)
    def create(self, request, *args, **kwargs):
        serializer = RoleWriteSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        role = services.create_role(
            name=data["name"],
            type=data["type"],
            hierarchy_level=data.get("hierarchy_level", 1),
            grants=serializer.grant_pairs() or [],
            description=data.get("description", ""),
        )
        return Response(RoleSerializer(role).data, status=status.HTTP_201_CREATED)

    @extend_schema(request=RoleWriteSerializer, responses=RoleSerializer)
    def update(self, request, *args, **kwargs):
        partial = kwargs.pop("partial", False)
        role = self.get_object()
        serializer = RoleWriteSerializer(data=request.data, partial=partial)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        role = services.update_role(
            role,
            name=data.get("name"),
            type=data.get("type"),
            hierarchy_level=data.get("hierarchy_level"),
            grants=serializer.grant_pairs(),
            description=data.get("description"),
        )
        return Response(RoleSerializer(Role.objects.get(pk=role.pk)).data)

    def perform_destroy(self, instance):
        services.delete_role(instance)

    @extend_schema(request=AssignRoleSerializer, responses=RoleSerializer)
    @action(detail=True, methods=["post"])
    def assign(self, request, pk=None):
        role = self.get_object()
        serializer = AssignRoleSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        user = get_object_or_404(User, pk=serializer.validated_data["user_id"])
        services.assign_role(role, user, assigned_by=request.user)
        return Response(RoleSerializer(role).data, status=status.HTTP_201_CREATED)

    @extend_schema(request=None, responses={204: None})
    @action(detail=True, methods=["delete"], url_path=r"assign/(?P<user_id>\d+)")
    def unassign(self, request, pk=None, user_id=None):
        role = self.get_object()
        user = get_object_or_404(User, pk=user_id)
        services.remove_role(role, user)
        return Response(status=status.HTTP_204_NO_CONTENT)
