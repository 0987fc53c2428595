from rest_framework import serializers
from django.contrib.auth import get_user_model
from django.contrib.auth.password_validation import validate_password

from access.models import Role
from access.session import AccessSession
from .models import MERCHANT_ROLES, UserRole

User = get_user_model()

# ===========================
# USER SERIALIZERS
# ===========================

class UserSerializer(serializers.ModelSerializer):
    merchant = serializers.PrimaryKeyRelatedField(read_only=True)

    class Meta:
        model = User
        fields = [
            'id',
            'email',
            'first_name',
            'last_name',
            'role',
            'merchant',
            'is_active',
            'requires_password_change',
        ]
        read_only_fields = ['id', 'role', 'merchant', 'requires_password_change']


class UserCreateSerializer(serializers.ModelSerializer):
    password = serializers.CharField(
        write_only=True,
        required=True,
        validators=[validate_password]
    )
    role = serializers.ChoiceField(choices=UserRole.choices, required=False)

    class Meta:
        model = User
        fields = [
            'id',
            'email',
            'password',
            'first_name',
            'last_name',
            'role',
        ]

    def _creator(self):
        request = self.context.get('request', None)
        return getattr(request, 'user', None)

    def validate(self, attrs):
        creator = self._creator()
        role = attrs.get('role')

        # Merchant users only create staff of their own merchant
        if creator is not None and getattr(creator, 'is_merchant_user', False):
            role = role or UserRole.MERCHANT_STAFF
            if role not in MERCHANT_ROLES:
                raise serializers.ValidationError({"role": "Merchant users can only create merchant users."})
        else:
            role = role or UserRole.PLATFORM_OWNER

        attrs['role'] = role
        return attrs

    def create(self, validated_data):
        password = validated_data.pop('password')
        return User.objects.create_user(password=password, **validated_data)


# ===========================
# CURRENT USER
# ===========================

class PermissionEntrySerializer(serializers.Serializer):
    feature_slug = serializers.CharField()
    feature_id = serializers.IntegerField()
    actions = serializers.ListField(child=serializers.CharField())


class AssignedRoleSerializer(serializers.ModelSerializer):
    class Meta:
        model = Role
        fields = ['id', 'name', 'type']


class MeSerializer(UserSerializer):
    """
    The caller with their resolved permission set and active roles.
    """
    permissions = serializers.SerializerMethodField()
    roles = serializers.SerializerMethodField()

    class Meta(UserSerializer.Meta):
        fields = UserSerializer.Meta.fields + ['permissions', 'roles']

    @staticmethod
    def _session(obj, context):
        request = context.get('request')
        if request is not None and getattr(request, 'user', None) is obj:
            return AccessSession.for_request(request)
        return AccessSession.for_user(obj)

    def get_permissions(self, obj) -> list[dict]:
        return self._session(obj, self.context).permissions.to_wire()

    def get_roles(self, obj) -> list[dict]:
        roles = Role.objects.filter(assignments__user=obj, assignments__is_active=True).order_by('name')
        return AssignedRoleSerializer(roles, many=True).data


# ===========================
# PASSWORD RESET SERIALIZERS
# ===========================

class ForgotPasswordRequestSerializer(serializers.Serializer):
    email = serializers.EmailField(required=True)


class AdminInitiatePasswordResetSerializer(serializers.Serializer):
    """
    An administrator forces a password reset for a user.
    """
    user_id = serializers.IntegerField(required=True)


class ChangePasswordSerializer(serializers.Serializer):
    """
    Used when user logs in with temporary password
    and must change it immediately.
    """
    current_password = serializers.CharField(required=True, write_only=True)
    new_password = serializers.CharField(
        required=True,
        write_only=True,
        validators=[validate_password]
    )


# ===========================
# ROUTE GUARD
# ===========================

class RouteCheckSerializer(serializers.Serializer):
    destination = serializers.CharField(required=True)
    required_roles = serializers.ListField(
        child=serializers.ChoiceField(choices=UserRole.choices),
        required=False,
        allow_empty=True,
    )
    required_feature = serializers.CharField(required=False, allow_blank=True)
    required_action = serializers.CharField(required=False, allow_blank=True)


class RouteDecisionSerializer(serializers.Serializer):
    allowed = serializers.BooleanField()
    reason = serializers.CharField()
    redirect_to = serializers.CharField(allow_null=True)
