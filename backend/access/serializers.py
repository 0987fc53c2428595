from rest_framework import serializers

from .models import Feature, Role, RoleFeature, RoleType


# ===========================
# FEATURES
# ===========================

class FeatureSerializer(serializers.ModelSerializer):
    default_actions = serializers.ListField(child=serializers.CharField(max_length=30), required=False)

    class Meta:
        model = Feature
        fields = [
            'id',
            'slug',
            'name',
            'description',
            'category',
            'is_page_level',
            'role_type',
            'default_actions',
            'created_at',
        ]
        read_only_fields = ['id', 'created_at']


# ===========================
# ROLES
# ===========================

class RoleFeatureSerializer(serializers.ModelSerializer):
    feature_id = serializers.IntegerField(source='feature.id', read_only=True)
    feature_slug = serializers.CharField(source='feature.slug', read_only=True)
    feature_name = serializers.CharField(source='feature.name', read_only=True)
    is_page_level = serializers.BooleanField(source='feature.is_page_level', read_only=True)

    class Meta:
        model = RoleFeature
        fields = ['feature_id', 'feature_slug', 'feature_name', 'is_page_level', 'actions']


class GrantInputSerializer(serializers.Serializer):
    """
    One grant in a role payload. An empty ``actions`` list grants the whole feature.
    """
    feature_id = serializers.PrimaryKeyRelatedField(queryset=Feature.objects.all(), source='feature')
    actions = serializers.ListField(
        child=serializers.CharField(max_length=30),
        required=False,
        default=list,
    )


class RoleSerializer(serializers.ModelSerializer):
    grants = RoleFeatureSerializer(many=True, read_only=True)
    assigned_users = serializers.SerializerMethodField()

    class Meta:
        model = Role
        fields = [
            'id',
            'name',
            'description',
            'type',
            'hierarchy_level',
            'is_system_role',
            'grants',
            'assigned_users',
            'created_at',
            'updated_at',
        ]

    def get_assigned_users(self, obj):
        return obj.assignments.filter(is_active=True).count()


class RoleWriteSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=100)
    description = serializers.CharField(required=False, allow_blank=True)
    type = serializers.ChoiceField(choices=RoleType.choices)
    hierarchy_level = serializers.IntegerField(required=False, min_value=1, max_value=3)
    grants = GrantInputSerializer(many=True, required=False)

    def validate_grants(self, value):
        seen = set()
        for grant in value:
            feature = grant['feature']
            if feature.pk in seen:
                raise serializers.ValidationError(f"Feature '{feature.slug}' is granted more than once.")
            seen.add(feature.pk)
        return value

    def grant_pairs(self):
        grants = self.validated_data.get('grants')
        if grants is None:
            return None
        return [(g['feature'], g['actions']) for g in grants]


class AssignRoleSerializer(serializers.Serializer):
    user_id = serializers.IntegerField(required=True)
