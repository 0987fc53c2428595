# users/tokens.py
from rest_framework_simplejwt.serializers import TokenObtainPairSerializer


class BackofficeTokenObtainPairSerializer(TokenObtainPairSerializer):
    @classmethod
    def get_token(cls, user):
        token = super().get_token(user)
        token['role'] = user.role
        token['merchant_id'] = user.merchant_id
        token['requires_password_change'] = user.requires_password_change
        return token

    def validate(self, attrs):
        data = super().validate(attrs)
        user = self.user
        # include the user for client convenience
        data['user'] = {
            "id": user.id,
            "email": user.email,
            "role": user.role,
            "merchant_id": user.merchant_id,
            "requires_password_change": user.requires_password_change,
        }
        return data
