from django.contrib.auth import get_user_model, password_validation
from django.db.models import Q
from rest_framework import serializers
from rest_framework_simplejwt.serializers import TokenObtainPairSerializer

from common.permissions import get_user_role, permission_flags
from core.models import AuditLog

User = get_user_model()


class LoginTokenObtainPairSerializer(TokenObtainPairSerializer):
    """Accepts a username, an email address or a phone number as the login."""

    @classmethod
    def get_token(cls, user):
        token = super().get_token(user)
        token["role"] = get_user_role(user)
        token["is_superuser"] = user.is_superuser
        return token

    def validate(self, attrs):
        login = (attrs.get("username") or "").strip()
        if login and not User.objects.filter(username=login).exists():
            user = User.objects.filter(Q(email__iexact=login) | Q(phone=login)).first()
            if user is not None:
                attrs["username"] = user.get_username()
        return super().validate(attrs)


class UserSerializer(serializers.ModelSerializer):
    password = serializers.CharField(write_only=True, required=False)

    class Meta:
        model = User
        fields = ["id", "username", "email", "phone", "first_name", "last_name", "role", "is_active", "password"]
        read_only_fields = ["id"]

    def validate_email(self, value):
        normalized_email = value.strip().lower()
        existing = User.objects.filter(email__iexact=normalized_email)
        if self.instance is not None:
            existing = existing.exclude(pk=self.instance.pk)
        if normalized_email and existing.exists():
            raise serializers.ValidationError("A user with this email already exists.")
        return normalized_email

    def validate(self, attrs):
        if self.instance is None and not attrs.get("password"):
            raise serializers.ValidationError({"password": "This field is required."})
        if attrs.get("password"):
            password_validation.validate_password(attrs["password"], user=self.instance)
        return attrs

    def create(self, validated_data):
        password = validated_data.pop("password")
        return User.objects.create_user(password=password, **validated_data)

    def update(self, instance, validated_data):
        password = validated_data.pop("password", None)
        instance = super().update(instance, validated_data)
        if password:
            instance.set_password(password)
            instance.save(update_fields=["password"])
        return instance


class MeSerializer(serializers.ModelSerializer):
    role = serializers.SerializerMethodField()
    permissions = serializers.SerializerMethodField()

    class Meta:
        model = User
        fields = ["id", "username", "email", "phone", "first_name", "last_name", "role", "is_superuser", "permissions"]
        read_only_fields = fields

    def get_role(self, obj):
        return get_user_role(obj)

    def get_permissions(self, obj):
        return permission_flags(obj)


class AuditLogSerializer(serializers.ModelSerializer):
    actor_username = serializers.CharField(source="actor.username", read_only=True)

    class Meta:
        model = AuditLog
        fields = [
            "id",
            "actor",
            "actor_username",
            "action",
            "entity",
            "entity_id",
            "before_snapshot",
            "after_snapshot",
            "request_id",
            "created_at",
        ]
        read_only_fields = fields
