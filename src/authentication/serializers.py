"""Serializers for authentication flows (register, login, profile) and user admin."""

from django.contrib.auth import get_user_model
from rest_framework import serializers
from rest_framework.exceptions import AuthenticationFailed

from access_control.models import Role
from .managers import UserManager

User = get_user_model()

MIN_PASSWORD_LENGTH = 6


class RegisterSerializer(serializers.Serializer):
    """Validate and create a self-registered user with the VIEWER role."""

    email = serializers.EmailField()
    name = serializers.CharField(min_length=2, max_length=150)
    password = serializers.CharField(write_only=True, min_length=MIN_PASSWORD_LENGTH)
    repeat_password = serializers.CharField(write_only=True, min_length=MIN_PASSWORD_LENGTH)

    @staticmethod
    def validate_email(value):
        """Ensure email is unique before creation."""
        if User.objects.filter(email__iexact=value).exists():
            raise serializers.ValidationError("Email already in use")
        return value

    def validate(self, attrs):
        """Ensure provided passwords match before creation."""
        if attrs.get("password") != attrs.get("repeat_password"):
            raise serializers.ValidationError("Passwords do not match")
        return attrs

    def create(self, validated_data):
        validated_data.pop("repeat_password")
        return User.objects.create_user(role=Role.VIEWER, **validated_data)


class LoginSerializer(serializers.Serializer):
    """Authenticate a user via email/password using bcrypt verification."""

    email = serializers.EmailField()
    password = serializers.CharField(write_only=True)

    def validate(self, attrs):
        """Authenticate credentials and attach the user to validated_data."""
        email = attrs.get("email")
        password = attrs.get("password")
        user = User.objects.filter(email__iexact=email).first()

        # One message for every failure so callers cannot probe which part was wrong.
        if user is None or not user.is_active or not UserManager.verify_password(user, password):
            raise AuthenticationFailed("Invalid credentials")

        attrs["user"] = user
        return attrs


class UserDetailSerializer(serializers.ModelSerializer):
    """Read-only user profile payload for responses."""

    class Meta:
        """Expose identity fields and role."""
        model = User
        fields = ["id", "email", "name", "role", "is_active", "last_login", "date_joined"]
        read_only_fields = fields


class ProfileUpdateSerializer(serializers.ModelSerializer):
    """Patchable fields for /auth/me updates."""

    class Meta:
        model = User
        fields = ["name"]
        extra_kwargs = {"name": {"required": False, "min_length": 2}}

    def validate(self, attrs):
        """Reject attempts to change email or role through the profile endpoint."""
        forbidden = {"email", "role"} & set(getattr(self, "initial_data", {}))
        if forbidden:
            raise serializers.ValidationError(
                f"{', '.join(sorted(forbidden))} cannot be updated via this endpoint"
            )
        return super().validate(attrs)


class AdminUserSerializer(serializers.ModelSerializer):
    """Full user management for administrators; passwords are write-only."""

    password = serializers.CharField(
        write_only=True, required=False, min_length=MIN_PASSWORD_LENGTH
    )
    audit_entry_count = serializers.IntegerField(read_only=True, default=0)

    class Meta:
        model = User
        fields = [
            "id",
            "email",
            "name",
            "role",
            "is_active",
            "password",
            "last_login",
            "date_joined",
            "updated_at",
            "audit_entry_count",
        ]
        read_only_fields = ["id", "last_login", "date_joined", "updated_at"]

    def validate(self, attrs):
        if self.instance is None and not attrs.get("password"):
            raise serializers.ValidationError({"password": ["Password is required for new users"]})
        return attrs

    def create(self, validated_data):
        password = validated_data.pop("password")
        return User.objects.create_user(password=password, **validated_data)

    def update(self, instance, validated_data):
        password = validated_data.pop("password", None)
        if password:
            instance.set_password(password)
        return super().update(instance, validated_data)


__all__ = [
    "AdminUserSerializer",
    "LoginSerializer",
    "ProfileUpdateSerializer",
    "RegisterSerializer",
    "UserDetailSerializer",
]
