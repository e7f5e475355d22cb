"""
Users — Serializers

Read and write serializers for User, Role, Permission, UserRole and the
JWT login payload.

@file users/serializers.py
"""

from django.contrib.auth import authenticate
from django.contrib.auth.password_validation import validate_password
from rest_framework import serializers
from rest_framework_simplejwt.serializers import TokenObtainPairSerializer

from core.exceptions import AuthenticationFailedError

from .models import Permission, Role, User, UserRole


# ---------------------------------------------------------------------------
# JWT — custom claims
# ---------------------------------------------------------------------------

class CustomTokenObtainPairSerializer(TokenObtainPairSerializer):
    """Email login; injects role names into the JWT payload."""

    username_field = 'email'

    @classmethod
    def get_token(cls, user):
        token = super().get_token(user)
        token['email'] = user.email
        token['name'] = user.name
        token['roles'] = user.role_names
        return token

    def validate(self, attrs):
        user = authenticate(
            request=self.context.get('request'),
            email=attrs.get('email'),
            password=attrs.get('password'),
        )
        if user is None:
            raise AuthenticationFailedError(detail='Invalid email or password.')

        data = super().validate(attrs)
        data['user'] = UserReadSerializer(user).data
        return data


class ChangePasswordSerializer(serializers.Serializer):
    current_password = serializers.CharField(write_only=True)
    password = serializers.CharField(write_only=True, min_length=8)
    password_confirmation = serializers.CharField(write_only=True)

    def validate_current_password(self, value):
        user = self.context['request'].user
        if not user.check_password(value):
            raise serializers.ValidationError('Current password is incorrect.')
        return value

    def validate(self, attrs):
        if attrs['password'] != attrs['password_confirmation']:
            raise serializers.ValidationError(
                {'password_confirmation': ['Password confirmation does not match.']},
            )
        validate_password(attrs['password'], self.context['request'].user)
        return attrs


# ---------------------------------------------------------------------------
# Permission / Role serializers
# ---------------------------------------------------------------------------

class PermissionSerializer(serializers.ModelSerializer):
    class Meta:
        model = Permission
        fields = ['id', 'name', 'display_name', 'description', 'module', 'action', 'sort_order']
        read_only_fields = fields


class RoleReadSerializer(serializers.ModelSerializer):
    permissions = serializers.SlugRelatedField(many=True, read_only=True, slug_field='name')
    users_count = serializers.SerializerMethodField()

    class Meta:
        model = Role
        fields = [
            'id', 'name', 'display_name', 'description', 'color',
            'is_system', 'is_active', 'permissions', 'users_count',
            'created_at', 'updated_at',
        ]
        read_only_fields = fields

    def get_users_count(self, obj):
        return obj.user_roles.filter(is_active=True).count()


class RoleWriteSerializer(serializers.ModelSerializer):
    permissions = serializers.SlugRelatedField(
        many=True,
        slug_field='name',
        queryset=Permission.objects.all(),
        required=False,
    )

    class Meta:
        model = Role
        fields = ['name', 'display_name', 'description', 'color', 'is_active', 'permissions']

    def validate_name(self, value):
        value = value.strip().lower().replace(' ', '_')
        qs = Role.objects.filter(name=value)
        if self.instance:
            qs = qs.exclude(pk=self.instance.pk)
        if qs.exists():
            raise serializers.ValidationError('Role name already in use.')
        return value


class SyncPermissionsSerializer(serializers.Serializer):
    permissions = serializers.SlugRelatedField(
        many=True,
        slug_field='name',
        queryset=Permission.objects.all(),
    )


# ---------------------------------------------------------------------------
# User serializers
# ---------------------------------------------------------------------------

class UserReadSerializer(serializers.ModelSerializer):
    """Read-only user representation — returned in list / detail views."""

    roles = serializers.SerializerMethodField()
    departments = serializers.SerializerMethodField()

    class Meta:
        model = User
        fields = [
            'id', 'email', 'name', 'phone', 'avatar',
            'is_active', 'is_staff', 'date_joined', 'last_login',
            'roles', 'departments', 'created_at', 'updated_at',
        ]
        read_only_fields = fields

    def get_roles(self, obj):
        return list(
            obj.user_roles
            .filter(is_active=True)
            .select_related('role')
            .values('role__name', 'role__display_name', 'role__color')
        )

    def get_departments(self, obj):
        return list(obj.departments.values('id', 'code', 'name'))


class MeSerializer(UserReadSerializer):
    permissions = serializers.SerializerMethodField()
    is_super_admin = serializers.BooleanField(read_only=True)

    class Meta(UserReadSerializer.Meta):
        fields = UserReadSerializer.Meta.fields + ['permissions', 'is_super_admin']
        read_only_fields = fields

    def get_permissions(self, obj):
        return sorted(obj.get_all_permissions_names())


class UserWriteSerializer(serializers.ModelSerializer):
    """Create / update users. Password is write-only."""

    password = serializers.CharField(write_only=True, required=False, min_length=8)
    roles = serializers.SlugRelatedField(
        many=True,
        slug_field='name',
        queryset=Role.objects.filter(is_active=True),
        required=False,
    )

    class Meta:
        model = User
        fields = ['email', 'name', 'phone', 'avatar', 'password', 'is_active', 'departments', 'roles']
        extra_kwargs = {'departments': {'required': False}}

    def validate_email(self, value):
        value = value.lower()
        qs = User.objects.filter(email=value)
        if self.instance:
            qs = qs.exclude(pk=self.instance.pk)
        if qs.exists():
            raise serializers.ValidationError('Email already in use.')
        return value

    def validate(self, attrs):
        if self.instance is None and not attrs.get('password'):
            raise serializers.ValidationError({'password': ['This field is required.']})
        return attrs


class UserRoleWriteSerializer(serializers.Serializer):
    role_name = serializers.CharField(max_length=60)


class UserRoleReadSerializer(serializers.ModelSerializer):
    role_name = serializers.CharField(source='role.name', read_only=True)
    role_display_name = serializers.CharField(source='role.display_name', read_only=True)

    class Meta:
        model = UserRole
        fields = ['id', 'role_name', 'role_display_name', 'is_active', 'created_at']
        read_only_fields = fields
