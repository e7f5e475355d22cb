"""
Users — Views

Auth endpoints (login, refresh, logout, me, password) and the user, role
and permission management ViewSets.

@file users/views.py
"""

import logging

from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView
from rest_framework_simplejwt.exceptions import TokenError
from rest_framework_simplejwt.tokens import RefreshToken
from rest_framework_simplejwt.views import TokenRefreshView

from core.constants import AUDIT_ACTION_LOGIN, AUDIT_ACTION_LOGIN_FAILED, AUDIT_ACTION_LOGOUT
from core.exceptions import AuthenticationFailedError
from core.services import AuditService

from .models import Permission, Role, User
from .permissions import HasModulePermission, IsActiveUser
from .serializers import (
    ChangePasswordSerializer,
    CustomTokenObtainPairSerializer,
    MeSerializer,
    PermissionSerializer,
    RoleReadSerializer,
    RoleWriteSerializer,
    SyncPermissionsSerializer,
    UserReadSerializer,
    UserRoleReadSerializer,
    UserRoleWriteSerializer,
    UserWriteSerializer,
)
from .services import AuthService, RoleService, UserService

logger = logging.getLogger('mediklinik')


def _request_meta(request) -> dict:
    return {
        'ip_address': AuditService.get_client_ip(request),
        'user_agent': request.META.get('HTTP_USER_AGENT', ''),
    }


# ---------------------------------------------------------------------------
# Auth views
# ---------------------------------------------------------------------------

class LoginView(APIView):
    """POST /api/v1/auth/login — Authenticate and obtain JWT pair."""
    permission_classes = [AllowAny]
    throttle_scope = 'anon'

    def post(self, request):
        serializer = CustomTokenObtainPairSerializer(
            data=request.data, context={'request': request},
        )
        try:
            serializer.is_valid(raise_exception=True)
        except AuthenticationFailedError:
            AuthService.log_auth_event(
                action=AUDIT_ACTION_LOGIN_FAILED,
                email=request.data.get('email', ''),
                **_request_meta(request),
            )
            logger.info('Failed login for %s', request.data.get('email'))
            raise

        user_data = serializer.validated_data['user']
        AuthService.log_auth_event(
            action=AUDIT_ACTION_LOGIN,
            user=User.objects.get(pk=user_data['id']),
            **_request_meta(request),
        )

        return Response({
            'success': True,
            'message': 'Login successful.',
            'data': {
                'access': serializer.validated_data['access'],
                'refresh': serializer.validated_data['refresh'],
                'user': user_data,
            },
        })


class LogoutView(APIView):
    """POST /api/v1/auth/logout — Blacklist the refresh token."""
    permission_classes = [IsAuthenticated]

    def post(self, request):
        refresh_token = request.data.get('refresh')
        if refresh_token:
            try:
                RefreshToken(refresh_token).blacklist()
            except TokenError as exc:
                logger.info('Logout with unusable refresh token for %s: %s', request.user.pk, exc)

        AuthService.log_auth_event(
            action=AUDIT_ACTION_LOGOUT,
            user=request.user,
            **_request_meta(request),
        )

        return Response({'success': True, 'message': 'Logged out.', 'data': None})


class TokenRefreshAPIView(TokenRefreshView):
    """POST /api/v1/auth/refresh — Rotate refresh token."""
    pass


class MeView(APIView):
    """GET /api/v1/auth/me — Current user with roles and permissions."""
    permission_classes = [IsAuthenticated]

    def get(self, request):
        return Response({
            'success': True,
            'data': MeSerializer(request.user).data,
        })


class ChangePasswordView(APIView):
    """PUT /api/v1/auth/password — Change own password."""
    permission_classes = [IsAuthenticated]

    def put(self, request):
        serializer = ChangePasswordSerializer(data=request.data, context={'request': request})
        serializer.is_valid(raise_exception=True)
        UserService.change_password(
            user=request.user, password=serializer.validated_data['password'],
        )
        return Response({'success': True, 'message': 'Password updated.', 'data': None})


# ---------------------------------------------------------------------------
# User management ViewSet
# ---------------------------------------------------------------------------

class UserViewSet(viewsets.ModelViewSet):
    """CRUD for staff accounts, guarded by the ``users`` permissions."""

    permission_classes = [IsActiveUser, HasModulePermission]
    permission_module = 'users'
    action_permissions = {'doctors': None}
    filterset_fields = ['is_active', 'departments']
    search_fields = ['email', 'name', 'phone']
    ordering_fields = ['created_at', 'name', 'email']
    ordering = ['name']

    def get_queryset(self):
        qs = (
            User.objects
            .filter(is_deleted=False)
            .prefetch_related('user_roles__role', 'departments')
        )
        role = self.request.query_params.get('role')
        if role:
            qs = qs.filter(user_roles__role__name=role, user_roles__is_active=True).distinct()
        return qs

    def get_serializer_class(self):
        if self.action in ('list', 'retrieve', 'doctors'):
            return UserReadSerializer
        return UserWriteSerializer

    def perform_create(self, serializer):
        data = dict(serializer.validated_data)
        user = UserService.create_user(
            email=data.pop('email'),
            password=data.pop('password'),
            actor=self.request.user,
            **data,
        )
        serializer.instance = user

    def perform_update(self, serializer):
        user = UserService.update_user(
            user_id=self.get_object().pk,
            actor=self.request.user,
            **serializer.validated_data,
        )
        serializer.instance = user

    def create(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        self.perform_create(serializer)
        return Response(
            {'success': True, 'message': 'User created.', 'data': UserReadSerializer(serializer.instance).data},
            status=status.HTTP_201_CREATED,
        )

    def update(self, request, *args, **kwargs):
        partial = kwargs.pop('partial', False)
        serializer = self.get_serializer(self.get_object(), data=request.data, partial=partial)
        serializer.is_valid(raise_exception=True)
        self.perform_update(serializer)
        return Response({
            'success': True,
            'message': 'User updated.',
            'data': UserReadSerializer(serializer.instance).data,
        })

    def destroy(self, request, *args, **kwargs):
        UserService.delete_user(user=self.get_object(), actor=request.user)
        return Response({'success': True, 'message': 'User deleted.', 'data': None})

    @action(detail=True, methods=['post'], url_path='toggle-status')
    def toggle_status(self, request, pk=None):
        user = UserService.toggle_status(user_id=self.get_object().pk, actor=request.user)
        state = 'activated' if user.is_active else 'deactivated'
        return Response({
            'success': True,
            'message': f'User {state}.',
            'data': UserReadSerializer(user).data,
        })

    @action(detail=True, methods=['post'], url_path='assign-role')
    def assign_role(self, request, pk=None):
        serializer = UserRoleWriteSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        user_role = RoleService.assign_role(
            user=self.get_object(),
            role_name=serializer.validated_data['role_name'],
            actor=request.user,
        )
        return Response(
            {'success': True, 'message': 'Role assigned.', 'data': UserRoleReadSerializer(user_role).data},
            status=status.HTTP_201_CREATED,
        )

    @action(detail=True, methods=['post'], url_path='revoke-role')
    def revoke_role(self, request, pk=None):
        serializer = UserRoleWriteSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        RoleService.revoke_role(
            user=self.get_object(),
            role_name=serializer.validated_data['role_name'],
            actor=request.user,
        )
        return Response({'success': True, 'message': 'Role revoked.', 'data': None})

    @action(detail=False, methods=['get'])
    def doctors(self, request):
        qs = User.objects.doctors()
        department = request.query_params.get('department')
        if department:
            qs = qs.filter(departments=department)
        return Response({'success': True, 'data': UserReadSerializer(qs, many=True).data})


# ---------------------------------------------------------------------------
# Role / Permission ViewSets
# ---------------------------------------------------------------------------

class RoleViewSet(viewsets.ModelViewSet):
    permission_classes = [IsActiveUser, HasModulePermission]
    permission_module = 'roles'
    filterset_fields = ['is_active', 'is_system']
    search_fields = ['name', 'display_name']
    ordering = ['name']

    def get_queryset(self):
        return Role.objects.prefetch_related('permissions')

    def get_serializer_class(self):
        if self.action in ('list', 'retrieve'):
            return RoleReadSerializer
        return RoleWriteSerializer

    def perform_create(self, serializer):
        data = dict(serializer.validated_data)
        serializer.instance = RoleService.create_role(
            actor=self.request.user, permissions=data.pop('permissions', None), **data,
        )

    def perform_update(self, serializer):
        data = dict(serializer.validated_data)
        serializer.instance = RoleService.update_role(
            role=self.get_object(),
            actor=self.request.user,
            permissions=data.pop('permissions', None),
            **data,
        )

    def create(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        self.perform_create(serializer)
        return Response(
            {'success': True, 'message': 'Role created.', 'data': RoleReadSerializer(serializer.instance).data},
            status=status.HTTP_201_CREATED,
        )

    def update(self, request, *args, **kwargs):
        partial = kwargs.pop('partial', False)
        serializer = self.get_serializer(self.get_object(), data=request.data, partial=partial)
        serializer.is_valid(raise_exception=True)
        self.perform_update(serializer)
        return Response({
            'success': True,
            'message': 'Role updated.',
            'data': RoleReadSerializer(serializer.instance).data,
        })

    def destroy(self, request, *args, **kwargs):
        RoleService.delete_role(role=self.get_object(), actor=request.user)
        return Response({'success': True, 'message': 'Role deleted.', 'data': None})

    @action(detail=True, methods=['put'], url_path='permissions')
    def sync_permissions(self, request, pk=None):
        serializer = SyncPermissionsSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        role = RoleService.sync_permissions(
            role=self.get_object(),
            permissions=serializer.validated_data['permissions'],
            actor=request.user,
        )
        return Response({
            'success': True,
            'message': 'Role permissions updated.',
            'data': RoleReadSerializer(role).data,
        })


class PermissionViewSet(mixins.ListModelMixin, viewsets.GenericViewSet):
    permission_classes = [IsActiveUser, HasModulePermission]
    permission_module = 'roles'
    serializer_class = PermissionSerializer
    pagination_class = None
    filterset_fields = ['module', 'action']
    search_fields = ['name', 'display_name']

    def get_queryset(self):
        return Permission.objects.all()

    @action(detail=False, methods=['get'])
    def grouped(self, request):
        grouped: dict[str, list] = {}
        for perm in self.filter_queryset(self.get_queryset()):
            grouped.setdefault(perm.module, []).append(PermissionSerializer(perm).data)
        return Response({'success': True, 'data': grouped})
