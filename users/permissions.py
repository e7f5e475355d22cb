"""
Users — DRF Permission Classes

Permission-string checks for ViewSets. A view declares the module it
guards and, optionally, per-action overrides::

    class InvoiceViewSet(viewsets.ModelViewSet):
        permission_classes = [IsActiveUser, HasModulePermission]
        permission_module = 'billing'
        action_permissions = {'pay': 'billing.edit', 'stats': 'reports.view'}

@file users/permissions.py
"""

from rest_framework.permissions import BasePermission

ACTION_TO_PERMISSION = {
    'list': 'view',
    'retrieve': 'view',
    'create': 'create',
    'update': 'edit',
    'partial_update': 'edit',
    'destroy': 'delete',
}


class IsActiveUser(BasePermission):
    """Requires an authenticated, active, non-deleted account."""

    def has_permission(self, request, view):
        user = request.user
        return bool(
            user
            and user.is_authenticated
            and user.is_active
            and not getattr(user, 'is_deleted', False)
        )


class HasModulePermission(BasePermission):
    """
    Resolves the ``module.action`` string for the current viewset action.

    Standard CRUD actions map through ``ACTION_TO_PERMISSION``; custom
    ``@action`` methods default to ``module.view`` for safe methods and
    ``module.edit`` otherwise unless listed in ``view.action_permissions``.
    """

    message = 'You do not have permission to perform this action.'

    def get_required_permission(self, request, view) -> str | None:
        overrides = getattr(view, 'action_permissions', {}) or {}
        action = getattr(view, 'action', None)
        if action in overrides:
            return overrides[action]

        module = getattr(view, 'permission_module', None)
        if not module:
            return None
        if action in ACTION_TO_PERMISSION:
            return f'{module}.{ACTION_TO_PERMISSION[action]}'
        if request.method in ('GET', 'HEAD', 'OPTIONS'):
            return f'{module}.view'
        return f'{module}.edit'

    def has_permission(self, request, view):
        user = request.user
        if not user or not user.is_authenticated:
            return False
        required = self.get_required_permission(request, view)
        if required is None:
            return True
        return user.has_permission(required)
