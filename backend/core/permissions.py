from rest_framework.permissions import BasePermission

from .roles import (
    is_executive_role, is_superadmin_role, is_command_center_role, has_financial_access, has_permissions,
    user_role_name,
)


class IsExecutive(BasePermission):
    """Superadmin and C-level roles"""
    message = 'Executive role required.'

    def has_permission(self, request, view):
        return is_executive_role(user_role_name(request.user))


class IsSuperadmin(BasePermission):
    message = 'Superadmin role required.'

    def has_permission(self, request, view):
        return is_superadmin_role(user_role_name(request.user))


class IsCommandCenterMember(BasePermission):
    """Executives and operations management"""
    message = 'Access denied. The command center is restricted to executives.'

    def has_permission(self, request, view):
        return is_command_center_role(user_role_name(request.user))


class HasFinancialAccess(BasePermission):
    """Executive and financial roles"""
    message = 'Financial access required.'

    def has_permission(self, request, view):
        return has_financial_access(user_role_name(request.user))


METHOD_ACTIONS = {
    'GET': 'read',
    'HEAD': 'read',
    'OPTIONS': 'read',
    'POST': 'create',
    'PUT': 'update',
    'PATCH': 'update',
    'DELETE': 'delete',
}


class HasPermissions(BasePermission):
    """
    Require ``resource:action`` permission codes on the user's role.

    Subclasses set either ``resource``, in which case the action follows the
    HTTP method, or a fixed tuple of ``codes``.
    """
    resource = None
    codes = ()

    def required_permissions(self, request):
        if self.codes:
            return list(self.codes)
        return [f"{self.resource}:{METHOD_ACTIONS.get(request.method, 'read')}"]

    def has_permission(self, request, view):
        required = self.required_permissions(request)
        if has_permissions(request.user, required):
            return True
        self.message = f"Missing required permissions: {', '.join(required)}"
        return False


def resource_permission(resource):
    name = ''.join(part.title() for part in resource.replace('.', '-').split('-'))
    return type(f'Has{name}Permission', (HasPermissions,), {'resource': resource})


def permission_codes(*codes):
    return type('HasPermissionCodes', (HasPermissions,), {'codes': codes})
